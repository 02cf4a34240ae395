# scripts/setup/init_db.py
"""
Initialize database — creates the toilets, payments and access_logs tables.
Optionally seeds demo toilets for a fresh dashboard.
Usage: python scripts/setup/init_db.py [--seed]
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import SessionLocal, create_tables, engine
from app.config import settings
from app.models.toilet import Toilet
from app.services.toilet_service import create_toilet
from sqlalchemy import inspect, text

DEMO_TOILETS = [
    ("Block A - Unit 1", "Nyabugogo Bus Park"),
    ("Block A - Unit 2", "Nyabugogo Bus Park"),
    ("Block B - Unit 1", "Kimironko Market"),
]


def seed():
    db = SessionLocal()
    try:
        if db.query(Toilet).count():
            print("ℹ️  Toilets already present, skipping seed")
            return
        for name, location in DEMO_TOILETS:
            toilet = create_toilet(db, name=name, location=location)
            print(f"   + {toilet.name} ({toilet.id})")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create SmartenGo tables")
    parser.add_argument("--seed", action="store_true", help="add demo toilets if the table is empty")
    args = parser.parse_args()

    print("🗄️  SmartenGo DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running:")
        print("  sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    if args.seed:
        print("\n🌱 Seeding demo toilets...")
        seed()

    print("\n🎉 Database ready! You can now start the backend:")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
