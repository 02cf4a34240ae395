# tests/conftest.py
"""Shared fixtures: in-memory SQLite database, sessions, API client and toilet factory."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported; never point tests at a real database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["OVERSTAY_SCAN_INTERVAL_SECONDS"] = "0"

import pytest
from datetime import datetime
from app.database import Base, SessionLocal, engine, create_tables
from app.services.toilet_service import create_toilet


@pytest.fixture
def db():
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def toilet(db):
    return create_toilet(db, name="Block A - Unit 1", location="Nyabugogo", now=datetime(2026, 3, 1, 8, 0))


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from app.main import app
    return TestClient(app)
