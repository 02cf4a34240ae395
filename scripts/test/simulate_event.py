# scripts/test/simulate_event.py
"""Send test sensor and payment webhooks to a running backend."""

import argparse
import requests
from datetime import datetime

BACKEND_URL = "http://localhost:8080/api/v1"


def simulate_sensor(toilet_id, status):
    resp = requests.post(f"{BACKEND_URL}/sensor-update",
                         json={"toilet_id": toilet_id, "sensor_status": status}, timeout=10)
    print(f"✅ sensor {status} toilet={toilet_id} → HTTP {resp.status_code}: {resp.json()}")


def simulate_payment(toilet_id, amount, method, reference=None):
    reference = reference or f"SIM-{datetime.utcnow().strftime('%Y%m%d%H%M%S%f')}"
    payload = {
        "toilet_id": toilet_id,
        "amount": amount,
        "payment_method": method,
        "payment_reference": reference,
    }
    resp = requests.post(f"{BACKEND_URL}/payment-webhook", json=payload, timeout=10)
    print(f"✅ payment {amount} via {method} ref={reference} → HTTP {resp.status_code}: {resp.json()}")


def simulate_visit(toilet_id, amount, method):
    """Full paid visit: pay, walk in, walk out."""
    simulate_payment(toilet_id, amount, method)
    simulate_sensor(toilet_id, "occupied")
    simulate_sensor(toilet_id, "available")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate toilet sensor / payment events for testing")
    parser.add_argument("--event", default="visit", choices=["occupied", "available", "payment", "visit"])
    parser.add_argument("--toilet", required=True, help="toilet id")
    parser.add_argument("--amount", type=float, default=200)
    parser.add_argument("--method", default="momo", choices=["momo", "rfid_card"])
    parser.add_argument("--reference", help="payment reference (default: generated)")
    parser.add_argument("--url", default=BACKEND_URL)
    args = parser.parse_args()

    BACKEND_URL = args.url.rstrip("/")
    if args.event == "payment":
        simulate_payment(args.toilet, args.amount, args.method, args.reference)
    elif args.event == "visit":
        simulate_visit(args.toilet, args.amount, args.method)
    else:
        simulate_sensor(args.toilet, args.event)
