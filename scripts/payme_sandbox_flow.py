#!/usr/bin/env python3
"""
Payme webhook flow script.

DO NOT ADD BUSINESS LOGIC HERE.
This script only plays the part of Payme against a running server.
All rules live in the backend.

Usage:
    PAYME_TEST_KEY=... python scripts/payme_sandbox_flow.py --booking-id 125 --amount 100000
    PAYME_TEST_KEY=... python scripts/payme_sandbox_flow.py --booking-id 125 --amount 100000 --cancel

Flow:
    1. CheckPerformTransaction
    2. CreateTransaction
    3. CreateTransaction again (must return the same result)
    4. PerformTransaction
    5. CheckTransaction
    6. CancelTransaction (optional)
    7. GetStatement
"""

import argparse
import json
import os
import sys
import time
import uuid

import httpx

from stayhub.config import settings
from stayhub.core.security import build_basic_credentials

BASE_URL = "http://localhost:8000"
WEBHOOK_PATH = "/api/v1/webhooks/payme"


def rpc(key: str, method: str, params: dict, request_id: int) -> dict:
    """Send one JSON-RPC call the way Payme does."""
    response = httpx.post(
        f"{BASE_URL}{WEBHOOK_PATH}",
        headers={"Authorization": build_basic_credentials(settings.payme_login, key)},
        json={"method": method, "params": params, "id": request_id},
        timeout=10.0,
    )
    if response.status_code != 200:
        print(f"ERROR: webhook returned HTTP {response.status_code}")
        print(response.text)
        sys.exit(1)
    return response.json()


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(body: dict) -> bool:
    """Print result, return False on RPC error."""
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return "error" not in body or body["error"] is None


def main():
    parser = argparse.ArgumentParser(description="Drive the Payme webhook flow")
    parser.add_argument("--booking-id", required=True, help="Booking id")
    parser.add_argument("--amount", type=int, required=True, help="Amount in tiyin")
    parser.add_argument("--cancel", action="store_true", help="Cancel after performing")
    args = parser.parse_args()

    key = os.environ.get("PAYME_TEST_KEY")
    if not key:
        print("ERROR: PAYME_TEST_KEY is not set")
        sys.exit(1)

    account = {"booking_id": args.booking_id}
    transaction_id = uuid.uuid4().hex[:24]
    now_ms = int(time.time() * 1000)

    print_step(1, "CheckPerformTransaction")
    if not print_result(rpc(key, "CheckPerformTransaction", {"amount": args.amount, "account": account}, 1)):
        sys.exit(1)

    create_params = {"id": transaction_id, "time": now_ms, "amount": args.amount, "account": account}

    print_step(2, "CreateTransaction")
    first = rpc(key, "CreateTransaction", create_params, 2)
    if not print_result(first):
        sys.exit(1)

    print_step(3, "CreateTransaction (repeat)")
    second = rpc(key, "CreateTransaction", create_params, 3)
    print_result(second)
    if first["result"] != second["result"]:
        print("ERROR: repeated CreateTransaction returned a different result")
        sys.exit(1)

    print_step(4, "PerformTransaction")
    if not print_result(rpc(key, "PerformTransaction", {"id": transaction_id}, 4)):
        sys.exit(1)

    print_step(5, "CheckTransaction")
    print_result(rpc(key, "CheckTransaction", {"id": transaction_id}, 5))

    step = 6
    if args.cancel:
        print_step(step, "CancelTransaction")
        print_result(rpc(key, "CancelTransaction", {"id": transaction_id, "reason": 5}, step))
        step += 1

    print_step(step, "GetStatement")
    print_result(rpc(key, "GetStatement", {"from": now_ms - 60_000, "to": int(time.time() * 1000)}, step))

    print("\nFlow completed.")


if __name__ == "__main__":
    main()
