#!/usr/bin/env python3
"""
Drive a doctor's queue from the command line.

Usage:
    python scripts/queue_control.py status --doctor-id <uuid>
    python scripts/queue_control.py pause --doctor-id <uuid> --reason "Emergency"
    python scripts/queue_control.py call-next --doctor-id <uuid> --date 2026-10-18

Environment Variables:
    API_URL: Base API URL (default: http://localhost:8000)
    API_TOKEN: Bearer token to use; when unset a short-lived admin token is
        minted with JWT_SECRET
"""

import argparse
import json
import os
import sys
from datetime import timedelta
from uuid import uuid4

import dotenv
import requests

dotenv.load_dotenv()

ACTIONS = ("status", "pause", "resume", "start", "stop", "call-next", "waiting", "reorder")


def get_token() -> str:
    """Bearer token from API_TOKEN, or a freshly minted admin token."""
    token = os.getenv("API_TOKEN")
    if token:
        return token

    if not os.getenv("JWT_SECRET"):
        print("Error: set API_TOKEN or JWT_SECRET", file=sys.stderr)
        sys.exit(1)

    from clinicq.core.security import create_access_token

    return create_access_token(uuid4(), "admin", expires_delta=timedelta(minutes=5))


def queue_request(
    action: str,
    doctor_id: str,
    day: str | None = None,
    reason: str | None = None,
    prioritized: bool = False,
) -> dict:
    """Call one queue endpoint and return the decoded envelope."""
    api_url = os.getenv("API_URL", "http://localhost:8000")
    url = f"{api_url}/api/v1/doctor/queue/{action}"
    headers = {"Authorization": f"Bearer {get_token()}"}

    target: dict = {"doctor_id": doctor_id}
    if day:
        target["date"] = day

    try:
        if action in ("status", "waiting"):
            params = {**target, "prioritized": str(prioritized).lower()}
            response = requests.get(url, params=params, headers=headers, timeout=30)
        else:
            if reason:
                target["reason"] = reason
            response = requests.post(url, json=target, headers=headers, timeout=30)
        response.raise_for_status()
        return response.json()
    except requests.exceptions.HTTPError as e:
        print(f"HTTP Error: {e}", file=sys.stderr)
        print(f"Response: {e.response.text}", file=sys.stderr)
        sys.exit(1)
    except requests.exceptions.RequestException as e:
        print(f"Request Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Control a doctor's patient queue")
    parser.add_argument("action", choices=ACTIONS)
    parser.add_argument("--doctor-id", required=True, help="Doctor whose queue to act on")
    parser.add_argument("--date", help="Queue date (YYYY-MM-DD, default: today at the clinic)")
    parser.add_argument("--reason", help="Reason shown to patients when pausing")
    parser.add_argument("--prioritized", action="store_true", help="Priority order for waiting")
    args = parser.parse_args()

    if args.action == "pause" and not args.reason:
        parser.error("pause requires --reason")

    result = queue_request(args.action, args.doctor_id, args.date, args.reason, args.prioritized)

    if result.get("message"):
        print(f"✅ {result['message']}")
    print(json.dumps(result.get("data"), indent=2))


if __name__ == "__main__":
    main()
