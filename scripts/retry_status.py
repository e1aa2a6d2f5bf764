#!/usr/bin/env python3

import argparse
import json
import sys

import httpx

from notifier.config import settings


def main():
    parser = argparse.ArgumentParser(
        description="Show messages waiting in the notifier's retry queue"
    )
    parser.add_argument(
        "--url",
        default=settings.base_url,
        help="Base URL of the notifier service",
    )
    parser.add_argument(
        "--fail-on-pending",
        action="store_true",
        help="Exit with status 2 when any message is waiting for a retry",
    )

    args = parser.parse_args()

    url = f"{args.url.rstrip('/')}/api/message-retry-status"

    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        print(
            f"HTTP Error {e.response.status_code}: {e.response.text}", file=sys.stderr
        )
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    status = response.json()
    print(json.dumps(status, indent=2))

    if args.fail_on_pending and status.get("queueSize", 0) > 0:
        sys.exit(2)


if __name__ == "__main__":
    main()
