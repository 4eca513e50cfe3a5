"""scripts/fetch_latest.py

Small helper to pull records from the inventory API (default resource:
orders). The list endpoints return orders newest first, so `--mode latest`
asks for a single element and prints it.

Usage:
    API_BASE_URL=http://localhost:8000 python ./scripts/fetch_latest.py --resource orders
    python ./scripts/fetch_latest.py --mode all --status PENDING --out pending.json
"""
from __future__ import annotations
import argparse
import json
import os
from typing import Optional

import requests
from dotenv import load_dotenv


load_dotenv()


def try_get(url: str, params: Optional[dict] = None, timeout: int = 10) -> Optional[requests.Response]:
    try:
        return requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        print(f"Request to {url} failed: {e}")
        return None


def _get_list(api_base: str, resource: str, params: dict) -> Optional[list]:
    url = f"{api_base.rstrip('/')}/{resource.strip('/')}"
    r = try_get(url, params=params)
    if r is None:
        return None
    if r.status_code != 200:
        print(f"Received {r.status_code} from {url}: {r.text}")
        return None
    try:
        data = r.json()
    except ValueError as e:
        print(f"Failed to parse JSON from {url}: {e}")
        return None
    if not isinstance(data, list):
        print("Expected a list from the resource endpoint but got a single object.")
        return None
    return data


def fetch_latest(api_base: str, resource: str = "orders", status: Optional[str] = None):
    """Return the first record of the list endpoint, or None."""
    params = {"limit": 1}
    if status:
        params["status"] = status
    rows = _get_list(api_base, resource, params)
    if not rows:
        print("No records returned.")
        return None
    return rows[0]


def fetch_all(api_base: str, resource: str = "orders", status: Optional[str] = None, limit: int = 1000):
    params = {"limit": limit}
    if status:
        params["status"] = status
    return _get_list(api_base, resource, params)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Fetch latest or all records from the inventory API",
    )
    parser.add_argument(
        "--api-base",
        default=os.environ.get("API_BASE_URL", "http://localhost:8000"),
        help="API base URL",
    )
    parser.add_argument(
        "--resource",
        default="orders",
        help="Resource path (orders or customers)",
    )
    parser.add_argument(
        "--mode",
        choices=("latest", "all"),
        default="latest",
        help="Fetch mode: latest or all",
    )
    parser.add_argument("--status", help="Only orders with this status")
    parser.add_argument("--out", help="Optional JSON output file")

    args = parser.parse_args(argv)

    if args.mode == "latest":
        result = fetch_latest(args.api_base, args.resource, args.status)
    else:
        result = fetch_all(args.api_base, args.resource, args.status)
    if result is None:
        return 1

    if args.out:
        with open(args.out, "w", encoding="utf8") as fh:
            json.dump(result, fh, ensure_ascii=False, indent=2)
        count = len(result) if isinstance(result, list) else 1
        print(f"Wrote {count} record(s) to {args.out}")
    else:
        print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
