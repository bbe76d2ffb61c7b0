#!/usr/bin/env python3
"""CLI helper to create a note through the API."""

from __future__ import annotations

import argparse
import sys

import requests


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a note")
    parser.add_argument("name", help="Note title")
    parser.add_argument("--description", default="", help="Note body (HTML allowed)")
    parser.add_argument("--bg-color", dest="bg_color", default=None, help="Background color, e.g. #ffeeaa")
    parser.add_argument(
        "--api-url",
        default="http://localhost:8080/notes",
        help="Notes collection endpoint",
    )
    args = parser.parse_args()

    payload = {"name": args.name, "description": args.description}
    if args.bg_color:
        payload["bg_color"] = args.bg_color

    response = requests.post(args.api_url, json=payload, timeout=10)
    if response.status_code >= 400:
        print(
            f"Failed to create note: {response.status_code} {response.text}",
            file=sys.stderr,
        )
        sys.exit(1)

    data = response.json()
    print(f"Created note {data['id']}: {data['name']}")


if __name__ == "__main__":
    try:
        main()
    except Exception as exc:  # pragma: no cover
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
