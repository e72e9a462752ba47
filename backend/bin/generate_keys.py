#!/usr/bin/env python3
"""Generate provider keys and save them as a JSON array.

The output file is what the gateway reads through PROVIDER_KEYS_FILE, or its
contents can be pasted into PROVIDER_KEYS.
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from quota_gateway.services.keys import write_key_file

DEFAULT_NUM_KEYS = 3


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate provider keys")
    parser.add_argument("-n", "--count", type=int, default=DEFAULT_NUM_KEYS)
    parser.add_argument("-o", "--output", type=Path, default=Path("keys.json"))
    args = parser.parse_args(argv)
    if args.count < 1:
        parser.error("--count must be at least 1")

    keys = write_key_file(args.output, args.count)
    print(f"Generated {len(keys)} API keys and saved to {args.output}:")
    for i, key in enumerate(keys):
        print(f"  [{i}] {key}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
