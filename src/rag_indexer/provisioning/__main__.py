"""Command-line entry point for schema provisioning.

Usage::

    python -m rag_indexer.provisioning [--provider NAME ...] [--log-level LEVEL]

Exits with status 0 only when every selected backend was set up.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rag_indexer.config import Settings
from rag_indexer.errors import ConfigurationError
from rag_indexer.provisioning.setup import PROVISIONERS, provision


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m rag_indexer.provisioning",
        description="Create the tables, collections and indexes each vector-store backend needs.",
    )
    parser.add_argument(
        "--provider",
        action="append",
        choices=sorted(PROVISIONERS),
        help="Backend to set up (repeatable). Defaults to every backend configured in the environment.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        results = asyncio.run(provision(Settings(), args.provider))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("\nDatabase Setup Results:")
    print("=======================")
    for name, ok in results.items():
        print(f"{name}: {'SUCCESS' if ok else 'FAILURE'}")

    if all(results.values()):
        print("\nAll configured databases were set up successfully!")
        return 0
    print("\nSome database setups failed. Please check the error messages above.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
