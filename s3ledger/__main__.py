#!/usr/bin/env python3
"""
s3ledger command line

Reads the store configuration from S3LEDGER_* environment variables and
credentials through botocore's resolver chain.

Usage:
    S3LEDGER_BUCKET=ledgers S3LEDGER_ENDPOINT=http://localhost:9000 \\
    S3LEDGER_REGION=us-east-1 python -m s3ledger ls books/commit

    python -m s3ledger put books.json ./books.json
    python -m s3ledger get books.json -o -
    python -m s3ledger store books/commit ./commit.json
    python -m s3ledger cat fluree:s3://books/commit/<sha256>.json
    python -m s3ledger rm books.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from s3ledger.core.config import StorageConfig
from s3ledger.core.errors import S3LedgerError
from s3ledger.core.types import Result
from s3ledger.observability.logging import LogLevel, setup_logging
from s3ledger.signing.credentials import BotocoreCredentialProvider
from s3ledger.storage.content import ContentAddressedStore
from s3ledger.storage.s3_store import S3ObjectStore

logger = logging.getLogger("s3ledger")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _read_input(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _write_output(target: str, data: bytes) -> None:
    if target == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        Path(target).write_bytes(data)


async def _dispatch(args: argparse.Namespace, store: S3ObjectStore) -> Result[Any, S3LedgerError]:
    cas = ContentAddressedStore(store)

    if args.command == "put":
        result = await store.write_bytes(args.path, _read_input(args.source), args.content_type)
        if result.is_ok():
            print(cas.address_of(args.path.lstrip("/")))

    elif args.command == "get":
        result = await store.read_bytes(args.path)
        if result.is_ok():
            _write_output(args.output, result.unwrap())

    elif args.command == "rm":
        result = await store.delete_object(args.path)

    elif args.command == "ls":
        result = await store.list_all(args.prefix)
        if result.is_ok():
            for key in result.unwrap():
                print(key)

    elif args.command == "store":
        result = await cas.content_write(
            args.directory, _read_input(args.source), extension=args.extension,
        )
        if result.is_ok():
            print(result.unwrap().address)

    elif args.command == "cat":
        result = await cas.read_json(args.address)
        if result.is_ok():
            print(json.dumps(result.unwrap(), indent=2, sort_keys=True))

    else:
        raise ValueError(f"unknown command {args.command!r}")

    return result


async def _run(args: argparse.Namespace, store: S3ObjectStore) -> int:
    try:
        result = await _dispatch(args, store)
    except OSError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED

    if result.is_err():
        error: S3LedgerError = result.error
        logger.error("%s failed", args.command, extra={"error": error.to_dict()})
        print(f"error: {error}", file=sys.stderr)
        return EXIT_FAILED

    logger.debug("Metrics: %s", store.metrics)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3ledger",
        description="Content-addressed ledger storage on S3-compatible services",
    )
    parser.add_argument("--env-prefix", default="S3LEDGER", help="Environment variable prefix")
    parser.add_argument("--profile", default=None, help="AWS shared-credentials profile")
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=[level.name for level in LogLevel], help="Minimum log level",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    sub = parser.add_subparsers(dest="command", required=True)

    put = sub.add_parser("put", help="Upload a file to a path")
    put.add_argument("path")
    put.add_argument("source", help="File to upload, '-' for stdin")
    put.add_argument("--content-type", default="application/octet-stream")

    get = sub.add_parser("get", help="Download a path")
    get.add_argument("path")
    get.add_argument("-o", "--output", default="-", help="Destination file, '-' for stdout")

    rm = sub.add_parser("rm", help="Delete a path")
    rm.add_argument("path")

    ls = sub.add_parser("ls", help="List paths under a prefix")
    ls.add_argument("prefix", nargs="?", default="")

    store = sub.add_parser("store", help="Content-address a file under a directory")
    store.add_argument("directory")
    store.add_argument("source", help="File to store, '-' for stdin")
    store.add_argument("--extension", default="json")

    cat = sub.add_parser("cat", help="Print the JSON document at an address")
    cat.add_argument("address")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(LogLevel[args.log_level], json_output=args.json_logs)

    config_result = StorageConfig.from_env(args.env_prefix)
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}", file=sys.stderr)
        return EXIT_CONFIG

    async def _main() -> int:
        store_result = S3ObjectStore.open(
            config_result.unwrap(), BotocoreCredentialProvider(profile=args.profile),
        )
        if store_result.is_err():
            print(f"Configuration error: {store_result.error}", file=sys.stderr)
            return EXIT_CONFIG

        async with store_result.unwrap() as store:
            return await _run(args, store)

    try:
        return asyncio.run(_main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
