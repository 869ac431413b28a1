"""
Command line entry point.

Run with: python -m rocket_tester path/to/rocket.jar [BONUS]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from rocket_tester.api.client import ApiClient
from rocket_tester.core.config import settings
from rocket_tester.core.logging import RunLog, get_logger, setup_logging
from rocket_tester.registry import Registry
from rocket_tester.runner import run_all, select, summarize
from rocket_tester.scenarios import all_tests


logger = get_logger("cli")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"expected a boolean, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rocket-tester",
        description="Integration tests for the ticket sales service",
    )
    parser.add_argument("jar", type=Path, help="The .jar file to test")
    parser.add_argument(
        "bonus",
        type=parse_bool,
        nargs="?",
        default=False,
        help="Whether to use the bonus implementation",
    )
    parser.add_argument(
        "--base-url",
        default=settings.base_url,
        help=f"Where the service listens (default: {settings.base_url})",
    )
    parser.add_argument(
        "--only",
        action="append",
        metavar="NAME",
        help="Only run the named test case (repeatable)",
    )
    parser.add_argument("--list", action="store_true", help="List test cases and exit")
    return parser


async def run(args: argparse.Namespace, registry: Registry) -> int:
    log = RunLog()
    logger.info(f"Testing {args.jar} against {args.base_url} (bonus: {args.bonus}).")

    async with ApiClient(args.base_url) as api:
        outcomes = await run_all(registry, args.jar, api, log, bonus=args.bonus)

    summary = summarize(outcomes)
    print(summary)
    return 0 if all(outcome.passed for outcome in outcomes) else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for name in all_tests().names():
            print(name)
        return 0

    setup_logging()

    jar = args.jar.expanduser()
    if not jar.is_file():
        parser.error(f"{jar} not found. Check whether the file exists.")
    args.jar = jar.resolve()

    try:
        registry = select(all_tests(), args.only)
    except ValueError as exc:
        parser.error(str(exc))

    return asyncio.run(run(args, registry))


if __name__ == "__main__":
    sys.exit(main())
