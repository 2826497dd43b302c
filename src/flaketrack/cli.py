#!/usr/bin/env python3
"""Unified CLI for flaketrack -- TestGrid flake and failure reporter."""

import argparse
import logging
import os
import sys

from flaketrack import __version__
from flaketrack.testgrid import DEFAULT_BASE_URL, DEFAULT_TIMEOUT


def _parse_csv_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _resolve_groups(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma-separated --group values, keeping order."""
    groups: list[str] = []
    for value in values or []:
        for group in _parse_csv_list(value):
            if group not in groups:
                groups.append(group)
    return groups


def _default_base_url() -> str:
    return os.environ.get("TESTGRID_URL") or DEFAULT_BASE_URL


def cmd_report(args):
    from flaketrack.report import run
    return run(
        _resolve_groups(args.group),
        base_url=args.base_url,
        timeout=args.timeout,
        workers=args.workers,
        fail_fast=args.fail_fast,
        output=args.output,
    )


def cmd_status(args):
    from flaketrack.report import summarize
    return summarize(
        _resolve_groups(args.group),
        base_url=args.base_url,
        timeout=args.timeout,
    )


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {n}")
    return n


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--group", action="append",
        help="TestGrid tab group, repeatable or comma-separated"
        " (default: sig-release-master-blocking,sig-release-master-informing)",
    )
    parser.add_argument(
        "--base-url", default=_default_base_url(),
        help=f"TestGrid base URL (default: $TESTGRID_URL or {DEFAULT_BASE_URL})",
    )
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {DEFAULT_TIMEOUT:g})",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flaketrack",
        description="TestGrid reporter -- lists flaking, failing and passing jobs with their tests",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Enable debug logging (verbose output)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- report ---
    p_report = subparsers.add_parser(
        "report", help="Collect tab group status and write a CSV report",
    )
    _add_source_args(p_report)
    p_report.add_argument(
        "--workers", type=_positive_int, default=1,
        help="Concurrent test table fetches per group (default: 1)",
    )
    p_report.add_argument(
        "--fail-fast", action="store_true",
        help="Stop a group at the first test table that cannot be fetched",
    )
    p_report.add_argument(
        "--output", default="-",
        help="Output CSV file path, or - for stdout (default: -)",
    )
    p_report.set_defaults(func=cmd_report)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show job counts per status for each tab group",
    )
    _add_source_args(p_status)
    p_status.set_defaults(func=cmd_status)

    return parser


def main():
    args = build_parser().parse_args()

    level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(
        level=level,
        format=(
            "%(message)s" if level == logging.INFO
            else "%(asctime)s %(name)s %(levelname)s %(message)s"
        ),
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
