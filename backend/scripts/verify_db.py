#!/usr/bin/env python3
"""
PostgreSQL schema verification CLI

Connects to the database, checks every table in the schema registry and
prints a report. Exit code 0 means READY or DEGRADED, 1 means FAILED.

Usage:
    python -m backend.scripts.verify_db                      # Text report on stderr
    python -m backend.scripts.verify_db --json               # JSON outcome on stdout
    python -m backend.scripts.verify_db --show-ddl           # Also print DDL for missing tables
    python -m backend.scripts.verify_db --database-url postgresql://... --timeout 10
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

import orjson

from backend.database import (
    DEFAULT_REGISTRY,
    ConnectionManager,
    GateOutcome,
    SchemaRegistry,
    close_database,
    print_report,
    run_startup_gate,
)
from backend.logging_config import configure_logging, get_logger
from backend.settings import Settings, get_settings

logger = get_logger(name=__name__)


def missing_ddl(outcome: GateOutcome, registry: SchemaRegistry) -> str:
    """DDL for every missing table, in registry order. Printed, never executed."""
    if outcome.result is None:
        return ""
    missing = set(outcome.result.missing_required) | set(outcome.result.missing_optional)
    statements = [
        f"-- {d.name}: {d.description}\n{d.create_statement.strip()}"
        for d in registry.all_tables()
        if d.name in missing
    ]
    return "\n\n".join(statements)


async def run(args, settings: Settings, registry: SchemaRegistry = DEFAULT_REGISTRY) -> int:
    """Run the gate once and emit the requested output. Returns the exit code."""
    manager = ConnectionManager()
    try:
        outcome = await run_startup_gate(
            manager, registry, settings=settings, timeout=args.timeout
        )
    finally:
        await close_database(manager)

    if args.json:
        sys.stdout.write(orjson.dumps(outcome.to_dict(), option=orjson.OPT_INDENT_2).decode() + "\n")
    elif outcome.result is not None:
        print_report(outcome.result, registry)
    else:
        print(f"❌ Database verification failed ({outcome.reason}): {outcome.error}", file=sys.stderr)

    if args.show_ddl:
        ddl = missing_ddl(outcome, registry)
        if ddl:
            print(ddl)

    return outcome.exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify that the PostgreSQL schema the backend needs is present"
    )
    parser.add_argument(
        "--database-url",
        help="Override DATABASE_URL from the environment/.env",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed for connecting plus all checks (default: DB_VERIFY_TIMEOUT)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the outcome as JSON instead of the text report",
    )
    parser.add_argument(
        "--show-ddl",
        action="store_true",
        help="Print CREATE statements for missing tables (not executed)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.timeout is not None and args.timeout <= 0:
        parser.error("--timeout must be positive")

    settings = get_settings()
    if args.database_url:
        settings = Settings(**{**settings.model_dump(), "database_url": args.database_url})

    configure_logging(settings.log_level)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
