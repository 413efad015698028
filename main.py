"""
main.py
-------
Command-line entry point for the MySQL Schema Sync tool.

Usage::

    python main.py --model models.json --database shop
    python main.py --model schema.txt --database shop --dry-run

Design Decisions:
    * The model file is JSON when it ends in ``.json``; anything else is
      read with the plain-text ``Table:`` parser.
    * Connection settings come from ``config.py`` (environment / .env);
      command-line flags only override the database name and credentials.
    * Exit status is 0 on success and 1 on any failure.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from config import CONFIG
from core.database import DatabaseManager
from core.schema_parser import SchemaParseError, parse_schema_file
from core.synchronizer import SchemaSynchronizer, SchemaSyncError, SyncTarget
from logger import get_logger, set_console_level
from models.entity import DeclarativeModel, ModelError, load_model_from_file

log = get_logger(__name__)


def load_model(path: Path) -> DeclarativeModel:
    """Read a declarative model from a JSON or plain-text model file."""
    if path.suffix.lower() == ".json":
        return load_model_from_file(path)
    return parse_schema_file(path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bring a MySQL database schema in line with a declared model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --model models.json --database shop            # Synchronise
  python main.py --model schema.txt --database shop --dry-run   # Preview DDL

Environment Variables:
  DB_HOST          Database host (default: localhost)
  DB_PORT          Database port (default: 3306)
  DB_USER          Database user (default: root)
  DB_PASSWORD      Database password
  DB_NAME          Target database name
  MODEL_FILE       Model file used when --model is omitted
  LOG_LEVEL        Console log level (default: INFO)
  LOG_FILE         Optional log file path
        """,
    )
    parser.add_argument(
        "--model",
        type=Path,
        default=CONFIG.sync.model_file,
        help="Model file (.json, or plain-text Table: format)",
    )
    parser.add_argument(
        "--database",
        type=str,
        help="Target database name (overrides DB_NAME)",
    )
    parser.add_argument("--user", type=str, help="Database user (overrides DB_USER)")
    parser.add_argument(
        "--password", type=str, help="Database password (overrides DB_PASSWORD)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the DDL that would run without executing it",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging on the console",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_console_level(logging.DEBUG)

    if args.model is None:
        log.error("No model file given (use --model or set MODEL_FILE).")
        return 1

    try:
        model = load_model(args.model)
        connector = DatabaseManager.from_config(
            database=args.database, user=args.user, password=args.password
        )
    except (ModelError, SchemaParseError, ValueError) as exc:
        log.error("%s", exc)
        return 1

    target = SyncTarget(name=connector.database, connector=connector, model=model)
    synchronizer = SchemaSynchronizer()

    print("=" * 70)
    print(f"{CONFIG.app_name} {CONFIG.app_version}")
    print(f"Host: {CONFIG.db.host}:{CONFIG.db.port}")
    print(f"Database: {target.name}")
    print(f"Model: {args.model} ({len(model)} entities)")
    print(f"Mode: {'DRY RUN' if args.dry_run else 'EXECUTE'}")
    print("=" * 70)

    if args.dry_run:
        try:
            statements = synchronizer.plan(target)
        except SchemaSyncError as exc:
            log.error("%s", exc)
            return 1
        if not statements:
            print("Schema is up to date; nothing to do.")
        for sql in statements:
            print(f"{sql};\n")
        return 0

    result = synchronizer.refresh(target)
    print(result)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
