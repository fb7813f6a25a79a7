"""
Schema bootstrap for the cinema database.

This script:
- Validates configuration (fail-fast on critical errors)
- Checks database connectivity
- Creates the requested table groups (default: all) in dependency order
- Optionally verifies that the tables of the requested groups exist

Designed to be idempotent and safe to run multiple times; the application
creates tables lazily on first use, so running it is optional.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --group bookings --group staff_tasks
    python scripts/init_schema.py --check
"""

import asyncio
import logging
import sys
from argparse import ArgumentParser
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import Table
from sqlalchemy.exc import SQLAlchemyError

from cinema.data_access import DataAccess, create_data_access
from database.schema import UnknownTableGroupError
from shared.logging_config import configure_logging
from shared.startup_validator import StartupValidationError, validate_startup_config

logger = logging.getLogger(__name__)


async def check_tables_exist(data: DataAccess, tables: list[Table]) -> dict[str, bool]:
    """
    Check which of the given tables exist in the database.

    Returns:
        dict: Mapping of table names to existence status
    """
    table_status = {}
    for table in tables:
        result = await data.execute(
            """
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = current_schema()
                    AND table_name = :table_name
                ) AS present
            """,
            {"table_name": table.name},
        )
        exists = bool(result.rows[0]["present"])
        table_status[table.name] = exists

        status_icon = "✓" if exists else "✗"
        logger.info(f"  {status_icon} Table '{table.name}': {'exists' if exists else 'missing'}")

    return table_status


async def run(groups: list[str], check: bool) -> bool:
    """
    Bootstrap the schema.

    Returns:
        bool: True if every step succeeded
    """
    try:
        await validate_startup_config()
    except StartupValidationError as e:
        logger.critical(f"Startup blocked: {e}")
        return False

    data = create_data_access()
    try:
        health = await data.check_health()
        if not health["ok"]:
            logger.error(f"✗ Database connection failed: {health['details']}")
            return False
        logger.info("✓ Database connection successful")

        try:
            if groups:
                for group in groups:
                    await data.schema.ensure(group)
            else:
                await data.schema.ensure_all()
        except SQLAlchemyError as e:
            logger.error(f"✗ Schema bootstrap failed: {e}")
            return False

        ready = [name for name in data.schema.groups if data.schema.is_ready(name)]
        logger.info(f"✓ Table groups ready: {', '.join(ready)}")

        if check:
            # Only the requested groups (and their dependencies) are expected
            tables = data.schema.tables_for(groups or None)
            table_status = await check_tables_exist(data, tables)
            missing = [name for name, exists in table_status.items() if not exists]
            if missing:
                logger.error(f"Missing tables: {', '.join(missing)}")
                return False

        return True
    finally:
        await data.close()


async def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = ArgumentParser(description="Create cinema database tables")
    parser.add_argument(
        "--group",
        action="append",
        default=[],
        help="Table group to create (repeatable, default: all groups)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Verify that the tables of the requested groups exist afterwards",
    )
    args = parser.parse_args(argv)

    configure_logging()

    try:
        success = await run(args.group, args.check)
    except UnknownTableGroupError as e:
        logger.error(f"Invalid --group: {e}")
        return 2
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
