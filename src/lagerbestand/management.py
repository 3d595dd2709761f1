"""Utility helpers for administrative tasks."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from sqlalchemy import inspect, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import get_settings
from .database import Base, SessionFactory, engine, unit_of_work
from .exceptions import LedgerError, StorageError
from .models import SCHEMA_VERSION, StoreMeta
from .schemas import RestoreSummary
from .snapshot import backup_filename, dump_snapshot, export_snapshot, parse_snapshot, restore_snapshot

logger = logging.getLogger(__name__)

# Optional item columns introduced after the first, name-and-stock-only schema.
_LEGACY_ITEM_COLUMNS = (
    ("sku", "VARCHAR(128)"),
    ("category", "VARCHAR(128)"),
    ("unit", "VARCHAR(32)"),
)


def _upgrade_legacy_items(connection: Connection) -> None:
    inspector = inspect(connection)
    if not inspector.has_table("items"):
        return
    existing = {column["name"] for column in inspector.get_columns("items")}
    for name, ddl in _LEGACY_ITEM_COLUMNS:
        if name not in existing:
            connection.execute(text(f"ALTER TABLE items ADD COLUMN {name} {ddl}"))
            logger.info("Added column items.%s to legacy store", name)


def _stamp_schema_version(connection: Connection) -> int:
    value = connection.execute(
        select(StoreMeta.value).where(StoreMeta.key == "schema_version")
    ).scalar_one_or_none()
    stored = int(value) if value is not None else None
    if stored is not None and stored > SCHEMA_VERSION:
        raise StorageError(
            f"Store schema version {stored} is newer than supported version {SCHEMA_VERSION}"
        )
    if stored is None:
        connection.execute(
            StoreMeta.__table__.insert().values(key="schema_version", value=str(SCHEMA_VERSION))
        )
    elif stored < SCHEMA_VERSION:
        connection.execute(
            StoreMeta.__table__.update()
            .where(StoreMeta.key == "schema_version")
            .values(value=str(SCHEMA_VERSION))
        )
        logger.info("Upgraded store schema from version %d to %d", stored, SCHEMA_VERSION)
    return SCHEMA_VERSION


async def init_database(db_engine: AsyncEngine | None = None) -> int:
    """Create or upgrade the store's tables without touching existing rows."""

    engine_to_use = db_engine or engine
    async with engine_to_use.begin() as conn:
        await conn.run_sync(_upgrade_legacy_items)
        await conn.run_sync(Base.metadata.create_all)
        return await conn.run_sync(_stamp_schema_version)


async def export_to_file(
    output: Path | None = None,
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> Path:
    """Write a backup of the whole store and return its path."""

    async with unit_of_work(factory) as session:
        document = await export_snapshot(session)
    destination = output or Path(backup_filename(document.exported_at))
    if destination.is_dir():
        destination = destination / backup_filename(document.exported_at)
    destination.write_text(dump_snapshot(document), encoding="utf-8")
    return destination


async def restore_from_file(
    source: Path,
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> RestoreSummary:
    """Replace the store with the contents of the backup at *source*."""

    payload = parse_snapshot(source.read_bytes())
    async with unit_of_work(factory) as session:
        return await restore_snapshot(session, payload)


def _configure_logging() -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=get_settings().log_level)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain the local stock ledger.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Create or upgrade the store.")

    export_parser = commands.add_parser("export", help="Write a JSON backup.")
    export_parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Destination file or directory. Defaults to lagerbestand_backup_<date>.json",
    )

    restore_parser = commands.add_parser("restore", help="Replace the store with a backup.")
    restore_parser.add_argument("source", type=Path, help="Backup file to import.")
    restore_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm that every existing item and booking will be replaced.",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    try:
        return await _dispatch(args)
    finally:
        await engine.dispose()


async def _dispatch(args: argparse.Namespace) -> int:
    if args.command == "restore" and not args.yes:
        print("Restore replaces all data; re-run with --yes to confirm.", file=sys.stderr)
        return 1
    version = await init_database()
    if args.command == "init":
        print(f"Store ready at schema version {version}")
    elif args.command == "export":
        destination = await export_to_file(args.output, SessionFactory)
        print(f"Backup written to {destination}")
    elif args.command == "restore":
        summary = await restore_from_file(args.source, SessionFactory)
        print(
            f"Restored {summary.items} item(s) and {summary.transactions} booking(s)"
            f" ({summary.dropped_transactions} dropped)"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI wrapper executed from :mod:`python -m`."""

    _configure_logging()
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return asyncio.run(_run(args))
    except (LedgerError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
