"""Backup and restore of the complete store.

The backup document is the JSON shape the offline app has always produced::

    {"version": 1, "exportedAt": <ms>, "items": [...], "txs": [...]}

Export passes every stored field through. Restore is a destructive full
replace that runs inside the caller's transaction; it also accepts the older
items-only shape, in which case the missing attributes fall back to defaults
and the ledger ends up empty.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud
from .exceptions import MalformedSnapshotError
from .ids import new_id
from .models import Item, StockTransaction, now_ms
from .normalize import clean_text, coerce_timestamp
from .schemas import ItemOut, RestoreSummary, SnapshotDocument, TransactionOut

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
BACKUP_FILENAME_PREFIX = "lagerbestand_backup_"


async def export_snapshot(session: AsyncSession) -> SnapshotDocument:
    items = await crud.list_items(session)
    transactions = await crud.list_transactions(session)
    document = SnapshotDocument(
        version=SNAPSHOT_VERSION,
        exported_at=now_ms(),
        items=[ItemOut.model_validate(item) for item in items],
        txs=[TransactionOut.model_validate(tx) for tx in transactions],
    )
    logger.info("Exported %d item(s) and %d booking(s)", len(document.items), len(document.txs))
    return document


def dump_snapshot(document: SnapshotDocument) -> str:
    """Serialize *document* as pretty-printed JSON."""

    return document.model_dump_json(by_alias=True, indent=2)


def backup_filename(exported_at: int) -> str:
    stamp = datetime.fromtimestamp(exported_at / 1000)
    return f"{BACKUP_FILENAME_PREFIX}{stamp:%Y-%m-%d}.json"


def parse_snapshot(raw: str | bytes) -> dict[str, Any]:
    """Decode a backup file without touching the store.

    A top-level value that is not an object is rejected. Earlier releases
    read it as a document without items and cleared the store.
    """

    try:
        text = raw.decode("utf-8-sig") if isinstance(raw, (bytes, bytearray)) else raw.lstrip("\ufeff")
        payload = json.loads(text)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise MalformedSnapshotError("The file is not a valid JSON document") from exc
    if not isinstance(payload, dict):
        raise MalformedSnapshotError("The backup must be a JSON object")
    return payload


def _records(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    value = payload.get(key)
    if not isinstance(value, list):
        return []
    records = [record for record in value if isinstance(record, Mapping)]
    skipped = len(value) - len(records)
    if skipped:
        logger.warning("Skipping %d malformed %s entries in backup", skipped, key)
    return records


def _item_values(record: Mapping[str, Any], now: int) -> dict[str, Any]:
    return {
        "id": clean_text(record.get("id")) or new_id(),
        "name": record.get("name"),
        "sku": record.get("sku"),
        "category": record.get("category"),
        "unit": record.get("unit"),
        "stock": record.get("stock"),
        "created_at": coerce_timestamp(record.get("createdAt"), now),
        "updated_at": coerce_timestamp(record.get("updatedAt"), now),
    }


def _transaction_values(record: Mapping[str, Any], now: int) -> dict[str, Any]:
    return {
        "id": clean_text(record.get("id")) or new_id(),
        "item_id": clean_text(record.get("itemId")),
        "item_name_snapshot": record.get("itemNameSnapshot"),
        "delta": record.get("delta"),
        "reason": record.get("reason"),
        "note": record.get("note"),
        "at": coerce_timestamp(record.get("at"), now),
    }


async def restore_snapshot(
    session: AsyncSession, payload: Mapping[str, Any] | SnapshotDocument
) -> RestoreSummary:
    """Replace the whole store with the records in *payload*.

    Bookings whose ``itemId`` does not match a restored item are dropped so
    the restored ledger never holds dangling references.
    """

    if isinstance(payload, SnapshotDocument):
        payload = payload.model_dump(by_alias=True)
    now = now_ms()

    items: dict[str, dict[str, Any]] = {}
    for record in _records(payload, "items"):
        values = _item_values(record, now)
        items[values["id"]] = values

    transactions: dict[str, dict[str, Any]] = {}
    dropped = 0
    for record in _records(payload, "txs"):
        values = _transaction_values(record, now)
        if values["item_id"] not in items:
            dropped += 1
            continue
        transactions[values["id"]] = values
    if dropped:
        logger.warning("Dropped %d booking(s) referencing unknown items", dropped)

    await session.execute(delete(StockTransaction))
    await session.execute(delete(Item))
    for values in items.values():
        await crud.put_item(session, values)
    for values in transactions.values():
        await crud.put_transaction(session, values)

    logger.info("Restored %d item(s) and %d booking(s)", len(items), len(transactions))
    return RestoreSummary(
        items=len(items),
        transactions=len(transactions),
        dropped_transactions=dropped,
    )


__all__ = [
    "SNAPSHOT_VERSION",
    "export_snapshot",
    "dump_snapshot",
    "backup_filename",
    "parse_snapshot",
    "restore_snapshot",
]
