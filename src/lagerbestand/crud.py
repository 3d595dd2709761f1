"""Item and ledger repositories.

Every function works inside the caller's session and only flushes; the caller
owns the transaction boundary (see :func:`lagerbestand.database.unit_of_work`
and the API routes), so compound operations such as an adjustment or a
cascading delete commit or roll back as a single unit.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import schemas
from .exceptions import InvalidInputError, ItemNotFoundError
from .ids import new_id
from .models import Item, StockTransaction, now_ms
from .normalize import clean_optional_text, clean_text, coerce_number, coerce_timestamp

logger = logging.getLogger(__name__)


def _record_values(item: Item) -> dict[str, Any]:
    return {column.key: getattr(item, column.key) for column in Item.__table__.columns}


# ----------------------------------------------------------------------
# Items
# ----------------------------------------------------------------------
async def list_items(session: AsyncSession) -> Sequence[Item]:
    result = await session.execute(select(Item))
    return result.scalars().all()


async def search_items(session: AsyncSession, query: str | None) -> list[Item]:
    """Return items whose name contains *query*, ordered by name.

    Matching is case-insensitive for non-ASCII names too, which SQLite's
    ``LIKE`` does not provide, so the filter runs here.
    """

    needle = clean_text(query).casefold()
    items = await list_items(session)
    if needle:
        items = [item for item in items if needle in (item.name or "").casefold()]
    return sorted(items, key=lambda item: (item.name or "").casefold())


async def get_item(session: AsyncSession, item_id: str) -> Item | None:
    return await session.get(Item, item_id)


async def require_item(session: AsyncSession, item_id: str) -> Item:
    item = await get_item(session, item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    return item


async def put_item(session: AsyncSession, values: Mapping[str, Any]) -> Item:
    """Insert or replace the item identified by ``values["id"]``.

    Text fields are trimmed, ``stock`` falls back to 0 when it is not a finite
    number and missing timestamps default to now.
    """

    item_id = clean_text(values.get("id"))
    if not item_id:
        raise InvalidInputError("Item id is required")
    now = now_ms()
    item = Item(
        id=item_id,
        name=clean_text(values.get("name")),
        sku=clean_optional_text(values.get("sku")),
        category=clean_optional_text(values.get("category")),
        unit=clean_optional_text(values.get("unit")),
        stock=coerce_number(values.get("stock")),
        created_at=coerce_timestamp(values.get("created_at"), now),
        updated_at=coerce_timestamp(values.get("updated_at"), now),
    )
    item = await session.merge(item)
    await session.flush()
    return item


async def create_item(session: AsyncSession, data: schemas.ItemCreate) -> Item:
    name = clean_text(data.name)
    if not name:
        raise InvalidInputError("Item name must not be empty")
    now = now_ms()
    values = data.model_dump()
    values.update(id=new_id(), name=name, created_at=now, updated_at=now)
    item = await put_item(session, values)
    logger.info("Created item %s (%s) with stock %s", item.id, item.name, item.stock)
    return item


async def update_item(
    session: AsyncSession, item_id: str, data: schemas.ItemUpdate
) -> Item:
    item = await require_item(session, item_id)
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None
    }
    if "name" in changes and not clean_text(changes["name"]):
        raise InvalidInputError("Item name must not be empty")
    if "stock" in changes:
        changes["stock"] = coerce_number(changes["stock"], default=coerce_number(item.stock))

    values = _record_values(item)
    values.update(changes)
    values["updated_at"] = now_ms()
    item = await put_item(session, values)
    logger.debug("Updated item %s fields %s", item_id, sorted(changes))
    return item


async def delete_item(session: AsyncSession, item_id: str) -> int:
    """Delete the item and all of its bookings; return the number of bookings removed."""

    item = await require_item(session, item_id)
    removed = await delete_transactions_for_item(session, item_id)
    await session.delete(item)
    await session.flush()
    logger.info("Deleted item %s and %d booking(s)", item_id, removed)
    return removed


# ----------------------------------------------------------------------
# Ledger
# ----------------------------------------------------------------------
async def put_transaction(session: AsyncSession, values: Mapping[str, Any]) -> StockTransaction:
    transaction = StockTransaction(
        id=clean_text(values.get("id")) or new_id(),
        item_id=clean_text(values.get("item_id")),
        item_name_snapshot=clean_text(values.get("item_name_snapshot")),
        delta=coerce_number(values.get("delta")),
        reason=clean_text(values.get("reason")),
        note=clean_text(values.get("note")),
        at=coerce_timestamp(values.get("at"), now_ms()),
    )
    transaction = await session.merge(transaction)
    await session.flush()
    return transaction


async def record_adjustment(
    session: AsyncSession,
    item_id: str,
    delta: Any,
    reason: str | None = None,
    note: str | None = None,
) -> tuple[StockTransaction, Item]:
    """Apply *delta* to the item's stock and append the matching booking."""

    item = await require_item(session, item_id)
    amount = coerce_number(delta)
    if amount == 0:
        raise InvalidInputError("A booking must change the stock")

    current = coerce_number(item.stock)
    new_stock = current + amount
    if not math.isfinite(new_stock):
        new_stock = current
    now = now_ms()
    name_snapshot = item.name

    values = _record_values(item)
    values.update(stock=new_stock, updated_at=now)
    item = await put_item(session, values)
    transaction = await put_transaction(
        session,
        {
            "id": new_id(),
            "item_id": item.id,
            "item_name_snapshot": name_snapshot,
            "delta": amount,
            "reason": reason,
            "note": note,
            "at": now,
        },
    )
    logger.info("Booked %s on item %s, stock %s -> %s", amount, item_id, current, item.stock)
    return transaction, item


async def list_recent_transactions(
    session: AsyncSession, limit: int
) -> Sequence[StockTransaction]:
    if limit <= 0:
        return []
    stmt = (
        select(StockTransaction)
        .order_by(StockTransaction.at.desc(), StockTransaction.id.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def list_transactions_for_item(
    session: AsyncSession, item_id: str
) -> Sequence[StockTransaction]:
    stmt = (
        select(StockTransaction)
        .where(StockTransaction.item_id == item_id)
        .order_by(StockTransaction.at.desc(), StockTransaction.id.desc())
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def list_transactions(session: AsyncSession) -> Sequence[StockTransaction]:
    result = await session.execute(select(StockTransaction))
    return result.scalars().all()


async def delete_transactions_for_item(session: AsyncSession, item_id: str) -> int:
    stmt = delete(StockTransaction).where(StockTransaction.item_id == item_id)
    result = await session.execute(stmt)
    return result.rowcount or 0


__all__ = [name for name in globals() if not name.startswith("_")]
