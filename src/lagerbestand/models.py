"""Database models for the stock ledger."""
from __future__ import annotations

import time

from sqlalchemy import BigInteger, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base

SCHEMA_VERSION = 2


def now_ms() -> int:
    """Current wall clock time in milliseconds since the epoch."""

    return int(time.time() * 1000)


class TimestampMixin:
    """Mixin providing created/updated timestamp columns in epoch milliseconds."""

    created_at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False)
    updated_at: Mapped[int] = mapped_column(
        BigInteger, default=now_ms, nullable=False, index=True
    )


class Item(Base, TimestampMixin):
    __tablename__ = "items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sku: Mapped[str | None] = mapped_column(String(128))
    category: Mapped[str | None] = mapped_column(String(128))
    unit: Mapped[str | None] = mapped_column(String(32))
    stock: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Item id={self.id!r} name={self.name!r} stock={self.stock}>"


class StockTransaction(Base):
    """One booking against an item.

    ``item_id`` is deliberately not a foreign key: bookings hold a weak
    reference and are removed together with their item by
    :func:`lagerbestand.crud.delete_item`.
    """

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_item_id_at", "item_id", "at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    item_name_snapshot: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    delta: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    note: Mapped[str] = mapped_column(Text, default="", nullable=False)
    at: Mapped[int] = mapped_column(BigInteger, default=now_ms, nullable=False, index=True)


class StoreMeta(Base):
    __tablename__ = "store_meta"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(255), nullable=False)


__all__ = [
    "SCHEMA_VERSION",
    "now_ms",
    "Item",
    "StockTransaction",
    "StoreMeta",
]
