"""Pydantic schemas shared by the API and the snapshot document."""
from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .normalize import Number, coerce_number

# Raw numeric input; coerced by the repositories instead of rejected here.
LooseNumber = Optional[Union[int, float, str]]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ItemBase(CamelModel):
    name: str
    sku: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = Field(None, description="Unit of measurement, e.g. Stk, Karton, m.")


class ItemCreate(ItemBase):
    name: str = ""
    stock: LooseNumber = 0


class ItemUpdate(CamelModel):
    name: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    stock: LooseNumber = None


class ItemOut(ItemBase):
    id: str
    stock: Number = 0
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("stock", mode="before")
    @classmethod
    def _finite_stock(cls, value: object) -> Number:
        return coerce_number(value)


class AdjustmentIn(CamelModel):
    delta: LooseNumber = Field(..., description="Positive for stock-in, negative for stock-out.")
    reason: Optional[str] = None
    note: Optional[str] = None


class TransactionOut(CamelModel):
    id: str
    item_id: str
    item_name_snapshot: str = ""
    delta: Number
    reason: str = ""
    note: str = ""
    at: int

    @field_validator("delta", mode="before")
    @classmethod
    def _finite_delta(cls, value: object) -> Number:
        return coerce_number(value)


class SnapshotDocument(CamelModel):
    version: int = 1
    exported_at: int
    items: list[ItemOut] = Field(default_factory=list)
    txs: list[TransactionOut] = Field(default_factory=list)


class RestoreSummary(CamelModel):
    items: int
    transactions: int
    dropped_transactions: int = 0


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    environment: str


__all__ = [
    "ItemCreate",
    "ItemUpdate",
    "ItemOut",
    "AdjustmentIn",
    "TransactionOut",
    "SnapshotDocument",
    "RestoreSummary",
    "HealthStatus",
]
