"""Exceptions raised by the ledger core."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by :mod:`lagerbestand`."""


class ItemNotFoundError(LedgerError, LookupError):
    """Raised when an operation targets an item that does not exist."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item {item_id} not found")
        self.item_id = item_id


class InvalidInputError(LedgerError, ValueError):
    """Raised for input that cannot be coerced into a safe default."""


class MalformedSnapshotError(LedgerError, ValueError):
    """Raised when a backup document cannot be parsed."""


class StorageError(LedgerError):
    """Raised when the underlying store aborts a transaction."""


__all__ = [
    "LedgerError",
    "ItemNotFoundError",
    "InvalidInputError",
    "MalformedSnapshotError",
    "StorageError",
]
