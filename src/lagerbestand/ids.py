"""Identifier generation for items and bookings."""
from __future__ import annotations

import uuid


def new_id() -> str:
    """Return a fresh random identifier."""

    return str(uuid.uuid4())


__all__ = ["new_id"]
