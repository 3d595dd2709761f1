"""ASGI entrypoint for running the service."""
from __future__ import annotations

import asyncio
import logging

import uvicorn

from .config import get_settings
from .database import engine
from .management import init_database


async def _prepare_store() -> None:
    await init_database()
    # The server runs on its own event loop; drop connections bound to this one.
    await engine.dispose()


def run() -> None:
    """Convenience wrapper used by ``python -m lagerbestand.main``."""

    settings = get_settings()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.log_level)
    asyncio.run(_prepare_store())
    uvicorn.run(
        "lagerbestand.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
