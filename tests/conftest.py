from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from lagerbestand.api import create_app
from lagerbestand.config import Settings
from lagerbestand.database import get_session
from lagerbestand.management import init_database


@pytest.fixture()
def settings(tmp_path) -> Settings:
    db_path = tmp_path / "test.db"
    return Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        environment="test",
        app_name="Test Lagerbestand",
        recent_transactions_limit=5,
    )


@pytest.fixture()
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(settings.database_url, echo=False)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
async def app(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> FastAPI:
    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app = create_app(settings)
    app.dependency_overrides[get_session] = override_get_session
    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture()
def clock(monkeypatch: pytest.MonkeyPatch):
    """Deterministic millisecond clock advancing by one second per reading."""

    from lagerbestand import crud, snapshot

    state = {"now": 1_700_000_000_000}

    def fake_now() -> int:
        state["now"] += 1000
        return state["now"]

    monkeypatch.setattr(crud, "now_ms", fake_now)
    monkeypatch.setattr(snapshot, "now_ms", fake_now)
    return state
