from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lagerbestand import crud, schemas
from lagerbestand.database import unit_of_work
from lagerbestand.exceptions import InvalidInputError, ItemNotFoundError


async def _count_items(factory: async_sessionmaker[AsyncSession]) -> int:
    async with unit_of_work(factory) as session:
        return len(await crud.list_items(session))


async def test_create_item_sets_identity_and_timestamps(session_factory, clock) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(
            session,
            schemas.ItemCreate(name="  Schrauben  ", stock="10", sku=" S-1 ", unit="Stk"),
        )

    assert item.id
    assert item.name == "Schrauben"
    assert item.sku == "S-1"
    assert item.category is None
    assert item.unit == "Stk"
    assert item.stock == 10
    assert item.created_at == item.updated_at

    async with unit_of_work(session_factory) as session:
        fetched = await crud.get_item(session, item.id)
    assert fetched is not None
    assert fetched.name == "Schrauben"


@pytest.mark.parametrize("name", ["", "   ", "\t\n"])
async def test_create_item_with_blank_name_is_rejected(session_factory, name: str) -> None:
    with pytest.raises(InvalidInputError):
        async with unit_of_work(session_factory) as session:
            await crud.create_item(session, schemas.ItemCreate(name=name, stock=3))

    assert await _count_items(session_factory) == 0


@pytest.mark.parametrize("raw_stock", [None, "", "abc", float("nan"), float("inf")])
async def test_create_item_invalid_stock_falls_back_to_zero(session_factory, raw_stock) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(session, schemas.ItemCreate(name="Dübel", stock=raw_stock))
    assert item.stock == 0


async def test_get_missing_item_returns_none(session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        assert await crud.get_item(session, "does-not-exist") is None
        with pytest.raises(ItemNotFoundError):
            await crud.require_item(session, "does-not-exist")


async def test_put_item_inserts_and_replaces(session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        await crud.put_item(
            session,
            {"id": "a1", "name": " Nägel ", "stock": "7", "created_at": 5, "updated_at": 6},
        )
    async with unit_of_work(session_factory) as session:
        await crud.put_item(
            session,
            {"id": "a1", "name": "Nägel 40mm", "stock": 8, "created_at": 5, "updated_at": 9},
        )

    async with unit_of_work(session_factory) as session:
        items = await crud.list_items(session)
    assert len(items) == 1
    assert items[0].name == "Nägel 40mm"
    assert items[0].stock == 8
    assert items[0].created_at == 5
    assert items[0].updated_at == 9


async def test_put_item_requires_id(session_factory) -> None:
    with pytest.raises(InvalidInputError):
        async with unit_of_work(session_factory) as session:
            await crud.put_item(session, {"name": "ohne Id"})


async def test_update_item_keeps_identity_and_creation_time(session_factory, clock) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(session, schemas.ItemCreate(name="Kabel", stock=4))
    created_at = item.created_at

    async with unit_of_work(session_factory) as session:
        updated = await crud.update_item(
            session,
            item.id,
            schemas.ItemUpdate(name=" Kabel 3x1.5 ", category="Elektro", stock="12"),
        )

    assert updated.id == item.id
    assert updated.name == "Kabel 3x1.5"
    assert updated.category == "Elektro"
    assert updated.stock == 12
    assert updated.created_at == created_at
    assert updated.updated_at > created_at


async def test_update_item_keeps_stock_when_new_value_is_invalid(session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(session, schemas.ItemCreate(name="Kabel", stock=4))
    async with unit_of_work(session_factory) as session:
        updated = await crud.update_item(session, item.id, schemas.ItemUpdate(stock="viele"))
    assert updated.stock == 4


async def test_update_item_rejects_blank_name(session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(session, schemas.ItemCreate(name="Kabel"))

    with pytest.raises(InvalidInputError):
        async with unit_of_work(session_factory) as session:
            await crud.update_item(session, item.id, schemas.ItemUpdate(name="  "))

    async with unit_of_work(session_factory) as session:
        assert (await crud.require_item(session, item.id)).name == "Kabel"


async def test_update_missing_item_fails(session_factory) -> None:
    with pytest.raises(ItemNotFoundError):
        async with unit_of_work(session_factory) as session:
            await crud.update_item(session, "missing", schemas.ItemUpdate(name="x"))
    assert await _count_items(session_factory) == 0


async def test_delete_missing_item_fails(session_factory) -> None:
    with pytest.raises(ItemNotFoundError):
        async with unit_of_work(session_factory) as session:
            await crud.delete_item(session, "missing")


async def test_search_items_is_case_insensitive_and_sorted(session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        for name in ["Überwurfmutter", "schraube M4", "Schraube M3", "Dübel"]:
            await crud.create_item(session, schemas.ItemCreate(name=name))

    async with unit_of_work(session_factory) as session:
        screws = await crud.search_items(session, "SCHRAUBE")
        umlaut = await crud.search_items(session, "überwurf")
        everything = await crud.search_items(session, "")

    assert [item.name for item in screws] == ["Schraube M3", "schraube M4"]
    assert [item.name for item in umlaut] == ["Überwurfmutter"]
    assert len(everything) == 4
