from __future__ import annotations

import json
from pathlib import Path

import pytest

from lagerbestand import crud, schemas
from lagerbestand.database import unit_of_work
from lagerbestand.exceptions import MalformedSnapshotError
from lagerbestand.management import export_to_file, main, parse_args, restore_from_file


async def test_export_and_restore_files(tmp_path: Path, session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        item = await crud.create_item(session, schemas.ItemCreate(name="Schrauben", stock=10))
        await crud.record_adjustment(session, item.id, -3, reason="Verbrauch")

    destination = await export_to_file(tmp_path, session_factory)
    assert destination.parent == tmp_path
    assert destination.name.startswith("lagerbestand_backup_")
    payload = json.loads(destination.read_text(encoding="utf-8"))
    assert [entry["delta"] for entry in payload["txs"]] == [-3]

    async with unit_of_work(session_factory) as session:
        await crud.delete_item(session, item.id)

    summary = await restore_from_file(destination, session_factory)
    assert (summary.items, summary.transactions) == (1, 1)
    async with unit_of_work(session_factory) as session:
        assert (await crud.require_item(session, item.id)).stock == 7


async def test_restore_from_invalid_file_keeps_store(tmp_path: Path, session_factory) -> None:
    async with unit_of_work(session_factory) as session:
        await crud.create_item(session, schemas.ItemCreate(name="Schrauben", stock=10))
    broken = tmp_path / "broken.json"
    broken.write_text("{ nope", encoding="utf-8")

    with pytest.raises(MalformedSnapshotError):
        await restore_from_file(broken, session_factory)

    async with unit_of_work(session_factory) as session:
        assert len(await crud.list_items(session)) == 1


def test_restore_requires_confirmation(tmp_path: Path, capsys, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    backup = tmp_path / "backup.json"
    backup.write_text("{}", encoding="utf-8")

    assert main(["restore", str(backup)]) == 1
    assert "--yes" in capsys.readouterr().err


def test_parse_args_defaults() -> None:
    args = parse_args(["export"])
    assert args.command == "export"
    assert args.output is None

    args = parse_args(["restore", "file.json", "--yes"])
    assert args.source == Path("file.json")
    assert args.yes is True
