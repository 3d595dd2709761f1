"""FastAPI router configuration."""
from __future__ import annotations

import logging
from typing import Sequence

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, schemas, snapshot
from .config import Settings, get_settings
from .database import get_session
from .exceptions import InvalidInputError, ItemNotFoundError, MalformedSnapshotError, StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


def provide_settings() -> Settings:
    """Dependency returning the active :class:`Settings` instance."""

    return get_settings()


def _not_found(exc: ItemNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _invalid(exc: InvalidInputError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.get("/health", response_model=schemas.HealthStatus, tags=["system"])
async def health_check(settings: Settings = Depends(provide_settings)) -> schemas.HealthStatus:
    return schemas.HealthStatus(environment=settings.environment)


@router.get("/items", response_model=list[schemas.ItemOut], tags=["items"])
async def list_items(
    q: str | None = Query(None, description="Case-insensitive name filter."),
    session: AsyncSession = Depends(get_session),
) -> Sequence[schemas.ItemOut]:
    items = await crud.search_items(session, q) if q else await crud.list_items(session)
    return [schemas.ItemOut.model_validate(item) for item in items]


@router.post(
    "/items",
    response_model=schemas.ItemOut,
    status_code=status.HTTP_201_CREATED,
    tags=["items"],
)
async def create_item(
    payload: schemas.ItemCreate, session: AsyncSession = Depends(get_session)
) -> schemas.ItemOut:
    try:
        item = await crud.create_item(session, payload)
    except InvalidInputError as exc:
        raise _invalid(exc) from exc
    await session.commit()
    return schemas.ItemOut.model_validate(item)


@router.get("/items/{item_id}", response_model=schemas.ItemOut, tags=["items"])
async def get_item(item_id: str, session: AsyncSession = Depends(get_session)) -> schemas.ItemOut:
    try:
        item = await crud.require_item(session, item_id)
    except ItemNotFoundError as exc:
        raise _not_found(exc) from exc
    return schemas.ItemOut.model_validate(item)


@router.put("/items/{item_id}", response_model=schemas.ItemOut, tags=["items"])
async def update_item(
    item_id: str,
    payload: schemas.ItemUpdate,
    session: AsyncSession = Depends(get_session),
) -> schemas.ItemOut:
    try:
        item = await crud.update_item(session, item_id, payload)
    except ItemNotFoundError as exc:
        raise _not_found(exc) from exc
    except InvalidInputError as exc:
        raise _invalid(exc) from exc
    await session.commit()
    return schemas.ItemOut.model_validate(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["items"])
async def delete_item(item_id: str, session: AsyncSession = Depends(get_session)) -> None:
    try:
        await crud.delete_item(session, item_id)
    except ItemNotFoundError as exc:
        raise _not_found(exc) from exc
    await session.commit()


@router.post(
    "/items/{item_id}/adjustments",
    response_model=schemas.TransactionOut,
    status_code=status.HTTP_201_CREATED,
    tags=["ledger"],
)
async def adjust_stock(
    item_id: str,
    payload: schemas.AdjustmentIn,
    session: AsyncSession = Depends(get_session),
) -> schemas.TransactionOut:
    try:
        transaction, _ = await crud.record_adjustment(
            session, item_id, payload.delta, reason=payload.reason, note=payload.note
        )
    except ItemNotFoundError as exc:
        raise _not_found(exc) from exc
    except InvalidInputError as exc:
        raise _invalid(exc) from exc
    await session.commit()
    return schemas.TransactionOut.model_validate(transaction)


@router.get(
    "/items/{item_id}/transactions",
    response_model=list[schemas.TransactionOut],
    tags=["ledger"],
)
async def list_item_transactions(
    item_id: str, session: AsyncSession = Depends(get_session)
) -> Sequence[schemas.TransactionOut]:
    try:
        await crud.require_item(session, item_id)
    except ItemNotFoundError as exc:
        raise _not_found(exc) from exc
    transactions = await crud.list_transactions_for_item(session, item_id)
    return [schemas.TransactionOut.model_validate(tx) for tx in transactions]


@router.get("/transactions", response_model=list[schemas.TransactionOut], tags=["ledger"])
async def list_recent_transactions(
    limit: int | None = Query(None, ge=1),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(provide_settings),
) -> Sequence[schemas.TransactionOut]:
    transactions = await crud.list_recent_transactions(
        session, limit or settings.recent_transactions_limit
    )
    return [schemas.TransactionOut.model_validate(tx) for tx in transactions]


@router.get("/backup", tags=["backup"])
async def download_backup(session: AsyncSession = Depends(get_session)) -> Response:
    document = await snapshot.export_snapshot(session)
    filename = snapshot.backup_filename(document.exported_at)
    return Response(
        content=snapshot.dump_snapshot(document),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/restore", response_model=schemas.RestoreSummary, tags=["backup"])
async def restore_backup(
    request: Request, session: AsyncSession = Depends(get_session)
) -> schemas.RestoreSummary:
    try:
        payload = snapshot.parse_snapshot(await request.body())
    except MalformedSnapshotError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    summary = await snapshot.restore_snapshot(session, payload)
    await session.commit()
    return summary


async def _storage_failure(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "The local store rejected the operation."},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name)
    app.dependency_overrides[provide_settings] = lambda: settings
    app.add_exception_handler(SQLAlchemyError, _storage_failure)
    app.add_exception_handler(StorageError, _storage_failure)
    app.include_router(router)
    return app


app = create_app()


__all__ = ["app", "create_app"]
