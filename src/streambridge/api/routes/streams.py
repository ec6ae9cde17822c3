"""Stream job routes: start, stop, delete and listings."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from streambridge.db.models.stream import StreamRow
from streambridge.dependencies import get_db, get_lifecycle
from streambridge.errors.exceptions import NotFoundError
from streambridge.models.stream import Stream
from streambridge.repositories.stream_repo import StreamRepository
from streambridge.services.lifecycle import StreamLifecycleManager

router = APIRouter(tags=["Streams"])


def _to_dict(row: StreamRow) -> dict:
    return Stream.model_validate(row).model_dump(mode="json")


# --- Listings (declared before /streams/{stream_id}) ---


@router.get("/streams")
async def list_streams(db: AsyncSession = Depends(get_db)) -> list[dict]:
    rows = await StreamRepository(db).list_all()
    return [_to_dict(r) for r in rows]


@router.get("/streams/active")
async def list_active_streams(db: AsyncSession = Depends(get_db)) -> list[dict]:
    rows = await StreamRepository(db).list_active()
    return [_to_dict(r) for r in rows]


@router.get("/streams/recent")
async def list_recent_streams(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    rows = await StreamRepository(db).list_recent(limit)
    return [_to_dict(r) for r in rows]


# --- Lifecycle ---


@router.post("/streams", status_code=201)
async def create_stream(
    body: dict,
    lifecycle: StreamLifecycleManager = Depends(get_lifecycle),
) -> dict:
    """Start converting an RTMP source. A failed encoder launch yields a stream in status 'error'."""
    row = await lifecycle.create_from_body(body)
    return _to_dict(row)


@router.post("/streams/{stream_id}/stop")
async def stop_stream(
    stream_id: str,
    lifecycle: StreamLifecycleManager = Depends(get_lifecycle),
) -> dict:
    row = await lifecycle.stop(stream_id)
    return _to_dict(row)


@router.delete("/streams/{stream_id}")
async def delete_stream(
    stream_id: str,
    lifecycle: StreamLifecycleManager = Depends(get_lifecycle),
) -> dict:
    deleted = await lifecycle.delete(stream_id)
    return {"deleted": deleted}


@router.get("/streams/{stream_id}")
async def get_stream(
    stream_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    row = await StreamRepository(db).get(stream_id)
    if not row:
        raise NotFoundError("Stream", stream_id)
    return _to_dict(row)
