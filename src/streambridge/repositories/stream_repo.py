"""Stream repository: the job store's CRUD+filter contract."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from streambridge.db.models.stream import StreamRow
from streambridge.repositories.base import BaseRepository


class StreamRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, StreamRow)

    async def get(self, stream_id: str) -> StreamRow | None:
        return await self.get_by_id("id", stream_id)

    async def list_all(self) -> list[StreamRow]:
        """Every stream, newest first."""
        stmt = select(StreamRow).order_by(StreamRow.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(self) -> list[StreamRow]:
        stmt = (
            select(StreamRow)
            .where(StreamRow.is_active.is_(True))
            .order_by(StreamRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 10) -> list[StreamRow]:
        stmt = select(StreamRow).order_by(StreamRow.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_created_before(self, cutoff: datetime) -> list[StreamRow]:
        """Retention candidates: streams created strictly before ``cutoff``."""
        stmt = (
            select(StreamRow)
            .where(StreamRow.created_at < cutoff)
            .order_by(StreamRow.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, row: StreamRow) -> None:
        await self.session.delete(row)
        await self.session.flush()

    async def delete_many(self, stream_ids: list[str]) -> int:
        return await self.delete_by_ids("id", stream_ids)

    async def usage_totals(self) -> tuple[int, int, int]:
        """Return (total streams, active streams, summed file size in bytes)."""
        stmt = select(
            func.count(StreamRow.id),
            func.count(StreamRow.id).filter(StreamRow.is_active.is_(True)),
            func.coalesce(func.sum(StreamRow.file_size_bytes), 0),
        )
        result = await self.session.execute(stmt)
        total, active, storage = result.one()
        return int(total), int(active or 0), int(storage or 0)
