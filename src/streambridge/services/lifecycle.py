"""Stream lifecycle manager: the only writer of stream status.

Every public operation runs under a per-stream lock so that create, stop,
delete, the retention sweep and the monitor never interleave on one stream.
Each combines a job-store write with a supervisor call, ordered so that a
failure leaves no running encoder without a record describing it.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streambridge.db.base import as_utc, utcnow
from streambridge.db.models.stream import StreamRow
from streambridge.errors.exceptions import (
    InvalidStateError,
    LaunchError,
    NotFoundError,
    TeardownPartialFailure,
    ValidationError,
)
from streambridge.logging_config import stream_context
from streambridge.models.enums import StreamStatus
from streambridge.models.stream import StreamCreate
from streambridge.repositories.stream_repo import StreamRepository
from streambridge.services.id_generator import STREAM_ID_PREFIX, generate_id
from streambridge.services.output_files import measure_stream_files, remove_stream_files
from streambridge.services.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class StreamLifecycleManager:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        supervisor: ProcessSupervisor,
        output_root: Path | str,
    ):
        self.session_factory = session_factory
        self.supervisor = supervisor
        self.output_root = Path(output_root)
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def job_lock(self, stream_id: str) -> AsyncIterator[None]:
        """Serialize work on one stream. Locks are dropped once nobody holds or awaits them."""
        lock = self._locks.get(stream_id)
        if lock is None:
            lock = self._locks[stream_id] = asyncio.Lock()
        self._lock_users[stream_id] = self._lock_users.get(stream_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[stream_id] -= 1
            if not self._lock_users[stream_id]:
                del self._lock_users[stream_id]
                del self._locks[stream_id]

    def output_dirs(self, row: StreamRow | None = None) -> list[Path]:
        """Directories that may hold a stream's files, including where it was actually written."""
        dirs = [self.output_root / "hls", self.output_root / "dash"]
        if row is not None:
            for manifest in (row.output_hls_path, row.output_dash_path):
                if manifest and Path(manifest).parent not in dirs:
                    dirs.append(Path(manifest).parent)
        return dirs

    # --- Operations ---

    async def create(self, name: str | None, source_url: str | None, quality: str | None = None) -> StreamRow:
        """Record a new stream and start its encoder.

        Returns the row as either ``active`` with both manifest paths, or
        ``error`` with none; a launch failure is not raised.
        """
        return await self.create_from_body({"name": name, "source_url": source_url, "quality": quality})

    async def create_from_body(self, body: dict) -> StreamRow:
        """``create`` for a raw request object; unknown keys are rejected."""
        request = _validate_create(body)
        stream_id = generate_id(STREAM_ID_PREFIX)
        display_name = (request.name or "").strip() or f"Stream {stream_id[len(STREAM_ID_PREFIX):][:8]}"

        with stream_context(stream_id, "create"):
            async with self.job_lock(stream_id), self.session_factory() as session:
                repo = StreamRepository(session)
                row = await repo.create(
                    id=stream_id,
                    name=display_name,
                    source_url=request.source_url,
                    quality=request.quality.value,
                    status=StreamStatus.PENDING.value,
                    is_active=False,
                    created_at=utcnow(),
                )
                await session.commit()

                try:
                    launched = await self.supervisor.launch(
                        stream_id, request.source_url, request.quality, self.output_root,
                    )
                except LaunchError as exc:
                    logger.error("Stream %s failed to launch: %s", stream_id, exc.message)
                    await repo.update(row, status=StreamStatus.ERROR.value, is_active=False)
                    await session.commit()
                    return row

                try:
                    await repo.update(
                        row,
                        status=StreamStatus.ACTIVE.value,
                        is_active=True,
                        output_hls_path=launched.hls_path,
                        output_dash_path=launched.dash_path,
                        started_at=utcnow(),
                    )
                    await session.commit()
                except Exception:
                    self.supervisor.terminate(stream_id)
                    raise

                logger.info("Stream %s active (quality=%s)", stream_id, row.quality)
                return row

    async def stop(self, stream_id: str) -> StreamRow:
        """Stop an active stream's encoder and mark it stopped."""
        with stream_context(stream_id, "stop"):
            async with self.job_lock(stream_id), self.session_factory() as session:
                repo = StreamRepository(session)
                row = await repo.get(stream_id)
                if row is None:
                    raise NotFoundError("Stream", stream_id)
                if not row.is_active or row.status != StreamStatus.ACTIVE:
                    raise InvalidStateError(
                        f"Stream '{stream_id}' is not active",
                        details={"status": row.status},
                    )

                if not self.supervisor.terminate(stream_id):
                    logger.warning("No live encoder for active stream %s, marking it stopped", stream_id)

                now = utcnow()
                await repo.update(
                    row,
                    status=StreamStatus.STOPPED.value,
                    is_active=False,
                    stopped_at=now,
                    duration_seconds=_elapsed(row, now),
                )
                await session.commit()
                logger.info("Stream %s stopped", stream_id)
                return row

    async def delete(self, stream_id: str) -> bool:
        """Tear down a stream (encoder, files) and remove its record."""
        with stream_context(stream_id, "delete"):
            async with self.job_lock(stream_id), self.session_factory() as session:
                repo = StreamRepository(session)
                row = await repo.get(stream_id)
                if row is None:
                    raise NotFoundError("Stream", stream_id)

                await self.teardown(row)
                await repo.delete(row)
                await session.commit()
                logger.info("Stream %s deleted", stream_id)
                return True

    async def teardown(self, row: StreamRow) -> TeardownPartialFailure | None:
        """Stop the encoder if any and remove the stream's files. Callers hold the job lock.

        Never raises for a missing process or missing files. A file that cannot
        be removed is logged and returned as TeardownPartialFailure; the record
        is left for the caller to delete either way.
        """
        if row.is_active or self.supervisor.is_live(row.id):
            if not self.supervisor.terminate(row.id):
                logger.info("Stream %s had no live encoder at teardown", row.id)

        try:
            removed = await asyncio.to_thread(remove_stream_files, row.id, self.output_dirs(row))
        except TeardownPartialFailure as exc:
            logger.warning(
                "Partial teardown of stream %s: %s",
                row.id, exc.message,
                extra={"failed_paths": sorted(exc.failures)},
            )
            return exc
        logger.info("Removed %d output file(s) of stream %s", removed, row.id)
        return None

    async def reconcile(self, stream_id: str) -> str | None:
        """Bring one active stream's record in line with its encoder.

        Refreshes duration and size while the encoder runs; marks the stream
        ``error`` once the encoder has exited without being asked to. Returns
        "refreshed", "crashed" or None if the stream is gone or no longer active.
        """
        with stream_context(stream_id, "reconcile"):
            async with self.job_lock(stream_id), self.session_factory() as session:
                repo = StreamRepository(session)
                row = await repo.get(stream_id)
                if row is None or not row.is_active:
                    return None

                now = utcnow()
                if not self.supervisor.is_live(stream_id):
                    await repo.update(
                        row,
                        status=StreamStatus.ERROR.value,
                        is_active=False,
                        stopped_at=now,
                        duration_seconds=_elapsed(row, now),
                    )
                    await session.commit()
                    logger.warning("Stream %s encoder is gone, marked as error", stream_id)
                    return "crashed"

                size = await asyncio.to_thread(measure_stream_files, stream_id, self.output_dirs(row))
                await repo.update(
                    row,
                    duration_seconds=_elapsed(row, now),
                    file_size_bytes=max(row.file_size_bytes or 0, size),
                )
                await session.commit()
                return "refreshed"

    async def reconcile_active(self) -> dict[str, int]:
        """Run ``reconcile`` over every stream currently marked active."""
        async with self.session_factory() as session:
            active_ids = [row.id for row in await StreamRepository(session).list_active()]

        counts = {"refreshed": 0, "crashed": 0}
        for stream_id in active_ids:
            outcome = await self.reconcile(stream_id)
            if outcome:
                counts[outcome] += 1
        return counts


def _validate_create(body: dict) -> StreamCreate:
    # A null quality means the default tier.
    if body.get("quality") is None:
        body = {k: v for k, v in body.items() if k != "quality"}
    try:
        return StreamCreate.model_validate(body)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Invalid stream data",
            details=[
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc


def _elapsed(row: StreamRow, now) -> int:
    """Seconds since start, never lower than what is already recorded."""
    recorded = row.duration_seconds or 0
    started = as_utc(row.started_at)
    if started is None:
        return recorded
    return max(recorded, int((now - started).total_seconds()))
