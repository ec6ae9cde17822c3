"""Retention sweep: tear down and delete streams older than the retention window."""

import logging
from datetime import datetime, timedelta

from streambridge.db.base import utcnow
from streambridge.models.stream import SweepResult
from streambridge.repositories.stream_repo import StreamRepository
from streambridge.services.lifecycle import StreamLifecycleManager

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7


class RetentionSweeper:
    """Deletes expired streams through the lifecycle manager's teardown.

    Run daily by the scheduler and on demand through the cleanup endpoint.
    """

    def __init__(self, lifecycle: StreamLifecycleManager, retention_days: int = DEFAULT_RETENTION_DAYS):
        self.lifecycle = lifecycle
        self.retention_days = retention_days

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        cutoff = (now or utcnow()) - timedelta(days=self.retention_days)
        session_factory = self.lifecycle.session_factory

        async with session_factory() as session:
            candidates = [row.id for row in await StreamRepository(session).list_created_before(cutoff)]
        logger.info("Retention sweep found %d expired stream(s) (cutoff=%s)", len(candidates), cutoff.isoformat())
        if not candidates:
            return SweepResult(examined=0, deleted=0, file_failures=0)

        expired: list[str] = []
        file_failures = 0
        for stream_id in candidates:
            try:
                async with self.lifecycle.job_lock(stream_id):
                    async with session_factory() as session:
                        row = await StreamRepository(session).get(stream_id)
                    if row is None:
                        # Deleted manually since the candidate query.
                        continue
                    if await self.lifecycle.teardown(row) is not None:
                        file_failures += 1
            except Exception:
                logger.exception("Teardown of expired stream %s failed, deleting its record anyway", stream_id)
                file_failures += 1
            expired.append(stream_id)

        async with session_factory() as session:
            deleted = await StreamRepository(session).delete_many(expired)
            await session.commit()

        logger.info(
            "Retention sweep deleted %d stream(s), %d with leftover files",
            deleted, file_failures,
        )
        return SweepResult(examined=len(candidates), deleted=deleted, file_failures=file_failures)
