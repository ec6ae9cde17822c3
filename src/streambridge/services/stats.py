"""Server usage summary."""

from sqlalchemy.ext.asyncio import AsyncSession

from streambridge.models.stream import ServerStats
from streambridge.repositories.stream_repo import StreamRepository
from streambridge.services.supervisor import ProcessSupervisor


async def compute_stats(
    session: AsyncSession,
    supervisor: ProcessSupervisor,
    bandwidth_per_stream_mbps: float = 5.0,
) -> ServerStats:
    """Read-only totals over the job store.

    ``bandwidth_estimate`` (Mbps) assumes a flat rate per active stream; it is a
    capacity hint, not a measurement.
    """
    total, active, storage = await StreamRepository(session).usage_totals()
    return ServerStats(
        total_jobs=total,
        active_jobs=active,
        storage_used_bytes=storage,
        bandwidth_estimate=active * bandwidth_per_stream_mbps,
        live_processes=supervisor.live_count(),
    )
