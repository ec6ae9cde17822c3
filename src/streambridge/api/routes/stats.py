"""Server statistics and maintenance endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streambridge.config import settings
from streambridge.dependencies import get_db, get_supervisor, get_sweeper
from streambridge.services.retention import RetentionSweeper
from streambridge.services.stats import compute_stats
from streambridge.services.supervisor import ProcessSupervisor

router = APIRouter()


@router.get("/stats", tags=["Stats"])
async def get_stats(
    db: AsyncSession = Depends(get_db),
    supervisor: ProcessSupervisor = Depends(get_supervisor),
) -> dict:
    stats = await compute_stats(db, supervisor, settings.bandwidth_per_stream_mbps)
    return stats.model_dump(mode="json")


@router.post("/cleanup", tags=["Maintenance"])
async def force_cleanup(sweeper: RetentionSweeper = Depends(get_sweeper)) -> dict:
    """Run the retention sweep now instead of waiting for the daily schedule."""
    result = await sweeper.sweep()
    return result.model_dump(mode="json")
