"""Background tasks: the daily retention sweep and the active stream monitor."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, hour: int, minute: int = 0) -> float:
    """Seconds from ``now`` until the next ``hour:minute`` UTC, in (0, 86400]."""
    now = now.astimezone(timezone.utc)
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def run_retention_scheduler(app) -> None:
    """Run the retention sweep once a day at the configured UTC time."""
    from streambridge.config import settings

    logger.info(
        "Retention scheduler started (daily at %02d:%02d UTC, retention=%dd)",
        settings.cleanup_hour, settings.cleanup_minute, settings.retention_days,
    )

    while True:
        try:
            delay = seconds_until_next_run(datetime.now(timezone.utc), settings.cleanup_hour, settings.cleanup_minute)
            await asyncio.sleep(delay)

            sweeper = getattr(app.state, "sweeper", None)
            if sweeper is None:
                continue

            result = await sweeper.sweep()
            if result.deleted:
                logger.info("Scheduled sweep removed %d expired stream(s)", result.deleted)

        except asyncio.CancelledError:
            logger.info("Retention scheduler stopped")
            break
        except Exception as exc:
            logger.exception("Retention sweep error: %s", exc)
            # Try again at the next scheduled time


async def run_monitor(app, interval: float) -> None:
    """Periodically refresh metrics of active streams and catch encoders that died."""
    logger.info("Stream monitor started (interval=%ss)", interval)

    while True:
        try:
            await asyncio.sleep(interval)

            lifecycle = getattr(app.state, "lifecycle", None)
            if lifecycle is None:
                continue

            counts = await lifecycle.reconcile_active()
            if counts["crashed"]:
                logger.warning("Monitor marked %d stream(s) as error", counts["crashed"])

        except asyncio.CancelledError:
            logger.info("Stream monitor stopped")
            break
        except Exception as exc:
            logger.exception("Stream monitor error: %s", exc)
