import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import SessionLocal
from app.models.link import Link
from app.monitoring.setup import report_sweep, report_sweep_failure
from app.services.link_service import delete_links
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


async def sweep_expired_links(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Deactivate every active link whose expiry is strictly before ``now``.

    A single conditional UPDATE: idempotent and safe next to live traffic.
    Access counts and logs are left alone.
    """
    now = now or utcnow()
    res = await db.execute(
        update(Link)
        .where(Link.is_active.is_(True), Link.expires_at.is_not(None), Link.expires_at < now)
        .values(is_active=False, deactivated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount


async def purge_old_inactive(db: AsyncSession, days_old: int = 30, now: Optional[datetime] = None) -> int:
    """Permanently delete links that have been inactive for more than ``days_old`` days."""
    now = now or utcnow()
    cutoff = now - timedelta(days=days_old)
    res = await db.execute(
        select(Link.id).where(
            Link.is_active.is_(False),
            Link.deactivated_at.is_not(None),
            Link.deactivated_at < cutoff,
        )
    )
    link_ids = [row[0] for row in res.all()]
    removed = await delete_links(db, link_ids)
    await db.commit()
    return removed


async def run_sweep(purge_after_days: Optional[int] = None, now: Optional[datetime] = None) -> tuple[int, int]:
    started = time.monotonic()
    async with SessionLocal() as db:
        deactivated = await sweep_expired_links(db, now)
        purged = 0
        if purge_after_days is not None:
            purged = await purge_old_inactive(db, purge_after_days, now)

    duration = time.monotonic() - started
    report_sweep(deactivated, purged, duration)
    logger.info("sweep_summary links_deactivated=%s links_purged=%s duration=%.3fs",
                deactivated, purged, duration)
    return deactivated, purged


async def run_cleanup_loop(interval: Optional[int] = None):
    interval = interval or settings.SWEEP_INTERVAL_SECONDS
    logger.info("Cleanup task started: interval=%s purge_after_days=%s",
                interval, settings.PURGE_INACTIVE_AFTER_DAYS)

    while True:
        try:
            await run_sweep(settings.PURGE_INACTIVE_AFTER_DAYS)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled by shutdown")
            raise
        except Exception as e:
            # retried on the next tick
            report_sweep_failure()
            logger.exception("Cleanup loop error: %s", e)
        await asyncio.sleep(interval)


async def start_cleanup_task():
    return await run_cleanup_loop()
