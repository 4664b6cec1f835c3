"""Tests for the lifecycle sweep and the retention purge."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from app.access.policies import AccessMode
from app.models.link import Link, LinkAccessLog
from app.services.link_access import LinkAccessService
from app.tasks.cleanup import purge_old_inactive, run_cleanup_loop, run_sweep, sweep_expired_links

T0 = datetime(2026, 2, 1, 0, 0, 0)


class TestSweepExpiredLinks:
    @pytest.mark.asyncio
    async def test_deactivates_only_expired_links(self, db, owner, shared_file, make_link, reload_link):
        expired = await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 60})
        later = await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 7200})
        forever = await make_link(owner, shared_file, now=T0)

        assert await sweep_expired_links(db, now=T0 + timedelta(hours=1)) == 1

        assert (await reload_link(expired.id)).is_active is False
        assert (await reload_link(expired.id)).deactivated_at == T0 + timedelta(hours=1)
        assert (await reload_link(later.id)).is_active is True
        assert (await reload_link(forever.id)).is_active is True

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db, owner, shared_file, make_link):
        for _ in range(3):
            await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 1})
        now = T0 + timedelta(minutes=5)

        assert await sweep_expired_links(db, now=now) == 3
        assert await sweep_expired_links(db, now=now) == 0

    @pytest.mark.asyncio
    async def test_expiry_instant_is_not_swept(self, db, owner, shared_file, make_link):
        await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 60})
        assert await sweep_expired_links(db, now=T0 + timedelta(seconds=60)) == 0

    @pytest.mark.asyncio
    async def test_keeps_counts_and_logs(self, db, owner, shared_file, make_link, reload_link):
        link = await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 60})
        await LinkAccessService(db).evaluate_access(link.id, None, None, AccessMode.VIEW, now=T0)

        await sweep_expired_links(db, now=T0 + timedelta(hours=1))

        assert (await reload_link(link.id)).current_access_count == 1
        res = await db.execute(select(func.count()).select_from(LinkAccessLog).where(LinkAccessLog.link_id == link.id))
        assert res.scalar_one() == 1


class TestPurgeOldInactive:
    @pytest.mark.asyncio
    async def test_removes_links_past_retention(self, db, owner, shared_file, make_link):
        old = await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 60})
        await LinkAccessService(db).evaluate_access(old.id, None, None, AccessMode.VIEW, now=T0)
        await sweep_expired_links(db, now=T0 + timedelta(hours=1))
        active = await make_link(owner, shared_file)

        assert await purge_old_inactive(db, days_old=30, now=T0 + timedelta(days=10)) == 0
        assert await purge_old_inactive(db, days_old=30, now=T0 + timedelta(days=31)) == 1

        ids = (await db.execute(select(Link.id))).scalars().all()
        assert ids == [active.id]
        logs = await db.execute(select(func.count()).select_from(LinkAccessLog))
        assert logs.scalar_one() == 0


class TestRunSweep:
    @pytest.mark.asyncio
    async def test_reports_metrics(self, session_factory, owner, shared_file, make_link):
        await make_link(owner, shared_file, now=T0, expiration={"type": "duration", "seconds": 60})

        with patch("app.tasks.cleanup.SessionLocal", session_factory), \
                patch("app.tasks.cleanup.report_sweep") as report:
            deactivated, purged = await run_sweep(now=T0 + timedelta(days=1))

        assert (deactivated, purged) == (1, 0)
        report.assert_called_once()
        assert report.call_args.args[:2] == (1, 0)

    @pytest.mark.asyncio
    async def test_loop_survives_failures(self):
        run = AsyncMock(side_effect=[RuntimeError("database is locked"), asyncio.CancelledError()])
        with patch("app.tasks.cleanup.run_sweep", run), \
                patch("app.tasks.cleanup.asyncio.sleep", AsyncMock()) as sleep, \
                patch("app.tasks.cleanup.report_sweep_failure") as failure:
            with pytest.raises(asyncio.CancelledError):
                await run_cleanup_loop(interval=5)

        assert run.await_count == 2
        sleep.assert_awaited_once_with(5)
        failure.assert_called_once()
