from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.policies import ClientInfo
from app.core.config import settings
from app.models.link import LinkAccessLog


class CappedAccessLog:
    """Per-link access history keeping only the newest ``limit`` entries.

    Entries are keyed by ``seq``, the link's access count right after the
    access, so evicting the oldest entry is a single indexed range delete.
    Nothing here commits: the caller owns the transaction so the append
    lands together with the counter increment.
    """

    def __init__(self, db: AsyncSession, limit: Optional[int] = None):
        self.db = db
        self.limit = limit or settings.ACCESS_LOG_LIMIT

    async def append(
        self,
        link_id: str,
        seq: int,
        requester_id: Optional[str],
        client: Optional[ClientInfo],
        accessed_at: datetime,
    ) -> LinkAccessLog:
        client = client or ClientInfo()
        entry = LinkAccessLog(
            link_id=link_id,
            seq=seq,
            requester_id=requester_id,
            source_address=client.source_address,
            user_agent=(client.user_agent or "")[:512] or None,
            accessed_at=accessed_at,
        )
        self.db.add(entry)
        await self.db.execute(
            delete(LinkAccessLog)
            .where(LinkAccessLog.link_id == link_id, LinkAccessLog.seq <= seq - self.limit)
            .execution_options(synchronize_session=False)
        )
        return entry

    async def entries(self, link_id: str, *, skip: int = 0, limit: int = 100) -> list[LinkAccessLog]:
        """Newest first."""
        res = await self.db.execute(
            select(LinkAccessLog)
            .where(LinkAccessLog.link_id == link_id)
            .order_by(LinkAccessLog.seq.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(res.scalars().all())

    async def count(self, link_id: str) -> int:
        res = await self.db.execute(
            select(func.count()).select_from(LinkAccessLog).where(LinkAccessLog.link_id == link_id)
        )
        return res.scalar_one()
