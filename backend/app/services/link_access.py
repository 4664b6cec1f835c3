"""Link access orchestration.

:meth:`LinkAccessService.evaluate_access` is the only way a link grants
anything. Checks run in this fixed order and the first failing one decides
the outcome:

1. existence: link present and active, its file present and active
   (``LinkNotFound``)
2. download permission, for downloads only (``DownloadNotAllowed``)
3. expiration (``LinkExpired``)
4. access limit (``AccessLimitReached``)
5. audience scope (``AuthenticationRequired`` for anonymous requesters,
   ``AccessForbidden`` otherwise)
6. verification (``InvalidCredentials``)

On allow the access is recorded with one conditional ``UPDATE`` that repeats
the state checks in its predicate, so two concurrent requests can never both
take the last remaining use. The log append with eviction, the counter and,
for downloads, the file's ``download_count`` commit together. A deny mutates
nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.errors import (
    AccessError,
    AccessForbidden,
    AccessLimitReached,
    AccessNotRecorded,
    AuthenticationRequired,
    DownloadNotAllowed,
    InvalidCredentials,
    LinkExpired,
    LinkNotFound,
)
from app.access.evaluators import is_authorized, is_expired, is_limit_reached, is_verified
from app.access.policies import AccessMode, ClientInfo, Credentials, Requester
from app.models.file import File
from app.models.link import Link
from app.monitoring.setup import report_access
from app.services.access_log import CappedAccessLog
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievalHandle:
    """What the blob store needs to stream the file back."""

    bucket: str
    object_name: str
    media_type: str
    filename: str
    size_bytes: int


@dataclass(frozen=True)
class LinkSummary:
    id: str
    display_name: str
    description: Optional[str]
    download_allowed: bool


@dataclass(frozen=True)
class FileSummary:
    id: str
    display_name: str
    original_filename: str
    media_type: str
    size_bytes: int


@dataclass(frozen=True)
class AccessGrant:
    link: LinkSummary
    file: FileSummary
    access_count: int
    handle: Optional[RetrievalHandle] = None


class LinkAccessService:
    def __init__(self, db: AsyncSession, log_limit: Optional[int] = None):
        self.db = db
        self.access_log = CappedAccessLog(db, limit=log_limit)

    async def evaluate_access(
        self,
        link_id: str,
        requester: Optional[Requester],
        credentials: Optional[Credentials],
        mode: AccessMode,
        client: Optional[ClientInfo] = None,
        now: Optional[datetime] = None,
    ) -> AccessGrant:
        now = now or utcnow()
        try:
            link, file = await self._resolve(link_id)
            self._check(link, requester, credentials, mode, now)
            count = await self._record(link_id, file.id, requester, client, mode, now)
        except AccessError as e:
            report_access(mode.value, e.kind)
            logger.info("link_access_denied link=%s mode=%s kind=%s requester=%s",
                        link_id, mode.value, e.kind, requester.id if requester else None)
            raise

        report_access(mode.value, "allowed")
        logger.info("link_access_allowed link=%s mode=%s count=%s requester=%s",
                    link_id, mode.value, count, requester.id if requester else None)
        return self._grant(link, file, count, mode)

    async def _resolve(self, link_id: str) -> tuple[Link, File]:
        res = await self.db.execute(
            select(Link).where(Link.id == link_id).execution_options(populate_existing=True)
        )
        link: Optional[Link] = res.scalars().first()
        if link is None or not link.is_active:
            raise LinkNotFound()

        res = await self.db.execute(
            select(File).where(File.id == link.file_id).execution_options(populate_existing=True)
        )
        file: Optional[File] = res.scalars().first()
        if file is None or not file.is_active:
            raise LinkNotFound("File not found")
        return link, file

    @staticmethod
    def _check(
        link: Link,
        requester: Optional[Requester],
        credentials: Optional[Credentials],
        mode: AccessMode,
        now: datetime,
    ) -> None:
        if mode is AccessMode.DOWNLOAD and not link.download_allowed:
            raise DownloadNotAllowed()
        if is_expired(link, now):
            raise LinkExpired()
        if is_limit_reached(link):
            raise AccessLimitReached()
        if not is_authorized(link, requester):
            if requester is None:
                raise AuthenticationRequired()
            raise AccessForbidden()
        if not is_verified(link, credentials):
            raise InvalidCredentials()

    async def _record(
        self,
        link_id: str,
        file_id: str,
        requester: Optional[Requester],
        client: Optional[ClientInfo],
        mode: AccessMode,
        now: datetime,
    ) -> int:
        active_files = select(File.id).where(File.is_active.is_(True))
        stmt = (
            update(Link)
            .where(
                Link.id == link_id,
                Link.is_active.is_(True),
                or_(Link.expires_at.is_(None), Link.expires_at >= now),
                or_(
                    Link.access_limit.is_(None),
                    Link.current_access_count < Link.access_limit,
                ),
                Link.file_id.in_(active_files),
            )
            .values(current_access_count=Link.current_access_count + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                await self._raise_lost_race(link_id, now)

            count = (
                await self.db.execute(select(Link.current_access_count).where(Link.id == link_id))
            ).scalar_one()
            await self.access_log.append(
                link_id,
                seq=count,
                requester_id=requester.id if requester else None,
                client=client,
                accessed_at=now,
            )
            if mode is AccessMode.DOWNLOAD:
                await self.db.execute(
                    update(File)
                    .where(File.id == file_id)
                    .values(download_count=File.download_count + 1)
                    .execution_options(synchronize_session=False)
                )
            await self.db.commit()
        except AccessError:
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.exception("Failed to record access for link %s: %s", link_id, e)
            raise AccessNotRecorded() from e
        return count

    async def _raise_lost_race(self, link_id: str, now: datetime) -> None:
        """Report why the conditional update matched nothing.

        Only reachable when another writer changed the link between the
        checks and the update.
        """
        res = await self.db.execute(
            select(Link).where(Link.id == link_id).execution_options(populate_existing=True)
        )
        link = res.scalars().first()
        if link is None or not link.is_active:
            raise LinkNotFound()
        if is_expired(link, now):
            raise LinkExpired()
        if is_limit_reached(link):
            raise AccessLimitReached()
        file_active = await self.db.execute(
            select(File.id).where(and_(File.id == link.file_id, File.is_active.is_(True)))
        )
        if file_active.first() is None:
            raise LinkNotFound("File not found")
        raise AccessNotRecorded()

    @staticmethod
    def _grant(link: Link, file: File, count: int, mode: AccessMode) -> AccessGrant:
        handle = None
        if mode is AccessMode.DOWNLOAD:
            handle = RetrievalHandle(
                bucket=file.bucket,
                object_name=file.object_name,
                media_type=file.media_type or "application/octet-stream",
                filename=file.original_filename or file.display_name,
                size_bytes=file.size_bytes,
            )
        return AccessGrant(
            link=LinkSummary(
                id=link.id,
                display_name=link.display_name,
                description=link.description,
                download_allowed=link.download_allowed,
            ),
            file=FileSummary(
                id=file.id,
                display_name=file.display_name,
                original_filename=file.original_filename,
                media_type=file.media_type,
                size_bytes=file.size_bytes,
            ),
            access_count=count,
            handle=handle,
        )
