"""Owner-side link management: creation, listing, toggling, deletion."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.policies import (
    FixedDateExpiration,
    NoVerification,
    PasswordVerification,
    SelectedUsersAudience,
    UsernameVerification,
)
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.core.security import get_password_hash
from app.models.file import File
from app.models.link import Link, LinkAccessLog, link_allowed_users
from app.models.user import User
from app.schemas.link import LinkCreate, PasswordVerificationIn, UsernameVerificationIn
from app.services.access_log import CappedAccessLog
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10

SORTABLE = {
    "created_at": Link.created_at,
    "display_name": Link.display_name,
    "expires_at": Link.expires_at,
    "current_access_count": Link.current_access_count,
}


def can_manage(user: User, owner_id: str) -> bool:
    return str(owner_id) == str(user.id) or user.is_admin


class LinkService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_link(self, actor: User, data: LinkCreate, now: Optional[datetime] = None) -> Link:
        """Validate the policy, resolve the expiry once and persist the link."""
        now = now or utcnow()

        res = await self.db.execute(select(File).where(File.id == data.file_id, File.is_active.is_(True)))
        file = res.scalars().first()
        if file is None:
            raise NotFoundError("File not found")
        if not can_manage(actor, file.owner_id):
            raise PermissionDeniedError("Access denied to this file")

        expiration = data.expiration.to_policy()
        try:
            expires_at = expiration.resolve(now)
        except OverflowError as e:
            raise ValidationError("Valid expiration is required") from e
        if isinstance(expiration, FixedDateExpiration) and expires_at <= now:
            raise ValidationError("Valid future expiration date is required")

        if await self._name_taken(data.display_name):
            raise ConflictError("A link with this name already exists")

        audience = data.audience.to_policy()
        allowed: list[User] = []
        if isinstance(audience, SelectedUsersAudience):
            res = await self.db.execute(select(User).where(User.id.in_(sorted(audience.user_ids))))
            allowed = list(res.scalars().all())
            if len(allowed) != len(audience.user_ids):
                raise ValidationError("Selected users do not exist")

        link = Link(
            display_name=data.display_name,
            description=data.description,
            file_id=file.id,
            owner_id=actor.id,
            expires_at=expires_at,
            access_limit=data.access_limit,
            current_access_count=0,
            audience_scope=audience.kind,
            download_allowed=data.download_allowed,
            is_active=True,
            created_at=now,
        )
        link.verification = self._verification_policy(data)
        link.allowed_users = allowed

        self.db.add(link)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("A link with this name already exists") from e

        logger.info("link_created link=%s file=%s owner=%s expires_at=%s limit=%s scope=%s",
                    link.id, file.id, actor.id, expires_at, data.access_limit, audience.kind)
        return await self.get_link(link.id)

    @staticmethod
    def _verification_policy(data: LinkCreate):
        if isinstance(data.verification, PasswordVerificationIn):
            return PasswordVerification(secret_hash=get_password_hash(data.verification.password))
        if isinstance(data.verification, UsernameVerificationIn):
            return UsernameVerification(expected=data.verification.username)
        return NoVerification()

    async def _name_taken(self, display_name: str) -> bool:
        res = await self.db.execute(select(Link.id).where(Link.display_name == display_name))
        return res.first() is not None

    async def get_link(self, link_id: str) -> Link:
        res = await self.db.execute(
            select(Link).where(Link.id == link_id).execution_options(populate_existing=True)
        )
        link = res.scalars().first()
        if link is None:
            raise NotFoundError("Link not found")
        return link

    async def get_managed_link(self, actor: User, link_id: str) -> Link:
        link = await self.get_link(link_id)
        if not can_manage(actor, link.owner_id):
            raise PermissionDeniedError()
        return link

    async def list_links(
        self,
        owner: Optional[User] = None,
        *,
        search: Optional[str] = None,
        active: Optional[bool] = None,
        sort_by: str = "created_at",
        order: str = "desc",
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Link], int]:
        """Links of ``owner``, or of everyone when ``owner`` is None."""
        conditions = []
        if owner is not None:
            conditions.append(Link.owner_id == owner.id)
        if search and search.strip():
            needle = f"%{search.strip()}%"
            conditions.append(or_(Link.display_name.ilike(needle), Link.description.ilike(needle)))
        if active is not None:
            conditions.append(Link.is_active.is_(active))

        count_stmt = select(func.count()).select_from(Link)
        query = select(Link)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            query = query.where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar_one()

        col = SORTABLE.get(sort_by, Link.created_at)
        query = query.order_by(col.asc() if order.lower() == "asc" else col.desc())
        rows = (await self.db.execute(query.offset(skip).limit(limit))).scalars().all()
        return list(rows), total

    async def recent_links(self, owner: User) -> list[Link]:
        rows, _ = await self.list_links(owner, limit=RECENT_LIMIT)
        return rows

    async def toggle_link(self, actor: User, link_id: str) -> Link:
        link = await self.get_managed_link(actor, link_id)
        link.is_active = not link.is_active
        link.deactivated_at = None if link.is_active else utcnow()
        await self.db.commit()
        logger.info("link_toggled link=%s active=%s by=%s", link.id, link.is_active, actor.id)
        return await self.get_link(link_id)

    async def delete_link(self, actor: User, link_id: str) -> None:
        link = await self.get_managed_link(actor, link_id)
        await delete_links(self.db, [link.id])
        await self.db.commit()
        logger.info("link_deleted link=%s by=%s", link_id, actor.id)

    async def access_log(self, actor: User, link_id: str, *, skip: int = 0, limit: int = 100):
        link = await self.get_managed_link(actor, link_id)
        log = CappedAccessLog(self.db)
        return await log.entries(link.id, skip=skip, limit=limit), await log.count(link.id)


async def delete_links(db: AsyncSession, link_ids: list[str]) -> int:
    """Hard delete links with their logs and audience rows; caller commits."""
    if not link_ids:
        return 0
    await db.execute(
        delete(LinkAccessLog)
        .where(LinkAccessLog.link_id.in_(link_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(link_allowed_users).where(link_allowed_users.c.link_id.in_(link_ids)))
    res = await db.execute(
        delete(Link).where(Link.id.in_(link_ids)).execution_options(synchronize_session=False)
    )
    return res.rowcount
