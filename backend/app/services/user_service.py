from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import get_password_hash, verify_password
from app.models.file import File
from app.models.link import Link
from app.models.user import ROLE_SUPERUSER, ROLE_USER, User
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

SEARCH_MIN_CHARS = 2
SEARCH_LIMIT = 10


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.id == user_id))
        return res.scalars().first()

    async def get_by_login(self, login: str) -> Optional[User]:
        res = await self.db.execute(select(User).where(or_(User.email == login, User.username == login)))
        return res.scalars().first()

    async def create_user(self, email: str, username: str, password: str, role: str = ROLE_USER) -> User:
        res = await self.db.execute(select(User.id).where(or_(User.email == email, User.username == username)))
        if res.first() is not None:
            raise ConflictError("Email or username already registered")
        user = User(email=email, username=username, hashed_password=get_password_hash(password), role=role)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("user_created user=%s role=%s", user.id, role)
        return user

    async def authenticate(self, login: str, password: str) -> Optional[User]:
        user = await self.get_by_login(login)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    async def search_for_links(self, actor: User, query: str) -> list[User]:
        """Active users other than ``actor`` matching ``query``, for selected-user audiences."""
        query = (query or "").strip()
        if len(query) < SEARCH_MIN_CHARS:
            return []
        needle = f"%{query}%"
        res = await self.db.execute(
            select(User)
            .where(and_(
                or_(User.username.ilike(needle), User.email.ilike(needle)),
                User.is_active.is_(True),
                User.id != actor.id,
            ))
            .order_by(User.username)
            .limit(SEARCH_LIMIT)
        )
        return list(res.scalars().all())

    async def ensure_superuser(self, email: str, username: str, password: str) -> User:
        user = await self.get_by_login(email)
        if user is not None:
            if user.role != ROLE_SUPERUSER:
                user.role = ROLE_SUPERUSER
                await self.db.commit()
                logger.info("user_promoted user=%s", user.id)
            return user
        return await self.create_user(email, username, password, role=ROLE_SUPERUSER)

    async def _managed_user(self, actor: User, user_id: str) -> User:
        if user_id == actor.id:
            raise ValidationError("Cannot change your own account")
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def deactivate_user(self, actor: User, user_id: str) -> tuple[int, int]:
        """Deactivate the account and soft delete everything it owns.

        Files and links are kept as rows; blobs stay in storage. Returns the
        number of files and links deactivated.
        """
        user = await self._managed_user(actor, user_id)
        now = utcnow()
        user.is_active = False
        files = await self.db.execute(
            update(File)
            .where(File.owner_id == user.id, File.is_active.is_(True))
            .values(is_active=False, deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        links = await self.db.execute(
            update(Link)
            .where(Link.owner_id == user.id, Link.is_active.is_(True))
            .values(is_active=False, deactivated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("user_deactivated user=%s by=%s files=%s links=%s",
                    user.id, actor.id, files.rowcount, links.rowcount)
        return files.rowcount, links.rowcount

    async def set_role(self, actor: User, user_id: str, role: str) -> User:
        if role not in (ROLE_USER, ROLE_SUPERUSER):
            raise ValidationError("Invalid role specified")
        user = await self._managed_user(actor, user_id)
        user.role = role
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("user_role_changed user=%s role=%s by=%s", user.id, role, actor.id)
        return user
