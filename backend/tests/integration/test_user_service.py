"""Tests for superuser account management."""

import pytest
from sqlalchemy import select

from app.access.errors import LinkNotFound
from app.access.policies import AccessMode
from app.core.exceptions import NotFoundError, ValidationError
from app.models.file import File
from app.models.user import ROLE_SUPERUSER, ROLE_USER
from app.services.link_access import LinkAccessService
from app.services.user_service import UserService


class TestDeactivateUser:
    @pytest.mark.asyncio
    async def test_cascades_to_files_and_links(self, db, admin, owner, make_user, make_file, shared_file, make_link, reload_link):
        other = await make_user("other")
        other_file = await make_file(other)
        kept = await make_link(other, other_file)
        second_file = await make_file(owner, "second.txt")
        first = await make_link(owner, shared_file)
        second = await make_link(owner, second_file)

        files, links = await UserService(db).deactivate_user(admin, owner.id)

        assert (files, links) == (2, 2)
        user = await UserService(db).get_by_id(owner.id)
        assert user.is_active is False
        for link_id in (first.id, second.id):
            link = await reload_link(link_id)
            assert link.is_active is False
            assert link.deactivated_at is not None
            with pytest.raises(LinkNotFound):
                await LinkAccessService(db).evaluate_access(link_id, None, None, AccessMode.VIEW)

        res = await db.execute(select(File.is_active).where(File.owner_id == owner.id))
        assert res.scalars().all() == [False, False]
        assert (await reload_link(kept.id)).is_active is True

    @pytest.mark.asyncio
    async def test_deactivated_user_cannot_log_in(self, db, admin, owner):
        await UserService(db).deactivate_user(admin, owner.id)
        assert await UserService(db).authenticate(owner.username, "password123") is None

    @pytest.mark.asyncio
    async def test_not_self(self, db, admin):
        with pytest.raises(ValidationError):
            await UserService(db).deactivate_user(admin, admin.id)

    @pytest.mark.asyncio
    async def test_unknown_user(self, db, admin):
        with pytest.raises(NotFoundError):
            await UserService(db).deactivate_user(admin, "missing")


class TestSetRole:
    @pytest.mark.asyncio
    async def test_promote_and_demote(self, db, admin, owner):
        service = UserService(db)
        promoted = await service.set_role(admin, owner.id, ROLE_SUPERUSER)
        assert promoted.is_admin

        demoted = await service.set_role(admin, owner.id, ROLE_USER)
        assert not demoted.is_admin

    @pytest.mark.asyncio
    async def test_rejects_unknown_role(self, db, admin, owner):
        with pytest.raises(ValidationError):
            await UserService(db).set_role(admin, owner.id, "root")

    @pytest.mark.asyncio
    async def test_not_self(self, db, admin):
        with pytest.raises(ValidationError):
            await UserService(db).set_role(admin, admin.id, ROLE_USER)
