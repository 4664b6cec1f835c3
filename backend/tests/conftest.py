"""Shared fixtures: an isolated in-memory database per test and small factories."""

import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import Base, enable_sqlite_foreign_keys
from app.core.security import get_password_hash
from app.models.file import File
from app.models.link import Link
from app.models.user import ROLE_SUPERUSER, ROLE_USER, User
from app.schemas.link import LinkCreate
from app.services.link_service import LinkService

TEST_PASSWORD = "password123"
# pbkdf2 is slow; every factory user shares one hash
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make_user(username=None, role=ROLE_USER, is_active=True) -> User:
        username = username or f"user_{uuid.uuid4().hex[:8]}"
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password=TEST_PASSWORD_HASH,
            role=role,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
def make_file(db):
    async def _make_file(owner: User, display_name=None, size_bytes=11) -> File:
        display_name = display_name or f"file_{uuid.uuid4().hex[:8]}.txt"
        file = File(
            owner_id=owner.id,
            display_name=display_name,
            original_filename=display_name,
            media_type="text/plain",
            size_bytes=size_bytes,
            bucket="test-bucket",
            object_name=f"{uuid.uuid4()}_{display_name}",
        )
        db.add(file)
        await db.commit()
        return file

    return _make_file


@pytest_asyncio.fixture
async def owner(make_user) -> User:
    return await make_user("owner")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin", role=ROLE_SUPERUSER)


@pytest_asyncio.fixture
async def shared_file(owner, make_file) -> File:
    return await make_file(owner, "report.txt")


@pytest.fixture
def make_link(db):
    """Create a link through the service, the way the API does."""

    async def _make_link(actor: User, file: File, now=None, **fields) -> Link:
        payload = {"file_id": file.id, "display_name": f"link-{uuid.uuid4().hex[:8]}"}
        payload.update(fields)
        return await LinkService(db).create_link(actor, LinkCreate.model_validate(payload), now=now)

    return _make_link


@pytest.fixture
def reload_link(db):
    async def _reload(link_id: str) -> Link:
        return await LinkService(db).get_link(link_id)

    return _reload
