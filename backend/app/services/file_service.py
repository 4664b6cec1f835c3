from __future__ import annotations

import logging
import os
import tempfile
import uuid
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import minio_client
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.file import File
from app.models.link import Link
from app.models.user import User
from app.utils.timeutils import utcnow

logger = logging.getLogger("secure-link")

RECENT_LIMIT = 10

SORTABLE = {
    "created_at": File.created_at,
    "display_name": File.display_name,
    "size_bytes": File.size_bytes,
    "download_count": File.download_count,
}


def _can_manage(user: User, file: File) -> bool:
    return str(file.owner_id) == str(user.id) or user.is_admin


async def _spool_upload(upload: UploadFile) -> tuple[str, int]:
    """Copy the upload to a temp file, enforcing MAX_FILE_SIZE."""
    suffix = "_" + upload.filename if upload.filename else ""
    size = 0
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp:
        temp_path = tmp.name
        while True:
            chunk = await upload.read(1024 * 1024)
            if not chunk:
                break
            size += len(chunk)
            if size > settings.MAX_FILE_SIZE:
                break
            tmp.write(chunk)
    if size > settings.MAX_FILE_SIZE:
        os.remove(temp_path)
        raise ValidationError("File exceeds the maximum allowed size")
    return temp_path, size


class FileService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_file(self, file_id: str) -> Optional[File]:
        res = await self.db.execute(select(File).where(File.id == file_id, File.is_active.is_(True)))
        return res.scalars().first()

    async def get_managed_file(self, actor: User, file_id: str) -> File:
        file = await self.get_active_file(file_id)
        if file is None:
            raise NotFoundError("File not found")
        if not _can_manage(actor, file):
            raise PermissionDeniedError()
        return file

    async def _display_name_taken(self, owner_id: str, display_name: str, exclude_id: Optional[str] = None) -> bool:
        stmt = select(File.id).where(
            File.owner_id == owner_id,
            File.display_name == display_name,
            File.is_active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(File.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def upload_file(
        self,
        owner: User,
        upload: UploadFile,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> File:
        """Store the blob, then commit the record; the blob is removed if the commit fails."""
        display_name = (display_name or upload.filename or "").strip()
        if not display_name:
            raise ValidationError("A display name is required")
        if await self._display_name_taken(owner.id, display_name):
            raise ConflictError("A file with this name already exists")

        temp_path, size = await _spool_upload(upload)
        content_type = upload.content_type or "application/octet-stream"
        bucket = settings.MINIO_BUCKET
        object_name = f"{uuid.uuid4()}_{upload.filename or 'file.bin'}"

        try:
            await minio_client.store_object(bucket, object_name, temp_path, content_type)
        finally:
            try:
                os.remove(temp_path)
            except OSError:
                logger.warning("Could not remove temp file %s", temp_path)

        f = File(
            id=str(uuid.uuid4()),
            owner_id=owner.id,
            display_name=display_name,
            original_filename=upload.filename or object_name,
            media_type=content_type,
            size_bytes=size,
            description=description,
            bucket=bucket,
            object_name=object_name,
            is_active=True,
            download_count=0,
        )
        self.db.add(f)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            await minio_client.remove_object(bucket, object_name)
            raise ConflictError("A file with this name already exists") from e

        logger.info("file_uploaded file=%s owner=%s size=%s", f.id, owner.id, size)
        return f

    async def update_file(
        self, actor: User, file_id: str, display_name: Optional[str] = None, description: Optional[str] = None
    ) -> File:
        file = await self.get_managed_file(actor, file_id)
        if display_name is not None and display_name != file.display_name:
            if await self._display_name_taken(file.owner_id, display_name, exclude_id=file.id):
                raise ConflictError("A file with this name already exists")
            file.display_name = display_name
        if description is not None:
            file.description = description
        await self.db.commit()
        return file

    async def list_files(
        self,
        owner: Optional[User] = None,
        *,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        order: str = "desc",
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[File], int]:
        """Active files of ``owner``, or of everyone when ``owner`` is None."""
        conditions = [File.is_active.is_(True)]
        if owner is not None:
            conditions.append(File.owner_id == owner.id)
        if search and search.strip():
            needle = f"%{search.strip()}%"
            conditions.append(or_(
                File.display_name.ilike(needle),
                File.original_filename.ilike(needle),
                File.description.ilike(needle),
            ))
        where_clause = and_(*conditions)

        total = (await self.db.execute(select(func.count()).select_from(File).where(where_clause))).scalar_one()

        col = SORTABLE.get(sort_by, File.created_at)
        query = select(File).where(where_clause)
        query = query.order_by(col.asc() if order.lower() == "asc" else col.desc())
        rows = (await self.db.execute(query.offset(skip).limit(limit))).scalars().all()
        return list(rows), total

    async def recent_files(self, owner: User) -> list[File]:
        rows, _ = await self.list_files(owner, limit=RECENT_LIMIT)
        return rows

    async def record_owner_download(self, actor: User, file_id: str) -> File:
        file = await self.get_managed_file(actor, file_id)
        await self.db.execute(
            update(File)
            .where(File.id == file.id)
            .values(download_count=File.download_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return file

    async def delete_file(self, actor: User, file_id: str) -> int:
        """Soft delete the file and deactivate every link to it.

        Link rows and their access logs stay. Returns the number of links
        deactivated. The blob is removed after the commit; a storage failure
        is only logged.
        """
        file = await self.get_managed_file(actor, file_id)
        now = utcnow()
        file.is_active = False
        file.deleted_at = now
        res = await self.db.execute(
            update(Link)
            .where(Link.file_id == file.id, Link.is_active.is_(True))
            .values(is_active=False, deactivated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        deactivated = res.rowcount

        if not await minio_client.remove_object(file.bucket, file.object_name):
            logger.warning("Blob for deleted file %s was not removed", file.id)

        logger.info("file_deleted file=%s by=%s links_deactivated=%s", file.id, actor.id, deactivated)
        return deactivated
