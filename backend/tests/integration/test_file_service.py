"""Tests for FileService with the blob store mocked out."""

import io
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from starlette.datastructures import Headers, UploadFile

from app.access.errors import LinkNotFound
from app.access.policies import AccessMode
from app.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.models.link import LinkAccessLog
from app.services.file_service import FileService
from app.services.link_access import LinkAccessService


def make_upload(content=b"hello world", filename="notes.txt", content_type="text/plain"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def storage():
    with patch("app.core.minio_client.store_object", AsyncMock()) as store, \
            patch("app.core.minio_client.remove_object", AsyncMock(return_value=True)) as remove:
        yield store, remove


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_stores_blob_and_record(self, db, owner, storage):
        store, _ = storage
        file = await FileService(db).upload_file(owner, make_upload(), description="meeting notes")

        assert file.display_name == "notes.txt"
        assert file.original_filename == "notes.txt"
        assert file.media_type == "text/plain"
        assert file.size_bytes == 11
        assert file.description == "meeting notes"
        store.assert_awaited_once()
        bucket, object_name = store.await_args.args[:2]
        assert bucket == file.bucket
        assert object_name == file.object_name

    @pytest.mark.asyncio
    async def test_too_large(self, db, owner, storage):
        store, _ = storage
        with patch("app.services.file_service.settings.MAX_FILE_SIZE", 4):
            with pytest.raises(ValidationError):
                await FileService(db).upload_file(owner, make_upload(b"12345"))
        store.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_active_name(self, db, owner, storage):
        service = FileService(db)
        await service.upload_file(owner, make_upload(), display_name="plan")
        with pytest.raises(ConflictError):
            await service.upload_file(owner, make_upload(), display_name="plan")

    @pytest.mark.asyncio
    async def test_name_is_reusable_after_delete(self, db, owner, storage):
        service = FileService(db)
        first = await service.upload_file(owner, make_upload(), display_name="plan")
        await service.delete_file(owner, first.id)

        second = await service.upload_file(owner, make_upload(), display_name="plan")
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_same_name_for_different_owners(self, db, owner, make_user, storage):
        other = await make_user("other")
        service = FileService(db)
        await service.upload_file(owner, make_upload(), display_name="plan")
        await service.upload_file(other, make_upload(), display_name="plan")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_rename(self, db, owner, shared_file):
        file = await FileService(db).update_file(owner, shared_file.id, display_name="final.txt", description="v2")
        assert file.display_name == "final.txt"
        assert file.description == "v2"

    @pytest.mark.asyncio
    async def test_rename_conflict(self, db, owner, make_file, shared_file):
        await make_file(owner, "taken.txt")
        with pytest.raises(ConflictError):
            await FileService(db).update_file(owner, shared_file.id, display_name="taken.txt")

    @pytest.mark.asyncio
    async def test_stranger_cannot_update(self, db, make_user, shared_file):
        stranger = await make_user("stranger")
        with pytest.raises(PermissionDeniedError):
            await FileService(db).update_file(stranger, shared_file.id, description="mine now")


class TestDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_deactivates_links(self, db, owner, shared_file, make_link, reload_link, storage):
        _, remove = storage
        first = await make_link(owner, shared_file)
        second = await make_link(owner, shared_file)
        await LinkAccessService(db).evaluate_access(first.id, None, None, AccessMode.VIEW)

        deactivated = await FileService(db).delete_file(owner, shared_file.id)

        assert deactivated == 2
        for link_id in (first.id, second.id):
            link = await reload_link(link_id)
            assert link.is_active is False
            assert link.deactivated_at is not None
        logs = await db.execute(select(func.count()).select_from(LinkAccessLog))
        assert logs.scalar_one() == 1
        remove.assert_awaited_once_with(shared_file.bucket, shared_file.object_name)

        with pytest.raises(LinkNotFound):
            await LinkAccessService(db).evaluate_access(first.id, None, None, AccessMode.VIEW)
        with pytest.raises(NotFoundError):
            await FileService(db).get_managed_file(owner, shared_file.id)

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_undo_delete(self, db, owner, shared_file, storage):
        _, remove = storage
        remove.return_value = False

        await FileService(db).delete_file(owner, shared_file.id)
        assert await FileService(db).get_active_file(shared_file.id) is None

    @pytest.mark.asyncio
    async def test_admin_may_delete(self, db, admin, shared_file, storage):
        await FileService(db).delete_file(admin, shared_file.id)
        assert await FileService(db).get_active_file(shared_file.id) is None


class TestListFiles:
    @pytest.mark.asyncio
    async def test_lists_only_active_own_files(self, db, owner, make_user, make_file, storage):
        other = await make_user("other")
        keep = await make_file(owner, "alpha.txt")
        gone = await make_file(owner, "beta.txt")
        await make_file(other, "alpha-other.txt")
        service = FileService(db)
        await service.delete_file(owner, gone.id)

        rows, total = await service.list_files(owner)
        assert total == 1
        assert [f.id for f in rows] == [keep.id]

        rows, total = await service.list_files(None, search="alpha", sort_by="display_name", order="asc")
        assert [f.display_name for f in rows] == ["alpha-other.txt", "alpha.txt"]
