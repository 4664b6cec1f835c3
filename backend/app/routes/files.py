from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.file import FileInfo, FileListResponse, FileUpdate
from app.services.file_service import FileService

router = APIRouter(tags=["Files"])


@router.post("/files/upload", response_model=FileInfo, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile,
    display_name: str | None = Form(None, max_length=255),
    description: str | None = Form(None, max_length=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await FileService(db).upload_file(current_user, file, display_name, description)


@router.get("/files", response_model=FileListResponse)
async def list_files(
    search: str | None = Query(None, description="Search by name or description"),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    files, total = await FileService(db).list_files(
        current_user, search=search, sort_by=sort_by, order=order, skip=skip, limit=limit
    )
    return FileListResponse(files=files, total=total, skip=skip, limit=limit)


@router.get("/files/recent", response_model=list[FileInfo])
async def recent_files(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await FileService(db).recent_files(current_user)


@router.patch("/files/{file_id}", response_model=FileInfo)
async def update_file(
    file_id: str,
    body: FileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await FileService(db).update_file(current_user, file_id, body.display_name, body.description)


@router.delete("/files/{file_id}")
async def delete_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    deactivated = await FileService(db).delete_file(current_user, file_id)
    return {"status": "ok", "id": file_id, "links_deactivated": deactivated}
