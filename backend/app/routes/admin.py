from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.dependencies.auth import get_current_admin
from app.models.user import User
from app.schemas.file import FileListResponse
from app.schemas.link import LinkInfo, LinkListResponse, SweepResponse
from app.services.file_service import FileService
from app.services.link_service import LinkService
from app.tasks.cleanup import purge_old_inactive, sweep_expired_links
from app.utils.urls import link_share_url

router = APIRouter(
    prefix="/admin",
    tags=["Admin"]
)

@router.get("/links", response_model=LinkListResponse)
async def all_links(
    request: Request,
    search: str | None = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    links, total = await LinkService(db).list_links(
        None, search=search, sort_by=sort_by, order=order, skip=skip, limit=limit
    )
    infos = []
    for link in links:
        info = LinkInfo.model_validate(link)
        info.share_url = link_share_url(request, link.id)
        infos.append(info)
    return LinkListResponse(links=infos, total=total, skip=skip, limit=limit)

@router.get("/files", response_model=FileListResponse)
async def all_files(
    search: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    files, total = await FileService(db).list_files(None, search=search, skip=skip, limit=limit)
    return FileListResponse(files=files, total=total, skip=skip, limit=limit)

@router.post("/sweep", response_model=SweepResponse)
async def sweep_now(
    purge: bool = Query(False, description="Also delete links inactive for longer than days_old"),
    days_old: int = Query(settings.PURGE_INACTIVE_AFTER_DAYS or 30, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    deactivated = await sweep_expired_links(db)
    purged = await purge_old_inactive(db, days_old) if purge else 0
    return SweepResponse(deactivated=deactivated, purged=purged)
