from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.policies import AccessMode, Credentials, Requester
from app.core.database import get_db
from app.dependencies.auth import get_current_user, get_optional_requester
from app.models.link import Link
from app.models.user import User
from app.routes.download import client_info, link_credentials
from app.schemas.file import FileSummary
from app.schemas.link import (
    AccessLogEntry,
    AccessLogResponse,
    LinkAccessResponse,
    LinkCreate,
    LinkInfo,
    LinkListResponse,
    LinkSummary,
)
from app.services.link_access import LinkAccessService
from app.services.link_service import LinkService
from app.utils.urls import link_share_url

router = APIRouter(prefix="/links", tags=["Links"])


def _link_info(request: Request, link: Link) -> LinkInfo:
    info = LinkInfo.model_validate(link)
    info.share_url = link_share_url(request, link.id)
    return info


@router.post("", response_model=LinkInfo, status_code=status.HTTP_201_CREATED)
async def create_link(
    request: Request,
    body: LinkCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    link = await LinkService(db).create_link(current_user, body)
    return _link_info(request, link)


@router.get("", response_model=LinkListResponse)
async def list_links(
    request: Request,
    search: str | None = Query(None, description="Search by name or description"),
    active: bool | None = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    links, total = await LinkService(db).list_links(
        current_user, search=search, active=active, sort_by=sort_by, order=order, skip=skip, limit=limit
    )
    return LinkListResponse(links=[_link_info(request, l) for l in links], total=total, skip=skip, limit=limit)


@router.get("/recent", response_model=list[LinkInfo])
async def recent_links(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return [_link_info(request, l) for l in await LinkService(db).recent_links(current_user)]


@router.get("/access/{link_id}", response_model=LinkAccessResponse)
async def access_link(
    link_id: str,
    request: Request,
    credentials: Credentials = Depends(link_credentials),
    requester: Optional[Requester] = Depends(get_optional_requester),
    db: AsyncSession = Depends(get_db),
):
    grant = await LinkAccessService(db).evaluate_access(
        link_id, requester, credentials, AccessMode.VIEW, client=client_info(request)
    )
    return LinkAccessResponse(
        link=LinkSummary(
            id=grant.link.id,
            display_name=grant.link.display_name,
            description=grant.link.description,
            download_allowed=grant.link.download_allowed,
        ),
        file=FileSummary(
            id=grant.file.id,
            display_name=grant.file.display_name,
            original_filename=grant.file.original_filename,
            media_type=grant.file.media_type,
            size_bytes=grant.file.size_bytes,
        ),
        access_count=grant.access_count,
    )


@router.get("/{link_id}", response_model=LinkInfo)
async def get_link(
    link_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    link = await LinkService(db).get_managed_link(current_user, link_id)
    return _link_info(request, link)


@router.get("/{link_id}/access-log", response_model=AccessLogResponse)
async def get_access_log(
    link_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries, total = await LinkService(db).access_log(current_user, link_id, skip=skip, limit=limit)
    return AccessLogResponse(entries=[AccessLogEntry.model_validate(e) for e in entries], total=total)


@router.patch("/{link_id}/toggle", response_model=LinkInfo)
async def toggle_link(
    link_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    link = await LinkService(db).toggle_link(current_user, link_id)
    return _link_info(request, link)


@router.delete("/{link_id}")
async def delete_link(
    link_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await LinkService(db).delete_link(current_user, link_id)
    return {"status": "ok", "id": link_id}
