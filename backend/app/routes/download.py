from __future__ import annotations

import urllib.parse
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.access.policies import AccessMode, ClientInfo, Credentials, Requester
from app.core.database import get_db
from app.core.minio_client import iter_object, open_object
from app.dependencies.auth import get_current_user, get_optional_requester
from app.models.user import User
from app.services.file_service import FileService
from app.services.link_access import LinkAccessService, RetrievalHandle
from app.utils.urls import client_address

router = APIRouter(tags=["Download"])


# -----------------------------
# Helpers
# -----------------------------

def _rfc5987_filename(value: str) -> str:
    # Build a robust Content-Disposition filename / filename* pair
    quoted = urllib.parse.quote(value, safe="")
    ascii_name = value.encode("latin-1", "ignore").decode("latin-1").replace('"', "")
    return f'filename="{ascii_name}"; filename*=UTF-8\'\'{quoted}'


def link_credentials(
    password: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    x_link_password: Optional[str] = Header(None),
    x_link_username: Optional[str] = Header(None),
) -> Credentials:
    return Credentials(password=password or x_link_password, username=username or x_link_username)


def client_info(request: Request) -> ClientInfo:
    return ClientInfo(source_address=client_address(request), user_agent=request.headers.get("user-agent"))


async def stream_handle(handle: RetrievalHandle) -> StreamingResponse:
    obj = await open_object(handle.bucket, handle.object_name)
    headers = {
        "Content-Disposition": f"attachment; {_rfc5987_filename(handle.filename or 'download.bin')}",
        "Content-Length": str(handle.size_bytes),
        "Cache-Control": "no-store",
    }
    return StreamingResponse(iter_object(obj), media_type=handle.media_type, headers=headers)


# -----------------------------
# Download through a link (public, policy-gated)
# -----------------------------

@router.get("/links/download/{link_id}")
async def download_by_link(
    link_id: str,
    request: Request,
    credentials: Credentials = Depends(link_credentials),
    requester: Optional[Requester] = Depends(get_optional_requester),
    db: AsyncSession = Depends(get_db),
):
    grant = await LinkAccessService(db).evaluate_access(
        link_id, requester, credentials, AccessMode.DOWNLOAD, client=client_info(request)
    )
    return await stream_handle(grant.handle)


# -----------------------------
# Owner download
# -----------------------------

@router.get("/files/{file_id}/download")
async def download_own_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    file = await FileService(db).record_owner_download(current_user, file_id)
    handle = RetrievalHandle(
        bucket=file.bucket,
        object_name=file.object_name,
        media_type=file.media_type,
        filename=file.original_filename,
        size_bytes=file.size_bytes,
    )
    return await stream_handle(handle)
