from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.dependencies.auth import get_current_admin, get_current_user
from app.models.user import User
from app.schemas.user import RoleUpdate, UserBrief, UserDeactivateResponse, UserResponse
from app.services.user_service import UserService

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.get("/search", response_model=list[UserBrief])
async def search_users(
    q: str = Query("", description="Username or email fragment, at least 2 characters"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await UserService(db).search_for_links(current_user, q)

@router.delete("/{user_id}", response_model=UserDeactivateResponse)
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    files, links = await UserService(db).deactivate_user(current_user, user_id)
    return UserDeactivateResponse(status="deactivated", id=user_id, files_deactivated=files, links_deactivated=links)

@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: str,
    body: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
):
    return await UserService(db).set_role(current_user, user_id, body.role)
