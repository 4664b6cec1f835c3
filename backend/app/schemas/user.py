from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=6)

class Token(BaseModel):
    access_token: str
    token_type: str

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: EmailStr
    username: str
    role: str
    is_active: bool
    created_at: datetime

class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: str

class RoleUpdate(BaseModel):
    role: Literal["user", "superuser"]

class UserDeactivateResponse(BaseModel):
    status: str
    id: str
    files_deactivated: int
    links_deactivated: int
