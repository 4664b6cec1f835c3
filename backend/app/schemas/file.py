from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    display_name: str
    original_filename: str
    media_type: str
    size_bytes: int
    description: str | None
    download_count: int
    is_active: bool
    created_at: datetime


class FileUpdate(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)


class FileListResponse(BaseModel):
    files: list[FileInfo]
    total: int
    skip: int
    limit: int


class FileSummary(BaseModel):
    id: str
    display_name: str
    original_filename: str
    media_type: str
    size_bytes: int
