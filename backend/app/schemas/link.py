from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from app.access.policies import (
    AuthenticatedAudience,
    DurationExpiration,
    FixedDateExpiration,
    NoExpiration,
    PublicAudience,
    SelectedUsersAudience,
)
from app.schemas.file import FileSummary
from app.schemas.user import UserBrief

# 100 years
MAX_DURATION_SECONDS = 100 * 365 * 24 * 3600


class NoExpirationIn(BaseModel):
    type: Literal["none"] = "none"

    def to_policy(self):
        return NoExpiration()


class DurationExpirationIn(BaseModel):
    type: Literal["duration"]
    seconds: int = Field(gt=0, le=MAX_DURATION_SECONDS)

    def to_policy(self):
        return DurationExpiration(seconds=self.seconds)


class DateExpirationIn(BaseModel):
    type: Literal["date"]
    expires_at: datetime

    def to_policy(self):
        return FixedDateExpiration(at=self.expires_at)


ExpirationIn = Annotated[
    Union[NoExpirationIn, DurationExpirationIn, DateExpirationIn], Field(discriminator="type")
]


class NoVerificationIn(BaseModel):
    type: Literal["none"] = "none"


class PasswordVerificationIn(BaseModel):
    type: Literal["password"]
    password: str = Field(min_length=1)


class UsernameVerificationIn(BaseModel):
    type: Literal["username"]
    username: str = Field(min_length=1)


VerificationIn = Annotated[
    Union[NoVerificationIn, PasswordVerificationIn, UsernameVerificationIn],
    Field(discriminator="type"),
]


class PublicAudienceIn(BaseModel):
    type: Literal["public"] = "public"

    def to_policy(self):
        return PublicAudience()


class AuthenticatedAudienceIn(BaseModel):
    type: Literal["users"]

    def to_policy(self):
        return AuthenticatedAudience()


class SelectedUsersAudienceIn(BaseModel):
    type: Literal["selected"]
    user_ids: list[str] = Field(min_length=1)

    def to_policy(self):
        return SelectedUsersAudience(user_ids=frozenset(self.user_ids))


AudienceIn = Annotated[
    Union[PublicAudienceIn, AuthenticatedAudienceIn, SelectedUsersAudienceIn],
    Field(discriminator="type"),
]


class LinkCreate(BaseModel):
    file_id: str
    display_name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    expiration: ExpirationIn = Field(default_factory=NoExpirationIn)
    access_limit: PositiveInt | None = None
    verification: VerificationIn = Field(default_factory=NoVerificationIn)
    audience: AudienceIn = Field(default_factory=PublicAudienceIn)
    download_allowed: bool = False


class LinkInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: str
    description: str | None
    file_id: str
    owner_id: str
    expires_at: datetime | None
    access_limit: int | None
    current_access_count: int
    verification_kind: str
    audience_scope: str
    allowed_users: list[UserBrief] = []
    download_allowed: bool
    is_active: bool
    created_at: datetime
    share_url: str | None = None


class LinkListResponse(BaseModel):
    links: list[LinkInfo]
    total: int
    skip: int
    limit: int


class LinkSummary(BaseModel):
    id: str
    display_name: str
    description: str | None
    download_allowed: bool


class LinkAccessResponse(BaseModel):
    link: LinkSummary
    file: FileSummary
    access_count: int


class AccessLogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    seq: int
    requester_id: str | None
    source_address: str | None
    user_agent: str | None
    accessed_at: datetime


class AccessLogResponse(BaseModel):
    entries: list[AccessLogEntry]
    total: int


class SweepResponse(BaseModel):
    deactivated: int
    purged: int
