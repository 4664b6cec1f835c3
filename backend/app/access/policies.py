"""Policy types for link access control.

Each policy is a small closed union of frozen dataclasses. The database stores
them as a kind column plus a value (and, for audiences, an association table);
``app.models.link.Link`` converts in both directions so the rest of the code
only ever sees these types.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional, Union

from app.utils.timeutils import to_naive_utc


class AccessMode(str, enum.Enum):
    VIEW = "view"
    DOWNLOAD = "download"


# Expiration

@dataclass(frozen=True)
class NoExpiration:
    def resolve(self, created_at: datetime) -> Optional[datetime]:
        return None


@dataclass(frozen=True)
class DurationExpiration:
    seconds: int

    def __post_init__(self):
        if self.seconds <= 0:
            raise ValueError("Duration must be a positive number of seconds")

    def resolve(self, created_at: datetime) -> Optional[datetime]:
        return created_at + timedelta(seconds=self.seconds)


@dataclass(frozen=True)
class FixedDateExpiration:
    at: datetime

    def resolve(self, created_at: datetime) -> Optional[datetime]:
        return to_naive_utc(self.at)


ExpirationPolicy = Union[NoExpiration, DurationExpiration, FixedDateExpiration]


# Verification

VERIFICATION_NONE = "none"
VERIFICATION_PASSWORD = "password"
VERIFICATION_USERNAME = "username"


@dataclass(frozen=True)
class NoVerification:
    kind = VERIFICATION_NONE


@dataclass(frozen=True)
class PasswordVerification:
    # passlib hash of the shared secret, never the plain text
    secret_hash: str
    kind = VERIFICATION_PASSWORD


@dataclass(frozen=True)
class UsernameVerification:
    expected: str
    kind = VERIFICATION_USERNAME


VerificationPolicy = Union[NoVerification, PasswordVerification, UsernameVerification]


# Audience

SCOPE_PUBLIC = "public"
SCOPE_USERS = "users"
SCOPE_SELECTED = "selected"


@dataclass(frozen=True)
class PublicAudience:
    kind = SCOPE_PUBLIC


@dataclass(frozen=True)
class AuthenticatedAudience:
    kind = SCOPE_USERS


@dataclass(frozen=True)
class SelectedUsersAudience:
    user_ids: FrozenSet[str] = field(default_factory=frozenset)
    kind = SCOPE_SELECTED


AudienceScope = Union[PublicAudience, AuthenticatedAudience, SelectedUsersAudience]


# Request side

@dataclass(frozen=True)
class Requester:
    """Identity resolved by the auth layer before evaluation."""

    id: str
    role: str = "user"
    is_active: bool = True


@dataclass(frozen=True)
class Credentials:
    password: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class ClientInfo:
    source_address: Optional[str] = None
    user_agent: Optional[str] = None
