"""Pure predicates over a link.

None of these functions touch the database or the clock; callers pass ``now``
explicitly. They accept anything shaped like :class:`app.models.link.Link`
(``expires_at``, ``access_limit``, ``current_access_count``, ``audience``,
``verification``).
"""

from __future__ import annotations

import hmac
from datetime import datetime
from typing import Optional

from app.access.policies import (
    AuthenticatedAudience,
    Credentials,
    NoVerification,
    PasswordVerification,
    PublicAudience,
    Requester,
    SelectedUsersAudience,
    UsernameVerification,
)
from app.core.security import verify_password


def is_expired(link, now: datetime) -> bool:
    # The expiry instant itself is still valid
    if link.expires_at is None:
        return False
    return now > link.expires_at


def is_limit_reached(link) -> bool:
    if link.access_limit is None:
        return False
    return link.current_access_count >= link.access_limit


def is_authorized(link, requester: Optional[Requester]) -> bool:
    audience = link.audience
    if isinstance(audience, PublicAudience):
        return True
    if isinstance(audience, AuthenticatedAudience):
        return requester is not None
    if isinstance(audience, SelectedUsersAudience):
        return requester is not None and requester.id in audience.user_ids
    raise TypeError(f"Unknown audience scope: {audience!r}")


def _same_text(supplied: Optional[str], expected: str) -> bool:
    if supplied is None:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def is_verified(link, credentials: Optional[Credentials]) -> bool:
    policy = link.verification
    credentials = credentials or Credentials()
    if isinstance(policy, NoVerification):
        return True
    if isinstance(policy, PasswordVerification):
        if not credentials.password:
            return False
        return verify_password(credentials.password, policy.secret_hash)
    if isinstance(policy, UsernameVerification):
        return _same_text(credentials.username, policy.expected)
    raise TypeError(f"Unknown verification policy: {policy!r}")
