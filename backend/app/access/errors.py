"""Deny outcomes of link access evaluation.

All of them are terminal for the request that raised them. Only
``AuthenticationRequired`` and ``InvalidCredentials`` can be cured by a retry
with different credentials.
"""

from app.core.exceptions import AppError


class AccessError(AppError):
    """Base class for every outcome other than an allow."""


class LinkNotFound(AccessError):
    status_code = 404
    kind = "not_found"
    default_message = "Link not found or inactive"


class AccessForbidden(AccessError):
    status_code = 403
    kind = "forbidden"
    default_message = "You are not authorized to access this link"


class DownloadNotAllowed(AccessForbidden):
    default_message = "Download is not allowed for this link"


class AuthenticationRequired(AccessError):
    status_code = 401
    kind = "auth_required"
    default_message = "Authentication required to access this link"


class LinkExpired(AccessError):
    status_code = 410
    kind = "expired"
    default_message = "Link has expired"


class AccessLimitReached(AccessError):
    status_code = 429
    kind = "limit_reached"
    default_message = "Access limit reached for this link"


class InvalidCredentials(AccessError):
    status_code = 401
    kind = "invalid_credentials"
    default_message = "Invalid credentials"


class AccessNotRecorded(AccessError):
    """The decision was allow but the access could not be persisted."""

    status_code = 500
    kind = "internal"
    default_message = "Access could not be recorded"
