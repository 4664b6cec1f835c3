"""Application exceptions.

Every error raised by the service layer derives from :class:`AppError` and
carries the HTTP status and a short machine-readable ``kind`` used by the
exception handler registered in ``app.main``.
"""


class AppError(Exception):
    """Base exception for all application-specific exceptions."""

    status_code: int = 500
    kind: str = "internal"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""

    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class PermissionDeniedError(AppError):
    """Raised when the caller may not act on a resource."""

    status_code = 403
    kind = "forbidden"
    default_message = "Access denied"


class ConflictError(AppError):
    """Raised when a unique name is already taken."""

    status_code = 409
    kind = "conflict"
    default_message = "Resource already exists"


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 422
    kind = "validation_error"
    default_message = "Invalid input"


class StorageError(AppError):
    """Raised when the blob store rejects an operation."""

    status_code = 502
    kind = "storage_error"
    default_message = "Storage is temporarily unavailable"
