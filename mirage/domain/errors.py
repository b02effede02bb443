from typing import Any, Dict, Optional


class MirageError(Exception):
    """
    Base exception for all expected, client-facing failures.

    Carries the HTTP status and a stable machine-readable code so the
    API layer can render it without knowing the concrete type.
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details


class InvalidInputError(MirageError):
    """
    Raised when a management request carries invalid field values.
    """

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthRequiredError(MirageError):
    """
    Raised when an operation needs an identity and none was supplied.
    """

    status_code = 401
    code = "AUTH_REQUIRED"


class AuthFailedError(MirageError):
    """
    Raised when supplied credentials cannot be resolved to an active user.
    """

    status_code = 401
    code = "AUTH_FAILED"


class ForbiddenError(MirageError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(MirageError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(MirageError):
    """
    Raised when an active endpoint already uses the same method and pattern.
    """

    status_code = 409
    code = "DUPLICATE_RESOURCE"


class QuotaExceededError(MirageError):
    """
    Raised when a user exceeds a monthly quota.
    """

    status_code = 429
    code = "QUOTA_EXCEEDED"


class StoreUnavailableError(MirageError):
    """
    Raised when persistence fails while serving a request.

    Rendered with a generic message; the cause is only logged.
    """

    status_code = 500
    code = "INTERNAL_ERROR"
