from __future__ import annotations

from typing import Any, Dict, Optional


class GalleryError(Exception):
    """Base for every failure the service reports to its callers."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str = "", **extra: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.code, "detail": self.message}
        body.update(self.extra)
        return body


class ValidationError(GalleryError):
    status_code = 422
    code = "validation_error"


class AuthRequired(GalleryError):
    """Mutation attempted without a session; the client is sent to sign-in."""

    status_code = 401
    code = "auth_required"

    def __init__(self, message: str = "sign_in_required", redirect: str = "/auth") -> None:
        super().__init__(message, redirect=redirect)


class NotAuthorized(GalleryError):
    status_code = 403
    code = "not_authorized"


class NotFound(GalleryError):
    status_code = 404
    code = "not_found"


class RemoteCallFailed(GalleryError):
    status_code = 502
    code = "remote_call_failed"


class GenerationFailed(GalleryError):
    status_code = 502
    code = "generation_failed"


class GenerationTimeout(GalleryError):
    status_code = 504
    code = "generation_timeout"


class GenerationCancelled(GalleryError):
    status_code = 409
    code = "generation_cancelled"


class UniqueConstraintViolation(GalleryError):
    status_code = 409
    code = "unique_violation"

    def __init__(self, message: str = "", field: Optional[str] = None) -> None:
        if field:
            super().__init__(message, field=field)
        else:
            super().__init__(message)


# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION_SQLSTATE = "23505"
