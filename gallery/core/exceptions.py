"""Error taxonomy shared by the stores, the media service and the HTTP host."""

from typing import Any, Optional


class MediaStoreError(Exception):
    """Base exception for every failure the media store reports.

    ``kind`` is stable and machine readable, ``message`` is meant for humans
    and ``status_code`` is the HTTP status the host answers with.
    """

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message, **self.details}


class Unauthorized(MediaStoreError):
    kind = "unauthorized"
    status_code = 401


class NotFound(MediaStoreError):
    kind = "not_found"
    status_code = 404


class QuotaExceeded(MediaStoreError):
    kind = "quota_exceeded"
    status_code = 409


class UnsupportedType(MediaStoreError):
    kind = "unsupported_type"
    status_code = 415


class FileTooLarge(MediaStoreError):
    kind = "file_too_large"
    status_code = 413


class BackendUnavailable(MediaStoreError):
    """The configured storage dependency is unreachable or unconfigured."""

    kind = "backend_unavailable"
    status_code = 503


class InternalError(MediaStoreError):
    kind = "internal"
    status_code = 500


class BadRequest(MediaStoreError):
    kind = "bad_request"
    status_code = 400


class AlreadyExists(MediaStoreError):
    """A write would replace an existing immutable asset."""

    kind = "already_exists"
    status_code = 409
