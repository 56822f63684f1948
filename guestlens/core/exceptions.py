"""Error taxonomy for the photo ingestion and access pipeline."""
from typing import Optional


class PhotoPipelineError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(PhotoPipelineError):
    """Event or photo does not exist."""
    status_code = 404


class ForbiddenError(PhotoPipelineError):
    """Access check failed, or nothing in a batch was authorized."""
    status_code = 403


class InvalidInputError(PhotoPipelineError):
    """Malformed ids, empty file lists, unsupported MIME types."""
    status_code = 400


class ConflictError(InvalidInputError):
    """A concurrent request holds the resource and no result is available yet."""
    status_code = 409


class CapacityExceededError(PhotoPipelineError):
    """The owner's plan photo cap has been reached for the event."""
    status_code = 400


class RateLimitedError(PhotoPipelineError):
    """Per-subject ceiling exceeded within the current window."""
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(PhotoPipelineError):
    """Object store or image transform failure."""
    status_code = 502
