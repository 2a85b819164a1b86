from typing import Optional

from fastapi import status


class PhotoError(Exception):
    """Base class for every failure raised by the photo pipeline"""

    error = "Request failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error


class ValidationError(PhotoError):
    """Missing file or malformed request"""

    error = "Validation failed"
    status_code = status.HTTP_400_BAD_REQUEST


class BatchTooLargeError(ValidationError):
    error = "Too many files"

    def __init__(self, count: int, limit: int):
        super().__init__(f"Maximum number of files exceeded: {count} provided (max: {limit})")
        self.count = count
        self.limit = limit


class InvalidImageError(PhotoError):
    error = "Invalid image"
    status_code = status.HTTP_400_BAD_REQUEST


class FileTooLargeError(PhotoError):
    error = "File too large"
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    def __init__(self, size: int, limit: int):
        limit_mb = round(limit / (1024 * 1024))
        super().__init__(f"File size exceeds the maximum limit of {limit_mb}MB ({size} bytes, max: {limit})")
        self.size = size
        self.limit = limit


class ProcessingError(PhotoError):
    """Variant generation failed after the signature check passed"""

    error = "Image processing failed"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class StorageError(PhotoError):
    error = "Storage failure"
    status_code = status.HTTP_502_BAD_GATEWAY


class AnalysisError(PhotoError):
    """
    Vision analysis failure

    `reason` keeps the collaborator's failure kind so callers can decide
    whether to retry (resource_exhausted, unavailable) or give up.
    """

    INVALID_ARGUMENT = "invalid_argument"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"

    _RESPONSES = {
        INVALID_ARGUMENT: ("Invalid image", status.HTTP_400_BAD_REQUEST),
        PERMISSION_DENIED: ("Service unavailable", status.HTTP_503_SERVICE_UNAVAILABLE),
        RESOURCE_EXHAUSTED: ("Rate limit exceeded", status.HTTP_429_TOO_MANY_REQUESTS),
        UNAVAILABLE: ("Service unavailable", status.HTTP_503_SERVICE_UNAVAILABLE),
        UNKNOWN: ("Analysis failed", status.HTTP_502_BAD_GATEWAY),
    }

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason if reason in self._RESPONSES else self.UNKNOWN
        self.error, self.status_code = self._RESPONSES[self.reason]
