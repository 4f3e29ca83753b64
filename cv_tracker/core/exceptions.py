"""
Error taxonomy for the tracker.

Every failure the application layer can surface is a TrackerError subclass
carrying the HTTP status the API layer responds with. Services raise these;
the FastAPI exception handler in main.py turns them into ``{"error": ...}``
bodies, and the dashboard state turns them into user-facing messages.
"""

from typing import Any, Dict, Optional, Sequence
from uuid import UUID


class TrackerError(Exception):
    """Base exception for application tracker errors."""

    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, original_error: Optional[Exception] = None):
        self.message = message or self.default_message
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Response body for the API layer."""
        return {"error": self.message, "type": type(self).__name__}


class NotAuthenticated(TrackerError):
    status_code = 401
    default_message = "User not authenticated"


class NotFound(TrackerError):
    status_code = 404
    default_message = "Job application not found"


class FileValidationError(TrackerError):
    """A selected file was rejected before any transfer started."""

    status_code = 400
    default_message = "File rejected"


class FileTooLarge(FileValidationError):
    def __init__(self, max_size_mb: float, size: Optional[int] = None):
        self.max_size_mb = max_size_mb
        self.size = size
        super().__init__(f"File size must be less than {max_size_mb:g}MB")


class UnsupportedFileType(FileValidationError):
    def __init__(self, allowed: Sequence[str], extension: str = ""):
        self.allowed = list(allowed)
        self.extension = extension
        super().__init__(
            f"File type not supported. Please upload {', '.join(self.allowed)} files only."
        )


class UploadFailed(TrackerError):
    """
    An object-store transfer failed.

    When raised after the text record was already persisted, ``application_id``
    names the record and ``failed_kinds`` the attachment slots that are missing,
    so the caller can offer to retry just those attachments.
    """

    status_code = 500
    default_message = "Failed to upload file"

    def __init__(
        self,
        message: Optional[str] = None,
        application_id: Optional[UUID] = None,
        failed_kinds: Optional[Sequence[str]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.application_id = application_id
        self.failed_kinds = list(failed_kinds or [])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.application_id is not None:
            body["applicationId"] = str(self.application_id)
            body["failedAttachments"] = self.failed_kinds
        return body


class PersistenceFailed(TrackerError):
    status_code = 500
    default_message = "Failed to save job application"


class ServiceNotConfigured(TrackerError):
    status_code = 503

    def __init__(self, service: str, reason: str = "not configured"):
        self.service = service
        super().__init__(f"{service} is {reason}")


class InvalidInput(TrackerError):
    """Request fields are missing or malformed."""

    status_code = 400
    default_message = "Invalid application data"
