"""
Schemas for file selection and the upload widget state.
"""
from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class UploadState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class FileCandidate(BaseModel):
    """A file picked or dropped by the user, before or after validation."""
    file_name: str
    size: int = Field(..., ge=0, description="Size in bytes")
    content: bytes = b""
    content_type: Optional[str] = None

    @classmethod
    def from_bytes(cls, file_name: str, content: bytes, content_type: Optional[str] = None) -> "FileCandidate":
        return cls(file_name=file_name, size=len(content), content=content, content_type=content_type)


class UploadSnapshot(BaseModel):
    """Read-only view of an upload task for rendering."""
    state: UploadState
    progress: int = Field(0, ge=0, le=100)
    file_name: Optional[str] = None
    size_label: Optional[str] = None
    error_message: Optional[str] = None
    drag_active: bool = False
