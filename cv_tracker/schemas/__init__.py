from .application import (
    ApplicationStatus,
    AttachmentKind,
    ApplicationFields,
    ApplicationCreate,
    ApplicationUpdate,
    Attachment,
    Application,
)
from .identity import Identity
from .statistics import StatsSummary
from .upload import FileCandidate, UploadState, UploadSnapshot

__all__ = [
    "ApplicationStatus",
    "AttachmentKind",
    "ApplicationFields",
    "ApplicationCreate",
    "ApplicationUpdate",
    "Attachment",
    "Application",
    "Identity",
    "StatsSummary",
    "FileCandidate",
    "UploadState",
    "UploadSnapshot",
]
