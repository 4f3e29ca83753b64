from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date, datetime
from enum import Enum
import uuid


class ApplicationStatus(str, Enum):
    """Status label of an application. Any value may replace any other."""
    APPLIED = "applied"
    UNDER_REVIEW = "under_review"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEWED = "interviewed"
    OFFER_RECEIVED = "offer_received"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class AttachmentKind(str, Enum):
    """Attachment slot of an application; the value is also the storage path segment."""
    CV = "cv"
    COVER_LETTER = "cover_letter"


class ApplicationFields(BaseModel):
    """Full text-field set of an application (create and full-replace update)"""
    job_title: str = Field(..., max_length=255)
    company_name: str = Field(..., max_length=255)
    job_description: str = ""
    application_date: date
    status: ApplicationStatus
    notes: Optional[str] = None

    @field_validator("job_title", "company_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class ApplicationCreate(ApplicationFields):
    pass


class ApplicationUpdate(ApplicationFields):
    """Update replaces every text field; there is no partial patch"""
    pass


class Attachment(BaseModel):
    url: str
    file_name: str


class Application(BaseModel):
    """Application record as returned to the owner"""
    id: uuid.UUID
    user_id: str
    job_title: str
    company_name: str
    job_description: str
    application_date: date
    status: ApplicationStatus
    notes: Optional[str] = None
    cv_file_url: Optional[str] = None
    cv_file_name: Optional[str] = None
    cover_letter_file_url: Optional[str] = None
    cover_letter_file_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ApplicationCreatedResponse(BaseModel):
    """Response body of the intake endpoint (camelCase, consumed by the browser extension)"""
    success: bool = True
    applicationId: uuid.UUID
    message: str = "Job application saved successfully"


class ApplicationDeleteResponse(BaseModel):
    success: bool = True
    message: str = "Job application deleted"
