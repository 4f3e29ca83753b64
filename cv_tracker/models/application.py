from datetime import datetime, timezone
from sqlalchemy import Column, Date, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
import uuid
from cv_tracker.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    # Opaque identity-provider id; rows without an owner are never readable
    user_id = Column(String(128), nullable=False, index=True)

    job_title = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=False)
    job_description = Column(Text, nullable=False, default="")
    application_date = Column(Date, nullable=False)

    status = Column(String(32), nullable=False, index=True)
    # Values: applied, under_review, interview_scheduled, interviewed,
    # offer_received, rejected, withdrawn

    notes = Column(Text, nullable=True)

    # Attachments: (download URL, stored file name) pairs, absent until uploaded
    cv_file_url = Column(String(1024), nullable=True)
    cv_file_name = Column(String(255), nullable=True)
    cover_letter_file_url = Column(String(1024), nullable=True)
    cover_letter_file_name = Column(String(255), nullable=True)

    # Timestamps (assigned here rather than by the server so ordering keeps sub-second precision)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def attachment(self, kind: str) -> tuple:
        """Return the (url, file name) pair for an attachment slot."""
        return getattr(self, f"{kind}_file_url"), getattr(self, f"{kind}_file_name")

    def __repr__(self):
        return f"<JobApplication(user_id={self.user_id}, job_title={self.job_title}, company_name={self.company_name}, status={self.status})>"
