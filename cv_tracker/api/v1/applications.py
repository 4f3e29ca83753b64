from datetime import date
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import uuid

from cv_tracker.core.database import get_db
from cv_tracker.core.exceptions import InvalidInput
from cv_tracker.api.deps import get_application_service, get_current_identity
from cv_tracker.schemas.application import (
    Application,
    ApplicationCreate,
    ApplicationCreatedResponse,
    ApplicationDeleteResponse,
    ApplicationStatus,
    ApplicationUpdate,
    AttachmentKind,
)
from cv_tracker.schemas.identity import Identity
from cv_tracker.schemas.statistics import StatsSummary
from cv_tracker.schemas.upload import FileCandidate
from cv_tracker.services.application_service import ApplicationService
from cv_tracker.services.list_view import ALL_STATUSES, filter_applications

router = APIRouter()


def _parse_date(value: Optional[str]) -> date:
    """Intake date from an ISO date or datetime string; today when absent."""
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise InvalidInput(f"Invalid application date: {value}")


def _build_fields(model, **values):
    try:
        return model(**values)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise InvalidInput(f"Invalid or missing fields: {', '.join(fields)}")


async def _read_upload(upload: Optional[UploadFile]) -> Optional[FileCandidate]:
    """Multipart file part as a FileCandidate; empty parts count as no file."""
    if upload is None or not upload.filename:
        return None
    content = await upload.read()
    if not content:
        return None
    return FileCandidate.from_bytes(upload.filename, content, upload.content_type)


@router.post("", response_model=ApplicationCreatedResponse, status_code=201)
async def create_application(
    job_title: Optional[str] = Form(None, alias="jobTitle"),
    company_name: Optional[str] = Form(None, alias="companyName"),
    job_description: Optional[str] = Form(None, alias="jobDescription"),
    application_date: Optional[str] = Form(None, alias="applicationDate"),
    status: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    cv_file: Optional[UploadFile] = File(None, alias="cvFile"),
    cover_letter_file: Optional[UploadFile] = File(None, alias="coverLetterFile"),
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    """Save a job application (browser extension and web form intake)"""
    if not job_title or not company_name:
        raise InvalidInput("Job title and company name are required")

    data = _build_fields(
        ApplicationCreate,
        job_title=job_title,
        company_name=company_name,
        job_description=job_description or "",
        application_date=_parse_date(application_date),
        status=status or ApplicationStatus.APPLIED.value,
        notes=notes,
    )

    application_id = await service.create_application(
        db,
        identity,
        identity.id,
        data,
        await _read_upload(cv_file),
        await _read_upload(cover_letter_file),
    )
    return ApplicationCreatedResponse(applicationId=application_id)


@router.get("", response_model=List[Application])
async def list_applications(
    search: str = Query(""),
    status: str = Query(ALL_STATUSES),
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    """Current user's applications, newest first, optionally filtered"""
    if status != ALL_STATUSES and status not in {s.value for s in ApplicationStatus}:
        raise InvalidInput(f"Unknown status filter: {status}")

    applications = await service.list_applications(db, identity)
    return filter_applications(applications, search, status)


@router.get("/stats", response_model=StatsSummary)
async def get_stats(
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    return await service.get_stats(db, identity)


@router.get("/{application_id}", response_model=Application)
async def get_application(
    application_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    return await service.get_application(db, identity, application_id)


@router.put("/{application_id}", response_model=Application)
async def update_application(
    application_id: uuid.UUID,
    job_title: Optional[str] = Form(None, alias="jobTitle"),
    company_name: Optional[str] = Form(None, alias="companyName"),
    job_description: Optional[str] = Form(None, alias="jobDescription"),
    application_date: Optional[str] = Form(None, alias="applicationDate"),
    status: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    cv_file: Optional[UploadFile] = File(None, alias="cvFile"),
    cover_letter_file: Optional[UploadFile] = File(None, alias="coverLetterFile"),
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    """Replace every text field; a supplied file replaces that attachment"""
    data = _build_fields(
        ApplicationUpdate,
        job_title=job_title,
        company_name=company_name,
        job_description=job_description or "",
        application_date=_parse_date(application_date),
        status=status,
        notes=notes,
    )

    await service.update_application(
        db,
        identity,
        application_id,
        data,
        await _read_upload(cv_file),
        await _read_upload(cover_letter_file),
    )
    return await service.get_application(db, identity, application_id)


@router.delete("/{application_id}", response_model=ApplicationDeleteResponse)
async def delete_application(
    application_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    """Delete an application and its attachment files"""
    await service.delete_application(db, identity, application_id)
    return ApplicationDeleteResponse()


@router.post("/{application_id}/attachments/{kind}", response_model=Application)
async def upload_attachment(
    application_id: uuid.UUID,
    kind: AttachmentKind,
    file: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_identity),
    service: ApplicationService = Depends(get_application_service),
    db: AsyncSession = Depends(get_db)
):
    """Upload or replace one attachment (also used to retry a failed upload)"""
    candidate = await _read_upload(file)
    if candidate is None:
        raise InvalidInput("No file provided")
    return await service.attach_file(db, identity, application_id, kind, candidate)
