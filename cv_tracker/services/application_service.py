"""
Application service: owner-scoped CRUD over job applications and their attachments.

Write order for create and update:
    1. text fields are written and committed
    2. CV and cover-letter files are uploaded concurrently
    3. the resulting (url, file name) pairs are written and committed
    4. objects those pairs replaced are deleted

An upload failure in step 2 leaves the committed record in place and raises
UploadFailed naming the record and the missing slots, so the caller can retry
just the attachment via attach_file().
"""

from __future__ import annotations
import asyncio
from typing import Dict, Optional, Sequence, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
import logging

from cv_tracker.core.exceptions import InvalidInput, NotAuthenticated, NotFound, PersistenceFailed, UploadFailed
from cv_tracker.models.application import JobApplication
from cv_tracker.repositories.application_repository import JobApplicationRepository
from cv_tracker.schemas.application import ApplicationCreate, ApplicationFields, ApplicationUpdate, AttachmentKind
from cv_tracker.schemas.identity import Identity
from cv_tracker.schemas.statistics import StatsSummary
from cv_tracker.schemas.upload import FileCandidate
from .file_service import validate_file
from .identity_service import require_identity
from .statistics_service import summarize
from .storage_service import StorageService
from .upload_service import DEFAULT_ACCEPT, DEFAULT_MAX_SIZE_MB

logger = logging.getLogger(__name__)


def _text_fields(data: ApplicationFields) -> dict:
    return {
        "job_title": data.job_title,
        "company_name": data.company_name,
        "job_description": data.job_description or "",
        "application_date": data.application_date,
        "status": data.status.value,
        "notes": data.notes or "",
    }


def _attachment_values(refs: dict) -> dict:
    """Column values for a mapping of slot -> (url, file name)."""
    values = {}
    for kind, (url, file_name) in refs.items():
        values[f"{kind.value}_file_url"] = url
        values[f"{kind.value}_file_name"] = file_name
    return values


class ApplicationService:
    """
    Service for managing a user's job applications.

    Every operation requires an authenticated identity and only ever touches
    records owned by it.
    """

    def __init__(
        self,
        storage: StorageService,
        application_repo: Optional[JobApplicationRepository] = None,
        strict_attachment_cleanup: bool = False,
        accept: Sequence[str] = DEFAULT_ACCEPT,
        max_size_mb: float = DEFAULT_MAX_SIZE_MB,
    ):
        """
        Args:
            storage: Object store for attachment files
            application_repo: JobApplicationRepository instance (creates new if None)
            strict_attachment_cleanup: Raise instead of logging when an attachment
                cannot be deleted while deleting its record
            accept: Allowed attachment extensions
            max_size_mb: Attachment size ceiling
        """
        self.storage = storage
        self.application_repo = application_repo or JobApplicationRepository()
        self.strict_attachment_cleanup = strict_attachment_cleanup
        self.accept = list(accept)
        self.max_size_mb = max_size_mb

    # -- reads -----------------------------------------------------------

    async def list_applications(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        owner_id: Optional[str] = None
    ) -> list[JobApplication]:
        """
        All applications of the current user, newest first.

        Raises:
            NotAuthenticated: no identity, or owner_id names another user
            PersistenceFailed: the store could not be read
        """
        identity = require_identity(identity)
        owner_id = owner_id or identity.id
        if owner_id != identity.id:
            raise NotAuthenticated("You can only access your own applications")

        try:
            return await self.application_repo.list_for_owner(db, owner_id)
        except SQLAlchemyError as e:
            logger.error(f"Error listing applications for {owner_id}: {e}")
            raise PersistenceFailed("Failed to fetch applications", original_error=e)

    async def get_application(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        application_id: UUID
    ) -> JobApplication:
        identity = require_identity(identity)
        return await self._get_owned(db, identity, application_id)

    async def get_stats(self, db: AsyncSession, identity: Optional[Identity]) -> StatsSummary:
        applications = await self.list_applications(db, identity)
        return summarize(applications)

    # -- writes ----------------------------------------------------------

    async def create_application(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        owner_id: str,
        data: ApplicationCreate,
        cv_file: Optional[FileCandidate] = None,
        cover_letter_file: Optional[FileCandidate] = None
    ) -> UUID:
        """
        Create an application and upload its attachments.

        Returns:
            The new record id

        Raises:
            NotAuthenticated: no identity, or owner_id is not the current user
            FileTooLarge / UnsupportedFileType: an attachment is rejected (nothing is written)
            PersistenceFailed: the text record could not be written
            UploadFailed: the record exists but one or more attachments are missing
        """
        identity = require_identity(identity)
        if owner_id != identity.id:
            raise NotAuthenticated("Cannot create applications for another user")

        uploads = self._collect_uploads(cv_file, cover_letter_file)

        try:
            application = await self.application_repo.create(
                db, {"user_id": owner_id, **_text_fields(data)}
            )
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error creating job application for {owner_id}: {e}")
            raise PersistenceFailed("Failed to create application", original_error=e)

        logger.info(f"Created job application {application.id} for {owner_id}")

        if uploads:
            await self._store_attachments(db, application, uploads)

        return application.id

    async def update_application(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        application_id: UUID,
        data: ApplicationUpdate,
        cv_file: Optional[FileCandidate] = None,
        cover_letter_file: Optional[FileCandidate] = None
    ) -> None:
        """
        Replace every text field and, per supplied slot, the attachment.

        A replaced attachment's old object is deleted only after the new
        reference is committed. If that deletion fails the old reference is
        put back and the new object discarded, so the record never points at
        a missing file.

        Raises:
            NotAuthenticated, NotFound, FileTooLarge, UnsupportedFileType,
            PersistenceFailed, UploadFailed
        """
        identity = require_identity(identity)
        uploads = self._collect_uploads(cv_file, cover_letter_file)
        application = await self._get_owned(db, identity, application_id)

        try:
            await self.application_repo.update(db, application, _text_fields(data))
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating job application {application_id}: {e}")
            raise PersistenceFailed("Failed to update application", original_error=e)

        if uploads:
            await self._store_attachments(db, application, uploads)

    async def attach_file(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        application_id: UUID,
        kind: AttachmentKind,
        file: FileCandidate
    ) -> JobApplication:
        """Upload (or replace) a single attachment, e.g. to retry a failed one."""
        identity = require_identity(identity)
        try:
            kind = AttachmentKind(kind)
        except ValueError:
            raise InvalidInput(f"Unknown attachment kind: {kind}")
        uploads = self._collect_uploads(
            file if kind is AttachmentKind.CV else None,
            file if kind is AttachmentKind.COVER_LETTER else None,
        )
        application = await self._get_owned(db, identity, application_id)
        await self._store_attachments(db, application, uploads)
        return application

    async def delete_application(
        self,
        db: AsyncSession,
        identity: Optional[Identity],
        application_id: UUID
    ) -> None:
        """
        Delete both attachment objects, then the record.

        With strict_attachment_cleanup off (the default) a failed object
        deletion is logged and the record is deleted anyway. With it on the
        record is kept, minus references to objects already deleted.

        Raises:
            NotAuthenticated, NotFound, PersistenceFailed,
            UploadFailed (only with strict_attachment_cleanup)
        """
        identity = require_identity(identity)
        application = await self._get_owned(db, identity, application_id)

        cleared = {}
        for kind in AttachmentKind:
            url, _ = application.attachment(kind.value)
            if not url:
                continue
            try:
                await self.storage.delete(url)
            except UploadFailed as e:
                if self.strict_attachment_cleanup:
                    if cleared:
                        await self._clear_attachments(db, application, cleared)
                    raise
                logger.error(
                    f"Could not delete {kind.value} file {url} of application {application_id}, "
                    f"deleting record anyway: {e.message}"
                )
            else:
                cleared[kind] = (None, None)

        try:
            await self.application_repo.delete(db, application.id)
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error deleting job application {application_id}: {e}")
            raise PersistenceFailed("Failed to delete application", original_error=e)

        logger.info(f"Deleted job application {application_id}")

    # -- internals -------------------------------------------------------

    async def _get_owned(self, db: AsyncSession, identity: Identity, application_id: UUID) -> JobApplication:
        try:
            application = await self.application_repo.get_for_owner(db, application_id, identity.id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching job application {application_id}: {e}")
            raise PersistenceFailed("Failed to fetch application", original_error=e)
        if application is None:
            raise NotFound(f"Job application {application_id} not found")
        return application

    def _collect_uploads(
        self,
        cv_file: Optional[FileCandidate],
        cover_letter_file: Optional[FileCandidate]
    ) -> Dict[AttachmentKind, FileCandidate]:
        """Validate supplied files before anything is written."""
        uploads = {}
        for kind, file in ((AttachmentKind.CV, cv_file), (AttachmentKind.COVER_LETTER, cover_letter_file)):
            if file is None:
                continue
            validate_file(file, self.accept, self.max_size_mb)
            uploads[kind] = file
        return uploads

    async def _discard(self, url: str) -> None:
        try:
            await self.storage.delete(url)
        except UploadFailed as e:
            logger.error(f"Could not discard unreferenced file {url}: {e.message}")

    async def _store_attachments(
        self,
        db: AsyncSession,
        application: JobApplication,
        uploads: Dict[AttachmentKind, FileCandidate]
    ) -> None:
        """
        Upload, commit the new references, then delete the replaced objects.

        The record only ever references objects that exist: a failed
        reference write discards the new objects, and a replaced object
        that cannot be deleted puts its old reference back and discards
        the new object.
        """
        kinds = list(uploads)
        results = await asyncio.gather(
            *(
                self.storage.upload_attachment(application.user_id, application.id, kind.value, uploads[kind])
                for kind in kinds
            ),
            return_exceptions=True,
        )

        uploaded: Dict[AttachmentKind, Tuple[str, str]] = {}
        failed = []
        first_error: Optional[Exception] = None
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Failed to upload {kind.value} for application {application.id}: {result}")
                failed.append(kind.value)
                first_error = first_error or result
                continue
            uploaded[kind] = result

        if uploaded:
            previous = {kind: application.attachment(kind.value) for kind in uploaded}
            try:
                await self.application_repo.update(db, application, _attachment_values(uploaded))
                await db.commit()
            except SQLAlchemyError as e:
                logger.error(f"Error saving attachments of application {application.id}: {e}")
                for url, _ in uploaded.values():
                    await self._discard(url)
                raise PersistenceFailed("Failed to save attachments", original_error=e)

            restore = await self._delete_replaced(application, uploaded, previous)
            if restore:
                await self._restore_attachments(db, application, uploaded, restore)
                failed.extend(kind.value for kind in restore)
                first_error = first_error or next(iter(restore.values()))[1]

        if failed:
            raise UploadFailed(
                f"Application saved, but uploading {', '.join(failed)} failed",
                application_id=application.id,
                failed_kinds=failed,
                original_error=first_error,
            )

    async def _delete_replaced(
        self,
        application: JobApplication,
        uploaded: Dict[AttachmentKind, Tuple[str, str]],
        previous: Dict[AttachmentKind, Tuple[Optional[str], Optional[str]]]
    ) -> Dict[AttachmentKind, Tuple[Tuple[Optional[str], Optional[str]], Exception]]:
        """Delete objects whose references were just replaced; returns the slots that failed."""
        stale = [
            kind for kind in uploaded
            if previous[kind][0] and previous[kind][0] != uploaded[kind][0]
        ]
        results = await asyncio.gather(
            *(self.storage.delete(previous[kind][0]) for kind in stale),
            return_exceptions=True,
        )
        restore = {}
        for kind, result in zip(stale, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(
                    f"Could not delete replaced {kind.value} file {previous[kind][0]} "
                    f"of application {application.id}: {result}"
                )
                restore[kind] = (previous[kind], result)
        return restore

    async def _restore_attachments(
        self,
        db: AsyncSession,
        application: JobApplication,
        uploaded: Dict[AttachmentKind, Tuple[str, str]],
        restore: Dict[AttachmentKind, Tuple[Tuple[Optional[str], Optional[str]], Exception]]
    ) -> None:
        values = _attachment_values({kind: ref for kind, (ref, _) in restore.items()})
        try:
            await self.application_repo.update(db, application, values)
            await db.commit()
        except SQLAlchemyError as e:
            # the new references stay; both objects exist, the old one is orphaned
            logger.error(f"Error restoring attachments of application {application.id}: {e}")
            return
        for kind in restore:
            await self._discard(uploaded[kind][0])

    async def _clear_attachments(
        self,
        db: AsyncSession,
        application: JobApplication,
        cleared: Dict[AttachmentKind, Tuple[None, None]]
    ) -> None:
        """Drop references to objects that were already deleted from a record that stays."""
        try:
            await self.application_repo.update(db, application, _attachment_values(cleared))
            await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error clearing attachments of application {application.id}: {e}")
            raise PersistenceFailed("Failed to update application", original_error=e)
