"""
Application form session: the create form and the edit dialog.

Owns one upload task per attachment slot. A slot's file is only handed to
create/update once its task reports success; removing the file clears it.
"""
import logging
from typing import Callable, Optional
from uuid import UUID

from cv_tracker.core.exceptions import UploadFailed
from cv_tracker.models.application import JobApplication
from cv_tracker.schemas.application import ApplicationCreate, ApplicationFields, ApplicationUpdate
from cv_tracker.schemas.upload import FileCandidate, UploadState
from .dashboard_service import ApplicationDashboard
from .upload_service import FileSelectCallback, UploadTask

logger = logging.getLogger(__name__)

UploadTaskFactory = Callable[[FileSelectCallback, str], UploadTask]


def default_task_factory(on_file_select: FileSelectCallback, label: str) -> UploadTask:
    return UploadTask(on_file_select, label=label)


class ApplicationForm:
    def __init__(
        self,
        dashboard: ApplicationDashboard,
        application: Optional[JobApplication] = None,
        task_factory: UploadTaskFactory = default_task_factory,
    ):
        self.dashboard = dashboard
        self.application_id: Optional[UUID] = application.id if application is not None else None
        # names of files already attached to the record being edited
        self.current_cv_file_name = application.cv_file_name if application is not None else None
        self.current_cover_letter_file_name = (
            application.cover_letter_file_name if application is not None else None
        )

        self.cv_file: Optional[FileCandidate] = None
        self.cover_letter_file: Optional[FileCandidate] = None
        self.submitting = False

        self.cv_upload = task_factory(self._on_cv_select, "CV")
        self.cover_letter_upload = task_factory(self._on_cover_letter_select, "cover letter")

    @property
    def is_editing(self) -> bool:
        return self.application_id is not None

    @property
    def uploads_in_progress(self) -> bool:
        return UploadState.UPLOADING in (self.cv_upload.state, self.cover_letter_upload.state)

    def _on_cv_select(self, file: Optional[FileCandidate]) -> None:
        self.cv_file = file

    def _on_cover_letter_select(self, file: Optional[FileCandidate]) -> None:
        self.cover_letter_file = file

    async def submit(self, fields: ApplicationFields) -> UUID:
        """
        Create the application (or update the edited one) with the ready files.

        In-flight uploads are awaited first so a file picked just before
        submitting is not silently dropped.

        Returns:
            Id of the created or updated application
        """
        if self.submitting:
            raise RuntimeError("Form is already being submitted")

        self.submitting = True
        try:
            await self.cv_upload.wait()
            await self.cover_letter_upload.wait()

            if self.is_editing:
                await self.dashboard.update_application(
                    self.application_id,
                    ApplicationUpdate(**fields.model_dump()),
                    self.cv_file,
                    self.cover_letter_file,
                )
                return self.application_id

            try:
                self.application_id = await self.dashboard.add_application(
                    ApplicationCreate(**fields.model_dump()),
                    self.cv_file,
                    self.cover_letter_file,
                )
            except UploadFailed as e:
                # the record exists; submitting again updates it instead of duplicating it
                if e.application_id is not None:
                    self.application_id = e.application_id
                raise
            logger.info(f"Submitted new application {self.application_id}")
            return self.application_id
        finally:
            self.submitting = False

    async def aclose(self) -> None:
        """Dispose both upload tasks (the form is unmounted)."""
        await self.cv_upload.aclose()
        await self.cover_letter_upload.aclose()

    async def __aenter__(self) -> "ApplicationForm":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
