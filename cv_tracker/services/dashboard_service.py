"""
Dashboard state: the cached application list of the signed-in user.

Every mutation is followed by a full re-fetch; stats and the filtered view
are derived from the cache without touching the store. Failures are kept in
``error`` as a user-facing message and re-raised so callers can offer a retry.
"""
import logging
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cv_tracker.core.exceptions import FileValidationError, TrackerError, UploadFailed
from cv_tracker.models.application import JobApplication
from cv_tracker.schemas.application import ApplicationCreate, ApplicationUpdate, AttachmentKind
from cv_tracker.schemas.identity import Identity
from cv_tracker.schemas.statistics import StatsSummary
from cv_tracker.schemas.upload import FileCandidate
from .application_service import ApplicationService
from .identity_service import IdentityGate
from .list_view import ListViewState
from .statistics_service import summarize

logger = logging.getLogger(__name__)


class ApplicationDashboard:
    def __init__(
        self,
        service: ApplicationService,
        session_factory: async_sessionmaker[AsyncSession],
        gate: IdentityGate,
    ):
        self.service = service
        self.session_factory = session_factory
        self.gate = gate
        self.list_view = ListViewState()

        self.applications: List[JobApplication] = []
        self.loading = False
        self.loaded = False
        self.error: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = gate.subscribe(self._on_identity_change)

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        # a different (or no) user: the cache belongs to someone else now
        self.applications = []
        self.loaded = False
        self.error = None

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _fail(self, action: str, e: TrackerError) -> None:
        if isinstance(e, (FileValidationError, UploadFailed)):
            self.error = e.message
        else:
            self.error = f"Failed to {action}"
        logger.error(f"Dashboard could not {action}: {e.message}")

    async def refresh(self) -> List[JobApplication]:
        """Re-fetch the list. Without an identity this is a no-op."""
        identity = self.gate.identity
        if identity is None:
            return self.applications

        self.loading = True
        try:
            async with self.session_factory() as db:
                self.applications = await self.service.list_applications(db, identity)
            self.loaded = True
            self.error = None
        except TrackerError as e:
            self._fail("fetch applications", e)
            raise
        finally:
            self.loading = False
        return self.applications

    async def _reload(self) -> None:
        # after a mutation: a failed re-fetch is kept in ``error`` only
        try:
            await self.refresh()
        except TrackerError:
            pass

    async def add_application(
        self,
        data: ApplicationCreate,
        cv_file: Optional[FileCandidate] = None,
        cover_letter_file: Optional[FileCandidate] = None,
    ) -> UUID:
        identity = self.gate.require()
        try:
            async with self.session_factory() as db:
                application_id = await self.service.create_application(
                    db, identity, identity.id, data, cv_file, cover_letter_file
                )
        except UploadFailed as e:
            # the record itself was saved; show it with whatever attachments made it
            if e.application_id is not None:
                await self._reload()
            self._fail("create application", e)
            raise
        except TrackerError as e:
            self._fail("create application", e)
            raise
        await self._reload()
        return application_id

    async def update_application(
        self,
        application_id: UUID,
        data: ApplicationUpdate,
        cv_file: Optional[FileCandidate] = None,
        cover_letter_file: Optional[FileCandidate] = None,
    ) -> None:
        identity = self.gate.require()
        try:
            async with self.session_factory() as db:
                await self.service.update_application(
                    db, identity, application_id, data, cv_file, cover_letter_file
                )
        except TrackerError as e:
            await self._reload()
            self._fail("update application", e)
            raise
        await self._reload()

    async def retry_attachment(self, application_id: UUID, kind: AttachmentKind, file: FileCandidate) -> None:
        identity = self.gate.require()
        try:
            async with self.session_factory() as db:
                await self.service.attach_file(db, identity, application_id, kind, file)
        except TrackerError as e:
            self._fail("upload attachment", e)
            raise
        await self._reload()

    async def remove_application(self, application_id: UUID) -> None:
        identity = self.gate.require()
        try:
            async with self.session_factory() as db:
                await self.service.delete_application(db, identity, application_id)
        except TrackerError as e:
            self._fail("delete application", e)
            raise
        await self._reload()

    @property
    def stats(self) -> StatsSummary:
        return summarize(self.applications)

    @property
    def visible_applications(self) -> List[JobApplication]:
        return self.list_view.apply(self.applications)
