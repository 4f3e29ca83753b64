"""
Process-wide service container.

Built once at startup by build_container() and held on ``app.state``.
A service that is not available is stored as a NotConfigured value; reading
it raises ServiceNotConfigured instead of handing out None.
"""
from dataclasses import dataclass
from typing import Optional, Union
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import Settings
from .database import create_engine_for, create_session_factory
from .exceptions import ServiceNotConfigured
from cv_tracker.services.application_service import ApplicationService
from cv_tracker.services.dashboard_service import ApplicationDashboard
from cv_tracker.services.form_service import ApplicationForm
from cv_tracker.services.identity_service import IdentityGate, TokenIdentityProvider
from cv_tracker.services.storage_service import StorageService
from cv_tracker.services.upload_service import UploadTask, simulated_progress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotConfigured:
    """Typed absence of a service, with the reason it is missing."""
    service: str
    reason: str = "not configured"


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        engine: Union[AsyncEngine, NotConfigured],
        session_factory: Union[async_sessionmaker[AsyncSession], NotConfigured],
        storage: Union[StorageService, NotConfigured],
        identity_provider: Union[TokenIdentityProvider, NotConfigured],
    ):
        self.settings = settings
        self._engine = engine
        self._session_factory = session_factory
        self._storage = storage
        self._identity_provider = identity_provider
        self._application_service: Optional[ApplicationService] = None

    @staticmethod
    def _require(value):
        if isinstance(value, NotConfigured):
            raise ServiceNotConfigured(value.service, value.reason)
        return value

    @property
    def engine(self) -> AsyncEngine:
        return self._require(self._engine)

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._require(self._session_factory)

    @property
    def storage(self) -> StorageService:
        return self._require(self._storage)

    @property
    def identity_provider(self) -> TokenIdentityProvider:
        return self._require(self._identity_provider)

    @property
    def application_service(self) -> ApplicationService:
        if self._application_service is None:
            self._application_service = ApplicationService(
                storage=self.storage,
                strict_attachment_cleanup=self.settings.strict_attachment_cleanup,
                accept=self.settings.upload_accept_list,
                max_size_mb=self.settings.upload_max_size_mb,
            )
        return self._application_service

    def create_upload_task(self, on_file_select, label: str = "file") -> UploadTask:
        """Upload task configured from settings (accept list, size ceiling, progress pacing)."""
        return UploadTask(
            on_file_select,
            accept=self.settings.upload_accept_list,
            max_size_mb=self.settings.upload_max_size_mb,
            progress_source=simulated_progress(
                self.settings.upload_progress_step,
                self.settings.upload_progress_interval,
            ),
            label=label,
        )

    def create_dashboard(self, gate: Optional[IdentityGate] = None) -> ApplicationDashboard:
        """Dashboard state for an in-process client, mirroring the identity provider."""
        if gate is None:
            gate = IdentityGate()
            gate.attach(self.identity_provider)
        return ApplicationDashboard(self.application_service, self.session_factory, gate)

    def create_form(self, dashboard: ApplicationDashboard, application=None) -> ApplicationForm:
        return ApplicationForm(dashboard, application, task_factory=self.create_upload_task)

    async def dispose(self) -> None:
        if not isinstance(self._engine, NotConfigured):
            await self._engine.dispose()


def build_container(settings: Settings) -> ServiceContainer:
    """Construct every service once from settings."""
    engine: Union[AsyncEngine, NotConfigured]
    session_factory: Union[async_sessionmaker[AsyncSession], NotConfigured]
    if settings.database_url:
        engine = create_engine_for(settings)
        session_factory = create_session_factory(engine)
    else:
        engine = session_factory = NotConfigured("database", "missing a database URL")

    storage: Union[StorageService, NotConfigured]
    try:
        storage = StorageService(
            root=settings.media_root,
            base_url=settings.media_base_url,
            timeout=settings.storage_timeout_seconds,
        )
    except OSError as e:
        logger.error(f"Storage root {settings.media_root} is unusable: {e}")
        storage = NotConfigured("storage", f"unusable ({e})")

    identity_provider: Union[TokenIdentityProvider, NotConfigured]
    if settings.jwt_secret:
        identity_provider = TokenIdentityProvider(settings.jwt_secret, settings.access_token_expires)
    else:
        identity_provider = NotConfigured("identity provider", "missing JWT_SECRET")

    return ServiceContainer(settings, engine, session_factory, storage, identity_provider)
