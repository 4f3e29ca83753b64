from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from cv_tracker.core.container import ServiceContainer
from cv_tracker.core.exceptions import NotAuthenticated
from cv_tracker.schemas.identity import Identity
from cv_tracker.services.application_service import ApplicationService
from cv_tracker.services.storage_service import StorageService

# missing credentials are reported as NotAuthenticated (401)
security = HTTPBearer(auto_error=False)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    container: ServiceContainer = Depends(get_container)
) -> Identity:
    """Identity behind the bearer token of the request"""
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated("Authorization header required")

    identity = container.identity_provider.verify(credentials.credentials)
    if identity is None:
        raise NotAuthenticated("Invalid token")

    structlog.contextvars.bind_contextvars(owner_id=identity.id)
    return identity


def get_application_service(container: ServiceContainer = Depends(get_container)) -> ApplicationService:
    return container.application_service


def get_storage(container: ServiceContainer = Depends(get_container)) -> StorageService:
    return container.storage
