"""
Attachment download endpoint. Only the owner of an attachment can fetch it.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
import uuid

from cv_tracker.api.deps import get_current_identity, get_storage
from cv_tracker.core.exceptions import NotFound
from cv_tracker.schemas.application import AttachmentKind
from cv_tracker.schemas.identity import Identity
from cv_tracker.services.storage_service import StorageService

router = APIRouter()


@router.get("/users/{owner_id}/applications/{application_id}/{kind}/{filename}")
async def serve_attachment(
    owner_id: str,
    application_id: uuid.UUID,
    kind: AttachmentKind,
    filename: str,
    identity: Identity = Depends(get_current_identity),
    storage: StorageService = Depends(get_storage)
):
    """Serve a CV or cover-letter file"""
    # foreign files look exactly like missing ones
    if owner_id != identity.id or ".." in filename or "\\" in filename:
        raise NotFound("File not found")

    file_path = storage.local_path(storage.build_path(owner_id, application_id, kind.value, filename))
    if file_path is None:
        raise NotFound("File not found")

    return FileResponse(path=file_path, filename=filename)
