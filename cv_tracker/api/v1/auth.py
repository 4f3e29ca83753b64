from fastapi import APIRouter, Depends

from cv_tracker.api.deps import get_current_identity
from cv_tracker.schemas.identity import Identity, VerifyResponse

router = APIRouter()


@router.get("/verify", response_model=VerifyResponse)
async def verify(identity: Identity = Depends(get_current_identity)):
    """Check a bearer token (used by the browser extension after sign-in)"""
    return VerifyResponse(
        uid=identity.id,
        email=identity.email,
        displayName=identity.display_name,
    )
