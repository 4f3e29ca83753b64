from pydantic import BaseModel, Field
from typing import Optional


class Identity(BaseModel):
    """Authenticated user as reported by the identity provider"""
    id: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        frozen = True


class VerifyResponse(BaseModel):
    """Token verification response (camelCase, consumed by the browser extension)"""
    uid: str
    email: Optional[str] = None
    displayName: Optional[str] = None
    verified: bool = True
