"""Session and error Pydantic schemas."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class SessionInfo(BaseModel):
    """Session information schema."""

    account_id: str = Field(..., serialization_alias="accountId", description="Account identifier")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Account email")
    expires_at: datetime = Field(..., serialization_alias="expiresAt", description="Session expiry")


class SessionResponse(BaseModel):
    """Current session, or null when signed out."""

    session: Optional[SessionInfo] = None


class SignOutResponse(BaseModel):
    message: str = Field(default="Signed out")


class ErrorResponse(BaseModel):
    """Machine-readable error body."""

    code: str = Field(..., description="Error kind")
    message: str = Field(..., description="Client-safe message")
    details: Optional[Dict[str, str]] = Field(None, description="Per-field messages")
