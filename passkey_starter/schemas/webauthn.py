"""WebAuthn-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from passkey_starter.schemas.account import clean_name


class RegistrationBeginRequest(BaseModel):
    """Schema for starting passkey registration."""

    email: Optional[EmailStr] = Field(
        None, description="Email for a new account (ignored when signed in)"
    )
    name: Optional[str] = Field(None, description="Display name for a new account")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return clean_name(v)


class RegistrationCompleteRequest(BaseModel):
    """Schema for completing passkey registration."""

    credential: Dict[str, Any] = Field(
        ..., description="PublicKeyCredential JSON from navigator.credentials.create()"
    )


class RegistrationCompleteResponse(BaseModel):
    account_id: str = Field(..., serialization_alias="accountId")
    credential_id: str = Field(..., serialization_alias="credentialId")


class AuthenticationBeginRequest(BaseModel):
    """Schema for starting passkey authentication."""

    email: Optional[str] = Field(
        None, max_length=255, description="Optional account hint"
    )


class AuthenticationCompleteRequest(BaseModel):
    """Schema for completing passkey authentication."""

    credential: Dict[str, Any] = Field(
        ..., description="PublicKeyCredential JSON from navigator.credentials.get()"
    )


class AuthenticationCompleteResponse(BaseModel):
    session_reference: str = Field(..., serialization_alias="sessionReference")
    account_id: str = Field(..., serialization_alias="accountId")
    expires_at: datetime = Field(..., serialization_alias="expiresAt")


class CredentialResponse(BaseModel):
    """Schema for credential information in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Credential record ID")
    credential_id_b64: str = Field(
        ..., serialization_alias="credentialId", description="WebAuthn credential ID (base64url)"
    )
    device_type: Optional[str] = Field(
        None, serialization_alias="deviceType", description="single_device or multi_device"
    )
    transports_list: List[str] = Field(
        default_factory=list, serialization_alias="transports", description="Transport hints"
    )
    backed_up: bool = Field(..., serialization_alias="backedUp")
    last_used_at: Optional[datetime] = Field(None, serialization_alias="lastUsedAt")
    created_at: datetime = Field(..., serialization_alias="createdAt")


class CredentialList(BaseModel):
    """Schema for an account's credential list."""

    credentials: List[CredentialResponse] = Field(..., description="Account's credentials")
    total: int = Field(..., description="Total number of credentials")
