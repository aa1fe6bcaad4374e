"""Account-related Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

NAME_MAX_LENGTH = 100


def clean_name(v: Optional[str]) -> Optional[str]:
    """Trim a display name and enforce its length."""
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Name is required")
    if len(v) > NAME_MAX_LENGTH:
        raise ValueError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return v


class AccountUpdate(BaseModel):
    """Schema for settings updates; absent fields are left unchanged."""

    name: Optional[str] = Field(None, description="Display name")
    email: Optional[EmailStr] = Field(None, description="Account email address")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        """Validate display name."""
        return clean_name(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: Optional[str]) -> Optional[str]:
        """Emails are stored lower-cased."""
        return v.lower() if v is not None else v


class AccountProfile(BaseModel):
    """Schema for the profile endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Account's unique identifier")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Account email address")
    email_verified: Optional[datetime] = Field(
        None, serialization_alias="emailVerified", description="Email verification time"
    )
    created_at: datetime = Field(
        ..., serialization_alias="createdAt", description="Account creation timestamp"
    )


class AccountSettings(BaseModel):
    """Schema for the settings endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Account's unique identifier")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Account email address")


class ProfileResponse(BaseModel):
    profile: AccountProfile


class SettingsResponse(BaseModel):
    settings: AccountSettings
    message: Optional[str] = None
