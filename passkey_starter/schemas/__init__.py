"""Pydantic schemas for API request/response models."""

from passkey_starter.schemas.account import (
    AccountProfile,
    AccountSettings,
    AccountUpdate,
    ProfileResponse,
    SettingsResponse,
)
from passkey_starter.schemas.actions import ActionResult, DeleteAccountInput, UpdateProfileInput
from passkey_starter.schemas.auth import ErrorResponse, SessionInfo, SessionResponse, SignOutResponse
from passkey_starter.schemas.webauthn import (
    AuthenticationBeginRequest,
    AuthenticationCompleteRequest,
    AuthenticationCompleteResponse,
    CredentialList,
    CredentialResponse,
    RegistrationBeginRequest,
    RegistrationCompleteRequest,
    RegistrationCompleteResponse,
)

__all__ = [
    # Account schemas
    "AccountProfile",
    "AccountSettings",
    "AccountUpdate",
    "ProfileResponse",
    "SettingsResponse",

    # Action schemas
    "ActionResult",
    "DeleteAccountInput",
    "UpdateProfileInput",

    # Session schemas
    "ErrorResponse",
    "SessionInfo",
    "SessionResponse",
    "SignOutResponse",

    # WebAuthn schemas
    "AuthenticationBeginRequest",
    "AuthenticationCompleteRequest",
    "AuthenticationCompleteResponse",
    "CredentialList",
    "CredentialResponse",
    "RegistrationBeginRequest",
    "RegistrationCompleteRequest",
    "RegistrationCompleteResponse",
]
