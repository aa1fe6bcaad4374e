"""Server action inputs and results."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from passkey_starter.schemas.account import clean_name


class UpdateProfileInput(BaseModel):
    name: str = Field(..., description="New display name")
    account_id: Optional[str] = Field(
        None, alias="accountId", description="Target account (defaults to the caller)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return clean_name(v)


class DeleteAccountInput(BaseModel):
    account_id: Optional[str] = Field(
        None, alias="accountId", description="Target account (defaults to the caller)"
    )


class ActionResult(BaseModel):
    """
    Outcome of a server action.

    Actions never raise to the caller; ``success`` discriminates between
    ``data`` and ``error``/``code``.
    """

    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None
