"""
Tagged success/failure results.

Every ceremony, session, guard and action operation returns either
``Ok(value)`` or ``Failure(kind, message)``. Callers branch on the variant
with ``isinstance`` and on ``Failure.kind``; nothing inspects exception
names or messages.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Failure categories shared by every layer."""

    CHALLENGE_INVALID = "challenge_invalid"
    ORIGIN_MISMATCH = "origin_mismatch"
    RELYING_PARTY_MISMATCH = "relying_party_mismatch"
    SIGNATURE_INVALID = "signature_invalid"
    COUNTER_REGRESSION = "counter_regression"
    UNKNOWN_CREDENTIAL = "unknown_credential"
    MALFORMED_RESPONSE = "malformed_response"
    AUTHENTICATION_REQUIRED = "authentication_required"
    AUTHORIZATION_DENIED = "authorization_denied"
    CONFLICT = "conflict"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        """HTTP status used when this kind reaches an API boundary."""
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.CHALLENGE_INVALID: 400,
    ErrorKind.ORIGIN_MISMATCH: 400,
    ErrorKind.RELYING_PARTY_MISMATCH: 400,
    ErrorKind.SIGNATURE_INVALID: 401,
    ErrorKind.COUNTER_REGRESSION: 401,
    ErrorKind.UNKNOWN_CREDENTIAL: 401,
    ErrorKind.MALFORMED_RESPONSE: 400,
    ErrorKind.AUTHENTICATION_REQUIRED: 401,
    ErrorKind.AUTHORIZATION_DENIED: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T


@dataclass(frozen=True)
class Failure:
    """Failed outcome carrying its kind and a client-safe message."""

    kind: ErrorKind
    message: str
    fields: Optional[Dict[str, str]] = field(default=None)

    @property
    def status_code(self) -> int:
        return self.kind.status_code


Result = Union[Ok[T], Failure]
