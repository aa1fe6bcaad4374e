"""HTTP error carrying a structured failure."""

from typing import Dict, Optional

from pydantic import ValidationError

from passkey_starter.core.results import ErrorKind, Failure


class ApiError(Exception):
    """
    Raised by API handlers to return ``{code, message, details}``.

    The application registers a handler that renders it with the status
    code of its ``ErrorKind``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details
        self.headers = headers

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @classmethod
    def from_failure(cls, failure: Failure) -> "ApiError":
        return cls(failure.kind, failure.message, failure.fields)

    def to_dict(self) -> dict:
        body = {"code": self.kind.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class SignInRequired(Exception):
    """Raised by page handlers; rendered as a redirect to the sign-in page."""

    def __init__(self, callback_path: Optional[str] = None):
        super().__init__(callback_path)
        self.callback_path = callback_path


def field_errors(exc: ValidationError) -> Dict[str, str]:
    """Flatten a pydantic ValidationError into ``{field: message}``."""
    details: Dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.setdefault(field, message)
    return details
