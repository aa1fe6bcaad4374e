"""Cross-cutting building blocks: results, errors, route policy and middleware."""

from passkey_starter.core.errors import ApiError, SignInRequired
from passkey_starter.core.results import ErrorKind, Failure, Ok, Result
from passkey_starter.core.routes import RoutePolicy

__all__ = [
    "ApiError",
    "ErrorKind",
    "Failure",
    "Ok",
    "Result",
    "RoutePolicy",
    "SignInRequired",
]
