"""
Route classification shared by every auth checkpoint.

A fixed allow-list bypasses the checkpoints so the sign-in, error and
auth endpoints can never redirect to themselves. Everything else is
protected by default.
"""

from typing import Iterable, Optional
from urllib.parse import urlencode

from passkey_starter.config import Settings


class RoutePolicy:
    """Decides whether a request path needs a session."""

    def __init__(
        self,
        public_prefixes: Iterable[str],
        public_paths: Iterable[str],
        sign_in_path: str,
    ):
        self.public_prefixes = tuple(p.rstrip("/") for p in public_prefixes if p.strip("/"))
        self.public_paths = frozenset(public_paths)
        self.sign_in_path = sign_in_path

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoutePolicy":
        return cls(
            public_prefixes=settings.public_path_prefixes,
            public_paths=list(settings.public_paths) + [settings.sign_in_path, settings.error_path],
            sign_in_path=settings.sign_in_path,
        )

    def is_public(self, path: str) -> bool:
        """
        Check whether a path bypasses authentication.

        Individual pages match exactly; grouped paths match their prefix and
        every sub-path (``/api/auth`` covers ``/api/auth/signout`` but not
        ``/api/authors``). Paths whose last segment has a file extension are
        static assets.
        """
        if path in self.public_paths:
            return True
        for prefix in self.public_prefixes:
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return "." in path.rsplit("/", 1)[-1]

    def is_protected(self, path: str) -> bool:
        return not self.is_public(path)

    def sign_in_url(self, callback_path: Optional[str] = None) -> str:
        """Sign-in URL carrying the original path as ``callbackUrl``."""
        callback = safe_callback_path(callback_path)
        if callback is None:
            return self.sign_in_path
        return f"{self.sign_in_path}?{urlencode({'callbackUrl': callback})}"


def safe_callback_path(value: Optional[str]) -> Optional[str]:
    """Accept only same-site relative paths; anything else becomes None."""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return None
    return value
