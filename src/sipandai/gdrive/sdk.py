"""Interface of the third-party Drive SDK consumed by the client.

The client never talks to Google libraries directly; it goes through an SDK
handle with the surface below. ``GoogleSdk`` in ``google_sdk`` is the real
implementation; tests substitute in-memory fakes.

SDK methods may be plain functions (run in a worker thread) or coroutine
functions (awaited on the event loop). ``call_sdk`` hides the difference.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Sequence


class SdkError(Exception):
    """Error reported by the SDK itself.

    Mirrors the provider's error objects: ``error`` holds the provider's
    short code (e.g. ``"popup_blocked_by_browser"``,
    ``"idpiframe_initialization_failed"``, ``"immediate_failed"``) and may
    be empty when the provider gives no reason.
    """

    def __init__(
        self,
        error: str = "",
        message: str = "",
        details: Any = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.error = error
        self.details = details
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class SignedInUser:
    """Signed-in account as reported by the SDK's auth instance."""

    access_token: str = field(repr=False)
    expiry: Optional[datetime]
    account_identifier: str


class AuthInstance(Protocol):
    """OAuth session surface of the SDK."""

    def is_signed_in(self) -> bool:
        ...

    def current_user(self) -> Optional[SignedInUser]:
        ...

    def sign_in_silently(self) -> SignedInUser:
        ...

    def sign_in(self, prompt: str = "select_account") -> SignedInUser:
        ...

    def sign_out(self) -> None:
        ...


class DriveSdk(Protocol):
    """Handle to a loaded SDK."""

    def load(self, modules: Sequence[str]) -> None:
        """Load the named submodules ("client", "auth")."""
        ...

    def client_init(self, api_key: str, discovery_docs: Sequence[str]) -> None:
        """Remote client handshake."""
        ...

    def auth_init(self, client_id: str, scope: str, client_secret: str = "", origin: str = "") -> None:
        """Remote auth handshake."""
        ...

    def get_auth_instance(self) -> Optional[AuthInstance]:
        ...

    def drive_service(self, access_token: str) -> Any:
        """Return a Drive v3 resource authorized with the given token."""
        ...


async def call_sdk(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Invoke an SDK callable without blocking the event loop."""
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    return await asyncio.to_thread(func, *args, **kwargs)
