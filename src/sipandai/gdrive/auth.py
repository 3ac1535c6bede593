"""Google Drive authentication for the sipandai client.

This module owns the signed-in session. Two sign-in paths exist:
- Silent: reuse an existing session without any interaction. Failing here is
  the normal outcome for a first-time user and is reported as ``False``.
- Interactive: try silent first, then open the consent flow. This may wait
  on the user indefinitely and is never time-boxed.

The access token never leaves this module except inside an authorized Drive
service handed out by ``AuthController.drive_service()``.

Example:
    from sipandai.gdrive.auth import AuthController

    auth = AuthController(initializer, classifier)
    if not await auth.authenticate(silent=True):
        await auth.authenticate(silent=False)
    service = await auth.drive_service()
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.errors import DriveClientError, ErrorCategory
from sipandai.gdrive.initializer import ClientInitializer
from sipandai.gdrive.sdk import AuthInstance, SignedInUser, call_sdk

logger = structlog.get_logger()

# Account picker shown by the consent flow
SIGN_IN_PROMPT = "select_account"


@dataclass(frozen=True)
class AuthSession:
    """Signed-in session held in memory only.

    Attributes:
        access_token: Opaque bearer token.
        expiry: Token expiry, if the provider reported one.
        account_identifier: Email address (or other id) of the account.
    """

    access_token: str = field(repr=False)
    expiry: Optional[datetime]
    account_identifier: str

    @classmethod
    def from_user(cls, user: SignedInUser) -> "AuthSession":
        return cls(
            access_token=user.access_token,
            expiry=user.expiry,
            account_identifier=user.account_identifier,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True if the token is missing or past its expiry."""
        if not self.access_token:
            return True
        if self.expiry is None:
            return False

        # google-auth reports naive UTC expiries
        if self.expiry.tzinfo is None:
            current = now or datetime.now(timezone.utc).replace(tzinfo=None)
            if current.tzinfo is not None:
                current = current.astimezone(timezone.utc).replace(tzinfo=None)
        else:
            current = now or datetime.now(timezone.utc)
            if current.tzinfo is None:
                current = current.replace(tzinfo=timezone.utc)
        return current >= self.expiry


class AuthController:
    """Sign-in, session inspection, and token ownership.

    Authentication always implies "ensure ready": every call first awaits
    the initializer, so callers never need to order initialize() and
    authenticate() themselves.
    """

    def __init__(self, initializer: ClientInitializer, classifier: ErrorClassifier) -> None:
        self._initializer = initializer
        self._classifier = classifier
        self._session: Optional[AuthSession] = None

    @property
    def session(self) -> Optional[AuthSession]:
        """Current session, if signed in."""
        return self._session

    async def authenticate(self, silent: bool = True) -> bool:
        """Sign in.

        Args:
            silent: If True, only reuse an existing session. If False, fall
                back to the interactive consent flow.

        Returns:
            True once signed in. False if a silent sign-in was not possible.

        Raises:
            DriveClientError: If initialization fails, or if the interactive
                flow is rejected (POPUP_BLOCKED, ACCESS_DENIED, ...).
        """
        await self._initializer.initialize()
        auth = self._auth_instance()

        try:
            user = await call_sdk(auth.sign_in_silently)
        except Exception as e:
            if silent:
                logger.info("silent_sign_in_unavailable", reason=str(e) or type(e).__name__)
                return False
            logger.info("silent_sign_in_failed_trying_interactive")
            user = await self._sign_in_interactive(auth)

        self._session = AuthSession.from_user(user)
        logger.info("drive_signed_in", account=user.account_identifier, silent=silent)
        return True

    async def is_authenticated(self) -> bool:
        """Inspect the remote session.

        Lazily initializes the client. Returns False instead of raising when
        initialization fails, the session cannot be inspected, or nobody is
        signed in.
        """
        try:
            await self._initializer.initialize()
        except DriveClientError as e:
            logger.debug("auth_check_not_ready", category=e.category.value)
            return False

        try:
            auth = self._auth_instance()
            signed_in = await call_sdk(auth.is_signed_in)
            user = await call_sdk(auth.current_user) if signed_in else None
        except Exception as e:
            info = self._classifier.classify(e)
            logger.warning(
                "auth_check_failed",
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            return False

        if user is None:
            self._session = None
            return False

        self._session = AuthSession.from_user(user)
        return True

    def require_session(self) -> AuthSession:
        """Return the current session without any network activity.

        Raises:
            DriveClientError: ACCESS_DENIED if nobody is signed in or the
                token is stale. Tokens are never refreshed here.
        """
        session = self._session
        if session is None or session.is_expired():
            reason = "missing" if session is None else "expired"
            logger.warning("drive_session_unavailable", reason=reason)
            raise DriveClientError(
                self._classifier.info(ErrorCategory.ACCESS_DENIED, raw=f"session {reason}")
            )
        return session

    async def drive_service(self) -> Any:
        """Return a Drive v3 resource authorized with the session token.

        Raises:
            DriveClientError: ACCESS_DENIED without a valid session.
        """
        session = self.require_session()
        sdk = await self._initializer.initialize()
        try:
            return sdk.drive_service(session.access_token)
        except Exception as e:
            raise DriveClientError(self._classifier.classify(e)) from e

    async def sign_out(self) -> None:
        """Sign out of the remote session and drop the local one."""
        self._session = None
        sdk = self._initializer.sdk
        if sdk is None:
            return

        auth = sdk.get_auth_instance()
        if auth is None:
            return

        try:
            await call_sdk(auth.sign_out)
        except Exception as e:
            raise DriveClientError(self._classifier.classify(e)) from e
        logger.info("drive_signed_out")

    def reset(self) -> None:
        """Drop the session and return the initializer to UNINITIALIZED."""
        self._session = None
        self._initializer.reset()

    def _auth_instance(self) -> AuthInstance:
        sdk = self._initializer.sdk
        try:
            auth = sdk.get_auth_instance() if sdk is not None else None
        except Exception as e:
            raise DriveClientError(self._classifier.classify(e)) from e
        if auth is None:
            # READY without an auth instance means the auth handshake was skipped
            raise DriveClientError(
                self._classifier.info(ErrorCategory.UNKNOWN, raw="auth instance unavailable")
            )
        return auth

    async def _sign_in_interactive(self, auth: AuthInstance) -> SignedInUser:
        try:
            return await call_sdk(auth.sign_in, prompt=SIGN_IN_PROMPT)
        except Exception as e:
            info = self._classifier.classify(e)
            logger.error(
                "interactive_sign_in_failed",
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            raise DriveClientError(info) from e
