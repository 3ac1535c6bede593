"""Unit tests for Google Drive authentication.

Tests silent and interactive sign-in, session inspection, and session
ownership.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeAuthInstance, FakeSdk, FakeSdkFactory, build_initializer
from sipandai.gdrive.auth import AuthController, AuthSession
from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.config import ClientConfig
from sipandai.gdrive.errors import DriveClientError, ErrorCategory
from sipandai.gdrive.initializer import ClientInitializer
from sipandai.gdrive.script_loader import SdkRegistry
from sipandai.gdrive.sdk import SdkError, SignedInUser
from sipandai.gdrive.state import InitState

# -----------------------------------------------------------------------------
# Test AuthSession
# -----------------------------------------------------------------------------


class TestAuthSession:
    """Tests for AuthSession expiry."""

    def test_no_expiry_is_valid(self) -> None:
        session = AuthSession(access_token="t", expiry=None, account_identifier="a")

        assert session.is_expired() is False

    def test_naive_expiry_in_past(self) -> None:
        """google-auth style naive UTC expiries are compared in UTC."""
        session = AuthSession(access_token="t", expiry=datetime(2000, 1, 1), account_identifier="a")

        assert session.is_expired() is True

    def test_aware_expiry_in_future(self) -> None:
        expiry = datetime.now(timezone.utc) + timedelta(hours=1)
        session = AuthSession(access_token="t", expiry=expiry, account_identifier="a")

        assert session.is_expired() is False

    def test_empty_token_is_expired(self) -> None:
        session = AuthSession(access_token="", expiry=None, account_identifier="a")

        assert session.is_expired() is True

    def test_token_not_in_repr(self) -> None:
        session = AuthSession(access_token="ya29.secret", expiry=None, account_identifier="a")

        assert "ya29.secret" not in repr(session)


# -----------------------------------------------------------------------------
# Test authenticate
# -----------------------------------------------------------------------------


class TestAuthenticate:
    """Tests for AuthController.authenticate."""

    @pytest.mark.asyncio
    async def test_initializes_first(
        self, auth_controller: AuthController, initializer: ClientInitializer
    ) -> None:
        """Authentication awaits initialization instead of failing."""
        assert initializer.state is InitState.UNINITIALIZED

        await auth_controller.authenticate(silent=True)

        assert initializer.state is InitState.READY

    @pytest.mark.asyncio
    async def test_silent_without_session_returns_false(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A rejected silent sign-in is not an error."""
        result = await auth_controller.authenticate(silent=True)

        assert result is False
        assert auth_controller.session is None
        assert fake_auth.sign_in_prompts == []

    @pytest.mark.asyncio
    async def test_silent_with_existing_session(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A returning user is signed in without interaction."""
        fake_auth.user = fake_auth.interactive_user

        result = await auth_controller.authenticate(silent=True)

        assert result is True
        assert auth_controller.session is not None
        assert auth_controller.session.account_identifier == "siti@example.com"
        assert fake_auth.sign_in_prompts == []

    @pytest.mark.asyncio
    async def test_interactive_tries_silent_then_prompts(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """Interactive sign-in opens the account chooser when silent fails."""
        result = await auth_controller.authenticate(silent=False)

        assert result is True
        assert fake_auth.silent_calls == 1
        assert fake_auth.sign_in_prompts == ["select_account"]
        assert auth_controller.session is not None

    @pytest.mark.asyncio
    async def test_interactive_popup_blocked(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A blocked popup is classified as POPUP_BLOCKED."""
        fake_auth.sign_in_error = SdkError(error="popup_blocked_by_browser")

        with pytest.raises(DriveClientError) as exc_info:
            await auth_controller.authenticate(silent=False)

        assert exc_info.value.category is ErrorCategory.POPUP_BLOCKED
        assert auth_controller.session is None

    @pytest.mark.asyncio
    async def test_interactive_consent_declined(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """Declining consent is classified as ACCESS_DENIED."""
        fake_auth.sign_in_error = SdkError(error="access_denied", message="The user denied access")

        with pytest.raises(DriveClientError) as exc_info:
            await auth_controller.authenticate(silent=False)

        assert exc_info.value.category is ErrorCategory.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_initialization_failure_propagates(
        self, auth_controller: AuthController, fake_sdk: FakeSdk
    ) -> None:
        """Silent authentication still surfaces initialization failures."""
        fake_sdk.auth_init_error = SdkError()

        with pytest.raises(DriveClientError) as exc_info:
            await auth_controller.authenticate(silent=True)

        assert exc_info.value.category is ErrorCategory.DOMAIN_NOT_AUTHORIZED

    @pytest.mark.asyncio
    async def test_auth_instance_failure_is_classified(
        self, auth_controller: AuthController, initializer: ClientInitializer, fake_sdk: FakeSdk
    ) -> None:
        """A raw SDK failure looking up the auth instance leaves classified."""
        await initializer.initialize()
        fake_sdk.get_auth_instance = MagicMock(  # type: ignore[method-assign]
            side_effect=SdkError(message="network unreachable")
        )

        with pytest.raises(DriveClientError) as exc_info:
            await auth_controller.authenticate(silent=True)

        assert exc_info.value.category is ErrorCategory.NETWORK_ERROR


# -----------------------------------------------------------------------------
# Test is_authenticated
# -----------------------------------------------------------------------------


class TestIsAuthenticated:
    """Tests for AuthController.is_authenticated."""

    @pytest.mark.asyncio
    async def test_not_configured_returns_false(
        self, sdk_factory: FakeSdkFactory, registry: SdkRegistry
    ) -> None:
        """A client that cannot initialize reports False instead of raising."""
        config = ClientConfig()
        initializer = build_initializer(config, sdk_factory, registry)
        auth = AuthController(initializer, ErrorClassifier(config))

        assert await auth.is_authenticated() is False
        assert sdk_factory.calls == 0

    @pytest.mark.asyncio
    async def test_lazily_initializes(
        self, auth_controller: AuthController, initializer: ClientInitializer
    ) -> None:
        """Checking the session brings the client to READY."""
        assert await auth_controller.is_authenticated() is False
        assert initializer.state is InitState.READY

    @pytest.mark.asyncio
    async def test_caches_session_when_signed_in(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A signed-in remote session is captured."""
        fake_auth.user = fake_auth.interactive_user

        assert await auth_controller.is_authenticated() is True
        assert auth_controller.session is not None

    @pytest.mark.asyncio
    async def test_clears_session_when_signed_out_remotely(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """The local session follows the remote one."""
        await auth_controller.authenticate(silent=False)
        fake_auth.user = None

        assert await auth_controller.is_authenticated() is False
        assert auth_controller.session is None

    @pytest.mark.asyncio
    async def test_transport_failure_returns_false(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A failing session check reports False instead of raising."""
        await auth_controller.authenticate(silent=False)
        fake_auth.is_signed_in = AsyncMock(side_effect=ConnectionError("network down"))  # type: ignore[method-assign]

        assert await auth_controller.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_current_user_failure_returns_false(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        fake_auth.user = fake_auth.interactive_user
        fake_auth.current_user = AsyncMock(side_effect=SdkError(message="boom"))  # type: ignore[method-assign]

        assert await auth_controller.is_authenticated() is False


# -----------------------------------------------------------------------------
# Test session ownership
# -----------------------------------------------------------------------------


class TestSession:
    """Tests for require_session, drive_service, sign_out and reset."""

    def test_require_session_without_sign_in(self, auth_controller: AuthController) -> None:
        with pytest.raises(DriveClientError) as exc_info:
            auth_controller.require_session()

        assert exc_info.value.category is ErrorCategory.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_expired_session_is_access_denied(
        self, auth_controller: AuthController, fake_auth: FakeAuthInstance
    ) -> None:
        """A stale token is reported, never refreshed."""
        fake_auth.user = SignedInUser(
            access_token="ya29.old",
            expiry=datetime(2000, 1, 1),
            account_identifier="siti@example.com",
        )
        await auth_controller.authenticate(silent=True)

        with pytest.raises(DriveClientError) as exc_info:
            await auth_controller.drive_service()

        assert exc_info.value.category is ErrorCategory.ACCESS_DENIED

    @pytest.mark.asyncio
    async def test_drive_service_uses_session_token(
        self, auth_controller: AuthController, fake_sdk: FakeSdk
    ) -> None:
        await auth_controller.authenticate(silent=False)

        service = await auth_controller.drive_service()

        assert service is fake_sdk.drive
        assert fake_sdk.tokens == ["ya29.test-token"]

    @pytest.mark.asyncio
    async def test_sign_out(self, auth_controller: AuthController, fake_auth: FakeAuthInstance) -> None:
        await auth_controller.authenticate(silent=False)

        await auth_controller.sign_out()

        assert auth_controller.session is None
        assert fake_auth.user is None

    @pytest.mark.asyncio
    async def test_reset_clears_session_and_state(
        self, auth_controller: AuthController, initializer: ClientInitializer
    ) -> None:
        await auth_controller.authenticate(silent=False)

        auth_controller.reset()

        assert auth_controller.session is None
        assert initializer.state is InitState.UNINITIALIZED
