"""
Shared pytest fixtures for sipandai tests.

This module provides common fixtures used across test modules including:
- Client configuration fixtures
- In-memory fakes for the Drive SDK, its auth instance and the Drive
  ``files()`` resource
- Builders wiring the initializer, auth controller and client to the fakes
"""

import asyncio
import itertools
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sipandai.gdrive.auth import AuthController
from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.client import DriveClient
from sipandai.gdrive.config import ClientConfig, DriveConfig, RetryConfig, TimeoutConfig
from sipandai.gdrive.folders import FOLDER_MIME
from sipandai.gdrive.initializer import ClientInitializer
from sipandai.gdrive.module_loader import ModuleLoader
from sipandai.gdrive.script_loader import ScriptLoader, SdkRegistry
from sipandai.gdrive.sdk import SdkError, SignedInUser

TEST_SOURCE = "https://sdk.test/discovery"

# ============================================================================
# Fakes
# ============================================================================


class FakeAuthInstance:
    """Auth instance whose session lives in memory.

    ``user`` is the currently signed-in account (None when signed out).
    ``interactive_user`` is what a successful consent flow signs in.
    """

    def __init__(self, user: Optional[SignedInUser] = None) -> None:
        self.user = user
        self.interactive_user = SignedInUser(
            access_token="ya29.test-token",
            expiry=None,
            account_identifier="siti@example.com",
        )
        self.sign_in_error: Optional[BaseException] = None
        self.sign_in_prompts: List[str] = []
        self.silent_calls = 0

    async def is_signed_in(self) -> bool:
        return self.user is not None

    async def current_user(self) -> Optional[SignedInUser]:
        return self.user

    async def sign_in_silently(self) -> SignedInUser:
        self.silent_calls += 1
        if self.user is None:
            raise SdkError(error="immediate_failed", message="User interaction required")
        return self.user

    async def sign_in(self, prompt: str = "select_account") -> SignedInUser:
        self.sign_in_prompts.append(prompt)
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.user = self.interactive_user
        return self.user

    async def sign_out(self) -> None:
        self.user = None


class _FakeRequest:
    def __init__(self, drive: "FakeDrive", func: Any, *args: Any) -> None:
        self._drive = drive
        self._func = func
        self._args = args

    async def execute(self) -> Dict[str, Any]:
        # Yield so concurrent callers interleave between query and create
        await asyncio.sleep(self._drive.latency)
        if self._drive.errors:
            raise self._drive.errors.pop(0)
        return self._func(*self._args)


class _FakeFiles:
    def __init__(self, drive: "FakeDrive") -> None:
        self._drive = drive

    def list(self, q: str = "", fields: str = "", pageSize: int = 100) -> _FakeRequest:
        self._drive.list_queries.append(q)
        return _FakeRequest(self._drive, self._drive._list, q, pageSize)

    def create(self, body: Dict[str, Any], media_body: Any = None, fields: str = "") -> _FakeRequest:
        return _FakeRequest(self._drive, self._drive._create, body, media_body)


class FakeDrive:
    """Drive v3 resource holding folders and uploads in memory."""

    _QUERY = re.compile(r"'(?P<parent>(?:[^'\\]|\\.)*)' in parents and name = '(?P<name>(?:[^'\\]|\\.)*)'")

    def __init__(self, latency: float = 0.01) -> None:
        self.latency = latency
        self.folders: Dict[str, Dict[str, Any]] = {}
        self.uploads: List[Dict[str, Any]] = []
        self.list_queries: List[str] = []
        self.errors: List[BaseException] = []
        self._ids = itertools.count(1)

    def files(self) -> _FakeFiles:
        return _FakeFiles(self)

    def folders_named(self, name: str, parent: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            f
            for f in self.folders.values()
            if f["name"] == name and (parent is None or parent in f["parents"])
        ]

    def _list(self, q: str, page_size: int) -> Dict[str, Any]:
        match = self._QUERY.search(q)
        assert match is not None, f"unexpected query: {q}"
        parent = re.sub(r"\\(.)", r"\1", match.group("parent"))
        name = re.sub(r"\\(.)", r"\1", match.group("name"))
        found = [
            {"id": f["id"], "name": f["name"]} for f in self.folders_named(name, parent)
        ]
        return {"files": found[:page_size]}

    def _create(self, body: Dict[str, Any], media_body: Any) -> Dict[str, Any]:
        item_id = f"id-{next(self._ids)}"
        if body.get("mimeType") == FOLDER_MIME:
            self.folders[item_id] = {"id": item_id, **body}
            return {"id": item_id}

        self.uploads.append({"id": item_id, "body": body, "media": media_body})
        return {
            "id": item_id,
            "name": body["name"],
            "webViewLink": f"https://drive.google.com/file/d/{item_id}/view",
            "webContentLink": f"https://drive.google.com/uc?id={item_id}&export=download",
        }


class FakeSdk:
    """SDK handle recording every call it receives.

    Set ``*_error`` attributes to make a step fail, or add a step name to
    ``hang_on`` to make it never complete.
    """

    def __init__(self, drive: Optional[FakeDrive] = None, auth: Optional[FakeAuthInstance] = None) -> None:
        self.drive = drive or FakeDrive()
        self.auth = auth or FakeAuthInstance()
        self.calls: List[str] = []
        self.hang_on: set = set()
        self.load_error: Optional[BaseException] = None
        self.client_init_error: Optional[BaseException] = None
        self.auth_init_error: Optional[BaseException] = None
        self.tokens: List[str] = []
        self.handshakes_in_flight = 0
        self.max_handshakes_in_flight = 0
        self._auth_ready = False

    async def _step(self, name: str, error: Optional[BaseException]) -> None:
        self.calls.append(name)
        if name in self.hang_on:
            await asyncio.Event().wait()
        await asyncio.sleep(0)
        if error is not None:
            raise error

    async def _handshake(self, name: str, error: Optional[BaseException]) -> None:
        self.handshakes_in_flight += 1
        self.max_handshakes_in_flight = max(self.max_handshakes_in_flight, self.handshakes_in_flight)
        try:
            await self._step(name, error)
        finally:
            self.handshakes_in_flight -= 1

    async def load(self, modules: List[str]) -> None:
        await self._step("load", self.load_error)

    async def client_init(self, api_key: str, discovery_docs: List[str]) -> None:
        await self._handshake("client_init", self.client_init_error)

    async def auth_init(self, client_id: str, scope: str, client_secret: str = "", origin: str = "") -> None:
        await self._handshake("auth_init", self.auth_init_error)
        self._auth_ready = True

    def get_auth_instance(self) -> Optional[FakeAuthInstance]:
        return self.auth if self._auth_ready else None

    def drive_service(self, access_token: str) -> FakeDrive:
        self.tokens.append(access_token)
        return self.drive


class FakeSdkFactory:
    """Creates the SDK handle; counts how many times it ran."""

    def __init__(self, sdk: FakeSdk) -> None:
        self.sdk = sdk
        self.calls = 0
        self.error: Optional[BaseException] = None
        self.hang = False

    async def create(self, source: str) -> FakeSdk:
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return self.sdk


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def client_config() -> ClientConfig:
    """Create a fully configured ClientConfig."""
    return ClientConfig(
        api_key="AIzaSyTestKey123",
        client_id="1234567890-test.apps.googleusercontent.com",
        client_secret="test-secret",
        origin="http://localhost:5173",
    )


@pytest.fixture
def drive_config(client_config: ClientConfig) -> DriveConfig:
    """Create a DriveConfig with short timeouts and no retry delay."""
    return DriveConfig(
        client=client_config,
        timeouts=TimeoutConfig(init_timeout_seconds=2.0, module_load_timeout_seconds=1.0),
        retry=RetryConfig(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0),
    )


@pytest.fixture
def classifier(client_config: ClientConfig) -> ErrorClassifier:
    return ErrorClassifier(client_config)


# ============================================================================
# Fake SDK Fixtures
# ============================================================================


@pytest.fixture
def registry() -> SdkRegistry:
    """Fresh SDK registry, isolated from the process-wide one."""
    return SdkRegistry()


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def fake_auth() -> FakeAuthInstance:
    return FakeAuthInstance()


@pytest.fixture
def fake_sdk(fake_drive: FakeDrive, fake_auth: FakeAuthInstance) -> FakeSdk:
    return FakeSdk(drive=fake_drive, auth=fake_auth)


@pytest.fixture
def sdk_factory(fake_sdk: FakeSdk) -> FakeSdkFactory:
    return FakeSdkFactory(fake_sdk)


def build_initializer(
    config: ClientConfig,
    factory: FakeSdkFactory,
    registry: SdkRegistry,
    init_timeout: float = 2.0,
    module_timeout: float = 1.0,
) -> ClientInitializer:
    """Wire a ClientInitializer to the fakes."""
    classifier = ErrorClassifier(config)
    script_loader = ScriptLoader(classifier, source=TEST_SOURCE, factory=factory.create, registry=registry)
    module_loader = ModuleLoader(classifier, timeout_seconds=module_timeout)
    return ClientInitializer(
        config,
        script_loader,
        module_loader,
        classifier,
        timeout_seconds=init_timeout,
    )


@pytest.fixture
def initializer(
    client_config: ClientConfig, sdk_factory: FakeSdkFactory, registry: SdkRegistry
) -> ClientInitializer:
    return build_initializer(client_config, sdk_factory, registry)


@pytest.fixture
def auth_controller(initializer: ClientInitializer, classifier: ErrorClassifier) -> AuthController:
    return AuthController(initializer, classifier)


@pytest_asyncio.fixture
async def signed_in(auth_controller: AuthController) -> AuthController:
    """AuthController with a signed-in session."""
    await auth_controller.authenticate(silent=False)
    return auth_controller

@pytest.fixture
def drive_client(
    drive_config: DriveConfig, sdk_factory: FakeSdkFactory, registry: SdkRegistry
) -> DriveClient:
    """DriveClient wired to the fake SDK."""
    return DriveClient(drive_config, sdk_factory=sdk_factory.create, registry=registry, source=TEST_SOURCE)
