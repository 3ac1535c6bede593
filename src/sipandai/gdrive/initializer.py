"""Single-flight initialization state machine for the Drive client.

The SDK offers no cancellation and no structured errors: failures surface
as empty exceptions, callback errors, or silent hangs. The initializer turns
that into a bounded wait and a failure category derived from the step that
was active:

    UNINITIALIZED -> LOADING_SCRIPT -> LOADING_MODULES
        -> INITIALIZING_CLIENT -> INITIALIZING_AUTH -> READY
    any state -> FAILED (failure or overall timeout)
    FAILED -> UNINITIALIZED (reset only)

The client handshake (API key + discovery document) always completes before
the auth handshake (client id + scope) starts.
"""

import asyncio
from typing import Any, Awaitable, Optional

import structlog

from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.config import ClientConfig
from sipandai.gdrive.errors import DriveClientError, ErrorCategory, ErrorInfo
from sipandai.gdrive.module_loader import ModuleLoader
from sipandai.gdrive.script_loader import ScriptLoader
from sipandai.gdrive.sdk import DriveSdk, call_sdk
from sipandai.gdrive.state import InitState

logger = structlog.get_logger()


class ClientInitializer:
    """Drives the SDK from nothing to READY, at most once at a time.

    Concurrent callers share one in-flight attempt. Once READY, calls return
    the SDK handle without re-running any step. Once FAILED, calls re-raise
    the stored failure without side effects until ``reset()``.
    """

    def __init__(
        self,
        config: ClientConfig,
        script_loader: ScriptLoader,
        module_loader: ModuleLoader,
        classifier: ErrorClassifier,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._config = config
        self._script_loader = script_loader
        self._module_loader = module_loader
        self._classifier = classifier
        self._timeout_seconds = timeout_seconds

        self._state = InitState.UNINITIALIZED
        self._failure: Optional[ErrorInfo] = None
        self._sdk: Optional[DriveSdk] = None
        self._task: Optional["asyncio.Task[DriveSdk]"] = None
        # Attempt cancelled by reset(); the next attempt waits for it to unwind.
        self._detached: Optional["asyncio.Task[DriveSdk]"] = None
        # Bumped by reset(); attempts from an older generation do not commit.
        self._generation = 0

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def failure(self) -> Optional[ErrorInfo]:
        """ErrorInfo of the FAILED state, if any."""
        return self._failure

    @property
    def sdk(self) -> Optional[DriveSdk]:
        """The SDK handle once READY."""
        return self._sdk if self._state is InitState.READY else None

    async def initialize(self) -> DriveSdk:
        """Bring the client to READY.

        Returns:
            The initialized SDK handle.

        Raises:
            DriveClientError: NOT_CONFIGURED without touching the network,
                the stored failure when FAILED, or the failure of this attempt.
        """
        if self._state is InitState.READY and self._sdk is not None:
            return self._sdk

        if self._state is InitState.FAILED and self._failure is not None:
            raise DriveClientError(self._failure)

        if self._task is None:
            if not self._config.is_configured():
                info = self._classifier.info(ErrorCategory.NOT_CONFIGURED)
                self._fail(info)
                logger.error(
                    "drive_not_configured",
                    has_api_key=bool(self._config.api_key),
                    has_client_id=bool(self._config.client_id),
                )
                raise DriveClientError(info)

            logger.info(
                "initializing_drive_client",
                timeout_seconds=self._timeout_seconds,
                **self._classifier.describe_config(),
            )
            previous, self._detached = self._detached, None
            self._task = asyncio.get_running_loop().create_task(
                self._run(self._generation, previous)
            )

        task = self._task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled() or task is self._task:
                raise
            # Cancelled by reset(), not by our caller
            logger.info("drive_init_attempt_cancelled_by_reset")
            raise DriveClientError(
                self._classifier.info(ErrorCategory.UNKNOWN, raw="initialization reset")
            ) from None

    def reset(self) -> None:
        """Return to UNINITIALIZED, discarding any failure or handle.

        An attempt still in flight is cancelled; its waiters receive a
        DriveClientError. The next attempt starts its handshakes only after
        the cancelled one has unwound, so handshakes never overlap.
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()
            self._detached = self._task
        self._generation += 1
        self._state = InitState.UNINITIALIZED
        self._failure = None
        self._sdk = None
        self._task = None
        logger.info("drive_client_reset")

    async def _run(
        self,
        generation: int,
        previous: Optional["asyncio.Task[DriveSdk]"] = None,
    ) -> DriveSdk:
        if previous is not None:
            await asyncio.wait({previous})
            if not previous.cancelled():
                previous.exception()

        try:
            sdk = await asyncio.wait_for(self._steps(generation), timeout=self._timeout_seconds)
        except asyncio.TimeoutError as e:
            info = self._classifier.info(ErrorCategory.INIT_TIMEOUT, raw=e, state=self._state)
            logger.error(
                "drive_init_timeout",
                stage=self._state.value,
                timeout_seconds=self._timeout_seconds,
            )
            self._commit_failure(generation, info)
            raise DriveClientError(info) from e
        except DriveClientError as e:
            self._commit_failure(generation, e.info)
            raise

        if generation == self._generation:
            self._sdk = sdk
            self._state = InitState.READY
            self._task = None
            logger.info("drive_client_ready")
        return sdk

    async def _steps(self, generation: int) -> DriveSdk:
        self._enter(generation, InitState.LOADING_SCRIPT)
        sdk = await self._script_loader.ensure_script_loaded()

        self._enter(generation, InitState.LOADING_MODULES)
        await self._module_loader.load_modules(sdk)

        self._enter(generation, InitState.INITIALIZING_CLIENT)
        await self._handshake(
            InitState.INITIALIZING_CLIENT,
            call_sdk(
                sdk.client_init,
                self._config.api_key,
                [self._config.discovery_document_url],
            ),
        )
        logger.info("drive_client_handshake_complete")

        self._enter(generation, InitState.INITIALIZING_AUTH)
        await self._handshake(
            InitState.INITIALIZING_AUTH,
            call_sdk(
                sdk.auth_init,
                self._config.client_id,
                self._config.scope,
                self._config.client_secret,
                self._config.origin,
            ),
        )
        logger.info("drive_auth_handshake_complete")
        return sdk

    async def _handshake(self, state: InitState, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except DriveClientError:
            raise
        except Exception as e:
            info = self._classifier.classify(e, state=state)
            logger.error(
                "drive_handshake_failed",
                stage=state.value,
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            raise DriveClientError(info) from e

    def _enter(self, generation: int, state: InitState) -> None:
        if generation == self._generation:
            logger.debug("drive_init_state", state=state.value)
            self._state = state

    def _fail(self, info: ErrorInfo) -> None:
        self._state = InitState.FAILED
        self._failure = info
        self._sdk = None
        self._task = None

    def _commit_failure(self, generation: int, info: ErrorInfo) -> None:
        if generation == self._generation:
            self._fail(info)
