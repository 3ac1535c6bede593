"""Bounded loading of the SDK's client and auth submodules."""

import asyncio
from typing import Sequence

import structlog

from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.errors import DriveClientError, ErrorCategory
from sipandai.gdrive.sdk import DriveSdk, call_sdk
from sipandai.gdrive.state import InitState

logger = structlog.get_logger()

DEFAULT_MODULES = ("client", "auth")


class ModuleLoader:
    """Loads SDK submodules with its own timeout.

    The timeout is shorter than the initializer's overall budget so that a
    hang here is reported as MODULE_LOAD_TIMEOUT rather than INIT_TIMEOUT.
    """

    def __init__(self, classifier: ErrorClassifier, timeout_seconds: float = 10.0) -> None:
        self._classifier = classifier
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def load_modules(self, sdk: DriveSdk, names: Sequence[str] = DEFAULT_MODULES) -> None:
        """Load the named submodules.

        Raises:
            DriveClientError: MODULE_LOAD_TIMEOUT on expiry, MODULE_LOAD_FAILED
                (or CSP_BLOCKED) if the SDK reports a failure.
        """
        logger.debug("loading_sdk_modules", modules=list(names))
        load = asyncio.ensure_future(call_sdk(sdk.load, list(names)))
        try:
            done, _ = await asyncio.wait({load}, timeout=self._timeout_seconds)
        finally:
            if not load.done():
                load.cancel()

        # A TimeoutError raised by the SDK itself is a load failure, not expiry
        if not done:
            logger.error(
                "sdk_modules_timeout",
                modules=list(names),
                timeout_seconds=self._timeout_seconds,
            )
            info = self._classifier.info(
                ErrorCategory.MODULE_LOAD_TIMEOUT,
                raw=f"modules not loaded after {self._timeout_seconds}s",
                state=InitState.LOADING_MODULES,
            )
            raise DriveClientError(info)

        try:
            load.result()
        except Exception as e:
            info = self._classifier.classify(e, state=InitState.LOADING_MODULES)
            logger.error(
                "sdk_modules_failed",
                modules=list(names),
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            raise DriveClientError(info) from e

        logger.debug("sdk_modules_loaded", modules=list(names))
