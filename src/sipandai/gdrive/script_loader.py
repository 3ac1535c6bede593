"""One-time loading of the Drive SDK handle.

The SDK handle is a process-wide resource: it is created at most once per
source and shared by every client in the process, including clients created
after a reload. ``ScriptLoader`` is the only component that creates it.

Example:
    loader = ScriptLoader(classifier)
    sdk = await loader.ensure_script_loaded()
"""

import asyncio
import threading
from typing import Any, Callable, Dict, Optional

import structlog

from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.errors import DriveClientError
from sipandai.gdrive.sdk import DriveSdk, call_sdk
from sipandai.gdrive.state import InitState

logger = structlog.get_logger()

# Google API discovery directory; reaching it is the SDK bootstrap step.
DEFAULT_SDK_SOURCE = "https://www.googleapis.com/discovery/v1/apis"


class SdkRegistry:
    """Process-wide table of loaded SDK handles and in-flight loads.

    Thread-safe: handles may be read from worker threads while the event
    loop registers new ones.
    """

    def __init__(self) -> None:
        self._handles: Dict[str, Any] = {}
        self._pending: Dict[str, "asyncio.Task[Any]"] = {}
        self._lock = threading.Lock()

    def get(self, source: str) -> Optional[Any]:
        """Return the loaded handle for a source, if any."""
        with self._lock:
            return self._handles.get(source)

    def put(self, source: str, sdk: Any) -> None:
        """Register a loaded handle."""
        with self._lock:
            self._handles[source] = sdk

    def pending(self, source: str) -> Optional["asyncio.Task[Any]"]:
        """Return the in-flight load for a source, if any."""
        with self._lock:
            return self._pending.get(source)

    def set_pending(self, source: str, task: "asyncio.Task[Any]") -> None:
        with self._lock:
            self._pending[source] = task

    def clear_pending(self, source: str) -> None:
        with self._lock:
            self._pending.pop(source, None)

    def clear(self) -> None:
        """Forget every handle (used by tests and hot reload tooling)."""
        with self._lock:
            self._handles.clear()
            self._pending.clear()


_default_registry = SdkRegistry()


def default_registry() -> SdkRegistry:
    """Return the registry shared by the whole process."""
    return _default_registry


def _default_factory(source: str) -> DriveSdk:
    from sipandai.gdrive.google_sdk import GoogleSdk

    return GoogleSdk.bootstrap(source)


class ScriptLoader:
    """Ensures the SDK handle is present exactly once.

    - If a handle is already registered for the source, returns it.
    - If a load is in flight, waits for that load instead of starting another.
    - Otherwise runs the factory once and registers the result.

    There is no timeout here; the initializer's overall budget covers it.

    Attributes:
        source: Identifier of the SDK source (the registry key).
        injections: Number of times this loader ran the factory.
    """

    def __init__(
        self,
        classifier: ErrorClassifier,
        source: str = DEFAULT_SDK_SOURCE,
        factory: Optional[Callable[[str], Any]] = None,
        registry: Optional[SdkRegistry] = None,
    ) -> None:
        self._classifier = classifier
        self.source = source
        self._factory = factory or _default_factory
        self._registry = registry or default_registry()
        self.injections = 0

    async def ensure_script_loaded(self) -> DriveSdk:
        """Return the SDK handle, loading it if needed.

        Returns:
            The shared SDK handle.

        Raises:
            DriveClientError: SCRIPT_LOAD_FAILED (or CSP_BLOCKED) if the
                factory fails.
        """
        sdk = self._registry.get(self.source)
        if sdk is not None:
            logger.debug("sdk_already_loaded", source=self.source)
            return sdk

        loop = asyncio.get_running_loop()
        pending = self._registry.pending(self.source)
        if pending is not None and pending.get_loop() is loop:
            logger.debug("sdk_load_in_flight", source=self.source)
            return await asyncio.shield(pending)

        task = loop.create_task(self._inject())
        self._registry.set_pending(self.source, task)
        return await asyncio.shield(task)

    async def _inject(self) -> DriveSdk:
        self.injections += 1
        logger.info("loading_sdk", source=self.source)
        try:
            sdk = await call_sdk(self._factory, self.source)
        except Exception as e:
            self._registry.clear_pending(self.source)
            info = self._classifier.classify(e, state=InitState.LOADING_SCRIPT)
            logger.error(
                "sdk_load_failed",
                source=self.source,
                error=str(e),
                error_type=type(e).__name__,
                category=info.category.value,
            )
            raise DriveClientError(info) from e

        self._registry.put(self.source, sdk)
        self._registry.clear_pending(self.source)
        logger.info("sdk_loaded", source=self.source)
        return sdk
