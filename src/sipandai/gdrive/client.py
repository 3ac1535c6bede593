"""Google Drive client facade for the sipandai application.

``DriveClient`` wires the loaders, initializer, auth controller, folder
provisioner and uploader together and is the only object the rest of the
application talks to. Every failure leaves it as a DriveClientError with a
classified ErrorInfo.

Example:
    from sipandai.gdrive import create_client

    client = create_client()
    await client.initialize()
    if not await client.authenticate(silent=True):
        await client.authenticate(silent=False)

    structure = await client.resolve_folder_structure("Cuti", "Siti")
    result = await client.upload_file(
        UploadFile(content=b"...", name="surat.pdf", mime_type="application/pdf"),
        structure.subject_id,
        "surat.pdf",
    )
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from sipandai.gdrive.auth import AuthController, AuthSession
from sipandai.gdrive.classifier import ErrorClassifier
from sipandai.gdrive.config import DriveConfig, load_config
from sipandai.gdrive.errors import DriveClientError, ErrorCategory, ErrorInfo
from sipandai.gdrive.folders import FolderProvisioner, FolderStructure
from sipandai.gdrive.initializer import ClientInitializer
from sipandai.gdrive.module_loader import ModuleLoader
from sipandai.gdrive.retry import RetryPolicy, with_retry
from sipandai.gdrive.script_loader import DEFAULT_SDK_SOURCE, ScriptLoader, SdkRegistry
from sipandai.gdrive.sdk import DriveSdk
from sipandai.gdrive.state import InitState
from sipandai.gdrive.uploader import UploadFile, UploadManager, UploadResult

logger = structlog.get_logger()


class AvailabilityCode(str, Enum):
    """Whether Drive features should be offered to the user."""

    AVAILABLE = "available"
    DISABLED = "disabled"
    NOT_CONFIGURED = "not_configured"
    DOMAIN_BLOCKED = "domain_blocked"
    FAILED = "failed"


@dataclass(frozen=True)
class Availability:
    """Availability of the Drive integration.

    Attributes:
        code: Availability code.
        reason: Short human-readable explanation.
        error: ErrorInfo behind a DOMAIN_BLOCKED or FAILED code.
    """

    code: AvailabilityCode
    reason: str
    error: Optional[ErrorInfo] = None

    @property
    def available(self) -> bool:
        return self.code is AvailabilityCode.AVAILABLE


class DriveClient:
    """Stateful Google Drive client.

    Attributes:
        config: Configuration read once at construction.
    """

    def __init__(
        self,
        config: DriveConfig,
        *,
        sdk_factory: Optional[Callable[[str], Any]] = None,
        registry: Optional[SdkRegistry] = None,
        source: str = DEFAULT_SDK_SOURCE,
    ) -> None:
        """Build the client and its components.

        Args:
            config: Drive configuration.
            sdk_factory: Callable creating the SDK handle for a source.
                Defaults to the Google client libraries.
            registry: Process-wide SDK registry. Defaults to the shared one.
            source: SDK source identifier (registry key).
        """
        self.config = config
        self._classifier = ErrorClassifier(config.client)
        self._script_loader = ScriptLoader(
            self._classifier,
            source=source,
            factory=sdk_factory,
            registry=registry,
        )
        self._module_loader = ModuleLoader(
            self._classifier,
            timeout_seconds=config.timeouts.module_load_timeout_seconds,
        )
        self._initializer = ClientInitializer(
            config.client,
            self._script_loader,
            self._module_loader,
            self._classifier,
            timeout_seconds=config.timeouts.init_timeout_seconds,
        )
        self._auth = AuthController(self._initializer, self._classifier)
        self._folders = FolderProvisioner(self._auth, self._classifier, config.folders)
        self._uploader = UploadManager(self._auth, self._classifier)

        policy = RetryPolicy.from_config(config.retry)
        self._resolve_with_retry = with_retry(policy)(self._folders.resolve_folder_structure)
        self._upload_with_retry = with_retry(policy)(self._uploader.upload_file)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    @property
    def script_loader(self) -> ScriptLoader:
        return self._script_loader

    @property
    def state(self) -> InitState:
        return self._initializer.state

    @property
    def last_error(self) -> Optional[ErrorInfo]:
        """ErrorInfo of the FAILED state, if any."""
        return self._initializer.failure

    @property
    def session(self) -> Optional[AuthSession]:
        return self._auth.session

    @property
    def account(self) -> Optional[str]:
        """Identifier of the signed-in account."""
        session = self._auth.session
        return session.account_identifier if session is not None else None

    @property
    def domain_blocked(self) -> bool:
        """True after a DOMAIN_NOT_AUTHORIZED failure, until reset()."""
        failure = self._initializer.failure
        return failure is not None and failure.category is ErrorCategory.DOMAIN_NOT_AUTHORIZED

    def is_configured(self) -> bool:
        """Return True if the integration is enabled and has credentials."""
        return self.config.enabled and self.config.client.is_configured()

    def availability(self) -> Availability:
        """Report whether Drive features should be offered.

        Pure inspection: never initializes or touches the network.
        """
        if not self.config.enabled:
            return Availability(AvailabilityCode.DISABLED, "Google Drive integration is disabled")
        if not self.config.client.is_configured():
            return Availability(
                AvailabilityCode.NOT_CONFIGURED,
                "Google Drive API credentials are not configured",
            )
        failure = self._initializer.failure
        if self.domain_blocked:
            return Availability(
                AvailabilityCode.DOMAIN_BLOCKED,
                "Domain not authorized for this OAuth client",
                error=failure,
            )
        if failure is not None:
            return Availability(AvailabilityCode.FAILED, failure.message, error=failure)
        return Availability(AvailabilityCode.AVAILABLE, "Google Drive integration is available")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> DriveSdk:
        """Bring the client to READY.

        Raises:
            DriveClientError: NOT_CONFIGURED when disabled or missing
                credentials, otherwise the classified initialization failure.
        """
        if not self.config.enabled:
            logger.warning("drive_disabled")
            raise DriveClientError(self._classifier.info(ErrorCategory.NOT_CONFIGURED))
        return await self._initializer.initialize()

    async def authenticate(self, silent: bool = True) -> bool:
        """Sign in; see AuthController.authenticate."""
        if not self.config.enabled:
            raise DriveClientError(self._classifier.info(ErrorCategory.NOT_CONFIGURED))
        return await self._auth.authenticate(silent=silent)

    async def is_authenticated(self) -> bool:
        if not self.config.enabled:
            return False
        return await self._auth.is_authenticated()

    async def sign_out(self) -> None:
        """Sign out and forget the folder ids resolved for this account."""
        self._folders.clear()
        await self._auth.sign_out()

    def reset(self) -> None:
        """Clear the session, folder cache and any failure so initialize() can run again."""
        self._folders.clear()
        self._auth.reset()

    # -------------------------------------------------------------------------
    # Drive operations
    # -------------------------------------------------------------------------

    async def resolve_folder_structure(self, category: str, subject: str) -> FolderStructure:
        """Resolve root → category → subject, creating missing folders.

        Retryable failures are retried with exponential backoff.
        """
        return await self._resolve_with_retry(category, subject)

    # Name used by the submission screens
    create_folder_structure = resolve_folder_structure

    async def upload_file(
        self,
        file: UploadFile,
        parent_folder_id: str,
        destination_name: str,
    ) -> UploadResult:
        """Upload one file into a folder.

        Retryable failures are retried with exponential backoff; the upload
        itself is a single multipart request per attempt.
        """
        return await self._upload_with_retry(file, parent_folder_id, destination_name)


def create_client(
    config: Optional[DriveConfig] = None,
    config_path: Optional[str] = None,
) -> DriveClient:
    """Factory function to create a client with the Google SDK.

    Args:
        config: Drive configuration. If not provided, it is loaded from
            ``config_path`` or, failing that, from environment variables.
        config_path: Optional YAML configuration file.

    Returns:
        DriveClient in the UNINITIALIZED state.
    """
    if config is None:
        config = load_config(config_path)
    return DriveClient(config)
