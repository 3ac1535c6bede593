"""Configuration dataclasses for the Google Drive client.

This module defines the credential configuration read by the client at
construction, plus timeout, retry, and folder-naming settings. Values can
come from defaults, a dictionary (e.g., parsed YAML), or environment
variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml  # type: ignore[import-untyped]

DEFAULT_SCOPE = "https://www.googleapis.com/auth/drive.file"
DEFAULT_DISCOVERY_DOC = "https://www.googleapis.com/discovery/v1/apis/drive/v3/rest"
DEFAULT_ORIGIN = "http://localhost"

# Environment variables read by ClientConfig.from_env
ENV_API_KEY = "GOOGLE_DRIVE_API_KEY"
ENV_CLIENT_ID = "GOOGLE_DRIVE_CLIENT_ID"
ENV_CLIENT_SECRET = "GOOGLE_DRIVE_CLIENT_SECRET"
ENV_SCOPE = "GOOGLE_DRIVE_SCOPE"
ENV_DISCOVERY_DOC = "GOOGLE_DRIVE_DISCOVERY_DOC"
ENV_ORIGIN = "GOOGLE_DRIVE_ORIGIN"
ENV_ENABLED = "GOOGLE_DRIVE_ENABLED"

_FALSE_VALUES = ("0", "false", "no", "off")


def _env_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get(ENV_ENABLED, "true").strip().lower() not in _FALSE_VALUES


@dataclass(frozen=True)
class ClientConfig:
    """Credentials and endpoints for the Drive API.

    Immutable once read. ``enabled`` is derived, so it is true exactly when
    both the API key and the client id are non-empty.

    Attributes:
        api_key: Browser/API key used for the client handshake.
        client_id: OAuth 2.0 client id.
        scope: OAuth scope requested at sign-in.
        discovery_document_url: Drive discovery document URL.
        client_secret: OAuth client secret (installed-app flow).
        origin: Origin registered with the OAuth client; used in
            remediation instructions.
    """

    api_key: str = ""
    client_id: str = ""
    scope: str = DEFAULT_SCOPE
    discovery_document_url: str = DEFAULT_DISCOVERY_DOC
    client_secret: str = field(default="", repr=False)
    origin: str = DEFAULT_ORIGIN

    @property
    def enabled(self) -> bool:
        """True iff both credentials are non-empty."""
        return bool(self.api_key) and bool(self.client_id)

    def is_configured(self) -> bool:
        """Return True only if enabled and both credentials are non-blank."""
        return self.enabled and bool(self.api_key.strip()) and bool(self.client_id.strip())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Read credentials from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get(ENV_API_KEY, ""),
            client_id=env.get(ENV_CLIENT_ID, ""),
            scope=env.get(ENV_SCOPE) or DEFAULT_SCOPE,
            discovery_document_url=env.get(ENV_DISCOVERY_DOC) or DEFAULT_DISCOVERY_DOC,
            client_secret=env.get(ENV_CLIENT_SECRET, ""),
            origin=env.get(ENV_ORIGIN) or DEFAULT_ORIGIN,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientConfig":
        """Create from a dictionary, ignoring unknown keys."""
        return cls(
            api_key=str(data.get("api_key", "") or ""),
            client_id=str(data.get("client_id", "") or ""),
            scope=str(data.get("scope") or DEFAULT_SCOPE),
            discovery_document_url=str(data.get("discovery_document_url") or DEFAULT_DISCOVERY_DOC),
            client_secret=str(data.get("client_secret", "") or ""),
            origin=str(data.get("origin") or DEFAULT_ORIGIN),
        )


@dataclass
class TimeoutConfig:
    """Initialization time budgets."""

    init_timeout_seconds: float = 15.0
    module_load_timeout_seconds: float = 10.0


@dataclass
class RetryConfig:
    """Retry policy applied to folder provisioning and uploads."""

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0


@dataclass
class FolderConfig:
    """Folder naming for the root → category → subject hierarchy."""

    root_folder_name: str = "SIPANDAI"
    default_category: str = "Umum"
    default_subject: str = "Pegawai"


@dataclass
class DriveConfig:
    """Main configuration for the Google Drive client.

    ``enabled`` is a feature switch (``GOOGLE_DRIVE_ENABLED``). A disabled
    client reports DISABLED and never initializes.

    Example:
        config = DriveConfig(client=ClientConfig.from_env())
        config.timeouts.init_timeout_seconds = 20
    """

    enabled: bool = True
    client: ClientConfig = field(default_factory=ClientConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    folders: FolderConfig = field(default_factory=FolderConfig)

    @classmethod
    def from_dict(cls, data: Dict) -> "DriveConfig":
        """Create a DriveConfig from a dictionary (e.g., from YAML).

        Args:
            data: Dictionary with configuration values. The ``client``
                section falls back to environment variables when absent.

        Returns:
            DriveConfig instance with values from the dictionary.
        """
        config = cls()

        if "enabled" in data:
            config.enabled = bool(data["enabled"])
        else:
            config.enabled = _env_enabled()

        if "client" in data:
            config.client = ClientConfig.from_dict(data["client"] or {})
        else:
            config.client = ClientConfig.from_env()

        if "timeouts" in data:
            timeout_data = data["timeouts"]
            config.timeouts.init_timeout_seconds = float(
                timeout_data.get("init_timeout_seconds", config.timeouts.init_timeout_seconds)
            )
            config.timeouts.module_load_timeout_seconds = float(
                timeout_data.get(
                    "module_load_timeout_seconds", config.timeouts.module_load_timeout_seconds
                )
            )

        if "retry" in data:
            retry_data = data["retry"]
            config.retry.max_attempts = int(retry_data.get("max_attempts", config.retry.max_attempts))
            config.retry.base_delay_seconds = float(
                retry_data.get("base_delay_seconds", config.retry.base_delay_seconds)
            )
            config.retry.max_delay_seconds = float(
                retry_data.get("max_delay_seconds", config.retry.max_delay_seconds)
            )

        if "folders" in data:
            folder_data = data["folders"]
            config.folders.root_folder_name = folder_data.get(
                "root_folder_name", config.folders.root_folder_name
            )
            config.folders.default_category = folder_data.get(
                "default_category", config.folders.default_category
            )
            config.folders.default_subject = folder_data.get(
                "default_subject", config.folders.default_subject
            )

        return config


def load_config(path: Optional[Union[str, Path]] = None) -> DriveConfig:
    """Load configuration from a YAML file, or from the environment.

    Args:
        path: Path to a YAML file with ``client``, ``timeouts``, ``retry``
            and ``folders`` sections. If None, only environment variables
            and defaults are used.

    Returns:
        DriveConfig instance.
    """
    if path is None:
        return DriveConfig(client=ClientConfig.from_env(), enabled=_env_enabled())

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return DriveConfig.from_dict(data)
