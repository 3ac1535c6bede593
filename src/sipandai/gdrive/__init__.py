"""Google Drive integration module for SIPANDAI.

This module provides integration with Google Drive for:
- Loading and initializing the Google API client exactly once
- Signing in silently or through the consent flow
- Provisioning the SIPANDAI / <category> / <subject> folder path
- Uploading submission documents
- Classifying failures into actionable categories

Example:
    from sipandai.gdrive import UploadFile, create_client

    client = create_client()
    await client.authenticate(silent=False)

    structure = await client.resolve_folder_structure("Cuti", "Siti")
    result = await client.upload_file(
        UploadFile.from_path("surat_cuti.pdf"),
        structure.subject_id,
        "surat_cuti.pdf",
    )
    print(result.web_view_link)
"""

# Authentication
from sipandai.gdrive.auth import AuthController, AuthSession

# Classification
from sipandai.gdrive.classifier import ErrorClassifier

# Client
from sipandai.gdrive.client import (
    Availability,
    AvailabilityCode,
    DriveClient,
    create_client,
)

# Configuration
from sipandai.gdrive.config import (
    ClientConfig,
    DriveConfig,
    FolderConfig,
    RetryConfig,
    TimeoutConfig,
    load_config,
)

# Diagnostics
from sipandai.gdrive.diagnostics import (
    DiagnosticReport,
    DiagnosticStep,
    run_diagnostics,
)

# Errors
from sipandai.gdrive.errors import (
    RETRYABLE_CATEGORIES,
    DriveClientError,
    ErrorCategory,
    ErrorInfo,
)

# Folders
from sipandai.gdrive.folders import (
    FolderProvisioner,
    FolderStructure,
    normalize_folder_name,
)

# Initialization
from sipandai.gdrive.initializer import ClientInitializer
from sipandai.gdrive.module_loader import ModuleLoader
from sipandai.gdrive.retry import RetryPolicy, with_retry
from sipandai.gdrive.script_loader import ScriptLoader, SdkRegistry
from sipandai.gdrive.state import InitState

# Uploader
from sipandai.gdrive.uploader import (
    UploadFile,
    UploadManager,
    UploadResult,
)

__all__ = [
    # Client
    "DriveClient",
    "create_client",
    "Availability",
    "AvailabilityCode",
    # Configuration
    "DriveConfig",
    "ClientConfig",
    "TimeoutConfig",
    "RetryConfig",
    "FolderConfig",
    "load_config",
    # Initialization
    "ClientInitializer",
    "ScriptLoader",
    "SdkRegistry",
    "ModuleLoader",
    "InitState",
    # Authentication
    "AuthController",
    "AuthSession",
    # Folders
    "FolderProvisioner",
    "FolderStructure",
    "normalize_folder_name",
    # Uploader
    "UploadManager",
    "UploadFile",
    "UploadResult",
    # Retry
    "RetryPolicy",
    "with_retry",
    # Diagnostics
    "run_diagnostics",
    "DiagnosticReport",
    "DiagnosticStep",
    # Errors
    "ErrorClassifier",
    "DriveClientError",
    "ErrorCategory",
    "ErrorInfo",
    "RETRYABLE_CATEGORIES",
]
