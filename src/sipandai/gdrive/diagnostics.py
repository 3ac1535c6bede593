"""End-to-end diagnostics for the Drive integration.

Runs the same steps a real submission goes through and stops at the first
failing one:

1. configuration
2. initialization
3. authentication
4. folder creation
5. test file upload

Example:
    report = await run_diagnostics(client, interactive=True)
    for step in report.steps:
        print(step.name, step.success, step.message)
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from sipandai.gdrive.client import DriveClient
from sipandai.gdrive.errors import DriveClientError, ErrorInfo
from sipandai.gdrive.uploader import UploadFile

logger = structlog.get_logger()

TEST_FILE_NAME = "SIPANDAI-Test-Upload.txt"

STEP_NAMES = (
    "configuration",
    "initialization",
    "authentication",
    "folder_creation",
    "file_upload",
)


@dataclass
class DiagnosticStep:
    """Outcome of one diagnostic step."""

    name: str
    success: bool
    message: str
    duration_seconds: float = 0.0
    error: Optional[ErrorInfo] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosticReport:
    """All steps run by run_diagnostics, in order.

    Steps after the first failure are not run and do not appear here.
    """

    steps: List[DiagnosticStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.steps) == len(STEP_NAMES) and all(s.success for s in self.steps)

    @property
    def failed_step(self) -> Optional[DiagnosticStep]:
        return next((s for s in self.steps if not s.success), None)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a dictionary for JSON output."""
        return {
            "success": self.success,
            "steps": [
                {
                    "name": s.name,
                    "success": s.success,
                    "message": s.message,
                    "duration_seconds": round(s.duration_seconds, 3),
                    "error": s.error.to_dict() if s.error is not None else None,
                    "data": s.data,
                }
                for s in self.steps
            ],
        }


def _test_file_content(client: DriveClient) -> bytes:
    return (
        "SIPANDAI Google Drive Test File\n"
        f"Generated at: {datetime.now(timezone.utc).isoformat()}\n"
        f"Origin: {client.config.client.origin}\n"
        "\n"
        "If you can see this file in your Google Drive, the integration works.\n"
    ).encode("utf-8")


async def run_diagnostics(
    client: DriveClient,
    category: str = "Test Upload Category",
    subject: str = "Test Employee Upload",
    interactive: bool = False,
) -> DiagnosticReport:
    """Run the diagnostic steps against a client.

    Args:
        client: Client under test.
        category: Category folder used for the test upload.
        subject: Subject folder used for the test upload.
        interactive: Open the consent flow if no session can be reused.

    Returns:
        DiagnosticReport. Never raises DriveClientError; failures are
        recorded on the failing step.
    """
    report = DiagnosticReport()

    def record(name: str, started: float, success: bool, message: str, **kwargs: Any) -> bool:
        step = DiagnosticStep(
            name=name,
            success=success,
            message=message,
            duration_seconds=time.monotonic() - started,
            **kwargs,
        )
        report.steps.append(step)
        logger.info("diagnostic_step", step=name, success=success, message=message)
        return success

    started = time.monotonic()
    if not client.is_configured():
        record("configuration", started, False, "Missing Google Drive credentials")
        return report
    record("configuration", started, True, "Configuration OK")

    started = time.monotonic()
    try:
        await client.initialize()
    except DriveClientError as e:
        record("initialization", started, False, e.info.message, error=e.info)
        return report
    record("initialization", started, True, "API initialized")

    started = time.monotonic()
    try:
        authenticated = await client.authenticate(silent=not interactive)
    except DriveClientError as e:
        record("authentication", started, False, e.info.message, error=e.info)
        return report
    if not authenticated:
        record("authentication", started, False, "Authentication required")
        return report
    record(
        "authentication",
        started,
        True,
        "User authenticated",
        data={"account": client.account},
    )

    started = time.monotonic()
    try:
        structure = await client.resolve_folder_structure(category, subject)
    except DriveClientError as e:
        record("folder_creation", started, False, e.info.message, error=e.info)
        return report
    record(
        "folder_creation",
        started,
        True,
        "Folder structure created",
        data={
            "root_id": structure.root_id,
            "category_id": structure.category_id,
            "subject_id": structure.subject_id,
        },
    )

    started = time.monotonic()
    test_file = UploadFile(
        content=_test_file_content(client),
        name="sipandai-test.txt",
        mime_type="text/plain",
    )
    try:
        result = await client.upload_file(test_file, structure.subject_id, TEST_FILE_NAME)
    except DriveClientError as e:
        record("file_upload", started, False, e.info.message, error=e.info)
        return report
    record(
        "file_upload",
        started,
        True,
        "File uploaded successfully",
        data={
            "file_id": result.file_id,
            "file_name": result.file_name,
            "web_view_link": result.web_view_link,
        },
    )
    return report
