"""Error taxonomy for the Google Drive client.

Every failure that leaves the client is a DriveClientError carrying an
immutable ErrorInfo. The category is drawn from a closed set so callers can
branch on it and show the attached remediation text directly to users.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Closed set of failure categories."""

    NOT_CONFIGURED = "not_configured"
    SCRIPT_LOAD_FAILED = "script_load_failed"
    MODULE_LOAD_FAILED = "module_load_failed"
    MODULE_LOAD_TIMEOUT = "module_load_timeout"
    DOMAIN_NOT_AUTHORIZED = "domain_not_authorized"
    POPUP_BLOCKED = "popup_blocked"
    ACCESS_DENIED = "access_denied"
    QUOTA_EXCEEDED = "quota_exceeded"
    CSP_BLOCKED = "csp_blocked"
    NETWORK_ERROR = "network_error"
    INIT_TIMEOUT = "init_timeout"
    UNKNOWN = "unknown"


# Categories a caller may retry automatically.
RETRYABLE_CATEGORIES: frozenset = frozenset(
    {
        ErrorCategory.SCRIPT_LOAD_FAILED,
        ErrorCategory.MODULE_LOAD_FAILED,
        ErrorCategory.MODULE_LOAD_TIMEOUT,
        ErrorCategory.QUOTA_EXCEEDED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.INIT_TIMEOUT,
    }
)


@dataclass(frozen=True)
class ErrorInfo:
    """Classified description of a failure.

    Attributes:
        category: Failure category.
        message: Short user-facing description.
        remediation: User-facing instructions for fixing or retrying.
        raw: The original error, kept for diagnostic logging only.
        stage: Initialization state active when the failure happened, if any.
    """

    category: ErrorCategory
    message: str
    remediation: str
    raw: Any = field(default=None, repr=False, compare=False)
    stage: Optional[str] = None

    @property
    def retryable(self) -> bool:
        """True if an automatic retry may succeed."""
        return self.category in RETRYABLE_CATEGORIES

    @property
    def is_terminal(self) -> bool:
        """True if nothing short of a configuration change can fix this."""
        return self.category is ErrorCategory.NOT_CONFIGURED

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for logging and JSON output."""
        return {
            "category": self.category.value,
            "message": self.message,
            "remediation": self.remediation,
            "stage": self.stage,
            "retryable": self.retryable,
        }


class DriveClientError(Exception):
    """Raised by every public client operation that fails.

    This typically occurs when:
    - Credentials are missing from the configuration
    - The OAuth client does not list the current origin
    - The user declines consent or the consent popup cannot open
    - Drive quota is exhausted or the network is unreachable

    The attached ErrorInfo holds the category and remediation text.
    """

    def __init__(self, info: ErrorInfo) -> None:
        self.info = info
        super().__init__(info.message)

    @property
    def category(self) -> ErrorCategory:
        """Shortcut for info.category."""
        return self.info.category

    def __repr__(self) -> str:
        return f"DriveClientError(category={self.info.category.value!r}, message={self.info.message!r})"
