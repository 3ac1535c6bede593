"""Classification of raw SDK and transport failures.

The Drive SDK has no structured error type: failures arrive as exceptions
with empty messages, provider error codes, HTTP errors, or plain transport
exceptions. ``ErrorClassifier.classify`` maps any of these onto exactly one
ErrorCategory, using the initialization state active at the time of the
failure as additional signal.

Example:
    from sipandai.gdrive.classifier import ErrorClassifier

    classifier = ErrorClassifier(config.client)
    info = classifier.classify(exc, state=InitState.INITIALIZING_AUTH)
    print(info.category, info.remediation)
"""

import socket
from typing import Any, Optional

import httplib2
import requests

from sipandai.gdrive.config import ClientConfig
from sipandai.gdrive.errors import DriveClientError, ErrorCategory, ErrorInfo
from sipandai.gdrive.state import HANDSHAKE_STATES, InitState

CONSOLE_CREDENTIALS_URL = "https://console.cloud.google.com/apis/credentials"

_CSP_KEYWORDS = ("content security policy", "content-security-policy", "csp", "script-src", "frame-src")
_DOMAIN_KEYWORDS = ("origin", "domain", "not allowed", "referer", "referrer")
_DOMAIN_CODES = ("idpiframe_initialization_failed", "origin_mismatch", "redirect_uri_mismatch")
_ACCESS_DENIED_CODES = ("access_denied", "popup_closed_by_user")
_QUOTA_KEYWORDS = (
    "quota",
    "ratelimitexceeded",
    "userratelimitexceeded",
    "dailylimitexceeded",
    "rate limit exceeded",
    "limit exceeded",
    "storagequotaexceeded",
)
_NETWORK_KEYWORDS = ("network", "connection", "failed to fetch", "unable to find the server")

_NETWORK_EXCEPTIONS = (
    requests.ConnectionError,
    requests.Timeout,
    httplib2.ServerNotFoundError,
    ConnectionError,
    socket.timeout,
    socket.gaierror,
)

# Categories whose state-driven default wins over message heuristics.
_STATE_CATEGORIES = {
    InitState.LOADING_SCRIPT: ErrorCategory.SCRIPT_LOAD_FAILED,
    InitState.LOADING_MODULES: ErrorCategory.MODULE_LOAD_FAILED,
}


def _mask(value: str, keep: int = 6) -> str:
    if not value:
        return "<missing>"
    return value[:keep] + "..."


def _message_of(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, dict):
        return str(raw.get("message") or raw.get("details") or "")
    message = getattr(raw, "message", None)
    if isinstance(message, str) and message:
        return message
    # HttpError: str() also dumps the error details, whose "domain" field is noise
    reason = getattr(raw, "reason", None)
    if isinstance(reason, str) and reason:
        return reason
    return str(raw)


def _code_of(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, dict):
        return str(raw.get("error") or raw.get("code") or "")
    code = getattr(raw, "error", None) or getattr(raw, "code", None)
    return str(code) if isinstance(code, (str, int)) else ""


def _status_of(raw: Any) -> Optional[int]:
    status = getattr(raw, "status_code", None) or getattr(getattr(raw, "resp", None), "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class ErrorClassifier:
    """Maps raw failures onto the closed ErrorCategory taxonomy.

    Classification is a pure function of the raw error, the optional
    initialization state, and the client configuration (used only to fill
    in remediation text).
    """

    def __init__(self, config: Optional[ClientConfig] = None) -> None:
        self._config = config or ClientConfig()

    def classify(self, raw: Any, state: Optional[InitState] = None) -> ErrorInfo:
        """Classify a raw error.

        Args:
            raw: Anything raised or reported by the SDK or transport,
                including None and empty-message exceptions.
            state: Initialization state active when the error happened.

        Returns:
            ErrorInfo with exactly one category.
        """
        if isinstance(raw, DriveClientError):
            return raw.info

        category = self._category_for(raw, state)
        return self.info(category, raw=raw, state=state)

    def info(
        self,
        category: ErrorCategory,
        raw: Any = None,
        state: Optional[InitState] = None,
    ) -> ErrorInfo:
        """Build the ErrorInfo for a known category."""
        message, remediation = self._texts(category)
        return ErrorInfo(
            category=category,
            message=message,
            remediation=remediation,
            raw=raw,
            stage=state.value if state is not None else None,
        )

    def _category_for(self, raw: Any, state: Optional[InitState]) -> ErrorCategory:
        message = _message_of(raw).strip()
        lowered = message.lower()
        code = _code_of(raw).lower()
        status = _status_of(raw)

        if any(keyword in lowered for keyword in _CSP_KEYWORDS):
            return ErrorCategory.CSP_BLOCKED

        # Loading failures carry no reliable discriminant beyond the step itself.
        if state in _STATE_CATEGORIES:
            return _STATE_CATEGORIES[state]

        if code in _DOMAIN_CODES or any(keyword in lowered for keyword in _DOMAIN_KEYWORDS):
            return ErrorCategory.DOMAIN_NOT_AUTHORIZED

        if code in _ACCESS_DENIED_CODES or any(c in lowered for c in _ACCESS_DENIED_CODES):
            return ErrorCategory.ACCESS_DENIED

        if "popup" in code or "popup" in lowered:
            return ErrorCategory.POPUP_BLOCKED

        if status == 429 or any(keyword in lowered for keyword in _QUOTA_KEYWORDS):
            return ErrorCategory.QUOTA_EXCEEDED

        if status in (401, 403) or type(raw).__name__ == "RefreshError":
            return ErrorCategory.ACCESS_DENIED

        if isinstance(raw, _NETWORK_EXCEPTIONS) or any(k in lowered for k in _NETWORK_KEYWORDS):
            return ErrorCategory.NETWORK_ERROR

        # The SDK fails without any message when the origin is not authorized.
        if not message and not code and state in HANDSHAKE_STATES:
            return ErrorCategory.DOMAIN_NOT_AUTHORIZED

        return ErrorCategory.UNKNOWN

    def _texts(self, category: ErrorCategory) -> tuple[str, str]:
        origin = self._config.origin
        client_id = self._config.client_id or "YOUR_CLIENT_ID"

        if category is ErrorCategory.NOT_CONFIGURED:
            return (
                "Google Drive credentials are not configured.",
                "Set GOOGLE_DRIVE_API_KEY and GOOGLE_DRIVE_CLIENT_ID (or the 'client' "
                "section of the configuration file), then restart the application.",
            )
        if category is ErrorCategory.SCRIPT_LOAD_FAILED:
            return (
                "The Google API client could not be loaded.",
                "Check your internet connection and that nothing blocks "
                "www.googleapis.com, then try again.",
            )
        if category is ErrorCategory.MODULE_LOAD_FAILED:
            return (
                "The Google API client modules failed to load.",
                "Check your internet connection and try again. If the problem "
                "persists, reinstall google-api-python-client and google-auth-oauthlib.",
            )
        if category is ErrorCategory.MODULE_LOAD_TIMEOUT:
            return (
                "Timed out while loading the Google API client modules.",
                "Check your internet connection and try again.",
            )
        if category is ErrorCategory.DOMAIN_NOT_AUTHORIZED:
            return (
                f"The origin {origin} is not authorized for this Google OAuth client.",
                "To fix this:\n"
                f"1. Go to: {CONSOLE_CREDENTIALS_URL}\n"
                f"2. Edit OAuth 2.0 Client ID: {client_id}\n"
                f'3. Add to "Authorized JavaScript origins": {origin}\n'
                f'4. Add to "Authorized redirect URIs": {origin}\n'
                "5. Save and wait 5-10 minutes for the change to propagate",
            )
        if category is ErrorCategory.POPUP_BLOCKED:
            return (
                "The Google sign-in window could not be opened.",
                "Allow popups for this site (or make a web browser available) "
                "and sign in again.",
            )
        if category is ErrorCategory.ACCESS_DENIED:
            return (
                "Access to Google Drive was not granted.",
                "Sign in again and accept the requested Google Drive permission.",
            )
        if category is ErrorCategory.QUOTA_EXCEEDED:
            return (
                "Google Drive quota or rate limit exceeded.",
                "Wait a few minutes before retrying, or free up Drive storage.",
            )
        if category is ErrorCategory.CSP_BLOCKED:
            return (
                "The Google API was blocked by the content security policy.",
                "Allow https://apis.google.com and https://accounts.google.com in the "
                "script-src and frame-src directives of the content security policy.",
            )
        if category is ErrorCategory.NETWORK_ERROR:
            return (
                "Google Drive could not be reached.",
                "Check your internet connection and try again.",
            )
        if category is ErrorCategory.INIT_TIMEOUT:
            return (
                "Google Drive took too long to start.",
                "Please try again.",
            )
        return (
            "Something went wrong while talking to Google Drive.",
            "Please try again. Contact support if the problem persists.",
        )

    def describe_config(self) -> dict[str, Any]:
        """Masked configuration summary for log context."""
        return {
            "api_key": _mask(self._config.api_key, keep=3),
            "client_id": _mask(self._config.client_id, keep=10),
            "origin": self._config.origin,
        }
