"""Drive SDK handle backed by the Google client libraries.

This module adapts google-api-python-client, google-auth and
google-auth-oauthlib to the SDK surface in ``sdk``:

- bootstrap: one shared HTTP session that reaches the discovery directory
- load: lazy import of the client and auth library modules
- client_init: fetch the Drive discovery document with the API key
- auth_init: OAuth installed-app client configuration
- drive_service: Drive v3 resource authorized with an access token

All methods block; the client runs them in worker threads.

Example:
    sdk = GoogleSdk.bootstrap("https://www.googleapis.com/discovery/v1/apis")
    sdk.load(["client", "auth"])
    sdk.client_init(api_key, [discovery_url])
    sdk.auth_init(client_id, scope, client_secret, "http://localhost")
    user = sdk.get_auth_instance().sign_in()
"""

import importlib
import webbrowser
from types import ModuleType
from typing import Any, Dict, List, Optional, Sequence

import requests
import structlog
from requests.adapters import HTTPAdapter

from sipandai.gdrive.sdk import SdkError, SignedInUser

logger = structlog.get_logger()

# Library modules making up each SDK submodule
SDK_MODULES: Dict[str, tuple] = {
    "client": ("googleapiclient.discovery", "googleapiclient.http", "googleapiclient.errors"),
    "auth": ("google.oauth2.credentials", "google_auth_oauthlib.flow"),
}

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

HTTP_TIMEOUT_SECONDS = 10


def _error_from_response(response: requests.Response) -> SdkError:
    """Turn a Google JSON error body into an SdkError."""
    try:
        body = response.json().get("error", {})
    except ValueError:
        body = {}

    if isinstance(body, str):
        return SdkError(error=body, message=body, details=response.text)

    reasons = [d.get("reason", "") for d in body.get("details", []) if isinstance(d, dict)]
    reasons += [e.get("reason", "") for e in body.get("errors", []) if isinstance(e, dict)]
    message = body.get("message", "")
    error = SdkError(
        error=next((r for r in reasons if r), body.get("status", "")),
        message=message,
        details={"reasons": reasons},
        status_code=response.status_code,
    )
    return error


class GoogleAuthInstance:
    """In-memory OAuth session for one client.

    Credentials live only as long as this object; nothing is written to disk.
    """

    def __init__(self, client_config: Dict[str, Any], scopes: List[str], sdk: "GoogleSdk") -> None:
        self._client_config = client_config
        self._scopes = scopes
        self._sdk = sdk
        self._credentials: Optional[Any] = None
        self._account: str = ""

    def is_signed_in(self) -> bool:
        return self._credentials is not None and bool(self._credentials.valid)

    def current_user(self) -> Optional[SignedInUser]:
        if self._credentials is None:
            return None
        return SignedInUser(
            access_token=self._credentials.token,
            expiry=self._credentials.expiry,
            account_identifier=self._account or "unknown",
        )

    def sign_in_silently(self) -> SignedInUser:
        """Return the current user without any interaction."""
        user = self.current_user()
        if user is None or not self.is_signed_in():
            raise SdkError(
                error="immediate_failed",
                message="No active Google session; user interaction is required",
            )
        return user

    def sign_in(self, prompt: str = "select_account") -> SignedInUser:
        """Run the interactive consent flow in the user's browser."""
        try:
            webbrowser.get()
        except webbrowser.Error as e:
            raise SdkError(
                error="popup_blocked_by_browser",
                message="Unable to open the Google sign-in popup: no browser available",
            ) from e

        flow_module = self._sdk.module("google_auth_oauthlib.flow")
        flow = flow_module.InstalledAppFlow.from_client_config(self._client_config, scopes=self._scopes)
        logger.info("starting_oauth_flow", prompt=prompt)
        credentials = flow.run_local_server(port=0, prompt=prompt, open_browser=True)

        self._credentials = credentials
        self._account = self._fetch_account(credentials.token)
        return self.sign_in_silently()

    def sign_out(self) -> None:
        self._credentials = None
        self._account = ""

    def _fetch_account(self, access_token: str) -> str:
        """Fetch the signed-in user's email address."""
        try:
            service = self._sdk.drive_service(access_token)
            about = service.about().get(fields="user(emailAddress)").execute()
            return str(about.get("user", {}).get("emailAddress", "")) or "unknown"
        except Exception as e:
            # Non-fatal: the address is for display only
            logger.warning("account_lookup_failed", error=str(e))
            return "unknown"


class GoogleSdk:
    """SDK handle for the Google Drive v3 API."""

    def __init__(self, source: str, session: Optional[requests.Session] = None) -> None:
        self.source = source
        self._session = session or requests.Session()
        self._modules: Dict[str, ModuleType] = {}
        self._discovery_docs: List[Dict[str, Any]] = []
        self._auth: Optional[GoogleAuthInstance] = None

    @classmethod
    def bootstrap(cls, source: str) -> "GoogleSdk":
        """Create the shared session and check the discovery directory.

        Raises:
            requests.RequestException: If the directory cannot be reached.
            SdkError: If the directory does not list the Drive API.
        """
        session = requests.Session()
        session.mount("https://", HTTPAdapter(max_retries=2))
        response = session.get(
            source,
            params={"name": "drive", "preferred": "true"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )
        if response.status_code >= 400:
            raise _error_from_response(response)
        if not response.json().get("items"):
            raise SdkError(error="not_found", message=f"Drive API not listed at {source}")
        return cls(source, session)

    def module(self, name: str) -> ModuleType:
        """Return a loaded library module."""
        if name not in self._modules:
            raise SdkError(error="module_not_loaded", message=f"SDK module {name} is not loaded")
        return self._modules[name]

    def load(self, modules: Sequence[str]) -> None:
        for name in modules:
            if name not in SDK_MODULES:
                raise SdkError(error="unknown_module", message=f"Unknown SDK module: {name}")
            for module_name in SDK_MODULES[name]:
                self._modules[module_name] = importlib.import_module(module_name)

    def client_init(self, api_key: str, discovery_docs: Sequence[str]) -> None:
        documents = []
        for url in discovery_docs:
            response = self._session.get(url, params={"key": api_key}, timeout=HTTP_TIMEOUT_SECONDS)
            if response.status_code >= 400:
                raise _error_from_response(response)
            documents.append(response.json())
        self._discovery_docs = documents

    def auth_init(self, client_id: str, scope: str, client_secret: str = "", origin: str = "") -> None:
        client_config = {
            "installed": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [origin] if origin else ["http://localhost"],
            }
        }
        flow_module = self.module("google_auth_oauthlib.flow")
        # Rejects malformed client configurations before any sign-in
        flow_module.Flow.from_client_config(client_config, scopes=[scope])
        self._auth = GoogleAuthInstance(client_config, [scope], self)

    def get_auth_instance(self) -> Optional[GoogleAuthInstance]:
        return self._auth

    def drive_service(self, access_token: str) -> Any:
        if not self._discovery_docs:
            raise SdkError(error="client_not_initialized", message="Discovery document not loaded")
        discovery = self.module("googleapiclient.discovery")
        credentials_module = self.module("google.oauth2.credentials")
        credentials = credentials_module.Credentials(token=access_token)
        return discovery.build_from_document(self._discovery_docs[0], credentials=credentials)
