"""Initialization states of the Drive client."""

from enum import Enum


class InitState(str, Enum):
    """Lifecycle of a client session.

    Transitions are monotonic through the loading and handshake states;
    FAILED only returns to UNINITIALIZED on an explicit reset.
    """

    UNINITIALIZED = "uninitialized"
    LOADING_SCRIPT = "loading_script"
    LOADING_MODULES = "loading_modules"
    INITIALIZING_CLIENT = "initializing_client"
    INITIALIZING_AUTH = "initializing_auth"
    READY = "ready"
    FAILED = "failed"


# States in which a remote handshake is in progress.
HANDSHAKE_STATES = frozenset({InitState.INITIALIZING_CLIENT, InitState.INITIALIZING_AUTH})

# States in which the SDK itself is being loaded.
LOADING_STATES = frozenset({InitState.LOADING_SCRIPT, InitState.LOADING_MODULES})
