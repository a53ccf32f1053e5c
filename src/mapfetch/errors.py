"""Error taxonomy shared by the admission gate and the loaders."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    MALFORMED_URL = "malformed_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    CREDENTIALS_PRESENT = "credentials_present"
    BLOCKED_ADDRESS = "blocked_address"
    BLOCKED_PORT = "blocked_port"
    FETCH_FAILED = "fetch_failed"
    TIMEOUT = "timeout"
    LAYER_CONSTRUCTION_FAILED = "layer_construction_failed"
    EMPTY_RESULT = "empty_result"


class LoadError(Exception):
    """A load attempt failed in a way the user should be told about.

    `message` is the single human-readable status line; `details` is the
    optional structured payload (e.g. the raw response) shown on demand.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        details: Any = None,
        cause: Optional[str] = None,
        event: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details
        self.cause = cause or message
        self.event = event
