"""Viewer defaults (limits, ports, timeouts, endpoints, headers).

Centralizes static defaults so the admission gate and loaders carry no
embedded magic values. The address tables and port blocklist are not
runtime-configurable; `ViewerConfig` covers the knobs that are.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

# Admission limits
MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES: FrozenSet[str] = frozenset({"http", "https"})
DEFAULT_PORTS: Dict[str, int] = {"http": 80, "https": 443}
BLOCKED_PORTS: FrozenSet[int] = frozenset({22, 23, 25, 110, 143, 445, 3306, 5432, 6379, 27017})

# Load coordination
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_REDIRECTS = 5

# Endpoints / headers
DEFAULT_URL = (
    "https://planetarycomputer.microsoft.com/api/data/v1/item/tilejson.json"
    "?collection=landsat-c2-l2&item=LC09_L2SP_123043_20250926_02_T1"
    "&assets=red&assets=green&assets=blue"
    "&color_formula=gamma+RGB+2.7%2C+saturation+1.5%2C+sigmoidal+RGB+15+0.55&format=png"
)
DEFAULT_USER_AGENT = "mapfetch/0.1 (+https://github.com/mapfetch)"
HDR_ACCEPT = "Accept"
STAC_ACCEPT = "application/json, application/geo+json"
TILEJSON_ACCEPT = "application/json"

# Map view
DEFAULT_FIT_OPTIONS: Dict[str, Any] = {"padding": [50, 50, 50, 50], "duration": 500}


def _env_int(name: str, default: int = 0) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float = 0.0) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass
class ViewerConfig:
    """Configuration for the viewer controller and its loaders."""

    timeout: float = DEFAULT_TIMEOUT_SECONDS
    base_context: Optional[str] = None
    default_url: str = DEFAULT_URL
    user_agent: str = DEFAULT_USER_AGENT
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    log_endpoint: Optional[str] = None
    log_verbose: bool = False
    fit_options: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_FIT_OPTIONS))


def load_viewer_config_from_env() -> ViewerConfig:
    """Build a `ViewerConfig` from MAPFETCH_* environment variables."""
    timeout = _env_float("MAPFETCH_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT_SECONDS
    base = os.getenv("MAPFETCH_BASE_URL", "").strip() or None
    default_url = os.getenv("MAPFETCH_DEFAULT_URL", "").strip() or DEFAULT_URL
    user_agent = os.getenv("MAPFETCH_USER_AGENT", "").strip() or DEFAULT_USER_AGENT
    endpoint = os.getenv("MAPFETCH_LOG_ENDPOINT", "").strip() or None
    return ViewerConfig(
        timeout=timeout,
        base_context=base,
        default_url=default_url,
        user_agent=user_agent,
        max_redirects=max(0, _env_int("MAPFETCH_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS)),
        log_endpoint=endpoint,
        log_verbose=_env_bool("MAPFETCH_LOG_VERBOSE", "0"),
    )
