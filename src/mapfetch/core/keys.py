"""Shared activity-log field keys to avoid magic strings across loaders."""

from __future__ import annotations

# Common activity fields
K_URL = "url"
K_ERROR = "error"
K_REASON = "reason"
K_EXTENT = "extent"
K_DATA = "data"
K_TOKEN_ID = "token_id"
K_LOCATION = "location"
K_DEFAULT_URL = "default_url"
