"""High-level exports for the mapfetch workflows."""

from .activity_log import ActivityLog
from .address_classifier import BLOCK_RULES, BlockRule, is_blocked, matching_rules
from .admission import ValidationResult, validate_url
from .coordinator import LoadCoordinator, LoadToken, TokenState
from .hostname import normalize_hostname
from .loaders import LoadOutcome, StacLoader, TileJsonLoader
from .tilejson_params import AdvancedTileJsonParams, apply_advanced_tilejson_params, is_tilejson_url
from .viewer_config import ViewerConfig, load_viewer_config_from_env

__all__ = [
    "ActivityLog",
    "BLOCK_RULES",
    "BlockRule",
    "is_blocked",
    "matching_rules",
    "ValidationResult",
    "validate_url",
    "LoadCoordinator",
    "LoadToken",
    "TokenState",
    "normalize_hostname",
    "LoadOutcome",
    "StacLoader",
    "TileJsonLoader",
    "AdvancedTileJsonParams",
    "apply_advanced_tilejson_params",
    "is_tilejson_url",
    "ViewerConfig",
    "load_viewer_config_from_env",
]
