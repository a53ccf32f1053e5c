"""TileJSON URL detection and "advanced" query-parameter rewriting."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

_ASSET_SPLIT_RE = re.compile(r"[\n,;\s]+")

Pairs = List[Tuple[str, str]]


@dataclass(frozen=True)
class AdvancedTileJsonParams:
    assets: str = ""
    color_formula: str = ""
    tile_format: str = ""
    extra_params: str = ""


def is_tilejson_url(url: Optional[str]) -> bool:
    if not url:
        return False
    return "tilejson" in url.lower()


def _set_param(pairs: Pairs, key: str, value: str) -> Pairs:
    """Replace the first `key` in place and drop the rest; append when absent."""
    out: Pairs = []
    placed = False
    for k, v in pairs:
        if k != key:
            out.append((k, v))
        elif not placed:
            out.append((key, value))
            placed = True
    if not placed:
        out.append((key, value))
    return out


def apply_advanced_tilejson_params(
    url: str,
    params: Optional[AdvancedTileJsonParams] = None,
    base: Optional[str] = None,
) -> str:
    """Return `url` with the viewer's advanced TileJSON parameters applied.

    `assets` replaces any existing assets with one entry per listed name,
    `asset_as_band=True` is always set, and `extra_params` are appended as-is.
    Falls back to the unchanged input on any parse failure.
    """
    params = params or AdvancedTileJsonParams()
    try:
        absolute = urljoin(base, url) if base else url
        parts = urlsplit(absolute)
        pairs: Pairs = parse_qsl(parts.query, keep_blank_values=True)

        assets = (params.assets or "").strip()
        if assets:
            pairs = [(k, v) for k, v in pairs if k != "assets"]
            pairs.extend(("assets", name) for name in _ASSET_SPLIT_RE.split(assets) if name)

        color_formula = (params.color_formula or "").strip()
        if color_formula:
            pairs = _set_param(pairs, "color_formula", color_formula)

        pairs = _set_param(pairs, "asset_as_band", "True")

        tile_format = (params.tile_format or "").strip()
        if tile_format:
            pairs = _set_param(pairs, "tile_format", tile_format)

        extra = (params.extra_params or "").strip().lstrip("?&")
        if extra:
            pairs.extend(parse_qsl(extra, keep_blank_values=True))

        return urlunsplit(parts._replace(query=urlencode(pairs)))
    except Exception as exc:
        logger.warning("failed to apply advanced params to %s: %s", url, exc)
        return url
