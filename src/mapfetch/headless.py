"""Console stand-ins for the map, status and layer collaborators.

Used by `mapfetch load` to run the full admission + load pipeline without a
rendering engine: layers are plain records whose extent is read from the
fetched document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

import typer

from .interfaces import Extent


def _bbox_union(boxes: List[List[float]]) -> Optional[List[float]]:
    if not boxes:
        return None
    return [
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    ]


def _as_bbox(value: Any) -> Optional[List[float]]:
    if not isinstance(value, (list, tuple)) or len(value) not in (4, 6):
        return None
    try:
        nums = [float(v) for v in value]
    except (TypeError, ValueError):
        return None
    if len(nums) == 6:
        return [nums[0], nums[1], nums[3], nums[4]]
    return nums


def stac_extent(data: Mapping[str, Any]) -> Optional[List[float]]:
    """Bounding box of a STAC item, or the union over a FeatureCollection."""
    bbox = _as_bbox(data.get("bbox"))
    if bbox is not None:
        return bbox
    boxes = []
    for feature in data.get("features") or []:
        if isinstance(feature, dict):
            fb = _as_bbox(feature.get("bbox"))
            if fb is not None:
                boxes.append(fb)
    return _bbox_union(boxes)


@dataclass
class StaticLayer:
    kind: str
    url: str
    extent: Optional[List[float]] = None

    async def ready(self) -> Optional[Extent]:
        return self.extent


class HeadlessLayerFactory:
    def tilejson_layer(self, url: str, tilejson: Mapping[str, Any], extent: Optional[Extent]) -> StaticLayer:
        return StaticLayer("tilejson", url, list(extent) if extent is not None else None)

    def stac_layer(self, url: str, data: Mapping[str, Any]) -> StaticLayer:
        return StaticLayer("stac", url, stac_extent(data))


@dataclass
class HeadlessMap:
    """Single current-layer slot plus a log of view fits."""

    current: Optional[Any] = None
    fitted: List[List[float]] = field(default_factory=list)

    def add_layer(self, layer: Any) -> None:
        self.current = layer

    def remove_layer(self) -> None:
        self.current = None

    def fit_extent(self, extent: Extent, options: Optional[Mapping[str, Any]] = None) -> None:
        self.fitted.append(list(extent))


class ConsoleStatus:
    def __init__(self, echo: Optional[Callable[..., None]] = None, *, quiet: bool = False) -> None:
        self._echo = echo or typer.echo
        self.quiet = quiet
        self.last: Dict[str, Any] = {}

    def set_status(self, message: str, kind: str = "info", details: Any = None) -> None:
        self.last = {"message": message, "kind": kind, "details": details}
        if not self.quiet:
            self._echo(f"[{kind}] {message}", err=kind == "error")

    def show_loading(self, message: str, progress: Optional[str] = None) -> None:
        if not self.quiet:
            self._echo(f"... {message} {progress or ''}".rstrip(), err=True)

    def update_progress(self, progress: str) -> None:
        if not self.quiet:
            self._echo(f"... {progress}", err=True)
