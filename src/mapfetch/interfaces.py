"""Collaborator contracts for the map, the status display and the activity log.

The rendering engine and UI live outside this package; loaders only talk to
them through these protocols, so a headless console implementation or a test
fake can stand in for the real thing.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

Extent = Sequence[float]


@runtime_checkable
class MapLayer(Protocol):
    """The map's single "current data layer" slot."""

    def add_layer(self, layer: Any) -> None:
        ...

    def remove_layer(self) -> None:
        ...

    def fit_extent(self, extent: Extent, options: Optional[Mapping[str, Any]] = None) -> None:
        ...


@runtime_checkable
class StatusSink(Protocol):
    def set_status(self, message: str, kind: str = "info", details: Any = None) -> None:
        ...

    def show_loading(self, message: str, progress: Optional[str] = None) -> None:
        ...

    def update_progress(self, progress: str) -> None:
        ...


@runtime_checkable
class ActivityLogger(Protocol):
    """Fire-and-forget event recorder; must never raise or block."""

    def record(self, event_name: str, fields: Optional[Mapping[str, Any]] = None) -> None:
        ...


@runtime_checkable
class RenderableLayer(Protocol):
    async def ready(self) -> Optional[Extent]:
        """Resolve once the layer source is ready; raise if it failed to load."""

        ...


@runtime_checkable
class LayerFactory(Protocol):
    """Builds rendering-engine layers from already fetched documents."""

    def tilejson_layer(self, url: str, tilejson: Mapping[str, Any], extent: Optional[Extent]) -> RenderableLayer:
        ...

    def stac_layer(self, url: str, data: Mapping[str, Any]) -> RenderableLayer:
        ...
