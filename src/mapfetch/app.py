"""Viewer controller: admission, loader dispatch and submission state."""

from __future__ import annotations

import logging
from typing import Optional

from .core.keys import K_DEFAULT_URL, K_ERROR, K_REASON, K_URL
from .interfaces import ActivityLogger, LayerFactory, MapLayer, StatusSink
from .workflows.activity_log import ActivityLog
from .workflows.admission import validate_url
from .workflows.coordinator import LoadCoordinator
from .workflows.loaders import STATUS_REJECTED, LoadOutcome, StacLoader, TileJsonLoader
from .workflows.tilejson_params import AdvancedTileJsonParams, apply_advanced_tilejson_params, is_tilejson_url
from .workflows.viewer_config import ViewerConfig

logger = logging.getLogger(__name__)


class ViewerApp:
    """Accepts URL submissions and routes them to the TileJSON or STAC loader.

    Both loaders share one `LoadCoordinator`, so any new submission supersedes
    whatever is in flight regardless of resource type.
    """

    def __init__(
        self,
        map_layer: MapLayer,
        status: StatusSink,
        layer_factory: LayerFactory,
        activity: Optional[ActivityLogger] = None,
        config: Optional[ViewerConfig] = None,
        coordinator: Optional[LoadCoordinator] = None,
    ) -> None:
        self.config = config or ViewerConfig()
        self.status = status
        self.activity = activity or ActivityLog(
            self.config.log_endpoint,
            verbose=self.config.log_verbose,
            user_agent=self.config.user_agent,
        )
        self.coordinator = coordinator or LoadCoordinator()
        self.tilejson_loader = TileJsonLoader(
            map_layer, status, self.coordinator, layer_factory, self.activity, self.config
        )
        self.stac_loader = StacLoader(map_layer, status, self.coordinator, layer_factory, self.activity, self.config)
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def _set_idle(self) -> None:
        self._busy = False

    async def load_data(
        self,
        url: str,
        *,
        recenter: bool = True,
        advanced: Optional[AdvancedTileJsonParams] = None,
    ) -> LoadOutcome:
        self._busy = True
        url = (url or "").strip()

        verdict = validate_url(url, self.config.base_context)
        if not verdict.valid:
            # A rejected submission still replaces whatever load is in flight.
            self.coordinator.cancel_current()
            message = verdict.error or "Invalid URL."
            self.status.set_status(message, "error")
            try:
                self.activity.record(
                    "url_rejected",
                    {K_URL: url, K_REASON: verdict.reason.value if verdict.reason else None, K_ERROR: message},
                )
            except Exception:
                logger.debug("activity record failed for url_rejected", exc_info=True)
            self._set_idle()
            return LoadOutcome(url, STATUS_REJECTED, verdict.reason, message)

        target = verdict.normalized_url or url
        if is_tilejson_url(target):
            final_url = apply_advanced_tilejson_params(target, advanced)
            return await self.tilejson_loader.load(final_url, recenter=recenter, on_complete=self._set_idle)
        return await self.stac_loader.load(target, recenter=recenter, on_complete=self._set_idle)

    async def load_initial(self) -> LoadOutcome:
        self.activity.record("page_loaded", {K_DEFAULT_URL: self.config.default_url})
        return await self.load_data(self.config.default_url)

    def dispose(self) -> None:
        self.coordinator.cancel_current()
        self._busy = False
