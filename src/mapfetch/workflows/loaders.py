from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

import aiohttp

from ..core.keys import K_DATA, K_ERROR, K_EXTENT, K_LOCATION, K_TOKEN_ID, K_URL
from ..errors import ErrorKind, LoadError
from ..interfaces import ActivityLogger, Extent, LayerFactory, MapLayer, RenderableLayer, StatusSink
from .activity_log import ActivityLog
from .admission import validate_url
from .coordinator import LoadCoordinator, LoadToken, TokenState
from .viewer_config import HDR_ACCEPT, STAC_ACCEPT, TILEJSON_ACCEPT, ViewerConfig

logger = logging.getLogger(__name__)

STATUS_LOADED = "loaded"
STATUS_FAILED = "failed"
STATUS_TIMED_OUT = "timed_out"
STATUS_SUPERSEDED = "superseded"
STATUS_REJECTED = "rejected"

TIMEOUT_MESSAGE = "Operation timed out."
REDIRECT_STATUSES = {301, 302, 303, 307, 308}

CompleteHook = Optional[Callable[[], None]]


@dataclass
class LoadOutcome:
    """Result of one load attempt as seen by the caller."""

    url: str
    status: str
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    details: Any = None
    token_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_LOADED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"url": self.url, "status": self.status}
        if self.kind is not None:
            payload["kind"] = self.kind.value
        if self.message:
            payload["message"] = self.message
        if self.token_id is not None:
            payload["token_id"] = self.token_id
        if self.details is not None:
            payload["details"] = self.details
        return payload


def _notify(hook: CompleteHook) -> None:
    if hook is None:
        return
    try:
        hook()
    except Exception:
        logger.debug("on_complete hook failed", exc_info=True)


def _valid_extent(value: Any) -> Optional[Extent]:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return None
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
        return None
    return [float(v) for v in value]


class LoaderBase:
    """Shared fetch, timeout and stale-result handling for resource loaders.

    Subclasses implement `_load`, raising `LoadError` for reportable failures
    and returning `self._discarded(...)` whenever `_still_current` is False
    after a suspension point.
    """

    action = "load"
    label = "resource"
    accept = TILEJSON_ACCEPT
    fetch_error_message = "Failed to load resource."

    def __init__(
        self,
        map_layer: MapLayer,
        status: StatusSink,
        coordinator: LoadCoordinator,
        layer_factory: LayerFactory,
        activity: Optional[ActivityLogger] = None,
        config: Optional[ViewerConfig] = None,
    ) -> None:
        self.map_layer = map_layer
        self.status = status
        self.coordinator = coordinator
        self.layer_factory = layer_factory
        self.config = config or ViewerConfig()
        self.activity = activity or ActivityLog(
            self.config.log_endpoint,
            verbose=self.config.log_verbose,
            user_agent=self.config.user_agent,
        )

    async def load(self, url: str, *, recenter: bool = True, on_complete: CompleteHook = None) -> LoadOutcome:
        if not url:
            message = f"Please enter a {self.label} URL."
            self.status.set_status(message, "error")
            _notify(on_complete)
            return LoadOutcome(url or "", STATUS_FAILED, ErrorKind.INVALID_INPUT, message)

        self._record(f"{self.action}_load_attempt", {K_URL: url})
        self.status.show_loading(f"Loading {self.label}...", "Fetching data...")
        self.status.set_status(f"Loading {self.label}...")
        self.map_layer.remove_layer()

        token = self.coordinator.create_token(
            self.config.timeout,
            on_timeout=self._timeout_handler(url, on_complete),
            label=f"{self.action} {url}",
        )
        try:
            outcome = await self._load(url, token, recenter=recenter)
        except LoadError as exc:
            return self._fail(url, token, exc, on_complete)
        except Exception as exc:
            logger.exception("unexpected %s load failure for %s", self.action, url)
            err = LoadError(ErrorKind.FETCH_FAILED, self.fetch_error_message, cause=str(exc))
            return self._fail(url, token, err, on_complete)
        if outcome.status == STATUS_LOADED:
            _notify(on_complete)
        return outcome

    async def _load(self, url: str, token: LoadToken, *, recenter: bool) -> LoadOutcome:
        raise NotImplementedError

    def _still_current(self, token: LoadToken) -> bool:
        return self.coordinator.is_current(token)

    def _discarded(self, url: str, token: LoadToken) -> LoadOutcome:
        if token.state is TokenState.TIMED_OUT:
            logger.debug("discarding result for %s: token %d timed out", url, token.id)
            return LoadOutcome(url, STATUS_TIMED_OUT, ErrorKind.TIMEOUT, TIMEOUT_MESSAGE, token_id=token.id)
        logger.debug("discarding result for %s: token %d superseded", url, token.id)
        return LoadOutcome(url, STATUS_SUPERSEDED, token_id=token.id)

    def _fail(self, url: str, token: LoadToken, exc: LoadError, on_complete: CompleteHook) -> LoadOutcome:
        if not self.coordinator.complete(token):
            return self._discarded(url, token)
        logger.warning("%s load failed for %s: %s", self.action, url, exc.cause)
        self.status.set_status(exc.message, "error", exc.details)
        fields: Dict[str, Any] = {K_URL: url, K_ERROR: exc.cause}
        if exc.details is not None:
            fields[K_DATA] = exc.details
        self._record(exc.event or f"{self.action}_load_error", fields)
        _notify(on_complete)
        return LoadOutcome(url, STATUS_FAILED, exc.kind, exc.message, exc.details, token.id)

    def _loaded(self, url: str, token: LoadToken, extent: Optional[Extent], recenter: bool) -> LoadOutcome:
        if extent is not None and recenter:
            self.map_layer.fit_extent(extent, self.config.fit_options)
            self._record(f"{self.action}_rendered", {K_URL: url, K_EXTENT: list(extent)})
        message = f"Loaded: {url}"
        self.status.set_status(message)
        return LoadOutcome(url, STATUS_LOADED, message=message, token_id=token.id)

    def _timeout_handler(self, url: str, on_complete: CompleteHook) -> Callable[[LoadToken], None]:
        def _on_timeout(token: LoadToken) -> None:
            self.map_layer.remove_layer()
            self.status.set_status(TIMEOUT_MESSAGE, "error")
            self._record(f"{self.action}_timeout", {K_URL: url, K_TOKEN_ID: token.id})
            _notify(on_complete)

        return _on_timeout

    def _record(self, event_name: str, fields: Mapping[str, Any]) -> None:
        try:
            self.activity.record(event_name, dict(fields))
        except Exception:
            logger.debug("activity record failed for %s", event_name, exc_info=True)

    async def _await_layer(self, layer: RenderableLayer) -> Optional[Extent]:
        try:
            return _valid_extent(await layer.ready())
        except LoadError:
            raise
        except Exception as exc:
            raise LoadError(
                ErrorKind.FETCH_FAILED,
                f"Failed to load {self.label} data. Check the URL and CORS settings.",
                cause=str(exc) or "Layer load failed",
                event=f"{self.action}_layer_error",
            ) from exc

    async def _fetch_json(self, url: str) -> Any:
        """GET `url` and decode JSON, following redirects only to admitted URLs."""
        headers = {HDR_ACCEPT: self.accept, "User-Agent": self.config.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        current = url
        try:
            async with aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
                cookie_jar=aiohttp.DummyCookieJar(),
            ) as session:
                for _ in range(self.config.max_redirects + 1):
                    async with session.get(current, allow_redirects=False) as resp:
                        if resp.status in REDIRECT_STATUSES:
                            current = self._follow_redirect(current, resp.headers.get("Location"))
                            continue
                        if not 200 <= resp.status < 300:
                            raise self._fetch_error(f"HTTP {resp.status}: {resp.reason or ''}".strip())
                        self.status.update_progress("Parsing response...")
                        body = await resp.text()
                    try:
                        return json.loads(body)
                    except ValueError as exc:
                        raise self._fetch_error(f"invalid JSON: {exc}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise self._fetch_error(str(exc) or type(exc).__name__) from exc
        raise self._fetch_error("too many redirects")

    def _follow_redirect(self, current: str, location: Optional[str]) -> str:
        if not location:
            raise self._fetch_error("redirect without Location header")
        verdict = validate_url(location, current)
        if not verdict.valid or verdict.normalized_url is None:
            reason = verdict.reason.value if verdict.reason else "rejected"
            raise self._fetch_error(f"redirect blocked ({reason})")
        self._record(f"{self.action}_redirect", {K_URL: current, K_LOCATION: verdict.normalized_url})
        return verdict.normalized_url

    def _fetch_error(self, cause: str) -> LoadError:
        return LoadError(ErrorKind.FETCH_FAILED, self.fetch_error_message, cause=cause)


class TileJsonLoader(LoaderBase):
    action = "tilejson"
    label = "TileJSON"
    accept = TILEJSON_ACCEPT
    fetch_error_message = "Failed to load TileJSON. Check the URL and CORS settings."

    async def _load(self, url: str, token: LoadToken, *, recenter: bool) -> LoadOutcome:
        tilejson = await self._fetch_json(url)
        if not self._still_current(token):
            return self._discarded(url, token)
        if not isinstance(tilejson, dict):
            raise self._fetch_error("TileJSON document is not an object")

        self.status.update_progress("Creating tile layer...")
        extent = _valid_extent(tilejson.get("bounds"))
        try:
            layer = self.layer_factory.tilejson_layer(url, tilejson, extent)
        except Exception as exc:
            raise LoadError(
                ErrorKind.LAYER_CONSTRUCTION_FAILED,
                "Error creating TileJSON layer.",
                cause=str(exc) or "TileJSON layer creation failed",
            ) from exc
        self.map_layer.add_layer(layer)
        self.status.update_progress("Rendering tiles...")
        self._record(f"{self.action}_load_success", {K_URL: url})

        ready_extent = await self._await_layer(layer)
        if not self.coordinator.complete(token):
            return self._discarded(url, token)
        return self._loaded(url, token, ready_extent or extent, recenter)


class StacLoader(LoaderBase):
    action = "stac"
    label = "STAC item"
    accept = STAC_ACCEPT
    fetch_error_message = "Failed to fetch STAC data."

    def _fetch_error(self, cause: str) -> LoadError:
        return LoadError(
            ErrorKind.FETCH_FAILED,
            f"Failed to fetch STAC data: {cause}",
            cause=cause,
            event=f"{self.action}_fetch_error",
        )

    async def _load(self, url: str, token: LoadToken, *, recenter: bool) -> LoadOutcome:
        data = await self._fetch_json(url)
        if not self._still_current(token):
            return self._discarded(url, token)
        if not isinstance(data, dict):
            raise self._fetch_error("response is not a JSON object")

        if data.get("type") == "FeatureCollection" and data.get("features") == []:
            raise LoadError(
                ErrorKind.EMPTY_RESULT,
                "No features found in the response. View details to see raw data.",
                details=data,
                cause="empty FeatureCollection",
                event=f"{self.action}_empty_features",
            )

        self.status.update_progress("Creating STAC layer...")
        try:
            layer = self.layer_factory.stac_layer(url, data)
        except Exception as exc:
            raise LoadError(
                ErrorKind.LAYER_CONSTRUCTION_FAILED,
                "Error creating STAC layer. View details to see the response data.",
                details=data,
                cause=str(exc) or "Unexpected STAC layer creation error",
            ) from exc
        self.map_layer.add_layer(layer)
        self._record(f"{self.action}_load_success", {K_URL: url})

        extent = await self._await_layer(layer)
        if not self.coordinator.complete(token):
            return self._discarded(url, token)
        return self._loaded(url, token, extent, recenter)
