from typing import Any, List, Optional, Tuple

import pytest

from mapfetch.app import ViewerApp
from mapfetch.workflows.viewer_config import ViewerConfig


class FakeMap:
    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self.current: Optional[Any] = None

    def add_layer(self, layer):
        self.calls.append(("add", layer))
        self.current = layer

    def remove_layer(self):
        self.calls.append(("remove",))
        self.current = None

    def fit_extent(self, extent, options=None):
        self.calls.append(("fit", list(extent)))

    @property
    def added(self) -> List[Any]:
        return [call[1] for call in self.calls if call[0] == "add"]


class FakeStatus:
    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []

    def set_status(self, message, kind="info", details=None):
        self.calls.append(("status", message, kind, details))

    def show_loading(self, message, progress=None):
        self.calls.append(("loading", message, progress))

    def update_progress(self, progress):
        self.calls.append(("progress", progress))

    @property
    def statuses(self) -> List[Tuple[str, str, Any]]:
        return [(c[1], c[2], c[3]) for c in self.calls if c[0] == "status"]


class FakeActivity:
    def __init__(self) -> None:
        self.events: List[Tuple[str, dict]] = []

    def record(self, event_name, fields=None):
        self.events.append((event_name, dict(fields or {})))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]


class FakeLayer:
    def __init__(self, kind: str, url: str, extent=None, error: Optional[Exception] = None, gate=None) -> None:
        self.kind = kind
        self.url = url
        self.extent = extent
        self.error = error
        self.gate = gate

    async def ready(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.extent


class FakeLayerFactory:
    def __init__(self) -> None:
        self.build_error: Optional[Exception] = None
        self.ready_error: Optional[Exception] = None
        self.ready_extent = None
        self.gate = None
        self.built: List[FakeLayer] = []

    def _build(self, kind, url):
        if self.build_error is not None:
            raise self.build_error
        layer = FakeLayer(kind, url, extent=self.ready_extent, error=self.ready_error, gate=self.gate)
        self.built.append(layer)
        return layer

    def tilejson_layer(self, url, tilejson, extent):
        return self._build("tilejson", url)

    def stac_layer(self, url, data):
        return self._build("stac", url)


@pytest.fixture
def fake_map() -> FakeMap:
    return FakeMap()


@pytest.fixture
def fake_status() -> FakeStatus:
    return FakeStatus()


@pytest.fixture
def fake_activity() -> FakeActivity:
    return FakeActivity()


@pytest.fixture
def layer_factory() -> FakeLayerFactory:
    return FakeLayerFactory()


@pytest.fixture
def make_app(fake_map, fake_status, fake_activity, layer_factory):
    def _make(**config_kwargs) -> ViewerApp:
        config = ViewerConfig(**config_kwargs)
        return ViewerApp(fake_map, fake_status, layer_factory, activity=fake_activity, config=config)

    return _make
