import asyncio

from mapfetch.headless import ConsoleStatus, HeadlessLayerFactory, HeadlessMap, stac_extent


def test_stac_extent_from_item_bbox():
    assert stac_extent({"bbox": [1, 2, 3, 4]}) == [1.0, 2.0, 3.0, 4.0]
    assert stac_extent({"bbox": [1, 2, 0, 3, 4, 100]}) == [1.0, 2.0, 3.0, 4.0]


def test_stac_extent_unions_feature_bboxes():
    data = {
        "type": "FeatureCollection",
        "features": [{"bbox": [0, 0, 1, 1]}, {"bbox": [-2, 0.5, 0.5, 3]}, {"geometry": None}, "junk"],
    }
    assert stac_extent(data) == [-2.0, 0.0, 1.0, 3.0]


def test_stac_extent_missing():
    assert stac_extent({"type": "Feature"}) is None
    assert stac_extent({"bbox": ["a", 1, 2, 3]}) is None


def test_headless_factory_and_map():
    factory = HeadlessLayerFactory()
    layer = factory.tilejson_layer("https://x.example.com/tilejson.json", {}, (0, 0, 1, 1))
    assert asyncio.run(layer.ready()) == [0, 0, 1, 1]

    map_layer = HeadlessMap()
    map_layer.add_layer(layer)
    map_layer.fit_extent([0, 0, 1, 1], {"padding": [50, 50, 50, 50]})
    assert map_layer.current is layer
    map_layer.remove_layer()
    assert map_layer.current is None
    assert map_layer.fitted == [[0, 0, 1, 1]]


def test_console_status_routes_errors_to_stderr():
    lines = []
    status = ConsoleStatus(lambda msg, err=False: lines.append((msg, err)))
    status.show_loading("Loading STAC item...", "Fetching data...")
    status.update_progress("Parsing response...")
    status.set_status("Failed", "error", {"raw": 1})
    status.set_status("Loaded: x")
    assert lines == [
        ("... Loading STAC item... Fetching data...", True),
        ("... Parsing response...", True),
        ("[error] Failed", True),
        ("[info] Loaded: x", False),
    ]
    assert status.last == {"message": "Loaded: x", "kind": "info", "details": None}


def test_quiet_console_status_prints_nothing():
    lines = []
    status = ConsoleStatus(lambda msg, err=False: lines.append(msg), quiet=True)
    status.show_loading("x")
    status.set_status("y", "error")
    assert lines == []
    assert status.last["kind"] == "error"


def test_headless_collaborators_satisfy_protocols():
    from mapfetch.interfaces import ActivityLogger, LayerFactory, MapLayer, RenderableLayer, StatusSink
    from mapfetch.workflows.activity_log import ActivityLog

    factory = HeadlessLayerFactory()
    assert isinstance(HeadlessMap(), MapLayer)
    assert isinstance(ConsoleStatus(), StatusSink)
    assert isinstance(ActivityLog(), ActivityLogger)
    assert isinstance(factory, LayerFactory)
    assert isinstance(factory.stac_layer("https://x.example.com/item", {}), RenderableLayer)
