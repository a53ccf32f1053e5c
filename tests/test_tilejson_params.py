from urllib.parse import parse_qsl, urlsplit

import pytest

from mapfetch.workflows.tilejson_params import (
    AdvancedTileJsonParams,
    apply_advanced_tilejson_params,
    is_tilejson_url,
)


def _query(url):
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://x.example.com/api/data/v1/item/tilejson.json?item=a", True),
        ("https://x.example.com/TileJSON", True),
        ("https://x.example.com/stac/items/a", False),
        ("", False),
        (None, False),
    ],
)
def test_is_tilejson_url(url, expected):
    assert is_tilejson_url(url) is expected


def test_defaults_only_force_asset_as_band():
    url = apply_advanced_tilejson_params("https://x.example.com/tilejson.json?item=a&assets=red")
    assert _query(url) == [("item", "a"), ("assets", "red"), ("asset_as_band", "True")]


def test_asset_as_band_replaces_existing_values_in_place():
    url = apply_advanced_tilejson_params("https://x.example.com/tilejson.json?asset_as_band=False&x=1&asset_as_band=no")
    assert _query(url) == [("asset_as_band", "True"), ("x", "1")]


def test_assets_are_split_and_replace_existing():
    params = AdvancedTileJsonParams(assets="B04\nB03; B02,,")
    url = apply_advanced_tilejson_params("https://x.example.com/tilejson.json?assets=visual&item=a", params)
    assert _query(url) == [
        ("item", "a"),
        ("assets", "B04"),
        ("assets", "B03"),
        ("assets", "B02"),
        ("asset_as_band", "True"),
    ]


def test_format_formula_and_extra_params():
    params = AdvancedTileJsonParams(
        color_formula="gamma RGB 2.7",
        tile_format="webp",
        extra_params="?rescale=0,255&nodata=0",
    )
    url = apply_advanced_tilejson_params("https://x.example.com/tilejson.json?color_formula=old", params)
    assert _query(url) == [
        ("color_formula", "gamma RGB 2.7"),
        ("asset_as_band", "True"),
        ("tile_format", "webp"),
        ("rescale", "0,255"),
        ("nodata", "0"),
    ]


def test_relative_url_resolves_against_base():
    url = apply_advanced_tilejson_params("tilejson.json?item=a", base="https://x.example.com/api/")
    assert url.startswith("https://x.example.com/api/tilejson.json?")


def test_unparseable_url_is_returned_unchanged(caplog):
    broken = "http://[not-an-ip/tilejson.json"
    with caplog.at_level("WARNING"):
        assert apply_advanced_tilejson_params(broken, AdvancedTileJsonParams(assets="red")) == broken
    assert any("failed to apply advanced params" in rec.getMessage() for rec in caplog.records)
