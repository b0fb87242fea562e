import copy
import logging

import pytest

from parcel_assembly.errors import BoundaryParseError
from parcel_assembly.parcels.boundary import normalize_boundary, parse_boundary


RING = [
    [-74.0, 40.0],
    [-73.999, 40.0],
    [-73.999, 40.001],
    [-74.0, 40.001],
    [-74.0, 40.0],
]
WKT = "POLYGON((-74.0 40.0, -73.999 40.0, -73.999 40.001, -74.0 40.001, -74.0 40.0))"


def _shapes():
    props = {"parcel_id": "P-1", "address": "10 Main St"}
    return [
        {"wkt": WKT, "properties": dict(props)},
        {
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [copy.deepcopy(RING)]},
            "properties": dict(props),
        },
        {"type": "Polygon", "coordinates": [copy.deepcopy(RING)], "properties": dict(props)},
    ]


@pytest.mark.parametrize("payload", _shapes())
def test_every_supported_shape_becomes_a_polygon_feature(payload):
    out = normalize_boundary(payload)
    assert out["type"] == "Feature"
    assert out["geometry"]["type"] == "Polygon"
    assert out["geometry"]["coordinates"] == [RING]
    assert out["properties"] == {"parcel_id": "P-1", "address": "10 Main St"}


@pytest.mark.parametrize("payload", _shapes())
def test_normalize_is_idempotent(payload):
    once = normalize_boundary(payload)
    assert normalize_boundary(once) == once


def test_wkt_coordinates_are_lists_not_tuples():
    out = normalize_boundary({"wkt": WKT})
    ring = out["geometry"]["coordinates"][0]
    assert isinstance(ring, list)
    assert all(isinstance(pt, list) for pt in ring)
    assert out["properties"] == {}


@pytest.mark.parametrize("payload", [None, {}, "", []])
def test_empty_payloads_are_none(payload):
    assert normalize_boundary(payload) is None


def test_garbled_wkt_is_logged_and_omitted(caplog):
    caplog.set_level(logging.WARNING, logger="parcels.boundary")
    assert normalize_boundary({"wkt": "POLYGON((not numbers))"}) is None
    assert "Failed to parse boundary" in caplog.text


def test_parse_boundary_raises_on_garbage():
    with pytest.raises(BoundaryParseError):
        parse_boundary({"wkt": "garbage"})
    with pytest.raises(BoundaryParseError):
        parse_boundary({"foo": "bar"})


def test_point_geometry_is_rejected():
    payload = {"type": "Feature", "geometry": {"type": "Point", "coordinates": [-74.0, 40.0]}}
    assert normalize_boundary(payload) is None


def test_malformed_ring_is_rejected():
    payload = {"type": "Polygon", "coordinates": [[["a", "b"], [1, 2]]]}
    assert normalize_boundary(payload) is None


def test_multipolygon_keeps_first_polygon():
    other = [[[-75.0, 41.0], [-74.9, 41.0], [-74.9, 41.1], [-75.0, 41.0]]]
    payload = {
        "type": "Feature",
        "geometry": {"type": "MultiPolygon", "coordinates": [[RING], other]},
        "properties": {},
    }
    out = normalize_boundary(payload)
    assert out["geometry"] == {"type": "Polygon", "coordinates": [RING]}


def test_input_payload_is_not_mutated():
    payload = _shapes()[1]
    before = copy.deepcopy(payload)
    out = normalize_boundary(payload)
    out["geometry"]["coordinates"][0][0][0] = 0.0
    out["properties"]["extra"] = True
    assert payload == before


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_positions_are_rejected(bad):
    ring = copy.deepcopy(RING)
    ring[2] = [bad, 40.001]
    assert normalize_boundary({"type": "Polygon", "coordinates": [ring]}) is None
