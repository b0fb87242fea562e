"""Boundary payload normalization.

Boundaries reach us in three shapes depending on where they were stored:

* ``{"wkt": "POLYGON((...))", "properties": {...}}`` from the boundary service
* ``{"type": "Feature", "geometry": {...}, "properties": {...}}`` when cached
* ``{"type": "Polygon", "coordinates": [...], "properties": {...}}`` bare geometry

All of them come out as a GeoJSON Polygon Feature, or None.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from shapely import wkt as s_wkt
from shapely.errors import ShapelyError
from shapely.geometry import mapping as s_mapping

from parcel_assembly.errors import BoundaryParseError


logger = logging.getLogger("parcels.boundary")


def _as_lists(obj: Any) -> Any:
    if isinstance(obj, (list, tuple)):
        return [_as_lists(it) for it in obj]
    return obj


def _is_position(pt: Any) -> bool:
    return (
        isinstance(pt, (list, tuple))
        and len(pt) >= 2
        and all(
            isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
            for v in pt[:2]
        )
    )


def _polygon_coordinates(geometry: Mapping[str, Any]) -> List[Any]:
    gtype = geometry.get("type")
    coords = geometry.get("coordinates")
    if gtype == "MultiPolygon":
        if not isinstance(coords, (list, tuple)) or not coords:
            raise BoundaryParseError("empty MultiPolygon")
        coords = coords[0]
    elif gtype != "Polygon":
        raise BoundaryParseError(f"unsupported geometry type {gtype!r}")

    if not isinstance(coords, (list, tuple)) or not coords:
        raise BoundaryParseError("polygon has no rings")
    outer = coords[0]
    if not isinstance(outer, (list, tuple)) or not outer:
        raise BoundaryParseError("polygon outer ring is empty")
    if not all(_is_position(pt) for pt in outer):
        raise BoundaryParseError("polygon outer ring has malformed positions")
    return _as_lists(coords)


def _geometry_from_wkt(text: str) -> Dict[str, Any]:
    try:
        shape = s_wkt.loads(text)
    except (ShapelyError, ValueError, TypeError) as exc:
        raise BoundaryParseError(f"invalid WKT: {exc}") from exc
    return dict(s_mapping(shape))


def _feature(geometry: Mapping[str, Any], properties: Any) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {
            "type": "Polygon",
            "coordinates": _polygon_coordinates(geometry),
        },
        "properties": dict(properties) if isinstance(properties, Mapping) else {},
    }


def parse_boundary(payload: Any) -> Optional[Dict[str, Any]]:
    """Strict variant of `normalize_boundary`; raises BoundaryParseError."""

    if not payload:
        return None
    if not isinstance(payload, Mapping):
        raise BoundaryParseError(f"unrecognized boundary payload {type(payload).__name__}")

    properties = payload.get("properties")

    geometry = payload.get("geometry")
    if geometry:
        if not isinstance(geometry, Mapping):
            raise BoundaryParseError("geometry is not an object")
        return _feature(geometry, properties)

    text = payload.get("wkt")
    if text:
        if not isinstance(text, str):
            raise BoundaryParseError("wkt is not a string")
        return _feature(_geometry_from_wkt(text), properties)

    if payload.get("type") and payload.get("coordinates"):
        return _feature(payload, properties)

    raise BoundaryParseError("unrecognized boundary payload shape")


def normalize_boundary(payload: Any) -> Optional[Dict[str, Any]]:
    """Normalize any supported boundary shape into a Polygon Feature.

    Never raises. Garbled payloads are logged and yield None so the caller
    simply omits that parcel.
    """

    try:
        return parse_boundary(payload)
    except BoundaryParseError as exc:
        logger.warning("Failed to parse boundary: %s", exc)
        return None
