from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union


BBox = Tuple[float, float, float, float]

# Property keys the renderer round-trips back to us on hit-testing.
ROLE_KEY = "_role"
ADDRESS_ID_KEY = "_addressId"


@dataclass(frozen=True)
class MainRole:
    address_id: str
    kind: str = field(default="main", init=False)


@dataclass(frozen=True)
class SurroundingRole:
    kind: str = field(default="surrounding", init=False)


@dataclass(frozen=True)
class ViewportRole:
    kind: str = field(default="viewport", init=False)


ParcelRole = Union[MainRole, SurroundingRole, ViewportRole]


def role_to_properties(role: ParcelRole) -> Dict[str, Any]:
    out: Dict[str, Any] = {ROLE_KEY: role.kind}
    if isinstance(role, MainRole):
        out[ADDRESS_ID_KEY] = role.address_id
    return out


def role_from_properties(properties: Optional[Mapping[str, Any]]) -> Optional[ParcelRole]:
    """Recover the role tag from a renderer hit's property bag.

    Unknown or missing tags (basemap features, other layers) return None.
    """

    if not isinstance(properties, Mapping):
        return None
    kind = properties.get(ROLE_KEY)
    if kind == "main":
        address_id = properties.get(ADDRESS_ID_KEY)
        if address_id in (None, ""):
            return None
        return MainRole(address_id=str(address_id))
    if kind == "surrounding":
        return SurroundingRole()
    if kind == "viewport":
        return ViewportRole()
    return None


@dataclass(frozen=True)
class ParcelFeature:
    """Render-ready polygon with its role.

    `id` is a render id, dense within its own collection and reassigned on
    every rebuild. It is not an identity; use the fingerprint for that.
    """

    geometry: Dict[str, Any]
    role: ParcelRole
    properties: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None

    @property
    def is_main(self) -> bool:
        return isinstance(self.role, MainRole)

    @property
    def address_id(self) -> Optional[str]:
        return self.role.address_id if isinstance(self.role, MainRole) else None

    def with_id(self, render_id: int) -> "ParcelFeature":
        return replace(self, id=render_id)

    def to_geojson_feature(self) -> Dict[str, Any]:
        props = dict(self.properties)
        props.update(role_to_properties(self.role))
        out: Dict[str, Any] = {
            "type": "Feature",
            "geometry": copy.deepcopy(self.geometry),
            "properties": props,
        }
        if self.id is not None:
            out["id"] = self.id
        return out


def polygon_feature(
    normalized: Mapping[str, Any],
    role: ParcelRole,
    extra_properties: Optional[Mapping[str, Any]] = None,
) -> ParcelFeature:
    """Wrap a normalized Feature dict (see parcels.boundary) with a role."""

    props = dict(normalized.get("properties") or {})
    # Stale role tags from a previous round-trip must not leak through.
    props.pop(ROLE_KEY, None)
    props.pop(ADDRESS_ID_KEY, None)
    if extra_properties:
        props.update(extra_properties)
    geometry = normalized["geometry"]
    return ParcelFeature(
        geometry={
            "type": "Polygon",
            "coordinates": copy.deepcopy(geometry["coordinates"]),
        },
        role=role,
        properties=props,
    )


def parse_bbox(raw: Union[str, Sequence[float]]) -> BBox:
    """Accept "minLon,minLat,maxLon,maxLat" or four numbers."""

    parts = [p.strip() for p in (raw or "").split(",")] if isinstance(raw, str) else list(raw)
    if len(parts) != 4:
        raise ValueError("bbox must be minLon,minLat,maxLon,maxLat")
    min_lon, min_lat, max_lon, max_lat = [float(p) for p in parts]
    if not all(math.isfinite(v) for v in (min_lon, min_lat, max_lon, max_lat)):
        raise ValueError("bbox must be finite")
    if max_lon < min_lon or max_lat < min_lat:
        raise ValueError("bbox is invalid")
    return (min_lon, min_lat, max_lon, max_lat)


def format_bbox(bbox: BBox) -> str:
    return ",".join(repr(float(v)) for v in bbox)


def contains_bbox(inner: BBox, outer: BBox, tolerance: float = 0.0005) -> bool:
    return (
        inner[0] >= outer[0] - tolerance
        and inner[1] >= outer[1] - tolerance
        and inner[2] <= outer[2] + tolerance
        and inner[3] <= outer[3] + tolerance
    )
