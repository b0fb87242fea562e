from __future__ import annotations

import hashlib
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from parcel_assembly.api.schemas import AddressValidation, BoundaryResponse
from parcel_assembly.parcels.features import BBox


DEV_CELL_DEG = 0.0004
DEV_DEFAULT_POINT = (-74.0060, 40.7128)


def _cell_of(lon: float, lat: float) -> Tuple[int, int]:
    return int(math.floor(lon / DEV_CELL_DEG)), int(math.floor(lat / DEV_CELL_DEG))


def _cell_ring(i: int, j: int) -> List[List[float]]:
    x0 = round(i * DEV_CELL_DEG, 7)
    y0 = round(j * DEV_CELL_DEG, 7)
    x1 = round((i + 1) * DEV_CELL_DEG, 7)
    y1 = round((j + 1) * DEV_CELL_DEG, 7)
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1], [x0, y0]]


def _cell_properties(i: int, j: int) -> Dict[str, Any]:
    digest = hashlib.md5(f"{i}:{j}".encode("utf-8")).hexdigest()
    number = 100 + int(digest[:4], 16) % 900
    lon = round((i + 0.5) * DEV_CELL_DEG, 7)
    lat = round((j + 0.5) * DEV_CELL_DEG, 7)
    return {
        "parcel_id": f"DEV-{digest[:10]}",
        "address": f"{number} Demo Rd",
        "city": "Demo City",
        "state": "NJ",
        "zip": "07001",
        "lat": lat,
        "lon": lon,
        "land_use": "Residential",
        "is_main_parcel": False,
    }


def _cell_feature(i: int, j: int) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [_cell_ring(i, j)]},
        "properties": _cell_properties(i, j),
    }


def _ring_wkt(ring: List[List[float]]) -> str:
    return "POLYGON((%s))" % ", ".join(f"{x!r} {y!r}" for x, y in ring)


class DevParcelBackend:
    """Offline backend serving a deterministic grid of square parcels.

    Boundary lookups and viewport queries share the same grid, so the same
    parcel arriving from both sources dedupes the way real data does.
    """

    def __init__(self, locations: Optional[Mapping[str, Tuple[float, float]]] = None):
        self.locations: Dict[str, Tuple[float, float]] = dict(locations or {})
        self.calls: List[Tuple[str, Any]] = []

    def register(self, address_id: str, lon: float, lat: float) -> None:
        self.locations[str(address_id)] = (float(lon), float(lat))

    async def get_boundary(self, address_id: str) -> BoundaryResponse:
        self.calls.append(("get_boundary", address_id))
        lon, lat = self.locations.get(str(address_id), DEV_DEFAULT_POINT)
        ci, cj = _cell_of(lon, lat)
        surrounding = []
        for di in (-1, 0, 1):
            for dj in (-1, 0, 1):
                feat = _cell_feature(ci + di, cj + dj)
                if di == 0 and dj == 0:
                    feat["properties"]["is_main_parcel"] = True
                surrounding.append(feat)
        return BoundaryResponse(
            address_id=str(address_id),
            boundary={
                "wkt": _ring_wkt(_cell_ring(ci, cj)),
                "properties": _cell_properties(ci, cj),
            },
            surrounding_parcels=surrounding,
        )

    async def get_nearby_parcels(self, bbox: BBox, limit: int = 200) -> Dict[str, Any]:
        self.calls.append(("get_nearby_parcels", bbox))
        min_i, min_j = _cell_of(bbox[0], bbox[1])
        max_i, max_j = _cell_of(bbox[2], bbox[3])
        features = []
        for i in range(min_i, max_i + 1):
            for j in range(min_j, max_j + 1):
                if len(features) >= limit:
                    break
                features.append(_cell_feature(i, j))
        return {"type": "FeatureCollection", "features": features}

    async def validate_address(self, query: str) -> AddressValidation:
        self.calls.append(("validate_address", query))
        try:
            lon, lat = [float(p) for p in query.split(",")]
        except ValueError:
            return AddressValidation(valid=False)
        props = _cell_properties(*_cell_of(lon, lat))
        return AddressValidation(
            valid=True,
            street=props["address"],
            city=props["city"],
            state=props["state"],
            zip_code=props["zip"],
            formatted_address=f"{props['address']}, {props['city']}, {props['state']} {props['zip']}",
            latitude=lat,
            longitude=lon,
        )
