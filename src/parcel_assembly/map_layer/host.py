from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from parcel_assembly.api.schemas import Address
from parcel_assembly.parcels.features import BBox, ParcelRole, role_from_properties


MAIN_SOURCE = "main-parcels"
SURROUNDING_SOURCE = "surrounding-parcels"
INTERACTIVE_SOURCES = (MAIN_SOURCE, SURROUNDING_SOURCE)

DEFAULT_CENTER = (-98.5795, 39.8283)
DEFAULT_ZOOM = 4.0


class MapHost(Protocol):
    """What the engine needs from the map renderer.

    Feature-state is transient per-feature data keyed by (source, id); the
    renderer uses it for hover styling without restyling the whole layer.
    """

    def get_zoom(self) -> float: ...

    def get_bounds(self) -> Optional[BBox]: ...

    def set_feature_state(
        self, source: str, feature_id: int, state: Dict[str, Any]
    ) -> None: ...

    def set_cursor(self, cursor: str) -> None: ...


@dataclass(frozen=True)
class HitFeature:
    source: str
    id: Optional[int]
    properties: Dict[str, Any] = field(default_factory=dict)
    geometry: Optional[Dict[str, Any]] = None

    @property
    def role(self) -> Optional[ParcelRole]:
        return role_from_properties(self.properties)


@dataclass(frozen=True)
class PointerEvent:
    """Features under the cursor, topmost first."""

    features: Sequence[HitFeature] = ()

    @property
    def topmost(self) -> Optional[HitFeature]:
        return self.features[0] if self.features else None


def initial_view(addresses: Sequence[Address]) -> Tuple[Tuple[float, float], float]:
    """Center and zoom for a freshly opened map: mean of the address points."""

    points: List[Tuple[float, float]] = [
        (float(a.longitude), float(a.latitude))
        for a in addresses
        if a.has_coordinates
    ]
    if not points:
        return DEFAULT_CENTER, DEFAULT_ZOOM
    lon = sum(p[0] for p in points) / len(points)
    lat = sum(p[1] for p in points) / len(points)
    zoom = 18.0 if len(points) == 1 else 15.0
    return (lon, lat), zoom
