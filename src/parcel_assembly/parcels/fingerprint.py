"""Approximate spatial identity for parcels.

None of the upstream datasets share a parcel key, so parcels are matched on
their first outer-ring vertex quantized to FINGERPRINT_DECIMALS places
(~0.1 m). Two distinct parcels that happen to share that vertex collide;
that is a known approximation.
"""

from __future__ import annotations

import math
import uuid
from typing import Any, Iterable, Mapping, Optional, Set, Tuple, Union

from parcel_assembly.parcels.features import ParcelFeature


FINGERPRINT_DECIMALS = 6
FINGERPRINT_EPSILON = 10.0 ** -FINGERPRINT_DECIMALS
_SCALE = 10 ** FINGERPRINT_DECIMALS

UNKEYED_PREFIX = "unkeyed:"


def quantize(value: float) -> int:
    """Round `value` half-up to an integer count of FINGERPRINT_EPSILON."""

    return int(math.floor(float(value) * _SCALE + 0.5))


def _format_fixed(q: int) -> str:
    sign = "-" if q < 0 else ""
    whole, frac = divmod(abs(q), _SCALE)
    return f"{sign}{whole}.{frac:0{FINGERPRINT_DECIMALS}d}"


def _first_vertex(feature: Any) -> Optional[Tuple[float, float]]:
    if isinstance(feature, ParcelFeature):
        geometry = feature.geometry
    elif isinstance(feature, Mapping):
        geometry = feature.get("geometry")
    else:
        return None
    if not isinstance(geometry, Mapping):
        return None
    try:
        pt = geometry["coordinates"][0][0]
        lon, lat = float(pt[0]), float(pt[1])
    except (KeyError, IndexError, TypeError, ValueError):
        return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    return lon, lat


def fingerprint(feature: Union[ParcelFeature, Mapping[str, Any]]) -> str:
    vertex = _first_vertex(feature)
    if vertex is None:
        # Never matches anything, including itself on a later call.
        return f"{UNKEYED_PREFIX}{uuid.uuid4().hex}"
    lon, lat = vertex
    return f"{_format_fixed(quantize(lon))},{_format_fixed(quantize(lat))}"


def fingerprints(features: Iterable[Union[ParcelFeature, Mapping[str, Any]]]) -> Set[str]:
    return {fingerprint(f) for f in features}
