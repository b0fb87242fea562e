from __future__ import annotations

import logging
from typing import AbstractSet, Any, Dict, Iterable, List, Mapping, Optional, Union

from parcel_assembly.parcels.boundary import normalize_boundary
from parcel_assembly.parcels.features import ParcelFeature, SurroundingRole, polygon_feature
from parcel_assembly.parcels.fingerprint import fingerprint


logger = logging.getLogger("parcels.surrounding")


def is_main_flagged(parcel: Mapping[str, Any]) -> bool:
    props = parcel.get("properties")
    return bool(isinstance(props, Mapping) and props.get("is_main_parcel"))


def raw_parcels_from_collection(
    data: Optional[Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]],
) -> List[Dict[str, Any]]:
    """Accept preloaded parcels as a FeatureCollection or a plain list."""

    if not data:
        return []
    if isinstance(data, Mapping):
        features = data.get("features") or []
    else:
        features = data
    return [dict(f) for f in features if isinstance(f, Mapping)]


def build_surrounding(
    candidates: Iterable[Mapping[str, Any]],
    main_fingerprints: AbstractSet[str],
) -> List[ParcelFeature]:
    """Turn raw boundary-service neighbors into Surrounding features.

    Server-flagged main parcels, parcels that are already main by
    fingerprint, and repeats of an earlier candidate are dropped. Property
    bags pass through untouched; the click handler reads address fields
    from them.
    """

    seen = set(main_fingerprints)
    out: List[ParcelFeature] = []
    skipped = 0
    for candidate in candidates:
        if is_main_flagged(candidate):
            continue
        normalized = normalize_boundary(candidate)
        if normalized is None:
            skipped += 1
            continue
        feature = polygon_feature(normalized, SurroundingRole())
        fp = fingerprint(feature)
        if fp in seen:
            continue
        seen.add(fp)
        out.append(feature)
    if skipped:
        logger.debug("Skipped %d surrounding parcels without usable geometry", skipped)
    return out
