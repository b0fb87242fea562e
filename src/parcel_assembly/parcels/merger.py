from __future__ import annotations

from typing import AbstractSet, Iterable, List

from parcel_assembly.parcels.features import ParcelFeature
from parcel_assembly.parcels.fingerprint import fingerprint


def assign_render_ids(features: Iterable[ParcelFeature]) -> List[ParcelFeature]:
    """Return copies numbered 0..n-1 in order. Inputs are left untouched."""

    return [feature.with_id(idx) for idx, feature in enumerate(features)]


def merge_surrounding(
    main_fingerprints: AbstractSet[str],
    surrounding: Iterable[ParcelFeature],
    viewport: Iterable[ParcelFeature],
) -> List[ParcelFeature]:
    """Build the render-ready surrounding collection.

    Boundary-derived surrounding parcels come first, then viewport parcels
    not already present. Anything matching a main parcel is dropped. The
    whole list is renumbered, so ids only mean something until the next merge.
    """

    seen = set(main_fingerprints)
    merged: List[ParcelFeature] = []
    for source in (surrounding, viewport):
        for feature in source:
            fp = fingerprint(feature)
            if fp in seen:
                continue
            seen.add(fp)
            merged.append(feature)
    return assign_render_ids(merged)
