from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from parcel_assembly.api.schemas import Address, BoundaryResponse
from parcel_assembly.errors import FetchError
from parcel_assembly.map_layer.providers import ParcelBackend
from parcel_assembly.parcels.boundary import normalize_boundary
from parcel_assembly.parcels.features import MainRole, ParcelFeature, polygon_feature
from parcel_assembly.parcels.merger import assign_render_ids
from parcel_assembly.parcels.surrounding import is_main_flagged
from parcel_assembly.settings import Settings, get_settings


logger = logging.getLogger("parcels.main")


@dataclass
class MainBuildResult:
    main: List[ParcelFeature]
    surrounding_candidates: List[Dict[str, Any]] = field(default_factory=list)
    # False when every boundary came from the address cache (fast path).
    fetched: bool = False
    failures: List[str] = field(default_factory=list)


def main_feature(address: Address, payload: Any) -> Optional[ParcelFeature]:
    normalized = normalize_boundary(payload)
    if normalized is None:
        return None
    return polygon_feature(normalized, MainRole(address_id=str(address.id)))


def _candidates(response: BoundaryResponse) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for index, parcel in enumerate(response.surrounding_parcels or []):
        if not isinstance(parcel, dict) or is_main_flagged(parcel):
            continue
        geometry = parcel.get("geometry")
        if not isinstance(geometry, dict) or not geometry.get("coordinates"):
            continue
        props = dict(parcel.get("properties") or {})
        props["_index"] = index
        out.append({**parcel, "properties": props})
    return out


class MainParcelBuilder:
    """Builds the main collection from the project's address list."""

    def __init__(self, backend: ParcelBackend, settings: Optional[Settings] = None):
        self.backend = backend
        self.settings = settings or get_settings()

    @staticmethod
    def all_cached(addresses: Sequence[Address]) -> bool:
        return bool(addresses) and all(a.boundary_geojson for a in addresses)

    def build_cached(self, addresses: Sequence[Address]) -> MainBuildResult:
        main: List[ParcelFeature] = []
        for address in addresses:
            if not address.has_coordinates or not address.boundary_geojson:
                continue
            feature = main_feature(address, address.boundary_geojson)
            if feature is not None:
                main.append(feature)
        return MainBuildResult(main=assign_render_ids(main), fetched=False)

    async def _fetch(self, address: Address) -> Optional[BoundaryResponse]:
        try:
            return await self.backend.get_boundary(str(address.id))
        except FetchError as exc:
            logger.warning("Error loading boundary for address %s: %s", address.id, exc)
            return None

    async def _fetch_all(self, pending: Sequence[Address]) -> List[Optional[BoundaryResponse]]:
        limit = max(int(self.settings.boundary_concurrency), 1)
        if limit == 1:
            # One at a time: the first address's geometry is in hand before
            # the second request starts.
            results = []
            for address in pending:
                results.append(await self._fetch(address))
            return results

        sem = asyncio.Semaphore(limit)

        async def _bounded(address: Address) -> Optional[BoundaryResponse]:
            async with sem:
                return await self._fetch(address)

        # gather keeps argument order regardless of completion order.
        return list(await asyncio.gather(*[_bounded(a) for a in pending]))

    async def build(self, addresses: Sequence[Address]) -> MainBuildResult:
        if self.all_cached(addresses):
            logger.debug("All %d addresses have cached boundaries", len(addresses))
            return self.build_cached(addresses)

        located = [a for a in addresses if a.has_coordinates]
        pending = [a for a in located if not a.boundary_geojson]
        responses = dict(zip([a.id for a in pending], await self._fetch_all(pending)))

        main: List[ParcelFeature] = []
        candidates: List[Dict[str, Any]] = []
        failures: List[str] = []
        for address in located:
            if address.boundary_geojson:
                feature = main_feature(address, address.boundary_geojson)
                if feature is not None:
                    main.append(feature)
                continue
            response = responses.get(address.id)
            if response is None:
                failures.append(str(address.id))
                continue
            if response.boundary:
                feature = main_feature(address, response.boundary)
                if feature is not None:
                    main.append(feature)
            candidates.extend(_candidates(response))

        logger.info(
            "Loaded %d main parcels and %d surrounding candidates (%d fetch failures)",
            len(main),
            len(candidates),
            len(failures),
        )
        return MainBuildResult(
            main=assign_render_ids(main),
            surrounding_candidates=candidates,
            fetched=True,
            failures=failures,
        )
