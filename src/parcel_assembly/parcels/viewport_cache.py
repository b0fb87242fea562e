"""Viewport-scoped nearby-parcel cache.

Settled viewports above the zoom floor fetch nearby parcels unless the new
bbox lies inside the last fetched one. Results accumulate for the whole
session, keyed by fingerprint, so panning away never drops a parcel.

`last_fetched_bbox` is replaced on every fetch rather than unioned, so
panning back into an area covered two fetches ago fetches it again. The
merge is idempotent, so that is wasted work, not wrong output.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AbstractSet, Callable, Dict, Iterable, Mapping, Optional, Set, Tuple

from parcel_assembly.errors import FetchError
from parcel_assembly.map_layer.host import MapHost
from parcel_assembly.map_layer.providers import ParcelBackend
from parcel_assembly.parcels.boundary import normalize_boundary
from parcel_assembly.parcels.features import BBox, ParcelFeature, ViewportRole, contains_bbox, polygon_feature
from parcel_assembly.parcels.fingerprint import fingerprint
from parcel_assembly.settings import Settings, get_settings


logger = logging.getLogger("parcels.viewport")


class ViewportCache:
    def __init__(
        self,
        host: MapHost,
        backend: ParcelBackend,
        main_fingerprints: Callable[[], AbstractSet[str]],
        on_change: Optional[Callable[[], None]] = None,
        settings: Optional[Settings] = None,
    ):
        self.host = host
        self.backend = backend
        self.main_fingerprints = main_fingerprints
        self.on_change = on_change
        self.settings = settings or get_settings()

        self.last_fetched_bbox: Optional[BBox] = None
        self.accumulated: Dict[str, ParcelFeature] = {}
        self.fetch_count = 0
        self._loading = 0
        self._generation = 0
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def is_loading(self) -> bool:
        return self._loading > 0

    def snapshot(self) -> Tuple[ParcelFeature, ...]:
        return tuple(self.accumulated.values())

    def merge(self, features: Iterable[Mapping[str, Any]]) -> int:
        """Upsert fetched features; returns how many were new.

        Order-independent and idempotent, which is what lets overlapping
        fetches resolve in any order without sequencing.
        """

        main_fps = self.main_fingerprints()
        added = 0
        for raw in features:
            normalized = normalize_boundary(raw)
            if normalized is None:
                continue
            feature = polygon_feature(normalized, ViewportRole())
            fp = fingerprint(feature)
            if fp in main_fps or fp in self.accumulated:
                continue
            self.accumulated[fp] = feature
            added += 1
        return added

    def needs_fetch(self, bbox: BBox) -> bool:
        if self.last_fetched_bbox is None:
            return True
        return not contains_bbox(bbox, self.last_fetched_bbox, self.settings.bbox_tolerance)

    async def on_viewport_settled(self) -> None:
        zoom = self.host.get_zoom()
        if zoom is None or zoom < self.settings.min_zoom:
            return
        bbox = self.host.get_bounds()
        if bbox is None:
            return
        if not self.needs_fetch(bbox):
            logger.debug("Viewport %s inside last fetched bbox; skipping", bbox)
            return

        generation = self._generation
        self._loading += 1
        try:
            self.fetch_count += 1
            data = await self.backend.get_nearby_parcels(bbox, self.settings.nearby_limit)
            if generation != self._generation:
                logger.debug("Dropping viewport fetch that finished after reset")
                return
            self.last_fetched_bbox = tuple(bbox)  # type: ignore[assignment]
            added = self.merge(data.get("features") or [])
            logger.info(
                "Fetched %d nearby parcels (%d new, %d accumulated)",
                len(data.get("features") or []),
                added,
                len(self.accumulated),
            )
        except FetchError as exc:
            logger.warning("Error fetching viewport parcels: %s", exc)
            return
        finally:
            if generation == self._generation:
                self._loading -= 1

        if added and self.on_change is not None:
            self.on_change()

    async def _debounced(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._timer = None
        # Runs as its own task so a later timer reset cannot cancel it.
        task = asyncio.create_task(self.on_viewport_settled())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def on_viewport_change(self) -> None:
        """Restart the debounce timer. Must be called from a running loop."""

        if not self.settings.viewport_parcels:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._debounced(self.settings.debounce_s))

    async def drain(self) -> None:
        """Wait for the pending timer and every in-flight fetch."""

        while self._timer is not None or self._inflight:
            pending = list(self._inflight)
            if self._timer is not None:
                pending.append(self._timer)
            await asyncio.wait(pending)
            if self._timer is not None and self._timer.done():
                self._timer = None

    def reset(self) -> None:
        """Forget everything. Fetches still in flight are cancelled and ignored."""

        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in self._inflight:
            task.cancel()
        self._inflight = set()
        self._loading = 0
        self.last_fetched_bbox = None
        self.accumulated = {}
        self.fetch_count = 0
