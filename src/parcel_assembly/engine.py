from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from parcel_assembly.address_book import AddressBook
from parcel_assembly.api.geojson import to_featurecollection
from parcel_assembly.api.schemas import Address
from parcel_assembly.errors import ParcelInteractionError
from parcel_assembly.interaction.click import AddRequest, ClickClassifier, ClickResult, RemoveRequest
from parcel_assembly.interaction.hover import HoverController
from parcel_assembly.map_layer.host import MAIN_SOURCE, SURROUNDING_SOURCE, MapHost, PointerEvent, initial_view
from parcel_assembly.map_layer.providers import ParcelBackend
from parcel_assembly.map_layer.registry import get_address_book
from parcel_assembly.parcels.features import ParcelFeature
from parcel_assembly.parcels.fingerprint import fingerprint, fingerprints
from parcel_assembly.parcels.main_builder import MainBuildResult, MainParcelBuilder
from parcel_assembly.parcels.merger import merge_surrounding
from parcel_assembly.parcels.surrounding import build_surrounding, raw_parcels_from_collection
from parcel_assembly.parcels.viewport_cache import ViewportCache
from parcel_assembly.settings import Settings, get_settings


logger = logging.getLogger("parcels.engine")


def _log_alert(message: str) -> None:
    logger.warning("Alert: %s", message)


class ParcelAssemblyEngine:
    """Owns the main and surrounding collections for one map view.

    Inputs are the address list (via the AddressBook), viewport settle
    events, and pointer events. Outputs are two GeoJSON collections plus
    side effects on the host (hover feature-state, cursor) and on the
    address book (add/remove requests).
    """

    def __init__(
        self,
        backend: ParcelBackend,
        host: MapHost,
        address_book: Optional[AddressBook] = None,
        settings: Optional[Settings] = None,
        alert: Optional[Callable[[str], None]] = None,
        request_add: Optional[AddRequest] = None,
        request_remove: Optional[RemoveRequest] = None,
        owns_backend: bool = False,
        project_id: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.backend = backend
        self.host = host
        self.alert = alert or _log_alert
        self.owns_backend = owns_backend

        self.address_book = address_book or get_address_book(
            backend, project_id=project_id, alert=self.alert
        )
        if self.address_book.alert is None:
            self.address_book.alert = self.alert
        self._outer_on_change = self.address_book.on_change
        self.address_book.on_change = self._on_addresses_changed

        self.main: List[ParcelFeature] = []
        self.surrounding: List[ParcelFeature] = []
        self._surrounding_base: List[ParcelFeature] = []
        self._main_fps: Set[str] = set()
        self.is_loading_boundaries = False

        self._generation = 0
        self._refreshes: Set[asyncio.Task] = set()

        self.builder = MainParcelBuilder(backend, self.settings)
        self.viewport = ViewportCache(
            host,
            backend,
            main_fingerprints=lambda: self._main_fps,
            on_change=self.rebuild_surrounding,
            settings=self.settings,
        )
        self.hover = HoverController(host)
        self.clicks = ClickClassifier(
            backend,
            has_address=self.address_book.contains_full_address,
            request_add=request_add or self.address_book.add,
            request_remove=request_remove or self.address_book.remove,
        )

    @property
    def addresses(self) -> List[Address]:
        return list(self.address_book.addresses)

    @property
    def main_fingerprints(self) -> Set[str]:
        return set(self._main_fps)

    @property
    def main_collection(self) -> Dict[str, Any]:
        return to_featurecollection(self.main)

    @property
    def surrounding_collection(self) -> Dict[str, Any]:
        return to_featurecollection(self.surrounding)

    def initial_view(self) -> Tuple[Tuple[float, float], float]:
        return initial_view(self.address_book.addresses)

    # Address list -> main/surrounding

    def set_addresses(self, addresses: Iterable[Address]) -> None:
        """Replace the project address list; triggers a refresh on a running loop."""

        self.address_book.replace_all(list(addresses))

    def _on_addresses_changed(self, addresses: List[Address]) -> None:
        if self._outer_on_change is not None:
            self._outer_on_change(addresses)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop; the caller refreshes explicitly.
            return
        task = loop.create_task(self.refresh())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def refresh(self) -> None:
        self._generation += 1
        generation = self._generation
        addresses = list(self.address_book.addresses)

        if self.builder.all_cached(addresses):
            result = self.builder.build_cached(addresses)
            # Supersedes any slower load still in flight.
            self.is_loading_boundaries = False
        else:
            self.is_loading_boundaries = True
            try:
                result = await self.builder.build(addresses)
            finally:
                if generation == self._generation:
                    self.is_loading_boundaries = False

        if generation != self._generation:
            logger.debug("Dropping boundary load superseded by a newer address list")
            return
        self._apply_main(result)

    def _apply_main(self, result: MainBuildResult) -> None:
        self.main = result.main
        self._main_fps = fingerprints(self.main)
        if result.fetched:
            self._surrounding_base = build_surrounding(
                result.surrounding_candidates, self._main_fps
            )
        else:
            # No new neighbors without a fetch; drop the ones that just became main.
            self._surrounding_base = [
                f for f in self._surrounding_base if fingerprint(f) not in self._main_fps
            ]
        if self.hover.hovered and self.hover.hovered[0] == MAIN_SOURCE:
            self.hover.clear()
        self.rebuild_surrounding()

    def seed_surrounding(
        self,
        parcels: Optional[Union[Mapping[str, Any], Iterable[Mapping[str, Any]]]],
    ) -> None:
        """Use surrounding parcels a caller already fetched (e.g. on first add)."""

        raw = raw_parcels_from_collection(parcels)
        seeded = build_surrounding(raw, self._main_fps | fingerprints(self._surrounding_base))
        self._surrounding_base = self._surrounding_base + seeded
        self.rebuild_surrounding()

    def rebuild_surrounding(self) -> None:
        self.surrounding = merge_surrounding(
            self._main_fps, self._surrounding_base, self.viewport.snapshot()
        )
        if self.hover.hovered and self.hover.hovered[0] == SURROUNDING_SOURCE:
            self.hover.clear()

    # Map events

    def on_viewport_change(self) -> None:
        self.viewport.on_viewport_change()

    async def on_viewport_settled(self) -> None:
        await self.viewport.on_viewport_settled()

    def on_pointer_move(self, event: PointerEvent) -> Optional[Dict[str, Any]]:
        return self.hover.on_pointer_move(event)

    def on_pointer_leave(self) -> None:
        self.hover.on_pointer_leave()

    async def on_click(self, event: PointerEvent) -> ClickResult:
        try:
            return await self.clicks.classify(event)
        except ParcelInteractionError as exc:
            self.alert(str(exc))
            return ClickResult(action="rejected", message=str(exc))

    # Lifecycle

    async def settle(self) -> None:
        """Wait until no refresh or viewport fetch is pending."""

        while self._refreshes:
            await asyncio.wait(list(self._refreshes))
        await self.viewport.drain()

    async def close(self) -> None:
        for task in list(self._refreshes):
            task.cancel()
        self._refreshes.clear()
        self._generation += 1
        self.viewport.reset()
        self.hover.clear()
        self.main = []
        self.surrounding = []
        self._surrounding_base = []
        self._main_fps = set()
        self.is_loading_boundaries = False
        if self.owns_backend:
            aclose = getattr(self.backend, "aclose", None)
            if aclose is not None:
                await aclose()
