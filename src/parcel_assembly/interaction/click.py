from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Literal, Mapping, Optional

from parcel_assembly.api.schemas import AddressPayload
from parcel_assembly.errors import DuplicateAddress, FetchError, IncompleteParcelData
from parcel_assembly.map_layer.host import HitFeature, PointerEvent
from parcel_assembly.map_layer.providers import ParcelBackend
from parcel_assembly.normalize import collapse_whitespace, format_full_address
from parcel_assembly.parcels.features import (
    ADDRESS_ID_KEY,
    ROLE_KEY,
    MainRole,
    SurroundingRole,
    ViewportRole,
)


logger = logging.getLogger("parcels.click")

AddRequest = Callable[[AddressPayload], Awaitable[Any]]
RemoveRequest = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class ClickResult:
    action: Literal["add", "remove", "ignored", "rejected"]
    address_id: Optional[str] = None
    payload: Optional[AddressPayload] = None
    message: Optional[str] = None


IGNORED = ClickResult(action="ignored")


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    # A zero coordinate is treated as missing, like the rest of the app.
    return out or None


def _text(props: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = props.get(key)
        if value not in (None, ""):
            return collapse_whitespace(str(value))
    return ""


class ClickClassifier:
    def __init__(
        self,
        backend: ParcelBackend,
        has_address: Callable[[str], bool],
        request_add: Optional[AddRequest] = None,
        request_remove: Optional[RemoveRequest] = None,
    ):
        self.backend = backend
        self.has_address = has_address
        self.request_add = request_add
        self.request_remove = request_remove

    async def classify(self, event: PointerEvent) -> ClickResult:
        hit = event.topmost
        if hit is None:
            return IGNORED
        role = hit.role
        if isinstance(role, MainRole):
            if self.request_remove is None:
                return IGNORED
            await self.request_remove(role.address_id)
            return ClickResult(action="remove", address_id=role.address_id)
        if isinstance(role, (SurroundingRole, ViewportRole)):
            if self.request_add is None:
                return IGNORED
            payload = await self.build_payload(hit)
            await self.request_add(payload)
            return ClickResult(action="add", payload=payload)
        return IGNORED

    async def _backfill(self, lon: float, lat: float) -> Dict[str, str]:
        try:
            validation = await self.backend.validate_address(f"{lon},{lat}")
        except FetchError as exc:
            logger.warning("Error fetching address for %s,%s: %s", lon, lat, exc)
            raise IncompleteParcelData("Failed to retrieve address information.") from exc
        fields = {
            "street": validation.street or "",
            "city": validation.city or "",
            "state": validation.state or "",
            "zip_code": validation.zip_code or "",
        }
        if not validation.valid or not all(fields.values()):
            raise IncompleteParcelData(
                "Could not retrieve address information for this parcel."
            )
        return fields

    async def build_payload(self, hit: HitFeature) -> AddressPayload:
        """Address payload for a clicked surrounding parcel.

        Raises IncompleteParcelData or DuplicateAddress; neither leaves any
        state behind.
        """

        props = hit.properties or {}
        fields = {
            "street": _text(props, "address", "street"),
            "city": _text(props, "city"),
            "state": _text(props, "state"),
            "zip_code": _text(props, "zip", "zip_code"),
        }
        lat = _to_float(props.get("lat"))
        lon = _to_float(props.get("lon"))

        if not all(fields.values()) and lat is not None and lon is not None:
            fields = await self._backfill(lon, lat)

        if not all(fields.values()):
            raise IncompleteParcelData("This parcel is missing address information.")

        full_address = _text(props, "full_address") or format_full_address(
            fields["street"], fields["city"], fields["state"], fields["zip_code"]
        )
        if self.has_address(full_address):
            logger.info("Address already in project, skipping: %s", full_address)
            raise DuplicateAddress(full_address)

        boundary = None
        if hit.geometry:
            boundary_props = {
                k: v for k, v in props.items() if k not in (ROLE_KEY, ADDRESS_ID_KEY)
            }
            boundary = {
                "type": "Feature",
                "geometry": dict(hit.geometry),
                "properties": boundary_props,
            }

        return AddressPayload(
            street=fields["street"],
            city=fields["city"],
            state=fields["state"],
            zip_code=fields["zip_code"],
            full_address=full_address,
            latitude=lat,
            longitude=lon,
            boundary_geojson=boundary,
        )
