from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from parcel_assembly.api.schemas import Address, AddressPayload
from parcel_assembly.errors import OptimisticAddFailure
from parcel_assembly.normalize import same_full_address


logger = logging.getLogger("parcels.addresses")

TEMP_PREFIX = "temp-"

SubmitAdd = Callable[[AddressPayload], Awaitable[Address]]
SubmitRemove = Callable[[str], Awaitable[Any]]


def is_temporary(address_id: str) -> bool:
    return str(address_id).startswith(TEMP_PREFIX)


class AddressBook:
    """The project's address list with optimistic add/remove.

    A clicked parcel shows up as a `temp-` address immediately, carrying the
    clicked geometry so the main collection can rebuild without a boundary
    fetch. The backend's answer later swaps it in place or rolls it back.
    Concurrent adds are independent of each other.
    """

    def __init__(
        self,
        addresses: Optional[Sequence[Address]] = None,
        submit_add: Optional[SubmitAdd] = None,
        submit_remove: Optional[SubmitRemove] = None,
        on_change: Optional[Callable[[List[Address]], None]] = None,
        alert: Optional[Callable[[str], None]] = None,
        project_id: Optional[str] = None,
    ):
        self.addresses: List[Address] = list(addresses or [])
        self.submit_add = submit_add
        self.submit_remove = submit_remove
        self.on_change = on_change
        self.alert = alert
        self.project_id = project_id

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(list(self.addresses))

    def _alert(self, message: str) -> None:
        if self.alert is not None:
            self.alert(message)

    def replace_all(self, addresses: Sequence[Address]) -> None:
        self.addresses = list(addresses)
        self._changed()

    def contains_full_address(self, full_address: str) -> bool:
        return any(same_full_address(a.full_address, full_address) for a in self.addresses)

    def _temporary(self, payload: AddressPayload) -> Address:
        return Address(
            id=f"{TEMP_PREFIX}{uuid.uuid4().hex[:12]}",
            project_id=self.project_id,
            street=payload.street,
            city=payload.city,
            state=payload.state,
            zip_code=payload.zip_code,
            full_address=payload.full_address,
            latitude=payload.latitude,
            longitude=payload.longitude,
            boundary_geojson=payload.boundary_geojson,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    async def add(self, payload: AddressPayload) -> Optional[Address]:
        temp = self._temporary(payload)
        self.addresses.append(temp)
        logger.info("Optimistically added %s as %s", payload.full_address, temp.id)
        self._changed()

        if self.submit_add is None:
            return temp

        try:
            confirmed = await self.submit_add(payload)
        except Exception as exc:
            logger.warning("Error adding address from map: %s", exc)
            self.addresses = [a for a in self.addresses if a.id != temp.id]
            self._changed()
            failure = OptimisticAddFailure(temp.id, exc)
            self._alert(str(failure))
            return None

        self.addresses = [confirmed if a.id == temp.id else a for a in self.addresses]
        logger.info("Backend confirmed address %s", confirmed.id)
        self._changed()
        return confirmed

    async def remove(self, address_id: str) -> bool:
        if is_temporary(address_id) or self.submit_remove is None:
            before = len(self.addresses)
            self.addresses = [a for a in self.addresses if a.id != address_id]
            if len(self.addresses) != before:
                self._changed()
            return True

        try:
            await self.submit_remove(address_id)
        except Exception as exc:
            logger.warning("Error removing address %s: %s", address_id, exc)
            self._alert("Failed to remove address. Please try again.")
            return False

        self.addresses = [a for a in self.addresses if a.id != address_id]
        self._changed()
        return True
