from typing import Any, Dict, Protocol

from parcel_assembly.api.schemas import AddressValidation, BoundaryResponse
from parcel_assembly.parcels.features import BBox


class ParcelBackend(Protocol):
    async def get_boundary(self, address_id: str) -> BoundaryResponse: ...

    async def get_nearby_parcels(self, bbox: BBox, limit: int) -> Dict[str, Any]: ...

    async def validate_address(self, query: str) -> AddressValidation: ...
