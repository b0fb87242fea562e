from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Address(BaseModel):
    """An address in the current project.

    `boundary_geojson` is whatever boundary payload the backend cached for
    the address; see parcels.boundary for the accepted shapes.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    project_id: Optional[str] = None
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    full_address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    boundary_geojson: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        # 0.0 counts as missing, same as the map client.
        return bool(self.latitude) and bool(self.longitude)


class AddressPayload(BaseModel):
    street: str
    city: str
    state: str
    zip_code: str
    full_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    boundary_geojson: Optional[Dict[str, Any]] = None


class AddressValidation(BaseModel):
    model_config = ConfigDict(extra="allow")

    valid: bool = False
    formatted_address: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    suggestions: List[str] = Field(default_factory=list)


class BoundaryResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    address_id: Optional[str] = None
    boundary: Optional[Dict[str, Any]] = None
    surrounding_parcels: Optional[List[Dict[str, Any]]] = None
