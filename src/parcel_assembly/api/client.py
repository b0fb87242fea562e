from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from parcel_assembly.api.schemas import (
    Address,
    AddressPayload,
    AddressValidation,
    BoundaryResponse,
)
from parcel_assembly.errors import FetchError
from parcel_assembly.parcels.features import BBox, format_bbox
from parcel_assembly.settings import Settings, get_settings


logger = logging.getLogger("parcels.api")

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"API request failed: {response.status_code}"


def _parse(model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Unexpected %s payload from %s: %s", model.__name__, endpoint, exc)
        raise FetchError(f"{endpoint} returned an unexpected {model.__name__}") from exc


class ParcelApiClient:
    """Async client for the project/address/parcel REST backend.

    No retries: a failed call surfaces as FetchError and the caller keeps its
    previous state.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_s
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        client = self._ensure_client()
        try:
            response = await client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, endpoint, exc)
            raise FetchError(f"{method} {endpoint} failed: {exc}") from exc
        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning(
                "%s %s returned %s: %s", method, endpoint, response.status_code, detail
            )
            raise FetchError(detail, status=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(f"{method} {endpoint} returned invalid JSON") from exc

    async def get_boundary(self, address_id: str) -> BoundaryResponse:
        endpoint = f"/addresses/{address_id}/boundary"
        data = await self._request("GET", endpoint)
        return _parse(BoundaryResponse, data or {}, endpoint)

    async def get_nearby_parcels(self, bbox: BBox, limit: int = 200) -> Dict[str, Any]:
        data = await self._request(
            "GET",
            "/parcels/nearby",
            params={"bbox": format_bbox(bbox), "limit": int(limit)},
        )
        if not isinstance(data, dict):
            raise FetchError("nearby parcels response is not a FeatureCollection")
        return data

    async def validate_address(self, query: str) -> AddressValidation:
        data = await self._request(
            "POST", "/addresses/validate", json={"address": query}
        )
        return _parse(AddressValidation, data or {}, "/addresses/validate")

    async def add_to_project(self, project_id: str, payload: AddressPayload) -> Address:
        endpoint = f"/projects/{project_id}/addresses"
        data = await self._request(
            "POST", endpoint, json=payload.model_dump(exclude_none=True)
        )
        return _parse(Address, data, endpoint)

    async def delete_address(self, address_id: str) -> Dict[str, Any]:
        data = await self._request("DELETE", f"/addresses/{address_id}")
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
