import asyncio
import json

import httpx
import pytest

from parcel_assembly.api.client import ParcelApiClient
from parcel_assembly.api.schemas import AddressPayload
from parcel_assembly.errors import FetchError
from parcel_assembly.settings import Settings


def _client(handler):
    return ParcelApiClient(
        base_url="http://parcels.test/api",
        transport=httpx.MockTransport(handler),
        settings=Settings(),
    )


def _run(client, call):
    async def scenario():
        try:
            return await call(client)
        finally:
            await client.aclose()

    return asyncio.run(scenario())


def test_get_boundary_parses_response():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(
            200,
            json={
                "address_id": "a1",
                "boundary": {"wkt": "POLYGON((0 0, 1 0, 1 1, 0 0))"},
                "surrounding_parcels": [{"type": "Feature", "geometry": None, "properties": {}}],
            },
        )

    result = _run(_client(handler), lambda c: c.get_boundary("a1"))

    assert seen == ["/api/addresses/a1/boundary"]
    assert result.boundary["wkt"].startswith("POLYGON")
    assert len(result.surrounding_parcels) == 1


def test_get_boundary_tolerates_null_surrounding():
    def handler(request):
        return httpx.Response(200, json={"boundary": None, "surrounding_parcels": None})

    result = _run(_client(handler), lambda c: c.get_boundary("a1"))
    assert result.boundary is None
    assert result.surrounding_parcels is None


def test_nearby_parcels_sends_bbox_and_limit():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

    data = _run(_client(handler), lambda c: c.get_nearby_parcels((-75.0, 40.0, -74.0, 41.0), 200))

    assert seen == {"bbox": "-75.0,40.0,-74.0,41.0", "limit": "200"}
    assert data["features"] == []


def test_validate_address_posts_query():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={"valid": True, "street": "1 A St", "city": "X", "state": "NJ", "zip_code": "07001"},
        )

    result = _run(_client(handler), lambda c: c.validate_address("-74.1,40.2"))
    assert bodies == [{"address": "-74.1,40.2"}]
    assert result.valid is True
    assert result.zip_code == "07001"


def test_add_to_project_returns_confirmed_address():
    def handler(request):
        assert request.method == "POST"
        assert request.url.path == "/api/projects/p1/addresses"
        body = json.loads(request.content)
        assert "latitude" not in body
        return httpx.Response(200, json={"id": "srv-1", **body})

    payload = AddressPayload(
        street="1 A St", city="X", state="NJ", zip_code="07001", full_address="1 A St, X, NJ 07001"
    )
    address = _run(_client(handler), lambda c: c.add_to_project("p1", payload))
    assert address.id == "srv-1"
    assert address.full_address == "1 A St, X, NJ 07001"


def test_error_detail_becomes_fetch_error_message():
    def handler(request):
        return httpx.Response(404, json={"detail": "Address not found"})

    with pytest.raises(FetchError, match="Address not found") as info:
        _run(_client(handler), lambda c: c.delete_address("missing"))
    assert info.value.status == 404


def test_error_without_detail_reports_status():
    def handler(request):
        return httpx.Response(500, text="Internal Server Error")

    with pytest.raises(FetchError, match="API request failed: 500"):
        _run(_client(handler), lambda c: c.get_boundary("a1"))


def test_transport_failure_becomes_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError):
        _run(_client(handler), lambda c: c.get_nearby_parcels((0.0, 0.0, 1.0, 1.0), 10))


def test_real_network_is_blocked_in_tests():
    client = ParcelApiClient(base_url="http://93.184.216.34/api", settings=Settings())
    with pytest.raises(RuntimeError):
        _run(client, lambda c: c.get_boundary("a1"))


def test_malformed_boundary_payload_becomes_fetch_error():
    def handler(request):
        return httpx.Response(200, json={"boundary": "POLYGON((0 0, 1 0, 1 1, 0 0))"})

    with pytest.raises(FetchError, match="unexpected BoundaryResponse"):
        _run(_client(handler), lambda c: c.get_boundary("a1"))


def test_malformed_confirmation_becomes_fetch_error():
    def handler(request):
        return httpx.Response(200, json={"full_address": "no id here"})

    payload = AddressPayload(
        street="1 A St", city="X", state="NJ", zip_code="07001", full_address="1 A St, X, NJ 07001"
    )
    with pytest.raises(FetchError):
        _run(_client(handler), lambda c: c.add_to_project("p1", payload))
