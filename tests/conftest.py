import asyncio
import os
import socket
import sys
import urllib.request
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

# Prefer repo sources over any installed package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from parcel_assembly.api.schemas import Address, AddressValidation, BoundaryResponse  # noqa: E402
from parcel_assembly.errors import FetchError  # noqa: E402
from parcel_assembly.map_layer.dev_host import InMemoryMapHost  # noqa: E402
from parcel_assembly.settings import Settings  # noqa: E402


def _blocked(*args, **kwargs):
    raise RuntimeError("Network access blocked in tests")


@pytest.fixture(autouse=True)
def block_network(monkeypatch):
    if os.getenv("LIVE") == "1":
        return

    real_connect = socket.socket.connect

    def guarded_connect(sock, address):
        host = address[0]
        if host not in ("127.0.0.1", "localhost"):
            raise RuntimeError("Network access blocked in tests")
        return real_connect(sock, address)

    async def blocked_transport(self, request):
        raise RuntimeError("Network access blocked in tests")

    monkeypatch.setattr(socket.socket, "connect", guarded_connect)
    monkeypatch.setattr(urllib.request, "urlopen", _blocked)
    # httpx.MockTransport is unaffected; only real sockets are refused.
    monkeypatch.setattr(httpx.AsyncHTTPTransport, "handle_async_request", blocked_transport)


def square(lon: float, lat: float, size: float = 0.0001, /, **properties: Any) -> Dict[str, Any]:
    # Positional-only so parcel properties named lon/lat can be passed through.
    ring = [
        [lon, lat],
        [lon + size, lat],
        [lon + size, lat + size],
        [lon, lat + size],
        [lon, lat],
    ]
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring]},
        "properties": dict(properties),
    }


def square_wkt(lon: float, lat: float, size: float = 0.0001) -> str:
    ring = square(lon, lat, size)["geometry"]["coordinates"][0]
    return "POLYGON((%s))" % ", ".join(f"{x!r} {y!r}" for x, y in ring)


class RecordingBackend:
    """Scriptable ParcelBackend that records every call."""

    def __init__(self):
        self.boundaries: Dict[str, Any] = {}
        self.nearby: List[Dict[str, Any]] = []
        self.validations: Dict[str, AddressValidation] = {}
        self.calls: List[tuple] = []
        self.fail_boundary: set = set()
        self.fail_nearby = False
        self.nearby_gate: Optional[asyncio.Event] = None
        self.delays: Dict[str, float] = {}

    async def get_boundary(self, address_id: str) -> BoundaryResponse:
        self.calls.append(("get_boundary:start", address_id))
        delay = self.delays.get(address_id)
        if delay:
            await asyncio.sleep(delay)
        else:
            await asyncio.sleep(0)
        self.calls.append(("get_boundary:end", address_id))
        if address_id in self.fail_boundary:
            raise FetchError("boundary service unavailable", status=502)
        data = self.boundaries.get(address_id) or {}
        return BoundaryResponse.model_validate(data)

    async def get_nearby_parcels(self, bbox, limit: int) -> Dict[str, Any]:
        self.calls.append(("get_nearby_parcels", tuple(bbox), limit))
        if self.nearby_gate is not None:
            await self.nearby_gate.wait()
        if self.fail_nearby:
            raise FetchError("nearby parcels unavailable", status=500)
        features = self.nearby(bbox) if callable(self.nearby) else self.nearby
        return {"type": "FeatureCollection", "features": list(features)}

    async def validate_address(self, query: str) -> AddressValidation:
        self.calls.append(("validate_address", query))
        return self.validations.get(query, AddressValidation(valid=False))

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)


@pytest.fixture
def make_square():
    return square


@pytest.fixture
def make_wkt():
    return square_wkt


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def host():
    return InMemoryMapHost(zoom=16.0, bounds=(-74.01, 40.70, -74.00, 40.71))


@pytest.fixture
def settings():
    return Settings(debounce_ms=10)


@pytest.fixture
def make_address():
    def _make(address_id: str = "addr-1", **overrides: Any) -> Address:
        data = {
            "id": address_id,
            "project_id": "proj-1",
            "street": "10 Main St",
            "city": "Newark",
            "state": "NJ",
            "zip_code": "07102",
            "full_address": "10 Main St, Newark, NJ 07102",
            "latitude": 40.7357,
            "longitude": -74.1724,
        }
        data.update(overrides)
        return Address(**data)

    return _make
