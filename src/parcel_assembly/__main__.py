import argparse
import asyncio
import json
import logging
from pathlib import Path

from .api.schemas import Address
from .engine import ParcelAssemblyEngine
from .map_layer.dev_host import InMemoryMapHost
from .map_layer.dev_provider import DEV_DEFAULT_POINT, DevParcelBackend
from .map_layer.registry import get_address_book, get_backend
from .parcels.features import parse_bbox
from .settings import get_settings


def _load_addresses(path):
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("addresses") or []
    if not isinstance(raw, list):
        raise ValueError("--addresses must contain a JSON list of addresses")
    return [Address.model_validate(item) for item in raw]


def _demo_addresses():
    lon, lat = DEV_DEFAULT_POINT
    return [
        Address(
            id="demo-1",
            street="1 Demo Rd",
            city="Demo City",
            state="NJ",
            zip_code="07001",
            full_address="1 Demo Rd, Demo City, NJ 07001",
            latitude=lat,
            longitude=lon,
        )
    ]


async def _run(args, addresses, bbox):
    settings = get_settings()
    if args.demo:
        backend = DevParcelBackend()
        for address in addresses:
            if address.has_coordinates:
                backend.register(address.id, address.longitude, address.latitude)
        owns_backend = False
    else:
        backend = get_backend(settings)
        owns_backend = True

    host = InMemoryMapHost(zoom=args.zoom, bounds=bbox)
    engine = ParcelAssemblyEngine(
        backend,
        host,
        address_book=get_address_book(backend, addresses, project_id=args.project),
        settings=settings,
        owns_backend=owns_backend,
    )
    try:
        await engine.refresh()
        if bbox is not None:
            await engine.on_viewport_settled()
        await engine.settle()
        (lon, lat), zoom = engine.initial_view()
        return {
            "main": engine.main_collection,
            "surrounding": engine.surrounding_collection,
            "view": {"center": [lon, lat], "zoom": zoom},
            "viewport_fetches": engine.viewport.fetch_count,
        }
    finally:
        await engine.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Build main and surrounding parcel collections for a set of addresses",
    )
    parser.add_argument(
        "--addresses",
        default=None,
        help="JSON file with a list of addresses",
    )
    parser.add_argument(
        "--bbox",
        nargs=4,
        type=float,
        default=None,
        metavar=("MIN_LON", "MIN_LAT", "MAX_LON", "MAX_LAT"),
        help="Viewport bbox to fetch nearby parcels for",
    )
    parser.add_argument(
        "--zoom",
        type=float,
        default=16.0,
        help="Viewport zoom used with --bbox",
    )
    parser.add_argument(
        "--project",
        default=None,
        help="Project id that address adds and removals are sent to",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use the offline demo backend (no network)",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Write the collections to a file instead of stdout",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (DEBUG, INFO, etc.)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit one JSON log line per collection",
    )

    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level.upper())

    if args.addresses:
        addresses = _load_addresses(args.addresses)
    elif args.demo:
        addresses = _demo_addresses()
    else:
        parser.error("--addresses is required unless --demo is given")

    bbox = None
    if args.bbox:
        try:
            bbox = parse_bbox(args.bbox)
        except ValueError as exc:
            parser.error(f"--bbox: {exc}")

    result = asyncio.run(_run(args, addresses, bbox))

    payload = json.dumps(result)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
    else:
        print(payload)

    if args.log_json:
        for name in ("main", "surrounding"):
            print(
                json.dumps(
                    {
                        "collection": name,
                        "features": len(result[name]["features"]),
                        "status": "success",
                    }
                )
            )
    summary = {
        "addresses": len(addresses),
        "main": len(result["main"]["features"]),
        "surrounding": len(result["surrounding"]["features"]),
        "viewport_fetches": result["viewport_fetches"],
    }
    print(json.dumps(summary))


def _safe_main():
    try:
        main()
    except SystemExit:
        raise
    except Exception as exc:
        print(json.dumps({"error": str(exc)}))
        raise SystemExit(1)


if __name__ == "__main__":
    _safe_main()
