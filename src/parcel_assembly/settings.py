from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Engine tuning knobs.

    Defaults MUST match the map client behavior: zoom 15 floor, 500 ms
    debounce, 0.0005 degree containment slack, 200 nearby parcels per fetch,
    one boundary fetch at a time.
    """

    api_base_url: str = "http://localhost:8000/api"
    min_zoom: float = 15
    debounce_ms: int = 500
    bbox_tolerance: float = 0.0005
    nearby_limit: int = 200
    boundary_concurrency: int = 1
    request_timeout_s: float = 30.0
    provider: str = "api"
    viewport_parcels: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_base_url=(
                os.getenv("PARCEL_API_URL") or "http://localhost:8000/api"
            ).rstrip("/"),
            min_zoom=_env_float("PARCEL_MIN_ZOOM", 15),
            debounce_ms=max(_env_int("PARCEL_VIEWPORT_DEBOUNCE_MS", 500), 0),
            bbox_tolerance=_env_float("PARCEL_BBOX_TOLERANCE", 0.0005),
            nearby_limit=max(_env_int("PARCEL_NEARBY_LIMIT", 200), 1),
            boundary_concurrency=max(_env_int("PARCEL_BOUNDARY_CONCURRENCY", 1), 1),
            request_timeout_s=_env_float("PARCEL_REQUEST_TIMEOUT_S", 30.0),
            provider=(os.getenv("PARCEL_PROVIDER") or "api").strip().lower(),
            viewport_parcels=_env_bool("PARCEL_FEATURE_VIEWPORT", True),
        )

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Test helper to force env re-read."""

    get_settings.cache_clear()
