from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from parcel_assembly.parcels.features import BBox


class InMemoryMapHost:
    """MapHost that only records state. Used by the CLI and the test suite."""

    def __init__(self, zoom: float = 16.0, bounds: Optional[BBox] = None):
        self.zoom = zoom
        self.bounds = bounds
        self.cursor = "default"
        self.feature_states: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self.state_log: List[Tuple[str, int, Dict[str, Any]]] = []

    def get_zoom(self) -> float:
        return self.zoom

    def get_bounds(self) -> Optional[BBox]:
        return self.bounds

    def set_feature_state(self, source: str, feature_id: int, state: Dict[str, Any]) -> None:
        self.feature_states.setdefault((source, feature_id), {}).update(state)
        self.state_log.append((source, feature_id, dict(state)))

    def set_cursor(self, cursor: str) -> None:
        self.cursor = cursor

    def move_to(self, bounds: BBox, zoom: Optional[float] = None) -> None:
        self.bounds = bounds
        if zoom is not None:
            self.zoom = zoom

    def hovered(self) -> List[Tuple[str, int]]:
        return sorted(
            key for key, state in self.feature_states.items() if state.get("hover")
        )
