from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from parcel_assembly.map_layer.host import INTERACTIVE_SOURCES, MapHost, PointerEvent


HoverKey = Tuple[str, int]


class HoverController:
    """Keeps at most one (layer, render id) pair flagged as hovered."""

    def __init__(self, host: MapHost):
        self.host = host
        self.hovered: Optional[HoverKey] = None
        self.hovered_properties: Optional[Dict[str, Any]] = None
        self.cursor = "default"

    def _set_cursor(self, cursor: str) -> None:
        self.cursor = cursor
        self.host.set_cursor(cursor)

    def clear(self) -> None:
        if self.hovered is not None:
            source, feature_id = self.hovered
            self.host.set_feature_state(source, feature_id, {"hover": False})
        self.hovered = None
        self.hovered_properties = None

    def on_pointer_move(self, event: PointerEvent) -> Optional[Dict[str, Any]]:
        hit = event.topmost
        if (
            hit is None
            or hit.role is None
            or hit.source not in INTERACTIVE_SOURCES
            or not isinstance(hit.id, int)
        ):
            self.clear()
            self._set_cursor("default")
            return None

        key = (hit.source, hit.id)
        if key != self.hovered:
            self.clear()
            self.host.set_feature_state(hit.source, hit.id, {"hover": True})
            self.hovered = key
        self.hovered_properties = dict(hit.properties)
        self._set_cursor("pointer")
        return self.hovered_properties

    def on_pointer_leave(self) -> None:
        self.clear()
        self._set_cursor("default")
