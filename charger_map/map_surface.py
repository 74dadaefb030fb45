"""
Map rendering boundary.
The map SDK only renders; which markers exist is decided by the map state machine.
"""

import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

LngLat = Tuple[float, float]
MarkerHandle = Any
ClickCallback = Callable[[], None]

DEFAULT_CENTER: LngLat = (0.0, 0.0)
DEFAULT_ZOOM = 2.0

logger = logging.getLogger(__name__)


class MapSurface(Protocol):
    def add_marker(self, lng_lat: LngLat, popup_content: str) -> MarkerHandle: ...

    def remove_marker(self, handle: MarkerHandle) -> None: ...

    def fly_to(self, lng_lat: LngLat, zoom: float) -> None: ...

    def on_marker_click(self, handle: MarkerHandle, callback: ClickCallback) -> None: ...

    def open_popup(self, handle: MarkerHandle) -> None: ...

    def zoom_in(self) -> None: ...

    def zoom_out(self) -> None: ...

    def remove(self) -> None: ...


class HeadlessMapSurface:
    """In-process map: keeps live markers, records every command, and can emit marker clicks."""

    def __init__(self, center: LngLat = DEFAULT_CENTER, zoom: float = DEFAULT_ZOOM):
        self.center = center
        self.zoom = zoom
        self.markers: Dict[int, Dict[str, Any]] = {}
        self.commands: List[Tuple[Any, ...]] = []
        self.open_popup_handle: Optional[int] = None
        self.removed = False
        self._handles = itertools.count(1)
        self._click_callbacks: Dict[int, ClickCallback] = {}

    def add_marker(self, lng_lat: LngLat, popup_content: str) -> int:
        handle = next(self._handles)
        self.markers[handle] = {"lng_lat": lng_lat, "popup": popup_content}
        self.commands.append(("add_marker", handle, lng_lat))
        return handle

    def remove_marker(self, handle: int) -> None:
        self.commands.append(("remove_marker", handle))
        self.markers.pop(handle, None)
        self._click_callbacks.pop(handle, None)
        if self.open_popup_handle == handle:
            self.open_popup_handle = None

    def fly_to(self, lng_lat: LngLat, zoom: float) -> None:
        self.commands.append(("fly_to", lng_lat, zoom))
        self.center = lng_lat
        self.zoom = zoom

    def on_marker_click(self, handle: int, callback: ClickCallback) -> None:
        self._click_callbacks[handle] = callback

    def open_popup(self, handle: int) -> None:
        self.commands.append(("open_popup", handle))
        if handle in self.markers:
            self.open_popup_handle = handle

    def zoom_in(self) -> None:
        self.zoom += 1
        self.commands.append(("zoom_in", self.zoom))

    def zoom_out(self) -> None:
        self.zoom -= 1
        self.commands.append(("zoom_out", self.zoom))

    def remove(self) -> None:
        self.commands.append(("remove",))
        self.markers.clear()
        self._click_callbacks.clear()
        self.removed = True

    def click(self, handle: int) -> None:
        """Simulate the user clicking a marker."""
        callback = self._click_callbacks.get(handle)
        if callback is None:
            logger.warning(f"Click on unknown marker handle {handle}")
            return
        callback()
