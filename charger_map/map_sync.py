"""
Map synchronization for the charger views.

Keeps three things consistent with the fetched device collection and the user's input:
the markers on the map, the filtered list, and the single selected device.
Markers are keyed by device id, never by coordinates, so two chargers at the same spot
stay distinguishable.
"""

import functools
import logging
import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from charger_map.map_surface import LngLat, MapSurface, MarkerHandle
from charger_map.registry_client import RegistryClient, is_error
from charger_map.search import SearchCriteria, filter_devices

FOCUS_ZOOM = 14

logger = logging.getLogger(__name__)


class MapState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FILTERING = "filtering"
    SELECTING = "selecting"
    TORN_DOWN = "torn_down"


def device_lng_lat(device: Mapping[str, Any]) -> Optional[LngLat]:
    location = device.get("location")
    if not isinstance(location, Mapping):
        return None
    lng, lat = location.get("longitude"), location.get("latitude")
    if isinstance(lng, bool) or isinstance(lat, bool) or not isinstance(lng, (int, float)) or not isinstance(lat, (int, float)):
        return None
    if not (math.isfinite(lng) and math.isfinite(lat)):
        return None
    return (float(lng), float(lat))


def popup_content(device: Mapping[str, Any]) -> str:
    location = device.get("location") or {}
    return "\n".join([
        f"{device.get('manufacturer')} - {device.get('model')}",
        f"Status: {device.get('status')}",
        f"Energy Capacity: {device.get('energyCapacity')}",
        f"Connector Type: {device.get('connectorType')}",
        f"Location: {location.get('zipCode')} ({location.get('latitude')}, {location.get('longitude')})",
    ])


class MapSyncStateMachine:
    """Client-side state for one map view instance."""

    def __init__(self, surface: Optional[MapSurface] = None, criteria: Optional[SearchCriteria] = None):
        self.devices: List[Dict[str, Any]] = []
        self.filtered: List[Dict[str, Any]] = []
        self.criteria = criteria or SearchCriteria()
        self.markers: Dict[int, MarkerHandle] = {}
        self.selected_device_id: Optional[int] = None
        self.state = MapState.UNINITIALIZED
        self._surface: Optional[MapSurface] = None
        self._devices_loaded = False
        if surface is not None:
            self.attach_map(surface)

    # ----- lifecycle -----

    @property
    def is_torn_down(self) -> bool:
        return self.state == MapState.TORN_DOWN

    def _guard(self, action: str) -> bool:
        if self.is_torn_down:
            logger.warning(f"Ignoring {action}: map view already torn down")
            return False
        return True

    def attach_map(self, surface: MapSurface) -> None:
        """Map surface finished loading."""
        if not self._guard("attach_map"):
            return
        if self._surface is not None and self._surface is not surface:
            raise RuntimeError("A map surface is already attached to this view")
        self._surface = surface
        self._enter_ready()

    def _enter_ready(self) -> None:
        if self.state != MapState.UNINITIALIZED or self._surface is None or not self._devices_loaded:
            return
        self.state = MapState.READY
        logger.info(f"Map ready with {len(self.filtered)} of {len(self.devices)} devices")
        self.reconcile()

    def teardown(self) -> None:
        """View unmounted: release every marker and the map surface."""
        if self.is_torn_down:
            return
        if self._surface is not None:
            for handle in self.markers.values():
                self._surface.remove_marker(handle)
            self._surface.remove()
        self.markers.clear()
        self._surface = None
        self.selected_device_id = None
        self.state = MapState.TORN_DOWN

    # ----- collection -----

    def apply_devices(self, devices: Sequence[Mapping[str, Any]]) -> None:
        """Replace the collection with a freshly fetched list. Last write wins."""
        if not self._guard("apply_devices"):
            return
        self.devices = [dict(d) for d in devices]
        self._devices_loaded = True
        if self.selected_device_id is not None and self.find(self.selected_device_id) is None:
            self.selected_device_id = None
        self._refresh()
        self._enter_ready()

    async def load(self, client: RegistryClient) -> bool:
        data = await client.fetch_devices()
        if is_error(data):
            # state left as it was; nothing was applied optimistically
            return False
        self.apply_devices(data)
        return True

    def add_device(self, device: Mapping[str, Any]) -> None:
        """Fold a newly created device into the collection."""
        if not self._guard("add_device"):
            return
        if self.find(device.get("id")) is not None:
            logger.warning(f"Device {device.get('id')} already present; ignoring duplicate")
            return
        self.devices.append(dict(device))
        self._refresh()

    def find(self, device_id: Any) -> Optional[Dict[str, Any]]:
        for device in self.devices:
            if device.get("id") == device_id:
                return device
        return None

    # ----- filtering -----

    def set_criteria(self, criteria: SearchCriteria) -> None:
        if not self._guard("set_criteria"):
            return
        self.criteria = criteria
        self._refresh()

    def update_search(self, name: str, value: Optional[str]) -> None:
        self.set_criteria(self.criteria.with_value(name, value))

    def _refresh(self) -> None:
        # always recomputed from the full collection
        self.filtered = filter_devices(self.devices, self.criteria)
        if self.state in (MapState.READY, MapState.SELECTING):
            self.reconcile()

    def reconcile(self) -> None:
        """Make the marker set match the filtered set. Unchanged markers are left alone."""
        if self._surface is None or self.state in (MapState.UNINITIALIZED, MapState.TORN_DOWN):
            return
        self.state = MapState.FILTERING
        try:
            wanted: Dict[int, LngLat] = {}
            for device in self.filtered:
                lng_lat = device_lng_lat(device)
                if lng_lat is None:
                    logger.error(f"Invalid or missing location for device {device.get('manufacturer')} - {device.get('model')}")
                    continue
                if device.get("id") is None:
                    logger.error(f"Device without id skipped: {device.get('name')}")
                    continue
                wanted[device["id"]] = lng_lat

            for device_id in [i for i in self.markers if i not in wanted]:
                self._surface.remove_marker(self.markers.pop(device_id))

            for device_id, lng_lat in wanted.items():
                if device_id in self.markers:
                    continue
                handle = self._surface.add_marker(lng_lat, popup_content(self.find(device_id)))
                self._surface.on_marker_click(handle, functools.partial(self.on_marker_click, device_id))
                self.markers[device_id] = handle
        finally:
            self.state = self._resting_state()

    def _resting_state(self) -> MapState:
        return MapState.SELECTING if self.selected_device_id is not None else MapState.READY

    # ----- selection -----

    @property
    def selected_device(self) -> Optional[Dict[str, Any]]:
        if self.selected_device_id is None:
            return None
        return self.find(self.selected_device_id)

    def select(self, device_id: int) -> bool:
        if not self._guard("select"):
            return False
        if self.find(device_id) is None:
            logger.warning(f"Cannot select unknown device {device_id}")
            return False
        self.selected_device_id = device_id
        if self.state != MapState.UNINITIALIZED:
            self.state = MapState.SELECTING
        return True

    def on_marker_click(self, device_id: int) -> None:
        self.select(device_id)

    def show_details(self, device_id: int) -> bool:
        return self.select(device_id)

    def focus_device(self, device_id: int) -> bool:
        """List click: fly to the device, open its popup and select it."""
        if not self._guard("focus_device"):
            return False
        device = self.find(device_id)
        if device is None:
            logger.warning(f"Cannot focus unknown device {device_id}")
            return False
        lng_lat = device_lng_lat(device)
        if self._surface is not None and lng_lat is not None:
            self._surface.fly_to(lng_lat, FOCUS_ZOOM)
            handle = self.markers.get(device_id)
            if handle is not None:
                self._surface.open_popup(handle)
        return self.select(device_id)

    def clear_selection(self) -> None:
        self.selected_device_id = None
        if self.state == MapState.SELECTING:
            self.state = MapState.READY

    def close_details(self) -> None:
        self.clear_selection()

    def click_outside(self) -> None:
        self.clear_selection()

    # ----- viewport -----

    def zoom_in(self) -> None:
        if self._guard("zoom_in") and self._surface is not None:
            self._surface.zoom_in()

    def zoom_out(self) -> None:
        if self._guard("zoom_out") and self._surface is not None:
            self._surface.zoom_out()
