#!/usr/bin/env python3
"""
Charger Map Demo Script
Drives the map state against a running registry on a headless map surface
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from charger_map.device_form import DeviceFormController
from charger_map.map_surface import HeadlessMapSurface
from charger_map.map_sync import MapSyncStateMachine
from charger_map.registry_client import API_BASE, RegistryClient

DEMO_CHARGER = {
    "name": "Charger Demo",
    "manufacturer": "Wallbox",
    "model": "Commander 2",
    "energyCapacity": "22kW",
    "status": "Available",
    "firmwareVersion": "5.0.1",
    "softwareVersion": "5.2.0",
    "connectorType": "Type 2",
    "lat": "37.7749",
    "long": "-122.4194",
    "zipCode": "94103",
    "power": "22",
    "details": "Demo bay",
}


class ChargerMapDemo:
    """Walks through load, filter, select and register on one map view"""

    def __init__(self, base_url: str = API_BASE, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client = RegistryClient(base_url, transport=transport)
        self.surface = HeadlessMapSurface()
        self.map_sync = MapSyncStateMachine(self.surface)
        self.form = DeviceFormController(self.client, self.map_sync)

    def print_markers(self):
        print(f"🗺  {len(self.surface.markers)} marker(s) on map, {len(self.map_sync.filtered)} device(s) listed")
        for device in self.map_sync.filtered:
            print(f"   - #{device['id']} {device['manufacturer']} - {device['model']} [{device['status']}]")

    async def run(self) -> bool:
        print("🚀 Starting Charger Map demo")
        print("=" * 60)

        if not await self.map_sync.load(self.client):
            print(f"❌ Registry not reachable at {self.client.base_url}")
            return False
        print(f"✅ Loaded {len(self.map_sync.devices)} device(s)")
        self.print_markers()

        print("\n🔎 Filtering by status 'available'...")
        self.map_sync.update_search("status", "available")
        self.print_markers()

        if self.map_sync.filtered:
            first = self.map_sync.filtered[0]
            self.map_sync.focus_device(first["id"])
            print(f"\n📍 Focused #{first['id']}, map centered at {self.surface.center} zoom {self.surface.zoom}")
            self.map_sync.close_details()

        print("\n➕ Registering a new charger...")
        for name, value in DEMO_CHARGER.items():
            self.form.update_field(name, value)
        created: Optional[Dict[str, Any]] = await self.form.submit()
        if created is None:
            print("❌ Registration failed, form kept for retry")
        else:
            print(f"✅ Registered #{created['id']} tx={created['onChain']['transactionHash']}")
        self.print_markers()

        self.map_sync.teardown()
        print("\n🎉 Demo completed!")
        return created is not None


async def run_demo():
    await ChargerMapDemo().run()


def main():
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
