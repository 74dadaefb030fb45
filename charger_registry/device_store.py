# device_store.py
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from charger_registry.config import SEED_DEMO_DEVICES
from charger_registry.exceptions import AnchorError, ValidationError
from charger_registry.ledger_anchor import LedgerAnchor, SimulatedLedgerAnchor, explorer_url
from charger_registry.models import Device, DeviceInput, DeviceStatus

logger = logging.getLogger(__name__)

KNOWN_STATUSES = {s.value for s in DeviceStatus}

SEED_DEVICES: List[Dict[str, Any]] = [
    {
        "id": 1,
        "name": "Charger 1",
        "location": {"latitude": 34.0522, "longitude": -118.2437, "zipCode": "90001"},
        "details": "Connected",
        "power": 50,
        "manufacturer": "Wallbox",
        "model": "Pulsar Plus 48A",
        "status": "Available",
        "firmwareVersion": "1.2.4",
        "softwareVersion": "2.3.1",
        "connectorType": "CCS",
        "energyCapacity": "48A",
        "onChain": {
            "transactionHash": "0xabc123",
            "timestampUtc": "2024-10-20T12:34:56Z",
            "blockNumber": 123456,
            "explorerUrl": explorer_url("0xabc123"),
        },
    },
    {
        "id": 2,
        "name": "Charger 2",
        "location": {"latitude": 40.7128, "longitude": -74.0060, "zipCode": "10001"},
        "details": "Connected",
        "power": 75,
        "manufacturer": "Tesla",
        "model": "Supercharger V3",
        "status": "Charging",
        "firmwareVersion": "2.1.0",
        "softwareVersion": "3.0.2",
        "connectorType": "CHAdeMO",
        "energyCapacity": "250kW",
        "onChain": {
            "transactionHash": "0xdef456",
            "timestampUtc": "2024-10-21T14:45:10Z",
            "blockNumber": 123789,
            "explorerUrl": explorer_url("0xdef456"),
        },
    },
]


class DeviceRegistry:
    """The single authoritative in-memory collection of devices. Lives as long as the process."""

    def __init__(self, anchor: Optional[LedgerAnchor] = None, seed: Optional[List[Mapping[str, Any]]] = None):
        self.anchor = anchor or SimulatedLedgerAnchor()
        if seed is None:
            seed = SEED_DEVICES if SEED_DEMO_DEVICES else []
        self._devices: List[Device] = [Device.model_validate(d) for d in seed]
        # id assignment, anchoring and append form one critical section;
        # the lock is bound to the loop that serves requests, not the one at import
        self._create_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._create_lock is None or self._lock_loop is not loop:
            self._create_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._create_lock

    def __len__(self) -> int:
        return len(self._devices)

    def list_devices(self) -> List[Device]:
        """Full collection in insertion order. Callers get copies."""
        return [d.model_copy(deep=True) for d in self._devices]

    @staticmethod
    def validate(data: Any) -> DeviceInput:
        if not isinstance(data, Mapping):
            raise ValidationError(errors=[{"loc": [], "msg": "Device data must be an object"}])
        try:
            return DeviceInput.model_validate(dict(data))
        except PydanticValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            logger.warning(f"Rejected device input: {errors}")
            raise ValidationError(errors=errors) from e

    async def create(self, data: Any) -> Device:
        """Validate, assign the next id, anchor, then append.

        Raises ValidationError before any id is assigned, and AnchorError
        without touching the collection.
        """
        device_input = self.validate(data)
        logger.info(
            f"Received device input: name={device_input.name!r} manufacturer={device_input.manufacturer!r} "
            f"model={device_input.model!r} status={device_input.status!r}"
        )
        if device_input.status not in KNOWN_STATUSES:
            logger.info(f"Non-standard status {device_input.status!r} accepted as-is")

        async with self._lock():
            device_id = len(self._devices) + 1
            result = await self.anchor.anchor(device_id, device_input)
            if not result.success or result.record is None:
                logger.error(f"Failed to anchor device {device_id}; collection unchanged")
                raise AnchorError(device_id=device_id)

            device = Device(id=device_id, **device_input.model_dump(), on_chain=result.record)
            self._devices.append(device)

        logger.info(f"Registered device {device.id} tx={device.on_chain.transaction_hash}")
        return device.model_copy(deep=True)
