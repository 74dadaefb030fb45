import logging
from typing import Dict

from charger_map.map_sync import MapSyncStateMachine

logger = logging.getLogger(__name__)

CONNECTABLE_STATUS = "Available"


class ConnectRequestController:
    """Connect form on the user map.

    Only local: a connect request is logged and never written back to the registry,
    so the charger's status does not change.
    """

    def __init__(self, map_sync: MapSyncStateMachine):
        self.map_sync = map_sync
        self.fields: Dict[str, str] = {"charge_amount": "", "device_name": "", "device_type": ""}

    def update_field(self, name: str, value: str) -> None:
        if name not in self.fields:
            raise KeyError(f"Unknown connect field: {name}")
        self.fields[name] = value

    def can_connect(self) -> bool:
        charger = self.map_sync.selected_device
        return charger is not None and charger.get("status") == CONNECTABLE_STATUS

    def submit(self) -> bool:
        charger = self.map_sync.selected_device
        if not self.can_connect():
            logger.warning(f"Charger {charger.get('id') if charger else None} is not available for connection")
            return False
        if not all(v.strip() for v in self.fields.values()):
            logger.warning("Connect request is missing charge amount or device info")
            return False
        logger.info(f"Connect request for charger {charger['id']}: charging amount={self.fields['charge_amount']} "
                    f"device={self.fields['device_name']} ({self.fields['device_type']})")
        return True
