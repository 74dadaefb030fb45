import logging
import math
from typing import Any, Dict, Optional

from charger_map.map_sync import MapSyncStateMachine
from charger_map.registry_client import RegistryClient, _error_dict, is_error

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = (
    "name",
    "manufacturer",
    "model",
    "energyCapacity",
    "status",
    "firmwareVersion",
    "softwareVersion",
    "connectorType",
    "zipCode",
)
NUMERIC_FIELDS = ("lat", "long", "power")
FORM_FIELDS = REQUIRED_TEXT_FIELDS + NUMERIC_FIELDS + ("details",)


def _empty_form() -> Dict[str, str]:
    return {name: "" for name in FORM_FIELDS}


def _validate_non_empty_str(name: str, value: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(value, str) or not value.strip():
        return _error_dict(f"Invalid '{name}': must be a non-empty string")
    return None


def _parse_number(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class DeviceFormController:
    """Collects new-device input, validates it, and submits it to the registry."""

    def __init__(self, client: RegistryClient, map_sync: MapSyncStateMachine):
        self.client = client
        self.map_sync = map_sync
        self.fields: Dict[str, str] = _empty_form()

    def update_field(self, name: str, value: str) -> None:
        if name not in self.fields:
            raise KeyError(f"Unknown form field: {name}")
        self.fields[name] = value

    def reset(self) -> None:
        self.fields = _empty_form()

    def validate(self) -> Optional[Dict[str, Any]]:
        """Return an error dict for the first problem found, or None."""
        for name in REQUIRED_TEXT_FIELDS:
            err = _validate_non_empty_str(name, self.fields.get(name))
            if err:
                return err
        for name in NUMERIC_FIELDS:
            if _parse_number(self.fields.get(name)) is None:
                return _error_dict("Invalid latitude, longitude, or power", details=name)
        return None

    def build_payload(self) -> Dict[str, Any]:
        f = self.fields
        return {
            "name": f["name"],
            "manufacturer": f["manufacturer"],
            "model": f["model"],
            "energyCapacity": f["energyCapacity"],
            "status": f["status"],
            "firmwareVersion": f["firmwareVersion"],
            "softwareVersion": f["softwareVersion"],
            "connectorType": f["connectorType"],
            "location": {
                "latitude": _parse_number(f["lat"]),
                "longitude": _parse_number(f["long"]),
                "zipCode": f["zipCode"],
            },
            "details": f["details"],
            "power": _parse_number(f["power"]),
        }

    async def submit(self) -> Optional[Dict[str, Any]]:
        """Submit the form. On success the device joins the map state and the form is cleared.

        On any failure the form keeps its values so the user can retry.
        """
        err = self.validate()
        if err:
            logger.error(f"Form not submitted: {err['error']}")
            return None

        data = await self.client.create_device(self.build_payload())
        if is_error(data):
            return None

        self.map_sync.add_device(data)
        self.reset()
        logger.info(f"Added device {data.get('id')} ({data.get('manufacturer')} - {data.get('model')})")
        return data
