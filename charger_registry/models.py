# models.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_DETAILS = "Connected"


class DeviceStatus(str, Enum):
    """Well-known charger states. Other values are accepted and echoed as-is."""
    AVAILABLE = "Available"
    CHARGING = "Charging"
    UNAVAILABLE = "Unavailable"


class _WireModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(_WireModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)
    zip_code: str = Field(min_length=1)


class OnChainRecord(_WireModel):
    """Receipt of a device being anchored on the ledger."""
    model_config = ConfigDict(frozen=True)

    transaction_hash: str = Field(min_length=1)
    timestamp_utc: str
    block_number: int = Field(ge=0)
    explorer_url: str


class DeviceInput(_WireModel):
    """Body of POST /devices."""
    name: str = Field(min_length=1)
    location: Location
    details: Optional[str] = Field(default=None, validate_default=True)
    power_kw: float = Field(alias="power", allow_inf_nan=False)
    manufacturer: str = Field(min_length=1)
    model: str = Field(min_length=1)
    status: str = Field(min_length=1)
    firmware_version: str = Field(min_length=1)
    software_version: str = Field(min_length=1)
    connector_type: str = Field(min_length=1)
    energy_capacity: str = Field(min_length=1)

    @field_validator("details")
    @classmethod
    def _default_details(cls, value: Optional[str]) -> str:
        return value or DEFAULT_DETAILS


class Device(_WireModel):
    """A registered charger. Owned by the registry, never mutated in place."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    name: str
    location: Location
    details: str = DEFAULT_DETAILS
    power_kw: float = Field(alias="power")
    manufacturer: str
    model: str
    status: str
    firmware_version: str
    software_version: str
    connector_type: str
    energy_capacity: str
    on_chain: OnChainRecord


class AnchorResult(BaseModel):
    success: bool
    record: Optional[OnChainRecord] = None


class ErrorMessage(BaseModel):
    message: str
