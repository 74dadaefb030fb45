"""Errors raised by the device registry."""

from typing import Any, Dict, List, Optional


class RegistryError(Exception):
    """Base exception for all registry errors."""


class ValidationError(RegistryError):
    """Device input is missing required fields or has invalid values."""

    def __init__(self, message: str = "Invalid device data", *, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class AnchorError(RegistryError):
    """The ledger did not accept the device record."""

    def __init__(self, message: str = "Failed to store device on chain", *, device_id: Optional[int] = None) -> None:
        self.device_id = device_id
        super().__init__(message)
