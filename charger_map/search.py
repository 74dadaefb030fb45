"""
Search over device lists.
Each criterion is a case-insensitive substring match on one device field; criteria are ANDed and
an empty criterion matches everything.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence


def _zip_code(device: Mapping[str, Any]) -> Any:
    location = device.get("location")
    return location.get("zipCode") if isinstance(location, Mapping) else None


# criterion name -> device field it is matched against
FIELD_GETTERS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "capacity": lambda d: d.get("energyCapacity"),
    "location": _zip_code,
    "status": lambda d: d.get("status"),
    "manufacturer": lambda d: d.get("manufacturer"),
}


@dataclass(frozen=True)
class SearchCriteria:
    capacity: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    manufacturer: Optional[str] = None

    def with_value(self, name: str, value: Optional[str]) -> "SearchCriteria":
        if name not in FIELD_GETTERS:
            raise KeyError(f"Unknown search field: {name}")
        return replace(self, **{name: value})

    def active(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


def _contains(value: Any, needle: str) -> bool:
    if value is None:
        return False
    return str(needle).lower() in str(value).lower()


def matches(device: Any, criteria: SearchCriteria) -> bool:
    active = criteria.active()
    if not active:
        return True
    if not isinstance(device, Mapping):
        return False
    return all(_contains(FIELD_GETTERS[name](device), needle) for name, needle in active.items())


def filter_devices(devices: Sequence[Any], criteria: Optional[SearchCriteria] = None) -> List[Any]:
    """Subsequence of ``devices`` matching ``criteria``, original order kept."""
    criteria = criteria or SearchCriteria()
    return [d for d in devices if matches(d, criteria)]
