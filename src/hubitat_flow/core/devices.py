"""
Device State Cache Adapter.

Read-only lookups into the hub connection's device cache. The hub reports
devices in more than one shape (attributes as a list of records or as a map,
values under "value" or "currentValue"); everything is normalized here into
Device and Attribute so the rest of the library never sees the raw shapes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class Attribute:
    """A single device attribute value."""

    name: str
    value: Any


@dataclass
class Device:
    """
    A normalized device from the hub cache.

    Attributes:
        id: Device identifier as reported by the hub
        name: Device name
        label: User-assigned label (may be empty)
        attributes: Attributes by name
        raw: The cache entry this was built from
    """

    id: Any
    name: str = ""
    label: str = ""
    attributes: Dict[str, Attribute] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.label or self.name or ""

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], fallback_id: Any = None) -> "Device":
        """Build a Device from a raw cache entry."""
        device_id = raw.get("id", raw.get("deviceId", fallback_id))
        return cls(
            id=device_id,
            name=raw.get("name") or "",
            label=raw.get("label") or "",
            attributes=normalize_attributes(raw.get("attributes")),
            raw=dict(raw),
        )

    def attribute(self, name: str) -> Optional[Any]:
        """
        Get an attribute value.

        Checks the exact name, then the lower-cased name, then a top-level
        device field of the same name.

        Returns:
            The value, or None if the device does not report it
        """
        for key in (name, name.lower()):
            found = self.attributes.get(key)
            if found is not None:
                return found.value
        return self.raw.get(name)

    def has_attribute(self, name: str) -> bool:
        return self.attribute(name) is not None


def normalize_attributes(attributes: Any) -> Dict[str, Attribute]:
    """
    Normalize a raw attributes field into {name: Attribute}.

    Accepts a list of {"name", "value"|"currentValue"} records or a map of
    name to record-or-scalar. Attributes without a value are dropped.
    """
    normalized: Dict[str, Attribute] = {}
    if not attributes:
        return normalized

    if isinstance(attributes, Mapping):
        items: Iterable = attributes.items()
    elif isinstance(attributes, list):
        items = [
            (record.get("name"), record)
            for record in attributes
            if isinstance(record, Mapping) and record.get("name")
        ]
    else:
        logger.debug(f"Ignoring unsupported attributes shape: {type(attributes).__name__}")
        return normalized

    for name, entry in items:
        value = _attribute_value(entry)
        if value is not _MISSING and value is not None:
            normalized[name] = Attribute(name=name, value=value)
    return normalized


def _attribute_value(entry: Any) -> Any:
    if isinstance(entry, Mapping):
        if entry.get("value") is not None:
            return entry["value"]
        if entry.get("currentValue") is not None:
            return entry["currentValue"]
        return _MISSING
    return entry


def unwrap_device_id(raw_id: Any) -> Any:
    """Accept configured ids given as {"id": ..} or {"deviceId": ..} records."""
    if isinstance(raw_id, Mapping):
        return raw_id.get("id") or raw_id.get("deviceId")
    return raw_id


def configured_device_ids(value: Any) -> List[Any]:
    """Normalize a configured device list (scalar, list, or None) to a list of ids."""
    if value is None or value == "":
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [unwrap_device_id(raw) for raw in value if unwrap_device_id(raw) not in (None, "")]


def find_raw_device(devices: Optional[Mapping[Any, Any]], device_id: Any) -> Optional[Dict[str, Any]]:
    """
    Find a raw cache entry.

    Resolution order: exact key, numeric-coerced key, then a scan comparing
    id, deviceId, name and label as strings.
    """
    if not devices:
        return None

    if device_id in devices:
        return devices[device_id]

    try:
        numeric_id = int(str(device_id))
    except ValueError:
        numeric_id = None
    if numeric_id is not None and numeric_id in devices:
        return devices[numeric_id]
    if str(device_id) in devices:
        return devices[str(device_id)]

    wanted = str(device_id)
    for device in devices.values():
        if not device:
            continue
        for key in ("id", "deviceId", "name", "label"):
            if key in device and str(device[key]) == wanted:
                return device
    return None


def find_device(devices: Optional[Mapping[Any, Any]], device_id: Any) -> Optional[Device]:
    """
    Look up a device in the cache.

    A miss is not an error: callers treat None as "no attributes available".
    """
    raw = find_raw_device(devices, device_id)
    if raw is None:
        logger.debug(f"Device not found in cache: {device_id}")
        return None
    return Device.from_raw(raw, fallback_id=device_id)
