"""
Snapshot store.

Device snapshots live in the flow-scoped key/value store so that a capture
node and a restore node in the same flow can share them. Each entry is
tagged with the capturing node's id; the tag is advisory and only used to
avoid clearing another node's snapshot on close.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from hubitat_flow.core.devices import Device, find_device, unwrap_device_id
from hubitat_flow.core.host import FlowContext
from hubitat_flow.core.hub import HubConnection

logger = logging.getLogger(__name__)

CAPTURE_ATTRIBUTES = (
    "switch",
    "level",
    "color",
    "hue",
    "RGB",
    "colorTemperature",
    "saturation",
    "colorMode",
    "colorName",
)

KEY_PREFIX = "hubitat_state"

Snapshot = Dict[str, Any]


def build_snapshot(device: Device, owner: str) -> Snapshot:
    """
    Build a snapshot of a device's capture attributes.

    Attributes the device does not report are left out.
    """
    snapshot: Snapshot = {"id": device.id, "name": device.display_name, "owner": owner}
    for attribute in CAPTURE_ATTRIBUTES:
        value = device.attribute(attribute)
        if value is not None:
            snapshot[attribute] = value
    return snapshot


class SnapshotStore:
    """
    Keyed device snapshots for one hub connection.

    Keys are hub-scoped ("hubitat_state_<hub>_<device>") so two hubs in
    one flow never share entries.
    """

    def __init__(self, context: FlowContext, hub: HubConnection) -> None:
        self._context = context
        self._hub = hub

    def key(self, device_id: Any) -> str:
        """
        Storage key for a device.

        Names and labels resolve to the device id through the cache, so a
        device captured by label can be read back by label. A cache miss
        keys on the identifier as given.
        """
        device_id = unwrap_device_id(device_id)
        device = find_device(self._hub.devices, device_id)
        if device is not None and device.id is not None:
            device_id = device.id
        return f"{KEY_PREFIX}_{self._hub.safe_id}_{device_id}"

    async def capture(self, device_ids: Iterable[Any], owner: str) -> List[Dict[str, Any]]:
        """
        Snapshot the given devices.

        The device cache is force-refreshed first so snapshots are never
        stale. Identifiers that do not resolve are skipped.

        Args:
            device_ids: Devices to capture (ids, names or labels)
            owner: Capturing node's id

        Returns:
            [{"id", "name"}] for every captured device
        """
        try:
            await self._hub.refresh_device_cache(force=True)
        except Exception as e:
            logger.warning(f"Device cache refresh failed, capturing from cached state: {e}")

        summaries = []
        for raw_id in device_ids:
            device_id = unwrap_device_id(raw_id)
            device = find_device(self._hub.devices, device_id)
            if device is None:
                logger.debug(f"Skipping capture of unknown device {device_id}")
                continue

            snapshot = build_snapshot(device, owner)
            self._context.set(self.key(device.id), snapshot)
            summaries.append({"id": device.id, "name": snapshot["name"]})
            logger.debug(f"Captured {device.id}: {snapshot}")

        logger.info(f"Captured {len(summaries)} device(s) for {owner}")
        return summaries

    def take(self, device_id: Any) -> Optional[Snapshot]:
        """Read a snapshot without clearing it."""
        return self._context.get(self.key(device_id))

    def consume(self, device_id: Any) -> Optional[Snapshot]:
        """Read a snapshot and clear it, so it is replayed at most once."""
        key = self.key(device_id)
        snapshot = self._context.get(key)
        if snapshot is not None:
            self._context.set(key, None)
        return snapshot

    def release(self, device_id: Any, owner: str) -> bool:
        """
        Clear a snapshot only if owner captured it.

        Returns:
            True if a snapshot was cleared
        """
        key = self.key(device_id)
        snapshot = self._context.get(key)
        if not snapshot or snapshot.get("owner") != owner:
            return False
        self._context.set(key, None)
        return True

    def clear(self, device_id: Any) -> None:
        """Clear a snapshot regardless of owner."""
        self._context.set(self.key(device_id), None)
