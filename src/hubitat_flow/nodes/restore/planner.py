"""
Command planner.

Derives the ordered commands that bring a device back to a snapshot.
Device class is inferred from which attributes the snapshot holds:

    switch only                 -> plain switch
    level, no colorMode         -> dimmer
    colorMode                   -> color bulb (CT or RGB)

Power commands always come before level/color commands, and a device that
was off gets only "off".
"""

import logging
from typing import Any, Dict, List, Mapping

from hubitat_flow.core.errors import ValidationError

from .models import PlannedCommand

logger = logging.getLogger(__name__)


def _present(snapshot: Mapping[str, Any], key: str) -> bool:
    return snapshot.get(key) is not None


class CommandPlanner:
    """Plans restore commands for device snapshots."""

    def plan(self, device_id: Any, snapshot: Mapping[str, Any]) -> List[PlannedCommand]:
        """
        Plan the commands for one snapshot.

        Args:
            device_id: Target device
            snapshot: Captured attributes

        Returns:
            Ordered commands; empty if the snapshot matches no device class

        Raises:
            ValidationError: If a field required by the device class is missing
        """
        has_switch = _present(snapshot, "switch")
        has_level = _present(snapshot, "level")
        has_color_mode = _present(snapshot, "colorMode")

        if has_switch and not has_level and not has_color_mode:
            return [PlannedCommand(device_id, str(snapshot["switch"]))]

        if has_level and not has_color_mode:
            return self._plan_dimmer(device_id, snapshot)

        if has_color_mode:
            return self._plan_color(device_id, snapshot)

        logger.debug(f"Nothing to restore for {device_id}: {dict(snapshot)}")
        return []

    def _plan_dimmer(self, device_id: Any, snapshot: Mapping[str, Any]) -> List[PlannedCommand]:
        if snapshot.get("switch") == "off":
            return [PlannedCommand(device_id, "off")]

        if not _present(snapshot, "level"):
            raise ValidationError(device_id, "Missing level for setLevel")
        return [
            PlannedCommand(device_id, "on"),
            PlannedCommand(device_id, "setLevel", [snapshot["level"]]),
        ]

    def _plan_color(self, device_id: Any, snapshot: Mapping[str, Any]) -> List[PlannedCommand]:
        switch = snapshot.get("switch")
        if switch == "off":
            return [PlannedCommand(device_id, "off")]
        if switch != "on":
            return []

        color_mode = snapshot.get("colorMode")
        if color_mode == "CT":
            temperature = snapshot.get("colorTemperature")
            level = snapshot.get("level")
            if temperature is None or level is None:
                raise ValidationError(
                    device_id,
                    f"Missing colorTemperature ({temperature}) or level ({level}) "
                    f"for setColorTemperature",
                )
            return [PlannedCommand(device_id, "setColorTemperature", [temperature, level])]

        if color_mode == "RGB":
            if not all(_present(snapshot, key) for key in ("hue", "saturation", "level")):
                raise ValidationError(device_id, "Missing hue, saturation, or level for setColor")
            color: Dict[str, Any] = {
                "hue": snapshot["hue"],
                "saturation": snapshot["saturation"],
                "level": snapshot["level"],
            }
            return [PlannedCommand(device_id, "setColor", color)]

        logger.debug(f"Unsupported colorMode {color_mode!r} for {device_id}")
        return []
