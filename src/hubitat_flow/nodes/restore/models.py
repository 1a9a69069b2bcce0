"""
Data models for restore: planned commands and dispatch outcomes.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

CommandArguments = Union[List[Any], Dict[str, Any], None]

POWER_COMMANDS = frozenset({"on", "off"})


@dataclass(frozen=True)
class PlannedCommand:
    """
    One device command in a restore plan.

    arguments is None, a positional list (e.g. setLevel [70]) or a
    structured dict (setColor {"hue", "saturation", "level"}).
    """

    device_id: Any
    command: str
    arguments: CommandArguments = None

    @property
    def is_power(self) -> bool:
        return self.command in POWER_COMMANDS


@dataclass
class DispatchOutcome:
    """Result of sending one command to the hub."""

    device_id: Any
    command: str
    request_arguments: str
    response_status: Optional[int] = None
    response: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the record sent downstream."""
        return {
            "deviceId": self.device_id,
            "command": self.command,
            "requestArguments": self.request_arguments,
            "responseStatus": self.response_status,
            "response": self.response,
        }


def restore_error_record(
    message: Dict[str, Any],
    device_id: Any,
    snapshot: Dict[str, Any],
    error_msg: str,
) -> Dict[str, Any]:
    """Build the downstream record for a snapshot that could not be planned."""
    return {
        **message,
        "error": True,
        "deviceId": device_id,
        "deviceState": snapshot,
        "errorMsg": error_msg,
        "restored": False,
    }
