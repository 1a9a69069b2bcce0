"""
Data models for the logic node.

Defines the evaluation mode, emission policy, node configuration and the
per-node aggregation state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from hubitat_flow.core.devices import configured_device_ids


class LogicMode(Enum):
    """How device values combine into one boolean."""

    ALL = "all"  # Every device matches the target (empty set = False)
    ANY = "any"  # At least one device matches the target


class EmissionPolicy(Enum):
    """When the node sends output."""

    GATE = "gate"  # Inputs pass through while the predicate is true
    EVENT = "event"  # Also emit a notification on every false -> true flip


# Device type -> attribute watched
DEVICE_TYPE_ATTRIBUTES = {
    "switch": "switch",
    "motion": "motion",
    "lock": "lock",
    "contact": "contact",
    "presence": "presence",
}


@dataclass
class LogicConfig:
    """Configuration for a logic node."""

    device_ids: List[Any] = field(default_factory=list)
    attribute: str = "switch"
    target_value: Any = "on"
    mode: LogicMode = LogicMode.ALL
    emission: EmissionPolicy = EmissionPolicy.GATE
    name: str = ""

    @property
    def topic(self) -> str:
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        return {
            "deviceId": list(self.device_ids),
            "attribute": self.attribute,
            "targetValue": self.target_value,
            "mode": self.mode.value,
            "emission": self.emission.value,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogicConfig":
        """
        Deserialize from dict.

        Accepts the host runtime's node settings: deviceId (one id or a
        list), deviceType or attribute, targetValue, mode ("all"/"any"),
        and either emission or the sendEvents flag.
        """
        attribute = data.get("attribute")
        if not attribute:
            device_type = data.get("deviceType", "switch")
            attribute = DEVICE_TYPE_ATTRIBUTES.get(device_type)
            if attribute is None:
                raise ValueError(f"Unknown device type: {device_type}")

        if "emission" in data:
            emission = EmissionPolicy(data["emission"])
        else:
            emission = EmissionPolicy.EVENT if data.get("sendEvents") else EmissionPolicy.GATE

        target = data.get("targetValue")
        if target is None or target == "":
            target = "on"

        return cls(
            device_ids=configured_device_ids(data.get("deviceId", data.get("device_ids"))),
            attribute=attribute,
            target_value=target,
            mode=LogicMode(str(data.get("mode") or "all").lower()),
            emission=emission,
            name=data.get("name") or "",
        )


@dataclass
class AggregationState:
    """
    Runtime state of one logic node.

    logic_state is None only before the first evaluation.
    last_flip changes only when logic_state changes value.
    """

    device_states: Dict[str, Any] = field(default_factory=dict)
    logic_state: Optional[bool] = None
    last_flip: Optional[datetime] = None


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of one evaluation of the predicate."""

    logic_state: bool
    previous_state: Optional[bool]
    flipped: bool

    @property
    def rising(self) -> bool:
        """True on a false -> true flip."""
        return self.flipped and self.logic_state
