"""
CaptureNode implementation.

On input, snapshots the configured devices into the flow's snapshot store
and sends a summary of what was captured.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from hubitat_flow.core.devices import configured_device_ids
from hubitat_flow.core.host import Message, NodeHost
from hubitat_flow.core.hub import HubConnection
from hubitat_flow.nodes.base import HubitatNode

from .store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class CaptureConfig:
    """Configuration for a capture node."""

    device_ids: List[Any] = field(default_factory=list)
    name: str = ""

    @property
    def display_name(self) -> str:
        base = self.name.strip() or "capture"
        return f"{base} ({len(self.device_ids)})"

    def to_dict(self) -> Dict[str, Any]:
        return {"deviceId": list(self.device_ids), "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptureConfig":
        return cls(
            device_ids=configured_device_ids(data.get("deviceId", data.get("device_ids"))),
            name=data.get("name") or "",
        )


class CaptureNode(HubitatNode):
    """Capture node: snapshots device state for a later restore."""

    def __init__(
        self,
        node_id: str,
        host: NodeHost,
        hub: Optional[HubConnection],
        config: Union[CaptureConfig, Dict[str, Any], None] = None,
    ) -> None:
        if config is None:
            config = CaptureConfig()
        elif isinstance(config, dict):
            config = CaptureConfig.from_dict(config)
        self.config = config
        self.store: Optional[SnapshotStore] = None
        self._captured: Set[Any] = set()
        super().__init__(node_id, host, hub, name=config.display_name)
        if self.is_configured:
            self.store = SnapshotStore(self.flow_context, self.hub)

    @property
    def type_name(self) -> str:
        return "hubitat capture"

    def default_config(self) -> Dict[str, Any]:
        return CaptureConfig().to_dict()

    async def on_input(self, message: Message) -> None:
        """Capture the configured devices and send [{"id", "name"}]."""
        if self.store is None:
            return

        if not self.config.device_ids:
            logger.warning(f"{self.type_name} {self.id}: No devices selected")
            self.send(message)
            return

        try:
            summaries = await self.store.capture(self.config.device_ids, owner=self.id)
        except Exception as e:
            logger.error(f"{self.type_name} {self.id}: Error capturing devices: {e}", exc_info=True)
            self.status("red", "ring", "capture error")
            raise

        self._captured.update(summary["id"] for summary in summaries)
        self.status("green", "dot", f"captured {len(summaries)}")
        self.send({"payload": summaries})

    async def close(self, removed: bool = False) -> None:
        """Release snapshots this node captured (others' are left alone)."""
        await super().close(removed)
        if self.store is None:
            return

        released = 0
        for device_id in list(self.config.device_ids) + list(self._captured):
            if self.store.release(device_id, self.id):
                released += 1
        if released:
            logger.debug(f"{self.type_name} {self.id}: released {released} snapshot(s)")
