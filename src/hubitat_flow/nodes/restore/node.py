"""
RestoreNode implementation.

On input, replays each configured device's saved snapshot: the snapshot is
consumed from the store, planned into commands, and the commands are sent
through the hub's command lock. Devices are restored as concurrent tasks;
a failure on one device never stops the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from hubitat_flow.core.devices import configured_device_ids
from hubitat_flow.core.errors import ProtocolError, TransportError, ValidationError
from hubitat_flow.core.host import Message, NodeHost
from hubitat_flow.core.hub import HubConnection
from hubitat_flow.nodes.base import HubitatNode
from hubitat_flow.nodes.capture.store import SnapshotStore

from .dispatcher import CommandDispatcher
from .models import DispatchOutcome, restore_error_record
from .planner import CommandPlanner

logger = logging.getLogger(__name__)


@dataclass
class RestoreConfig:
    """Configuration for a restore node."""

    device_ids: List[Any] = field(default_factory=list)
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"devices": list(self.device_ids), "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RestoreConfig":
        """Deserialize from dict ("devices" list, else "deviceId" id or list)."""
        devices = data.get("devices")
        if not devices:
            devices = data.get("deviceId", data.get("device_ids"))
        return cls(
            device_ids=configured_device_ids(devices),
            name=data.get("name") or "",
        )


class RestoreNode(HubitatNode):
    """Restore node: drives devices back to their captured state."""

    def __init__(
        self,
        node_id: str,
        host: NodeHost,
        hub: Optional[HubConnection],
        config: Union[RestoreConfig, Dict[str, Any], None] = None,
    ) -> None:
        if config is None:
            config = RestoreConfig()
        elif isinstance(config, dict):
            config = RestoreConfig.from_dict(config)
        self.config = config
        self.planner = CommandPlanner()
        self.store: Optional[SnapshotStore] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        super().__init__(node_id, host, hub, name=config.name)
        if self.is_configured:
            self.store = SnapshotStore(self.flow_context, self.hub)
            self.dispatcher = CommandDispatcher(self.hub)

    @property
    def type_name(self) -> str:
        return "hubitat restore"

    def default_config(self) -> Dict[str, Any]:
        return RestoreConfig().to_dict()

    async def on_input(self, message: Message) -> None:
        """Restore every configured device that has a saved snapshot."""
        if self.store is None:
            return

        if not self.config.device_ids:
            logger.warning(f"{self.type_name} {self.id}: No devices selected")
            self.send(message)
            return

        results = await asyncio.gather(
            *(self.restore_device(device_id, message) for device_id in self.config.device_ids),
            return_exceptions=True,
        )
        for device_id, result in zip(self.config.device_ids, results):
            if isinstance(result, Exception):
                logger.error(
                    f"{self.type_name} {self.id}: Error restoring device {device_id}: {result}",
                    exc_info=result,
                )
                self.status("red", "ring", f"restore error {device_id}")

    async def restore_device(self, device_id: Any, message: Message) -> List[DispatchOutcome]:
        """
        Restore one device from its snapshot.

        Validation, protocol and transport failures are reported for this
        device (log, status, output record) and not raised.

        Returns:
            Outcomes of the commands that succeeded
        """
        if self.store is None or self.dispatcher is None:
            return []

        snapshot = self.store.consume(device_id)
        if not snapshot:
            logger.warning(f"{self.type_name} {self.id}: No saved state for {device_id}")
            return []

        try:
            commands = self.planner.plan(snapshot.get("id") or device_id, snapshot)
        except ValidationError as e:
            logger.error(
                f"{self.type_name} {self.id}: Restore error for device {device_id}: "
                f"{e.message}. State: {snapshot}"
            )
            self.send(restore_error_record(message, device_id, snapshot, e.message))
            self.status("red", "ring", f"restore error {device_id}")
            return []

        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.status("green", "dot", f"restored {snapshot.get('name') or device_id} {stamp}")

        outcomes: List[DispatchOutcome] = []

        def forward(outcome: DispatchOutcome) -> None:
            outcomes.append(outcome)
            self.send({**message, **outcome.to_dict()})

        try:
            await self.dispatcher.run_plan(commands, on_outcome=forward)
        except ProtocolError as e:
            logger.error(f"{self.type_name} {self.id}: {e.url}: {e.body}")
            self.status("red", "ring", "response error")
            if e.outcome is not None:
                self.send({**message, **e.outcome.to_dict(), "url": e.url})
        except TransportError as e:
            logger.error(
                f"{self.type_name} {self.id}: {e} (device {e.device_id}, command {e.command})"
            )
            self.status("red", "ring", type(e.cause).__name__ if e.cause else "transport error")
        return outcomes

    async def close(self, removed: bool = False) -> None:
        """When the node is deleted, drop any snapshots still waiting for it."""
        await super().close(removed)
        if removed and self.store is not None:
            for device_id in self.config.device_ids:
                self.store.clear(device_id)
