"""
LogicNode implementation.

Turns a stream of attribute-change events for a set of devices into one
boolean signal, shown as node status and used to gate input messages.
"""

import logging
from typing import Any, Dict, Optional, Union

from hubitat_flow.core.bus import (
    ATTRIBUTE_CHANGED,
    CONNECTION_CLOSED,
    CONNECTION_ERROR,
    CONNECTION_OPENED,
    SYSTEM_READY,
    Event,
    EventFilter,
)
from hubitat_flow.core.devices import find_device
from hubitat_flow.core.host import Message, NodeHost
from hubitat_flow.core.hub import HubConnection
from hubitat_flow.nodes.base import HubitatNode

from .engine import AggregationEngine
from .models import EmissionPolicy, EvaluationResult, LogicConfig

logger = logging.getLogger(__name__)


class LogicNode(HubitatNode):
    """
    Logic node: ALL/ANY predicate over a device set.

    Features:
    - Per-device subscriptions on the hub event bus
    - Flip detection (only changes of the result count)
    - Gate policy: inputs pass while the predicate is true
    - Event policy: also emits a notification on every false -> true flip
    - Re-initializes from the device cache on hub system-ready
    """

    def __init__(
        self,
        node_id: str,
        host: NodeHost,
        hub: Optional[HubConnection],
        config: Union[LogicConfig, Dict[str, Any], None] = None,
    ) -> None:
        if config is None:
            config = LogicConfig()
        elif isinstance(config, dict):
            config = LogicConfig.from_dict(config)
        self.config = config
        self.engine = AggregationEngine(
            device_ids=config.device_ids,
            target_value=config.target_value,
            mode=config.mode,
            attribute=config.attribute,
        )
        self._initialized = False
        super().__init__(node_id, host, hub, name=config.name)

    @property
    def type_name(self) -> str:
        return "hubitat logic"

    @property
    def sends_events(self) -> bool:
        return self.config.emission == EmissionPolicy.EVENT

    def default_config(self) -> Dict[str, Any]:
        return LogicConfig().to_dict()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Subscribe to device and hub events, then compute the initial state."""
        if not self.is_configured:
            return

        for device_id in self.config.device_ids:
            self.subscribe(
                self._on_device_event,
                EventFilter(event_type=ATTRIBUTE_CHANGED, device_id=device_id),
            )
        self.subscribe(self._on_system_ready, EventFilter(event_type=SYSTEM_READY))
        for event_type in (CONNECTION_OPENED, CONNECTION_CLOSED, CONNECTION_ERROR):
            self.subscribe(self._on_connection_changed, EventFilter(event_type=event_type))

        self.update_status()
        await self.initialize()

    async def initialize(self) -> bool:
        """
        Force-refresh the device cache and seed the engine from it.

        Never raises: a failure is logged, shown as status, and retried on
        the next input, device event, or system-ready.

        Returns:
            True if the engine was seeded
        """
        try:
            await self.hub.refresh_device_cache(force=True)
        except Exception as e:
            self._initialized = False
            logger.warning(f"{self.type_name} {self.id}: unable to initialize devices: {e}")
            self.status("red", "ring", "Uninitialized")
            return False

        values = {}
        for device_id in self.config.device_ids:
            device = find_device(self.hub.devices, device_id)
            if device is not None:
                values[device_id] = device.attribute(self.config.attribute)

        self.engine.seed(values)
        self._initialized = True
        self.update_status()
        return True

    # =========================================================================
    # Event Handling
    # =========================================================================

    async def _on_device_event(self, event: Event) -> None:
        logger.debug(f"{self.type_name} {self.id}: event {event.name}={event.value} from {event.device_id}")
        if not self._initialized and not await self.initialize():
            return

        if event.name != self.config.attribute:
            return

        result = self.engine.update(event.device_id, event.value)
        if result is None:
            return
        self._commit(result, event)

    async def _on_system_ready(self, event: Event) -> None:
        await self.initialize()

    def _on_connection_changed(self, event: Event) -> None:
        self.update_status()

    def _commit(self, result: EvaluationResult, event: Event) -> None:
        self.update_status()
        if result.rising and self.sends_events:
            state = self.engine.state.device_states.get(str(event.device_id))
            self.send(
                {
                    "payload": {**event.as_message(), "state": state},
                    "topic": self.config.topic,
                }
            )

    # =========================================================================
    # Input
    # =========================================================================

    async def on_input(self, message: Message) -> None:
        """Pass the message through while the predicate is true, else send None."""
        if not self.is_configured:
            return
        if not self._initialized and not await self.initialize():
            return

        if not self.config.device_ids:
            logger.error(f"{self.type_name} {self.id}: Undefined device ID(s)")
            self.update_status()
            return

        result = self.engine.evaluate()
        self.update_status()
        self.send(message if result.logic_state else None)

    # =========================================================================
    # Status
    # =========================================================================

    def status_text(self) -> str:
        logic_state = self.engine.logic_state
        if logic_state is None:
            return "waiting for events"

        parts = [
            self.config.mode.value.upper(),
            str(self.config.target_value),
            "TRUE" if logic_state else "FALSE",
        ]
        last_flip = self.engine.last_flip
        if last_flip is not None:
            parts.append(last_flip.astimezone().strftime("%Y-%m-%d %H:%M:%S"))
        return " ".join(parts)

    def update_status(self) -> None:
        self.status(
            "green" if self.engine.logic_state else "grey",
            "dot" if self.sends_events else "ring",
            self.status_text(),
        )
