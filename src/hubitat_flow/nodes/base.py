"""
Base class for hubitat-flow nodes.

Nodes are the units the host flow runtime instantiates; each one binds to a
shared hub connection.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from hubitat_flow.core.bus import EventFilter, EventHandler, Subscription
from hubitat_flow.core.errors import ConfigurationError
from hubitat_flow.core.host import FlowContext, Message, NodeHost, NodeStatus
from hubitat_flow.core.hub import HubConnection

logger = logging.getLogger(__name__)


class HubitatNode(ABC):
    """
    Base class for flow nodes bound to a hub connection.

    A node:
    - Receives input messages from the host runtime
    - Reads device state from the hub connection's cache
    - Subscribes to hub events (and detaches them on close)
    - Reports status and sends output through the host runtime

    A node created without a hub connection logs a ConfigurationError and
    stays inert.
    """

    def __init__(
        self,
        node_id: str,
        host: NodeHost,
        hub: Optional[HubConnection],
        name: str = "",
    ) -> None:
        self.id = node_id
        self.name = name
        self._host = host
        self._hub = hub
        self._subscriptions: List[Subscription] = []
        self.configuration_error: Optional[ConfigurationError] = None

        if hub is None:
            self.configuration_error = ConfigurationError("Hubitat server not configured")
            logger.error(f"{self.type_name} {node_id}: {self.configuration_error}")
            self.status("red", "ring", str(self.configuration_error))

    @property
    @abstractmethod
    def type_name(self) -> str:
        """Node type as registered with the host runtime."""
        pass

    @property
    def is_configured(self) -> bool:
        return self.configuration_error is None

    @property
    def hub(self) -> HubConnection:
        if self._hub is None:
            raise ConfigurationError("Hubitat server not configured")
        return self._hub

    @property
    def flow_context(self) -> FlowContext:
        return self._host.flow_context

    async def start(self) -> None:
        """
        Start the node after construction.

        Override to subscribe to events or compute initial state.
        """
        pass

    @abstractmethod
    async def on_input(self, message: Message) -> None:
        """
        Handle an input message from the host runtime.

        Args:
            message: Inbound flow message
        """
        pass

    async def close(self, removed: bool = False) -> None:
        """
        Tear the node down.

        Detaches every event subscription. Override to add cleanup, calling
        super().close().

        Args:
            removed: True if the node is being deleted (not just redeployed)
        """
        self.unsubscribe_all()

    # =========================================================================
    # Helpers for subclasses
    # =========================================================================

    def subscribe(self, handler: EventHandler, event_filter: EventFilter) -> Subscription:
        """Subscribe on the hub's event bus; undone by close()."""
        subscription = self.hub.events.subscribe(handler, event_filter)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe_all(self) -> None:
        if self._hub is None:
            return
        for subscription in self._subscriptions:
            self._hub.events.unsubscribe(subscription)
        self._subscriptions.clear()

    def send(self, message: Optional[Message]) -> None:
        self._host.send(self.id, message)

    def status(self, fill: str, shape: str, text: str = "") -> None:
        self._host.set_status(self.id, NodeStatus(fill=fill, shape=shape, text=text))

    def default_config(self) -> Dict[str, Any]:
        """
        Get default configuration for this node type.

        Returns:
            Default configuration dict
        """
        return {}
