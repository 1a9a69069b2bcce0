"""
Core components of hubitat-flow.

This package contains:
- bus: Event Bus implementation
- hub: Hub connection interface and mock
- maker_api: Maker API hub connection
- host: Host runtime interface and flow context
- devices: Device cache lookups and attribute normalization
- errors: Error types
"""

from hubitat_flow.core.bus import Event, EventBus, EventFilter, Subscription
from hubitat_flow.core.devices import Attribute, Device, find_device
from hubitat_flow.core.errors import (
    HubitatFlowError,
    ConfigurationError,
    ValidationError,
    TransportError,
    ProtocolError,
)
from hubitat_flow.core.host import (
    NodeHost,
    MockNodeHost,
    NodeStatus,
    FlowContext,
    InMemoryFlowContext,
)
from hubitat_flow.core.hub import HubConnection, HubResponse, MockHubConnection

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "Subscription",
    "Attribute",
    "Device",
    "find_device",
    "HubitatFlowError",
    "ConfigurationError",
    "ValidationError",
    "TransportError",
    "ProtocolError",
    "NodeHost",
    "MockNodeHost",
    "NodeStatus",
    "FlowContext",
    "InMemoryFlowContext",
    "HubConnection",
    "HubResponse",
    "MockHubConnection",
]
