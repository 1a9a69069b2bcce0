"""
hubitat-flow: Hubitat device state for event-driven flows.

This library provides:
- Event Bus for hub attribute-change and lifecycle events
- Logic node: ALL/ANY predicate over a device set with flip detection
- Capture node: device snapshots in flow-scoped storage
- Restore node: snapshot replay through a paced, single-flight command channel
"""

from hubitat_flow.core.bus import Event, EventBus, EventFilter
from hubitat_flow.core.host import NodeHost, NodeStatus
from hubitat_flow.core.hub import HubConnection
from hubitat_flow.nodes.capture import CaptureNode
from hubitat_flow.nodes.logic import LogicNode
from hubitat_flow.nodes.restore import RestoreNode

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventBus",
    "EventFilter",
    "NodeHost",
    "NodeStatus",
    "HubConnection",
    "LogicNode",
    "CaptureNode",
    "RestoreNode",
]
