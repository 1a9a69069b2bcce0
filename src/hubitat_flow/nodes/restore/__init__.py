"""
Restore node for hubitat-flow.

Replays captured snapshots:
- CommandPlanner: snapshot -> ordered, device-class-specific commands
- CommandDispatcher: single-flight, paced command execution
- RestoreNode: per-device restore tasks with per-device error reporting
"""

from .dispatcher import CommandDispatcher, encode_arguments
from .models import DispatchOutcome, PlannedCommand, restore_error_record
from .node import RestoreConfig, RestoreNode
from .planner import CommandPlanner

__all__ = [
    "RestoreNode",
    "RestoreConfig",
    "CommandPlanner",
    "CommandDispatcher",
    "encode_arguments",
    "PlannedCommand",
    "DispatchOutcome",
    "restore_error_record",
]
