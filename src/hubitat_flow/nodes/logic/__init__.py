"""
Logic node for hubitat-flow.

Aggregates one attribute across a set of devices into a single boolean:
- ALL / ANY evaluation modes
- Flip detection with last-flip timestamp
- Gate and event emission policies
"""

from .engine import AggregationEngine
from .models import (
    AggregationState,
    EmissionPolicy,
    EvaluationResult,
    LogicConfig,
    LogicMode,
    DEVICE_TYPE_ATTRIBUTES,
)
from .node import LogicNode

__all__ = [
    "LogicNode",
    "AggregationEngine",
    "AggregationState",
    "EmissionPolicy",
    "EvaluationResult",
    "LogicConfig",
    "LogicMode",
    "DEVICE_TYPE_ATTRIBUTES",
]
