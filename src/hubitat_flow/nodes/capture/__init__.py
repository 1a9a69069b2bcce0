"""
Capture node and snapshot store for hubitat-flow.
"""

from .node import CaptureConfig, CaptureNode
from .store import CAPTURE_ATTRIBUTES, Snapshot, SnapshotStore, build_snapshot

__all__ = [
    "CaptureNode",
    "CaptureConfig",
    "SnapshotStore",
    "Snapshot",
    "CAPTURE_ATTRIBUTES",
    "build_snapshot",
]
