"""
Host runtime interface.

The host flow-graph runtime delivers input messages to nodes, forwards
their output, shows their status, and owns the flow-scoped key/value store.
The integration layer provides a concrete implementation; MockNodeHost is
provided for tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

Message = Dict[str, Any]


@dataclass(frozen=True)
class NodeStatus:
    """
    Status indicator shown under a node.

    fill: "green" (active predicate / restored), "grey" (idle), "red" (error)
    shape: "dot" or "ring"
    """

    fill: str
    shape: str
    text: str = ""


class FlowContext(ABC):
    """Flow-scoped key/value store shared by all nodes of a flow."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get a stored value (None if absent)."""
        pass

    @abstractmethod
    def set(self, key: str, value: Optional[Any]) -> None:
        """Store a value; None clears the key."""
        pass

    def keys(self) -> List[str]:
        """List stored keys (optional)."""
        return []


class InMemoryFlowContext(FlowContext):
    """Dict-backed flow context."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Optional[Any]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data)


class NodeHost(ABC):
    """
    Abstract interface for the host runtime.

    This interface is intentionally minimal:
    - send: Forward a message downstream (None = explicit suppress)
    - set_status: Update the node's status indicator
    - flow_context: Flow-scoped storage
    """

    @abstractmethod
    def send(self, node_id: str, message: Optional[Message]) -> None:
        """
        Forward a node's output.

        Args:
            node_id: Sending node
            message: Output message, or None to signal "nothing passes"
        """
        pass

    @abstractmethod
    def set_status(self, node_id: str, status: NodeStatus) -> None:
        """Show a node's status."""
        pass

    @property
    @abstractmethod
    def flow_context(self) -> FlowContext:
        """Flow-scoped key/value store."""
        pass


class MockNodeHost(NodeHost):
    """
    Mock host for testing.

    Records every send and status update per node.
    """

    def __init__(self, flow_context: Optional[FlowContext] = None) -> None:
        self._flow_context = flow_context or InMemoryFlowContext()
        self._sent: List[Tuple[str, Optional[Message]]] = []
        self._statuses: List[Tuple[str, NodeStatus]] = []

    def get_sent(self, node_id: Optional[str] = None) -> List[Optional[Message]]:
        """Get sent messages (optionally for one node)."""
        return [msg for nid, msg in self._sent if node_id is None or nid == node_id]

    def get_statuses(self, node_id: Optional[str] = None) -> List[NodeStatus]:
        """Get status updates (optionally for one node)."""
        return [s for nid, s in self._statuses if node_id is None or nid == node_id]

    def last_status(self, node_id: str) -> Optional[NodeStatus]:
        statuses = self.get_statuses(node_id)
        return statuses[-1] if statuses else None

    def clear(self) -> None:
        """Forget recorded sends and statuses."""
        self._sent.clear()
        self._statuses.clear()

    # NodeHost implementation

    def send(self, node_id: str, message: Optional[Message]) -> None:
        self._sent.append((node_id, message))

    def set_status(self, node_id: str, status: NodeStatus) -> None:
        self._statuses.append((node_id, status))

    @property
    def flow_context(self) -> FlowContext:
        return self._flow_context
