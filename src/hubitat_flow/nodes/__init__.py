"""
Nodes package for hubitat-flow.

Nodes are the flow-graph units bound to a hub connection.
"""

from hubitat_flow.nodes.base import HubitatNode

__all__ = ["HubitatNode"]
