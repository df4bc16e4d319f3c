"""
In-process simulators for twin server testing.

Provides a transport, virtual devices that answer property frames and
edge nodes that apply object messages, so reconciliation and object
sync can be tested end to end without real connections.
"""
from .device_simulator import DeviceSimulator
from .edge_simulator import EdgeNodeSimulator
from .transport import SimulatedTransport

__all__ = [
    "DeviceSimulator",
    "EdgeNodeSimulator",
    "SimulatedTransport",
]
