"""
Property twins: state, reconciliation and scheduling.
"""
from .twin_state import PropertyTwin, TwinPhase
from .reconciler import PropertyReconciler
from .scheduler import ReconcileScheduler
from .status import StatusStream
from .device_manager import TwinDeviceManager

__all__ = [
    "PropertyTwin",
    "TwinPhase",
    "PropertyReconciler",
    "ReconcileScheduler",
    "StatusStream",
    "TwinDeviceManager",
]
