"""
Reliable cloud-to-edge object sync.
"""
from .tracker import ObjectKey, ObjectSync, ObjectSyncTracker, parse_resource_version
from .controller import (
    ObjectSyncController,
    ReplayResult,
    SourceObject,
    TransportDispatcher,
)
from .applier import EdgeObjectApplier

__all__ = [
    "ObjectKey",
    "ObjectSync",
    "ObjectSyncTracker",
    "parse_resource_version",
    "ObjectSyncController",
    "ReplayResult",
    "SourceObject",
    "TransportDispatcher",
    "EdgeObjectApplier",
]
