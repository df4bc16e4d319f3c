"""
Object sync tracker.

Remembers, per edge target, the last resource version of every cloud
object the target acknowledged. Versions only move forward.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from ..exceptions import ConfigError, SyncConflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectKey:
    """
    Identity of a synced object on one edge target.

    Namespaced objects set ``namespace``; cluster-scoped objects set
    ``cluster`` instead.
    """
    target: str
    object_type: str
    object_name: str
    namespace: Optional[str] = None
    cluster: Optional[str] = None

    def __post_init__(self):
        if self.namespace is not None and self.cluster is not None:
            raise ConfigError(
                f"Object {self.object_type}/{self.object_name} cannot be both "
                f"namespaced and cluster scoped"
            )

    @property
    def is_cluster_scoped(self) -> bool:
        return self.cluster is not None

    @property
    def kind(self) -> str:
        return "ClusterObjectSync" if self.is_cluster_scoped else "ObjectSync"

    def __str__(self) -> str:
        scope = self.cluster if self.is_cluster_scoped else (self.namespace or "default")
        return f"{self.target}:{scope}/{self.object_type}/{self.object_name}"


@dataclass
class ObjectSync:
    """Last acknowledged version of an object on a target."""
    key: ObjectKey
    resource_version: int
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.key.kind,
            "target": self.key.target,
            "object_type": self.key.object_type,
            "object_name": self.key.object_name,
            "namespace": self.key.namespace,
            "cluster": self.key.cluster,
            "object_resource_version": str(self.resource_version),
            "updated_at": self.updated_at.isoformat(),
        }


def parse_resource_version(value: Any) -> int:
    """
    Parse a resource version into an integer.

    Raises:
        ConfigError: If the value is not a non-negative integer.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid resource version {value!r}")
    try:
        version = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid resource version {value!r}")
    if version < 0:
        raise ConfigError(f"Invalid resource version {value!r}")
    return version


class ObjectSyncTracker:
    """
    Monotonic resource version store.

    Every update of a key runs under that key's lock, so a
    compare-and-set never races with another update of the same key.
    A key's lock lives only as long as its record.
    """

    def __init__(self):
        self._records: Dict[ObjectKey, ObjectSync] = {}
        self._locks: Dict[ObjectKey, threading.Lock] = {}
        self._guard = threading.Lock()

        self._conflicts = 0

    @contextmanager
    def _locked(self, key: ObjectKey) -> Iterator[None]:
        while True:
            with self._guard:
                lock = self._locks.get(key)
                if lock is None:
                    lock = self._locks[key] = threading.Lock()
            lock.acquire()
            with self._guard:
                current = self._locks.get(key) is lock
            if current:
                break
            # Dropped from the map by a forget() while we waited
            lock.release()

        try:
            yield
        finally:
            with self._guard:
                if key not in self._records and self._locks.get(key) is lock:
                    del self._locks[key]
            lock.release()

    def record_applied(self, key: ObjectKey, resource_version: Any) -> bool:
        """
        Record that a target applied a version of an object.

        Returns:
            True if recorded; False for a stale or duplicate version,
            which is logged as a SyncConflict and dropped.
        """
        version = parse_resource_version(resource_version)

        with self._locked(key):
            stored = self._records.get(key)
            if stored is not None and version <= stored.resource_version:
                conflict = SyncConflict(key, stored.resource_version, version)
                self._conflicts += 1
                logger.info(f"Dropping update: {conflict.message}")
                return False
            self._records[key] = ObjectSync(key=key, resource_version=version)

        logger.debug(f"Recorded {key} at version {version}")
        return True

    def needs_replay(self, key: ObjectKey, current_resource_version: Any) -> bool:
        """True if the target has no record or an older version."""
        version = parse_resource_version(current_resource_version)
        stored = self._records.get(key)
        return stored is None or stored.resource_version < version

    def forget(self, key: ObjectKey) -> bool:
        """Delete the record of an object. Returns False if absent."""
        if key not in self._records:
            return False
        with self._locked(key):
            removed = self._records.pop(key, None)
        if removed is not None:
            logger.debug(f"Forgot {key}")
        return removed is not None

    def get(self, key: ObjectKey) -> Optional[ObjectSync]:
        return self._records.get(key)

    def records_for_target(self, target: str) -> List[ObjectSync]:
        """All records scoped to one edge target."""
        records = [r for r in list(self._records.values()) if r.key.target == target]
        return sorted(records, key=lambda r: str(r.key))

    def targets(self) -> List[str]:
        return sorted({key.target for key in list(self._records)})

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    @property
    def conflicts(self) -> int:
        return self._conflicts

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: ObjectKey) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[ObjectSync]:
        return iter(list(self._records.values()))
