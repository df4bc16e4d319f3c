"""
Property twin state.

Tracks desired and reported values of one device property together
with the reconciliation phase and collection/write counters.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..messages import TwinPropertyStatus, TwinValue, ValueMetadata, now_ms
from ..models.definitions import DataType


class TwinPhase(str, Enum):
    """Reconciliation phase of a property."""
    UNSET = "Unset"
    DESIRED = "Desired"
    REPORTED = "Reported"
    SYNCED = "Synced"
    DEGRADED = "Degraded"


@dataclass
class PropertyTwin:
    """
    Desired/reported state of one (device, property).

    Values are stored in canonical string form, so equality of
    desired and reported is plain string comparison.
    """
    device_id: str
    property_name: str
    data_type: DataType
    data_topic: Optional[str] = None

    desired: Optional[TwinValue] = None
    reported: Optional[TwinValue] = None
    phase: TwinPhase = TwinPhase.UNSET
    last_error: Optional[str] = None

    # Writes sent since the current desired value was set
    write_attempts: int = 0
    writes_exhausted: bool = False
    write_pending: bool = False

    # Collection metrics
    consecutive_failures: int = 0
    total_collects: int = 0
    successful_collects: int = 0
    total_writes: int = 0
    last_collected_at: Optional[datetime] = None
    last_reported_at: Optional[datetime] = None

    @property
    def in_sync(self) -> bool:
        return (
            self.desired is not None
            and self.reported is not None
            and self.desired.value == self.reported.value
        )

    @property
    def needs_write(self) -> bool:
        """A desired value exists and the device does not report it yet."""
        return (
            self.desired is not None
            and self.reported is not None
            and self.desired.value != self.reported.value
            and not self.writes_exhausted
        )

    def _metadata(self, timestamp: Optional[int] = None) -> ValueMetadata:
        return ValueMetadata(
            timestamp=timestamp if timestamp is not None else now_ms(),
            type=self.data_type.value,
        )

    def set_desired(self, canonical: str, timestamp: Optional[int] = None) -> None:
        """Record a new desired value and restart write accounting."""
        self.desired = TwinValue(value=canonical, metadata=self._metadata(timestamp))
        self.write_attempts = 0
        self.writes_exhausted = False
        self.write_pending = False
        if self.phase == TwinPhase.DEGRADED:
            return
        self._settle()

    def record_reported(self, canonical: str, timestamp: Optional[int] = None) -> None:
        """Record a successful collection."""
        now = datetime.now(timezone.utc)
        self.reported = TwinValue(value=canonical, metadata=self._metadata(timestamp))
        self.total_collects += 1
        self.successful_collects += 1
        self.consecutive_failures = 0
        self.last_collected_at = now

        if self.in_sync:
            self.write_pending = False
            self.write_attempts = 0
        self._settle()

        # Exhausted writes keep their cause until a new desired value arrives
        if self.phase != TwinPhase.DEGRADED:
            self.last_error = None

    def record_collect_failure(self, error: str) -> None:
        self.total_collects += 1
        self.consecutive_failures += 1
        self.last_error = error

    def record_write_sent(self) -> None:
        """A write was acknowledged; the next collection confirms it."""
        self.write_attempts += 1
        self.total_writes += 1
        self.write_pending = True

    def record_write_failure(self, error: str) -> None:
        self.last_error = error

    def mark_degraded(self, reason: str, writes_exhausted: bool = False) -> None:
        """Enter Degraded with a human-readable cause."""
        self.phase = TwinPhase.DEGRADED
        self.last_error = reason
        if writes_exhausted:
            self.writes_exhausted = True
            self.write_pending = False

    def mark_reported(self) -> None:
        self.last_reported_at = datetime.now(timezone.utc)

    def _settle(self) -> None:
        if self.reported is None:
            self.phase = TwinPhase.DESIRED if self.desired is not None else TwinPhase.UNSET
        elif self.in_sync:
            self.phase = TwinPhase.SYNCED
        elif self.desired is not None and self.writes_exhausted:
            self.phase = TwinPhase.DEGRADED
        else:
            self.phase = TwinPhase.REPORTED

    @property
    def is_degraded(self) -> bool:
        return self.phase == TwinPhase.DEGRADED

    def to_status(self) -> TwinPropertyStatus:
        """Project into the status entry published for the device."""
        return TwinPropertyStatus(
            property_name=self.property_name,
            desired=self.desired.model_copy(deep=True) if self.desired else None,
            reported=self.reported.model_copy(deep=True) if self.reported else None,
            phase=self.phase.value,
            error=self.last_error,
            data_topic=self.data_topic,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "device_id": self.device_id,
            "property_name": self.property_name,
            "type": self.data_type.value,
            "phase": self.phase.value,
            "desired": self.desired.value if self.desired else None,
            "reported": self.reported.value if self.reported else None,
            "last_error": self.last_error,
            "write_attempts": self.write_attempts,
            "write_pending": self.write_pending,
            "consecutive_failures": self.consecutive_failures,
            "total_collects": self.total_collects,
            "successful_collects": self.successful_collects,
            "total_writes": self.total_writes,
            "last_collected_at": (
                self.last_collected_at.isoformat() if self.last_collected_at else None
            ),
        }

    def __repr__(self) -> str:
        return (
            f"PropertyTwin("
            f"device={self.device_id}, "
            f"property={self.property_name}, "
            f"phase={self.phase.value})"
        )
