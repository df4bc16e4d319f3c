"""
Device status stream.

Fans out DeviceStatusUpdate snapshots to in-process subscribers
(queues) and callbacks, and keeps the latest snapshot per device.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..messages import DeviceStatusUpdate

logger = logging.getLogger(__name__)

StatusCallback = Callable[[DeviceStatusUpdate], Awaitable[None]]


class StatusStream:
    """
    Publish/subscribe hub for device status updates.

    A subscriber passes a device id to receive only that device's
    updates, or None for all devices. Slow subscribers lose the
    oldest queued update rather than blocking publishers.
    """

    def __init__(self, max_queue_size: int = 100):
        """
        Initialize the status stream.

        Args:
            max_queue_size: Bound of each subscriber queue.
        """
        self.max_queue_size = max_queue_size
        self._subscribers: List[Tuple[Optional[str], asyncio.Queue]] = []
        self._callbacks: List[StatusCallback] = []
        self._latest: Dict[str, DeviceStatusUpdate] = {}

        # Stats
        self._published = 0
        self._dropped = 0
        self._last_publish_time: Optional[datetime] = None

    def subscribe(self, device_id: Optional[str] = None) -> asyncio.Queue:
        """Create a queue receiving updates for one device or all devices."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.append((device_id, queue))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers = [(d, q) for d, q in self._subscribers if q is not queue]

    def add_callback(self, callback: StatusCallback) -> None:
        self._callbacks.append(callback)

    async def publish(self, update: DeviceStatusUpdate) -> None:
        """Deliver an update to every interested subscriber."""
        self._latest[update.device_id] = update
        self._published += 1
        self._last_publish_time = datetime.now(timezone.utc)

        for device_id, queue in self._subscribers:
            if device_id is not None and device_id != update.device_id:
                continue
            if queue.full():
                queue.get_nowait()
                self._dropped += 1
            queue.put_nowait(update)

        for callback in self._callbacks:
            try:
                await callback(update)
            except Exception as e:
                logger.error(f"Error in status callback: {e}")

    def latest(self, device_id: str) -> Optional[DeviceStatusUpdate]:
        return self._latest.get(device_id)

    def forget(self, device_id: str) -> None:
        self._latest.pop(device_id, None)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "published": self._published,
            "dropped": self._dropped,
            "subscribers": len(self._subscribers),
            "callbacks": len(self._callbacks),
            "last_publish_time": (
                self._last_publish_time.isoformat() if self._last_publish_time else None
            ),
        }
