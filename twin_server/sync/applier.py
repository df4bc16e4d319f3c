"""
Edge object applier.

Applies object messages on the edge side exactly once per resource
version, acknowledging duplicates without applying them again.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..messages import ObjectAck, ObjectMessage, ObjectOperation
from ..transport.router import ReceiveRouter
from .tracker import ObjectKey, ObjectSyncTracker

logger = logging.getLogger(__name__)

ApplyCallback = Callable[[ObjectMessage], Awaitable[None]]


class EdgeObjectApplier:
    """
    Idempotent receiver of cloud object messages.

    By default applied objects are kept in ``objects``; pass
    ``on_apply``/``on_delete`` to hand them to a local store instead.
    """

    def __init__(
        self,
        node_name: str,
        tracker: Optional[ObjectSyncTracker] = None,
        on_apply: Optional[ApplyCallback] = None,
        on_delete: Optional[ApplyCallback] = None,
    ):
        self.node_name = node_name
        self.tracker = tracker or ObjectSyncTracker()
        self._on_apply = on_apply
        self._on_delete = on_delete

        self.objects: Dict[ObjectKey, Dict[str, Any]] = {}
        self._locks: Dict[ObjectKey, asyncio.Lock] = {}

        # Stats
        self.applied = 0
        self.duplicates = 0
        self.failures = 0

    def attach(self, router: ReceiveRouter) -> None:
        """Receive object messages from a router and reply with acks."""

        async def on_object(sender: str, message: ObjectMessage) -> None:
            ack = await self.handle(message)
            await router.send(sender, ack)

        router.set_on_object(on_object)

    def _key(self, message: ObjectMessage) -> ObjectKey:
        return ObjectKey(
            target=self.node_name,
            object_type=message.object_type,
            object_name=message.object_name,
            namespace=message.namespace,
            cluster=message.cluster,
        )

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    async def handle(self, message: ObjectMessage) -> ObjectAck:
        """Apply one message and build its acknowledgement."""
        key = self._key(message)
        lock = await self._acquire(key)

        try:
            if message.operation == ObjectOperation.DELETE:
                return await self._delete(key, message)
            return await self._upsert(key, message)
        except Exception as e:
            self.failures += 1
            logger.error(f"Failed to apply {key} v{message.resource_version}: {e}")
            return ObjectAck(reply_to=message.message_id, applied=False, error=str(e))
        finally:
            # Keys without a record keep no lock
            if self.tracker.get(key) is None and self._locks.get(key) is lock:
                del self._locks[key]
            lock.release()

    async def _acquire(self, key: ObjectKey) -> asyncio.Lock:
        while True:
            lock = self._locks.setdefault(key, asyncio.Lock())
            await lock.acquire()
            if self._locks.get(key) is lock:
                return lock
            lock.release()

    async def _upsert(self, key: ObjectKey, message: ObjectMessage) -> ObjectAck:
        if not self.tracker.needs_replay(key, message.resource_version):
            self.duplicates += 1
            logger.debug(f"Duplicate {key} v{message.resource_version}, acknowledging")
            return ObjectAck(reply_to=message.message_id, duplicate=True)

        if self._on_apply:
            await self._on_apply(message)
        else:
            self.objects[key] = dict(message.body)

        self.tracker.record_applied(key, message.resource_version)
        self.applied += 1
        logger.debug(f"Applied {key} v{message.resource_version}")
        return ObjectAck(reply_to=message.message_id)

    async def _delete(self, key: ObjectKey, message: ObjectMessage) -> ObjectAck:
        if self.tracker.get(key) is None:
            self.duplicates += 1
            return ObjectAck(reply_to=message.message_id, duplicate=True)

        if self._on_delete:
            await self._on_delete(message)
        else:
            self.objects.pop(key, None)

        self.tracker.forget(key)
        logger.debug(f"Deleted {key}")
        return ObjectAck(reply_to=message.message_id)
