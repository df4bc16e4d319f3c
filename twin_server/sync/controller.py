"""
Reliable object sync controller.

Delivers cloud object mutations to edge targets and records what each
target acknowledged. On reconnect, replays everything a target missed
and deletes what disappeared upstream while it was away.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

from ..config import SyncSettings
from ..exceptions import TransportError
from ..messages import ObjectAck, ObjectMessage, ObjectOperation
from ..transport.router import ReceiveRouter
from .tracker import ObjectKey, ObjectSync, ObjectSyncTracker, parse_resource_version

logger = logging.getLogger(__name__)


@dataclass
class SourceObject:
    """Current upstream state of a cloud object."""
    object_type: str
    object_name: str
    resource_version: int
    namespace: Optional[str] = None
    cluster: Optional[str] = None
    body: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.resource_version = parse_resource_version(self.resource_version)

    def key_for(self, target: str) -> ObjectKey:
        return ObjectKey(
            target=target,
            object_type=self.object_type,
            object_name=self.object_name,
            namespace=self.namespace,
            cluster=self.cluster,
        )

    def to_message(self) -> ObjectMessage:
        return ObjectMessage(
            operation=ObjectOperation.UPSERT,
            object_type=self.object_type,
            object_name=self.object_name,
            namespace=self.namespace,
            cluster=self.cluster,
            resource_version=self.resource_version,
            body=self.body,
        )


@dataclass
class ReplayResult:
    """Outcome of a reconnect replay."""
    target: str
    replayed: int = 0
    skipped: int = 0
    deleted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "replayed": self.replayed,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class ObjectDispatcher(Protocol):
    """Delivers one object message and returns the edge ack."""

    async def deliver(self, target: str, message: ObjectMessage) -> ObjectAck:
        ...


class TransportDispatcher:
    """Dispatcher sending object messages through the receive router."""

    def __init__(self, router: ReceiveRouter, ack_timeout: float):
        self.router = router
        self.ack_timeout = ack_timeout

    async def deliver(self, target: str, message: ObjectMessage) -> ObjectAck:
        return await self.router.send_object(target, message, self.ack_timeout)


class ObjectSyncController:
    """
    Drives object delivery for every edge target.

    Live dispatch and replay share the needs-replay / record-on-ack
    path, so they can run concurrently for the same target.
    """

    def __init__(
        self,
        tracker: ObjectSyncTracker,
        dispatcher: ObjectDispatcher,
        settings: Optional[SyncSettings] = None,
    ):
        """
        Initialize the controller.

        Args:
            tracker: Resource version store.
            dispatcher: Delivers messages and returns acks.
            settings: Sync settings.
        """
        self.tracker = tracker
        self.dispatcher = dispatcher
        self.settings = settings or SyncSettings()

        # Stats
        self._dispatched = 0
        self._deleted = 0
        self._rejected = 0

    async def dispatch(self, target: str, obj: SourceObject) -> bool:
        """
        Deliver an object to a target unless it already has the version.

        Returns:
            True if the target acknowledged and the version was recorded.

        Raises:
            TransportError: If delivery fails or is not acknowledged.
        """
        key = obj.key_for(target)
        if not self.tracker.needs_replay(key, obj.resource_version):
            logger.debug(f"{key} already at version {obj.resource_version}")
            return False

        ack = await self.dispatcher.deliver(target, obj.to_message())
        self._dispatched += 1

        if not ack.applied:
            self._rejected += 1
            logger.warning(f"Target {target} rejected {key}: {ack.error}")
            return False

        return self.tracker.record_applied(key, obj.resource_version)

    async def delete(self, target: str, record: ObjectSync) -> bool:
        """
        Tell a target to delete an object and forget it once acknowledged.

        Raises:
            TransportError: If delivery fails or is not acknowledged.
        """
        key = record.key
        message = ObjectMessage(
            operation=ObjectOperation.DELETE,
            object_type=key.object_type,
            object_name=key.object_name,
            namespace=key.namespace,
            cluster=key.cluster,
            resource_version=record.resource_version,
        )
        ack = await self.dispatcher.deliver(target, message)

        if not ack.applied:
            self._rejected += 1
            logger.warning(f"Target {target} refused delete of {key}: {ack.error}")
            return False

        self.tracker.forget(key)
        self._deleted += 1
        logger.info(f"Deleted {key} on {target}")
        return True

    async def replay(self, target: str, live_objects: Iterable[SourceObject]) -> ReplayResult:
        """
        Bring a reconnected target up to date.

        Every live object whose record is absent or older is sent;
        recorded objects missing upstream are deleted. Failures are
        counted and left for the next replay.
        """
        result = ReplayResult(target=target)
        live = list(live_objects)
        live_keys = {obj.key_for(target) for obj in live}
        stale = [r for r in self.tracker.records_for_target(target) if r.key not in live_keys]

        logger.info(
            f"Replaying {len(live)} objects to {target} "
            f"({len(stale)} recorded objects gone upstream)"
        )

        semaphore = asyncio.Semaphore(max(1, self.settings.replay_concurrency))

        async def send_one(obj: SourceObject) -> None:
            async with semaphore:
                try:
                    if await self.dispatch(target, obj):
                        result.replayed += 1
                    else:
                        result.skipped += 1
                except TransportError as e:
                    result.failed += 1
                    result.errors.append(e.message)

        async def delete_one(record: ObjectSync) -> None:
            async with semaphore:
                try:
                    if await self.delete(target, record):
                        result.deleted += 1
                    else:
                        result.failed += 1
                except TransportError as e:
                    result.failed += 1
                    result.errors.append(e.message)

        await asyncio.gather(
            *(send_one(obj) for obj in live),
            *(delete_one(record) for record in stale),
        )

        logger.info(
            f"Replay to {target} done: {result.replayed} sent, {result.skipped} "
            f"up to date, {result.deleted} deleted, {result.failed} failed"
        )
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "records": len(self.tracker),
            "targets": len(self.tracker.targets()),
            "dispatched": self._dispatched,
            "deleted": self._deleted,
            "rejected": self._rejected,
            "conflicts": self.tracker.conflicts,
        }
