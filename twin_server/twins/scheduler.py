"""
Reconcile scheduler.

Runs one asyncio task per (device, property), each with its own
collect and report deadlines.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..config import ReconcileSettings
from ..exceptions import ConfigError, TransportError
from .reconciler import PropertyReconciler

logger = logging.getLogger(__name__)

TaskKey = Tuple[str, str]


class ReconcileScheduler:
    """
    Manages reconciliation tasks for all admitted properties.

    Features:
    - Independent collect/report cycles per property
    - Pause while the transport is offline
    - Immediate cancellation on device or property removal
    """

    def __init__(self, settings: Optional[ReconcileSettings] = None):
        """
        Initialize the scheduler.

        Args:
            settings: Reconcile settings.
        """
        self.settings = settings or ReconcileSettings()

        self._tasks: Dict[TaskKey, asyncio.Task] = {}
        self._reconcilers: Dict[TaskKey, PropertyReconciler] = {}

        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler and any reconcilers added before it."""
        logger.info("Starting reconcile scheduler")
        self._running = True
        self._shutdown_event.clear()

        for key, reconciler in list(self._reconcilers.items()):
            if key not in self._tasks:
                self._spawn(key, reconciler)

    async def stop(self) -> None:
        """Stop the scheduler and cancel every task."""
        logger.info("Stopping reconcile scheduler")
        self._running = False
        self._shutdown_event.set()

        for key in list(self._tasks):
            await self._cancel_task(key)

        logger.info("Reconcile scheduler stopped")

    async def schedule(self, reconciler: PropertyReconciler) -> None:
        """
        Start reconciling a property.

        A reconciler already scheduled under the same key is cancelled
        first. Before ``start`` the reconciler is only remembered.
        """
        key = (reconciler.device_id, reconciler.property_name)
        await self.cancel_property(*key)
        self._reconcilers[key] = reconciler

        if self._running:
            self._spawn(key, reconciler)

    def _spawn(self, key: TaskKey, reconciler: PropertyReconciler) -> None:
        task = asyncio.create_task(
            self._reconcile_loop(reconciler),
            name=f"reconcile_{key[0]}_{key[1]}",
        )
        self._tasks[key] = task
        logger.debug(
            f"Scheduled {key[0]}/{key[1]} "
            f"(collect={reconciler.resolved.collect_cycle}s, "
            f"report={reconciler.resolved.report_cycle}s)"
        )

    async def _cancel_task(self, key: TaskKey) -> None:
        task = self._tasks.pop(key, None)
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def cancel_property(self, device_id: str, property_name: str) -> None:
        """Stop reconciling one property."""
        key = (device_id, property_name)
        self._reconcilers.pop(key, None)
        await self._cancel_task(key)

    async def cancel_device(self, device_id: str) -> None:
        """Stop reconciling every property of a device."""
        keys = [key for key in self._reconcilers if key[0] == device_id]
        keys += [key for key in self._tasks if key[0] == device_id and key not in keys]
        for key in keys:
            await self.cancel_property(*key)
        if keys:
            logger.debug(f"Cancelled {len(keys)} reconcile tasks for {device_id}")

    async def _reconcile_loop(self, reconciler: PropertyReconciler) -> None:
        """
        Collect/report loop for one property.

        Args:
            reconciler: Property reconciler to drive.
        """
        loop = asyncio.get_running_loop()
        resolved = reconciler.resolved
        name = f"{reconciler.device_id}/{reconciler.property_name}"

        next_collect = loop.time()
        next_report = loop.time() + resolved.report_cycle

        logger.debug(f"Starting reconcile loop for {name}")

        while self._running:
            try:
                if not reconciler.router.is_online:
                    await self._wait_online(reconciler, name)

                now = loop.time()
                if now >= next_collect:
                    try:
                        await reconciler.run_cycle()
                    except TransportError as e:
                        logger.warning(f"Transport error for {name}: {e.message}")
                    next_collect = max(next_collect + resolved.collect_cycle, loop.time())

                now = loop.time()
                if now >= next_report:
                    await reconciler.push_report()
                    next_report = max(next_report + resolved.report_cycle, now)

                delay = max(min(next_collect, next_report) - loop.time(), 0)
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

            except asyncio.CancelledError:
                logger.debug(f"Reconcile loop cancelled for {name}")
                raise
            except ConfigError:
                await reconciler.push_report()
                logger.error(f"Stopping reconcile loop for {name}: {reconciler.twin.last_error}")
                break
            except Exception as e:
                logger.error(f"Unexpected error in reconcile loop for {name}: {e}")
                await asyncio.sleep(resolved.collect_cycle)

        logger.debug(f"Reconcile loop ended for {name}")

    async def _wait_online(self, reconciler: PropertyReconciler, name: str) -> None:
        """
        Pause a property until the transport is back.

        With a reconnect timeout, each window waits reconn_timeout
        seconds and reconn_retry_times extra windows are allowed. Once
        they all expire the property is marked Degraded and reported,
        then the pause continues until the transport returns.
        """
        router = reconciler.router
        resolved = reconciler.resolved
        logger.info(f"Transport offline, pausing {name}")

        if resolved.reconn_timeout:
            windows = resolved.reconn_retry_times + 1
            for window in range(windows):
                try:
                    await asyncio.wait_for(router.wait_online(), timeout=resolved.reconn_timeout)
                    break
                except asyncio.TimeoutError:
                    logger.debug(f"Reconnect window {window + 1}/{windows} expired for {name}")
            else:
                offline_for = resolved.reconn_timeout * windows
                await reconciler.mark_offline(offline_for)
                logger.warning(f"Transport offline for {offline_for:g}s, {name} degraded")
                await reconciler.push_report()

        await router.wait_online()
        logger.info(f"Transport online, resuming {name}")

    def is_scheduled(self, device_id: str, property_name: str) -> bool:
        task = self._tasks.get((device_id, property_name))
        return task is not None and not task.done()

    def get_scheduled(self) -> List[TaskKey]:
        return [key for key, task in self._tasks.items() if not task.done()]

    def get_stats(self) -> Dict[str, Any]:
        active = sum(1 for task in self._tasks.values() if not task.done())
        return {
            "running": self._running,
            "active_tasks": active,
            "total_tasks": len(self._tasks),
            "reconcilers": len(self._reconcilers),
        }
