"""
Twin device manager.

Admits devices, builds one reconciler per property, applies desired
writes and publishes device status snapshots.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ..codecs.engine import CodecEngine
from ..config import ReconcileSettings
from ..exceptions import ConfigError, NotFoundError
from ..messages import DeviceStatusUpdate, WriteResult
from ..models.definitions import Device
from ..models.registry import DeviceModelRegistry
from ..models.resolver import DeviceBinding, VisitorResolver
from ..transport.router import ReceiveRouter
from .reconciler import PropertyReconciler
from .scheduler import ReconcileScheduler
from .status import StatusStream
from .twin_state import PropertyTwin, TwinPhase

logger = logging.getLogger(__name__)


class TwinDeviceManager:
    """
    Manages admitted devices and their property twins.

    Responsibilities:
    - Validate devices at admission and hold model references
    - Create and schedule property reconcilers
    - Accept or reject desired writes
    - Publish status snapshots
    """

    def __init__(
        self,
        registry: DeviceModelRegistry,
        engine: CodecEngine,
        router: ReceiveRouter,
        scheduler: Optional[ReconcileScheduler] = None,
        status_stream: Optional[StatusStream] = None,
        settings: Optional[ReconcileSettings] = None,
    ):
        """
        Initialize the device manager.

        Args:
            registry: Device model registry.
            engine: Codec engine.
            router: Request/response access to the transport.
            scheduler: Reconcile scheduler.
            status_stream: Stream receiving status snapshots.
            settings: Reconcile settings.
        """
        self.registry = registry
        self.engine = engine
        self.router = router
        self.settings = settings or ReconcileSettings()
        self.scheduler = scheduler or ReconcileScheduler(self.settings)
        self.status_stream = status_stream or StatusStream()
        self.resolver = VisitorResolver(registry, engine, self.settings)

        self._bindings: Dict[str, DeviceBinding] = {}
        self._reconcilers: Dict[str, Dict[str, PropertyReconciler]] = {}

        # Callbacks
        self._on_device_added: Optional[Callable] = None
        self._on_device_removed: Optional[Callable] = None

        self._lock = asyncio.Lock()

    async def admit_device(self, device: Device) -> DeviceBinding:
        """
        Admit a device and start reconciling its properties.

        Re-admitting a device replaces its previous definition.

        Raises:
            ConfigError: If the device fails validation. Nothing is
                scheduled in that case.
        """
        async with self._lock:
            binding = self.resolver.resolve(device)

            if device.device_id in self._bindings:
                await self._remove_locked(device.device_id)
                # The model may have been replaced while the old tasks stopped
                binding = self.resolver.resolve(device)

            self.registry.acquire(binding.model.name, device.device_id)

            reconcilers = {
                name: PropertyReconciler(
                    resolved,
                    self.engine,
                    self.router,
                    self.settings,
                    on_report=self._on_property_report,
                )
                for name, resolved in binding.visitors.items()
            }
            self._bindings[device.device_id] = binding
            self._reconcilers[device.device_id] = reconcilers

            for reconciler in reconcilers.values():
                await self.scheduler.schedule(reconciler)

        logger.info(
            f"Admitted device {device.device_id} "
            f"(model={binding.model.name}, protocol={device.protocol_type.value}, "
            f"properties={len(binding.visitors)})"
        )

        if self._on_device_added:
            try:
                await self._on_device_added(device.device_id, binding)
            except Exception as e:
                logger.error(f"Error in on_device_added callback: {e}")

        return binding

    async def remove_device(self, device_id: str) -> bool:
        """
        Remove a device, cancelling all of its tasks immediately.

        Returns:
            True if the device was admitted.
        """
        async with self._lock:
            binding = await self._remove_locked(device_id)

        if binding is None:
            return False

        logger.info(f"Removed device {device_id}")

        if self._on_device_removed:
            try:
                await self._on_device_removed(device_id, binding)
            except Exception as e:
                logger.error(f"Error in on_device_removed callback: {e}")
        return True

    async def _remove_locked(self, device_id: str) -> Optional[DeviceBinding]:
        binding = self._bindings.pop(device_id, None)
        if binding is None:
            return None
        await self.scheduler.cancel_device(device_id)
        self._reconcilers.pop(device_id, None)
        self.registry.release(binding.model.name, device_id)
        self.status_stream.forget(device_id)
        return binding

    async def remove_property(self, device_id: str, property_name: str) -> bool:
        """Stop reconciling one property of a device."""
        async with self._lock:
            reconcilers = self._reconcilers.get(device_id, {})
            if reconcilers.pop(property_name, None) is None:
                return False
            await self.scheduler.cancel_property(device_id, property_name)
        logger.info(f"Removed property {property_name} from {device_id}")
        return True

    def _require_reconciler(self, device_id: str, property_name: str) -> PropertyReconciler:
        reconcilers = self._reconcilers.get(device_id)
        if reconcilers is None:
            raise NotFoundError("Device", device_id)
        reconciler = reconcilers.get(property_name)
        if reconciler is None:
            raise NotFoundError("Property", f"{device_id}/{property_name}")
        return reconciler

    async def set_desired(self, device_id: str, property_name: str, value: Any) -> WriteResult:
        """
        Request a desired value.

        Returns:
            WriteResult accepting the canonical value or rejecting it
            with the reason.

        Raises:
            NotFoundError: If the device or property is unknown.
        """
        reconciler = self._require_reconciler(device_id, property_name)

        try:
            canonical = await reconciler.set_desired(value)
        except ConfigError as e:
            logger.info(f"Rejected desired {device_id}/{property_name}: {e.message}")
            return WriteResult(
                device_id=device_id,
                property_name=property_name,
                accepted=False,
                reason=e.message,
            )

        await self.publish_status(device_id)
        return WriteResult(
            device_id=device_id,
            property_name=property_name,
            accepted=True,
            desired=canonical,
        )

    async def _on_property_report(self, twin: PropertyTwin) -> None:
        await self.publish_status(twin.device_id)

    async def publish_status(self, device_id: str) -> Optional[DeviceStatusUpdate]:
        """Publish the current snapshot of a device."""
        if device_id not in self._bindings:
            return None
        update = self.get_status(device_id)
        await self.status_stream.publish(update)
        return update

    def get_status(self, device_id: str) -> DeviceStatusUpdate:
        """
        Build the status snapshot of a device.

        Raises:
            NotFoundError: If the device is unknown.
        """
        binding = self._bindings.get(device_id)
        if binding is None:
            raise NotFoundError("Device", device_id)

        reconcilers = self._reconcilers.get(device_id, {})
        twins = [
            reconcilers[name].snapshot()
            for name in binding.model.property_names
            if name in reconcilers
        ]
        return DeviceStatusUpdate(
            device_id=device_id,
            namespace=binding.device.namespace,
            twins=twins,
        )

    def get_twin(self, device_id: str, property_name: str) -> PropertyTwin:
        return self._require_reconciler(device_id, property_name).twin

    def get_reconciler(self, device_id: str, property_name: str) -> Optional[PropertyReconciler]:
        return self._reconcilers.get(device_id, {}).get(property_name)

    def get_device(self, device_id: str) -> Optional[Device]:
        binding = self._bindings.get(device_id)
        return binding.device if binding else None

    def get_binding(self, device_id: str) -> Optional[DeviceBinding]:
        return self._bindings.get(device_id)

    def iter_devices(self) -> List[Device]:
        return [binding.device for binding in self._bindings.values()]

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, device_id: str) -> bool:
        return device_id in self._bindings

    def set_on_device_added(self, callback: Callable) -> None:
        """Set callback for device added events."""
        self._on_device_added = callback

    def set_on_device_removed(self, callback: Callable) -> None:
        """Set callback for device removed events."""
        self._on_device_removed = callback

    def get_stats(self) -> Dict[str, Any]:
        """Get device and twin statistics."""
        by_phase = {phase.value: 0 for phase in TwinPhase}
        for reconcilers in self._reconcilers.values():
            for reconciler in reconcilers.values():
                by_phase[reconciler.phase.value] += 1

        return {
            "total_devices": len(self._bindings),
            "total_properties": sum(len(r) for r in self._reconcilers.values()),
            "by_phase": by_phase,
            "scheduler": self.scheduler.get_stats(),
        }
