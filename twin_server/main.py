"""
Twin Server - Main Entry Point.

Starts the twin server that:
1. Loads device models and devices from YAML manifests
2. Validates devices and binds property visitors to codecs
3. Reconciles desired and reported values of every property
4. Delivers cloud object mutations reliably to edge targets
"""
import asyncio
import logging
import signal
import sys
from typing import Iterable, List, Optional

from .codecs.customized import CustomizedCodecRegistry
from .codecs.engine import CodecEngine
from .config import TwinServerSettings, get_twin_server_settings
from .exceptions import ConfigError
from .models.definitions import Device, DeviceModel
from .models.loader import ManifestLoader
from .models.registry import DeviceModelRegistry
from .sync.controller import ObjectSyncController, ReplayResult, SourceObject, TransportDispatcher
from .sync.tracker import ObjectSyncTracker
from .transport.base import Transport
from .transport.router import ReceiveRouter
from .twins.device_manager import TwinDeviceManager
from .twins.scheduler import ReconcileScheduler
from .twins.status import StatusStream

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the server process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


class TwinServer:
    """
    Main twin server orchestrator.

    Coordinates the model registry, codec engine, reconcilers and
    object sync over one externally managed transport.
    """

    def __init__(
        self,
        transport: Transport,
        settings: Optional[TwinServerSettings] = None,
        customized_codecs: Optional[CustomizedCodecRegistry] = None,
    ):
        """
        Initialize the twin server.

        Args:
            transport: Connected transport to devices and edge nodes.
            settings: Server settings.
            customized_codecs: Vendor codecs for customized protocols.
        """
        self.settings = settings or get_twin_server_settings()
        self.transport = transport

        # Core components
        self.registry = DeviceModelRegistry()
        self.engine = CodecEngine(customized_codecs)
        self.router = ReceiveRouter(transport)
        self.status_stream = StatusStream()
        self.scheduler = ReconcileScheduler(self.settings.reconcile)
        self.device_manager: Optional[TwinDeviceManager] = None

        self.sync_tracker = ObjectSyncTracker()
        self.sync_controller = ObjectSyncController(
            self.sync_tracker,
            TransportDispatcher(self.router, self.settings.sync.ack_timeout),
            self.settings.sync,
        )

        # State
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, load_manifests: bool = True) -> None:
        """Start the twin server."""
        logger.info(f"Starting {self.settings.app_name}...")

        self.device_manager = TwinDeviceManager(
            registry=self.registry,
            engine=self.engine,
            router=self.router,
            scheduler=self.scheduler,
            status_stream=self.status_stream,
            settings=self.settings.reconcile,
        )

        if load_manifests:
            await self._load_manifests()

        await self.scheduler.start()

        self._running = True
        logger.info(
            f"{self.settings.app_name} started with {len(self.registry)} models "
            f"and {len(self.device_manager)} devices"
        )

    async def stop(self) -> None:
        """Stop the twin server."""
        if not self._running:
            return

        logger.info(f"Stopping {self.settings.app_name}...")
        self._running = False
        self._shutdown_event.set()

        await self.scheduler.stop()
        self.router.cancel_all()

        logger.info(f"{self.settings.app_name} stopped")

    async def serve_forever(self) -> None:
        """Run the server until shutdown."""
        await self._shutdown_event.wait()

    async def _load_manifests(self) -> None:
        """Register models and admit devices from the manifests directory."""
        for problem in self.settings.validate_paths():
            logger.warning(problem)

        loader = ManifestLoader(self.settings.manifests_dir)
        models, devices = loader.load_all()
        self.register_models(models)
        await self.admit_devices(devices)

    def register_models(self, models: Iterable[DeviceModel]) -> int:
        """Register models, logging the ones that are rejected."""
        registered = 0
        for model in models:
            try:
                self.registry.register(model)
                registered += 1
            except ConfigError as e:
                logger.error(f"Rejected device model {model.name}: {e}")
        logger.info(f"Registered {registered} device models")
        return registered

    async def admit_devices(self, devices: Iterable[Device]) -> List[str]:
        """
        Admit devices, logging the ones that are rejected.

        A rejected device never affects the others.

        Returns:
            Names of admitted devices.
        """
        admitted = []
        for device in devices:
            try:
                await self.device_manager.admit_device(device)
                admitted.append(device.device_id)
            except ConfigError as e:
                logger.error(f"Rejected device {device.name}: {e}")
        return admitted

    async def replay_target(self, target: str, live_objects: Iterable[SourceObject]) -> ReplayResult:
        """Replay cloud objects to an edge target after it reconnects."""
        return await self.sync_controller.replay(target, live_objects)

    def get_stats(self) -> dict:
        """Get server statistics."""
        stats = {
            "running": self._running,
            "transport_online": self.transport.is_online,
            "models": len(self.registry),
            "pending_requests": self.router.pending_count,
            "status_stream": self.status_stream.get_stats(),
            "sync": self.sync_controller.get_stats(),
        }

        if self.device_manager:
            stats["devices"] = self.device_manager.get_stats()

        return stats


def setup_signal_handlers(server: TwinServer, loop: asyncio.AbstractEventLoop):
    """Setup signal handlers for graceful shutdown."""
    def signal_handler():
        logger.info("Received shutdown signal")
        loop.create_task(server.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler())


async def main(transport: Transport, settings: Optional[TwinServerSettings] = None):
    """
    Run a twin server over an already connected transport.

    Also serves the HTTP API when ``settings.api.enabled`` is set.
    """
    settings = settings or get_twin_server_settings()
    configure_logging(settings.log_level)

    server = TwinServer(transport, settings)
    setup_signal_handlers(server, asyncio.get_running_loop())

    api_task = None
    try:
        await server.start()

        if settings.api.enabled:
            import uvicorn

            from .api.app import create_app

            config = uvicorn.Config(
                create_app(server, settings),
                host=settings.api.host,
                port=settings.api.port,
                log_level=settings.log_level.lower(),
            )
            api_task = asyncio.create_task(uvicorn.Server(config).serve())

        await server.serve_forever()
    finally:
        if api_task:
            api_task.cancel()
            await asyncio.gather(api_task, return_exceptions=True)
        await server.stop()
