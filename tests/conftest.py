"""
Shared pytest fixtures for twin server tests.

Provides fixtures for:
- Settings with short cycles and backoff
- A thermostat device model and device
- Simulated transport, device and edge node
- Device manager, scheduler and twin server
- API client (httpx)
"""
import asyncio
import os
from typing import Callable

import pytest
import pytest_asyncio

# Test environment configuration
os.environ.setdefault("TWIN_API_ENABLED", "false")

from twin_server.codecs.engine import CodecEngine
from twin_server.config import APISettings, ReconcileSettings, SyncSettings, TwinServerSettings
from twin_server.models.loader import ManifestLoader
from twin_server.models.registry import DeviceModelRegistry
from twin_server.transport.router import ReceiveRouter
from twin_server.twins.device_manager import TwinDeviceManager
from twin_server.twins.scheduler import ReconcileScheduler
from twin_server.twins.status import StatusStream

from tests.factories import (
    DeviceManifestFactory,
    DeviceModelManifestFactory,
    ModbusVisitorManifestFactory,
    PropertyManifestFactory,
)
from tests.simulators import DeviceSimulator, EdgeNodeSimulator, SimulatedTransport


THERMOSTAT_VALUES = {
    "temperature": b"\x00\x15",  # 21
    "setpoint": b"\x00\x28",     # 40 * 0.5 = 20.0
    "power": b"\x00",
}


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def reconcile_settings() -> ReconcileSettings:
    """Reconcile settings tuned for fast tests."""
    return ReconcileSettings(
        default_collect_cycle=0.05,
        default_report_cycle=0.05,
        default_collect_retry_times=3,
        collect_timeout=0.05,
        retry_delay=0.001,
        backoff_multiplier=2.0,
        max_backoff=0.01,
        min_cycle=0.01,
    )


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(ack_timeout=0.05, replay_concurrency=4)


@pytest.fixture
def server_settings(tmp_path, reconcile_settings, sync_settings) -> TwinServerSettings:
    return TwinServerSettings(
        manifests_dir=tmp_path,
        reconcile=reconcile_settings,
        sync=sync_settings,
        api=APISettings(enabled=False),
    )


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def loader() -> ManifestLoader:
    return ManifestLoader()


@pytest.fixture
def thermostat_model_doc() -> dict:
    return DeviceModelManifestFactory(
        name="thermostat-model",
        properties=[
            PropertyManifestFactory(name="temperature", access_mode="ReadOnly", unit="C"),
            PropertyManifestFactory(
                name="setpoint",
                data_type="double",
                minimum=5.0,
                maximum=35.0,
                default_value=20.0,
            ),
            PropertyManifestFactory(name="power", data_type="boolean"),
        ],
    )


@pytest.fixture
def thermostat_device_doc() -> dict:
    return DeviceManifestFactory(
        name="thermostat-1",
        model_name="thermostat-model",
        visitors=[
            ModbusVisitorManifestFactory(
                propertyName="temperature", register="InputRegister", offset=0
            ),
            ModbusVisitorManifestFactory(propertyName="setpoint", offset=1, scale=0.5),
            ModbusVisitorManifestFactory(
                propertyName="power", register="CoilRegister", offset=0
            ),
        ],
    )


@pytest.fixture
def thermostat_model(loader, thermostat_model_doc):
    return loader.parse_model(thermostat_model_doc)


@pytest.fixture
def thermostat_device(loader, thermostat_device_doc):
    return loader.parse_device(thermostat_device_doc)


@pytest.fixture
def registry(thermostat_model) -> DeviceModelRegistry:
    """Registry with the thermostat model registered."""
    registry = DeviceModelRegistry()
    registry.register(thermostat_model)
    return registry


@pytest.fixture
def engine() -> CodecEngine:
    return CodecEngine()


# ============================================================================
# Simulator Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def transport():
    """Online simulated transport."""
    return SimulatedTransport()


@pytest_asyncio.fixture
async def thermostat_sim(transport) -> DeviceSimulator:
    """Thermostat simulator reachable as 'thermostat-1'."""
    simulator = DeviceSimulator("thermostat-1", THERMOSTAT_VALUES)
    transport.add_endpoint("thermostat-1", simulator)
    return simulator


@pytest_asyncio.fixture
async def edge_node(transport) -> EdgeNodeSimulator:
    """Edge node reachable as 'edge-node-1'."""
    node = EdgeNodeSimulator("edge-node-1")
    transport.add_endpoint("edge-node-1", node)
    return node


@pytest_asyncio.fixture
async def router(transport) -> ReceiveRouter:
    """
    Router bound to the simulated transport.

    Do not combine with ``twin_server``, which binds its own router.
    """
    return ReceiveRouter(transport)


# ============================================================================
# Twin Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def scheduler(reconcile_settings):
    scheduler = ReconcileScheduler(reconcile_settings)
    yield scheduler
    await scheduler.stop()


@pytest_asyncio.fixture
async def status_stream():
    return StatusStream()


@pytest_asyncio.fixture
async def device_manager(registry, engine, router, scheduler, status_stream, reconcile_settings):
    """Device manager with a stopped scheduler; no devices admitted."""
    return TwinDeviceManager(
        registry=registry,
        engine=engine,
        router=router,
        scheduler=scheduler,
        status_stream=status_stream,
        settings=reconcile_settings,
    )


@pytest_asyncio.fixture
async def twin_server(transport, thermostat_sim, edge_node, server_settings):
    """Started twin server with no manifests loaded."""
    from twin_server.main import TwinServer

    server = TwinServer(transport, server_settings)
    await server.start(load_manifests=False)
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def api_client(twin_server):
    """HTTP client for the API of a running twin server."""
    from httpx import ASGITransport, AsyncClient

    from twin_server.api.app import create_app

    app = create_app(twin_server)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


# ============================================================================
# Helpers
# ============================================================================

@pytest.fixture
def wait_until() -> Callable:
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            await asyncio.sleep(0.005)
        return predicate()

    return _wait_until
