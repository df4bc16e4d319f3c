"""
Unit tests for the TwinServer orchestrator.
"""
from pathlib import Path

import pytest
import yaml

from twin_server.main import TwinServer

from tests.factories import (
    DeviceManifestFactory,
    DeviceModelManifestFactory,
    ModbusVisitorManifestFactory,
    SourceObjectFactory,
)

MANIFESTS_DIR = Path(__file__).resolve().parents[3] / "manifests"


class TestStartup:
    """Test server startup from manifests."""

    @pytest.mark.asyncio
    async def test_loads_bundled_manifests(self, transport, thermostat_sim, server_settings):
        settings = server_settings.model_copy(update={"manifests_dir": MANIFESTS_DIR})
        server = TwinServer(transport, settings)

        await server.start()
        try:
            assert server.running
            assert len(server.registry) == 2
            assert sorted(d.device_id for d in server.device_manager.iter_devices()) == [
                "sensor-tag-1",
                "thermostat-1",
            ]
            twin = server.device_manager.get_twin("thermostat-1", "setpoint")
            assert twin.data_type.value == "double"
        finally:
            await server.stop()

        assert not server.running

    @pytest.mark.asyncio
    async def test_rejected_device_does_not_block_others(self, transport, thermostat_sim, server_settings):
        broken_visitor = ModbusVisitorManifestFactory(propertyName="temperature")
        del broken_visitor["modbus"]["offset"]
        documents = [
            DeviceModelManifestFactory(name="thermostat-model"),
            DeviceManifestFactory(
                name="thermostat-1",
                visitors=[ModbusVisitorManifestFactory(propertyName="temperature", register="InputRegister")],
            ),
            DeviceManifestFactory(name="thermostat-2", visitors=[broken_visitor]),
        ]
        manifest = server_settings.manifests_dir / "devices.yaml"
        manifest.write_text(yaml.safe_dump_all(documents))
        server = TwinServer(transport, server_settings)

        await server.start()
        try:
            assert [d.device_id for d in server.device_manager.iter_devices()] == ["thermostat-1"]
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, transport, server_settings):
        server = TwinServer(transport, server_settings)
        await server.start(load_manifests=False)

        await server.stop()
        await server.stop()

        assert not server.running


class TestServerOperations:
    """Test operations of a running server."""

    @pytest.mark.asyncio
    async def test_replay_target(self, twin_server, edge_node):
        live = SourceObjectFactory.build_batch(2)

        result = await twin_server.replay_target("edge-node-1", live)

        assert result.replayed == 2
        assert len(edge_node.applier.objects) == 2

    @pytest.mark.asyncio
    async def test_register_models_skips_invalid(self, twin_server, loader):
        valid = loader.parse_model(DeviceModelManifestFactory(name="valid-model"))
        invalid = loader.parse_model(
            DeviceModelManifestFactory(
                name="invalid-model",
                properties=[
                    {"name": "level", "type": {"int": {"accessMode": "ReadWrite", "minimum": 10, "maximum": 1}}},
                ],
            )
        )

        assert twin_server.register_models([valid, invalid]) == 1
        assert len(twin_server.registry) == 1

    @pytest.mark.asyncio
    async def test_get_stats(self, twin_server):
        stats = twin_server.get_stats()

        assert stats["running"] is True
        assert stats["transport_online"] is True
        assert stats["devices"]["total_devices"] == 0
        assert stats["sync"]["records"] == 0
