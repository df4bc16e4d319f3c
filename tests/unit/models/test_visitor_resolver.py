"""
Unit tests for VisitorResolver.

Tests that configuration mistakes are rejected at admission and
that effective cycles are resolved per property.
"""
import pytest

from twin_server.exceptions import ConfigError, ValidationError
from twin_server.models.resolver import VisitorResolver

from tests.factories import (
    BluetoothVisitorManifestFactory,
    DeviceManifestFactory,
    ModbusVisitorManifestFactory,
    OpcuaVisitorManifestFactory,
)


@pytest.fixture
def resolver(registry, engine, reconcile_settings):
    return VisitorResolver(registry, engine, reconcile_settings)


def errors_of(exc_info) -> str:
    return str(exc_info.value)


class TestResolve:
    """Test successful resolution."""

    def test_resolves_every_visitor(self, resolver, thermostat_device):
        binding = resolver.resolve(thermostat_device)

        assert binding.model.name == "thermostat-model"
        assert sorted(binding.visitors) == ["power", "setpoint", "temperature"]

    def test_server_defaults_applied(self, resolver, thermostat_device, reconcile_settings):
        resolved = resolver.resolve(thermostat_device).visitors["setpoint"]

        assert resolved.collect_cycle == reconcile_settings.default_collect_cycle
        assert resolved.report_cycle == reconcile_settings.default_report_cycle
        assert resolved.collect_retry_times == reconcile_settings.default_collect_retry_times
        assert resolved.collect_timeout == reconcile_settings.collect_timeout

    def test_visitor_and_common_overrides(self, loader, resolver):
        doc = DeviceManifestFactory(
            protocol={"modbus": {"slaveID": 3}, "common": {"collectRetryTimes": 5, "collectTimeout": 1.5}},
            visitors=[
                ModbusVisitorManifestFactory(propertyName="temperature", collectCycle=2, reportCycle=4),
                ModbusVisitorManifestFactory(propertyName="setpoint", collectRetryTimes=1),
            ],
        )

        visitors = resolver.resolve(loader.parse_device(doc)).visitors

        assert visitors["temperature"].collect_cycle == 2
        assert visitors["temperature"].report_cycle == 4
        assert visitors["temperature"].collect_retry_times == 5
        assert visitors["temperature"].collect_timeout == 1.5
        assert visitors["setpoint"].collect_retry_times == 1

    def test_read_only_property_does_not_accept_desired(self, resolver, thermostat_device):
        visitors = resolver.resolve(thermostat_device).visitors

        assert not visitors["temperature"].accepts_desired
        assert visitors["setpoint"].accepts_desired

    def test_data_property_gets_topic(self, loader, resolver):
        doc = DeviceManifestFactory(
            name="thermostat-2",
            visitors=[ModbusVisitorManifestFactory(propertyName="setpoint")],
            data={"dataProperties": [{"propertyName": "setpoint"}]},
        )

        resolved = resolver.resolve(loader.parse_device(doc)).visitors["setpoint"]

        assert resolved.data_topic == "$ke/events/device/thermostat-2/data/update"
        assert not resolved.accepts_desired

    def test_reconnect_settings_carried(self, loader, resolver):
        doc = DeviceManifestFactory(
            protocol={"modbus": {"slaveID": 1}, "common": {"reconnTimeout": 5, "reconnRetryTimes": 2}},
            visitors=[ModbusVisitorManifestFactory(propertyName="temperature")],
        )

        resolved = resolver.resolve(loader.parse_device(doc)).visitors["temperature"]

        assert resolved.reconn_timeout == 5
        assert resolved.reconn_retry_times == 2

    def test_reconnect_unbounded_by_default(self, resolver, thermostat_device):
        resolved = resolver.resolve(thermostat_device).visitors["temperature"]

        assert resolved.reconn_timeout is None
        assert resolved.reconn_retry_times == 0


class TestRejections:
    """Test admission rejections."""

    def test_unknown_model(self, loader, resolver):
        doc = DeviceManifestFactory(model_name="missing-model")

        with pytest.raises(ConfigError):
            resolver.resolve(loader.parse_device(doc))

    @pytest.mark.parametrize("field", ["register", "offset", "limit"])
    def test_modbus_required_fields(self, loader, resolver, field):
        visitor = ModbusVisitorManifestFactory(propertyName="temperature")
        del visitor["modbus"][field]
        doc = DeviceManifestFactory(visitors=[visitor])

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert f"{field} is required" in errors_of(exc_info)

    def test_opcua_node_id_required(self, loader, resolver):
        visitor = OpcuaVisitorManifestFactory(propertyName="temperature")
        visitor["opcua"] = {"browseName": "Temperature"}
        doc = DeviceManifestFactory(
            protocol={"opcua": {"url": "opc.tcp://10.0.0.5:4840"}},
            visitors=[visitor],
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "nodeID is required" in errors_of(exc_info)

    def test_bluetooth_characteristic_required(self, loader, resolver):
        visitor = BluetoothVisitorManifestFactory(propertyName="temperature", characteristic_uuid=None)
        doc = DeviceManifestFactory(protocol={"bluetooth": {}}, visitors=[visitor])

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "characteristicUUID is required" in errors_of(exc_info)

    def test_visitor_variant_must_match_device_protocol(self, loader, resolver):
        doc = DeviceManifestFactory(visitors=[OpcuaVisitorManifestFactory(propertyName="temperature")])

        with pytest.raises(ValidationError):
            resolver.resolve(loader.parse_device(doc))

    def test_unknown_property(self, loader, resolver):
        doc = DeviceManifestFactory(visitors=[ModbusVisitorManifestFactory(propertyName="humidity")])

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "humidity" in errors_of(exc_info)

    def test_duplicate_visitor(self, loader, resolver):
        doc = DeviceManifestFactory(
            visitors=[
                ModbusVisitorManifestFactory(propertyName="temperature"),
                ModbusVisitorManifestFactory(propertyName="temperature"),
            ],
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "duplicate visitor" in errors_of(exc_info)

    @pytest.mark.parametrize("slave_id", [None, 256])
    def test_modbus_slave_id(self, loader, resolver, slave_id):
        doc = DeviceManifestFactory(protocol={"modbus": {"slaveID": slave_id}})

        with pytest.raises(ValidationError):
            resolver.resolve(loader.parse_device(doc))

    def test_serial_settings_validated(self, loader, resolver):
        doc = DeviceManifestFactory(
            protocol={
                "modbus": {"slaveID": 1},
                "common": {
                    "com": {
                        "serialPort": "/dev/ttyS0",
                        "baudRate": 12345,
                        "dataBits": 8,
                        "parity": "even",
                        "stopBits": 1,
                    },
                },
            },
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "unsupported baudRate 12345" in errors_of(exc_info)

    def test_cycle_below_minimum(self, loader, resolver):
        doc = DeviceManifestFactory(
            visitors=[ModbusVisitorManifestFactory(propertyName="temperature", collectCycle=0.001)],
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "collectCycle must be at least" in errors_of(exc_info)

    def test_every_problem_reported(self, loader, resolver):
        bad = ModbusVisitorManifestFactory(propertyName="temperature")
        del bad["modbus"]["offset"]
        doc = DeviceManifestFactory(
            protocol={"modbus": {"slaveID": 300}},
            visitors=[bad, ModbusVisitorManifestFactory(propertyName="humidity")],
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert set(exc_info.value.errors) == {
            "protocol.modbus",
            "propertyVisitors[0]",
            "propertyVisitors[1]",
        }

    def test_data_property_without_visitor(self, loader, resolver):
        doc = DeviceManifestFactory(
            visitors=[ModbusVisitorManifestFactory(propertyName="temperature")],
            data={"dataProperties": [{"propertyName": "setpoint"}]},
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert exc_info.value.errors == {
            "data.dataProperties": ["property 'setpoint' has no property visitor"],
        }

    def test_reconnect_settings_validated(self, loader, resolver):
        doc = DeviceManifestFactory(
            protocol={"modbus": {"slaveID": 1}, "common": {"reconnTimeout": 0, "reconnRetryTimes": -1}},
        )

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(loader.parse_device(doc))

        assert "reconnTimeout must be positive" in errors_of(exc_info)
        assert "reconnRetryTimes must not be negative" in errors_of(exc_info)
