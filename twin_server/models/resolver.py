"""
Visitor resolver.

Binds every property visitor of a device to its property schema and
codec at admission time, so configuration mistakes are rejected
before any collection is attempted.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..codecs.engine import CodecEngine
from ..config import ReconcileSettings
from ..exceptions import ConfigError, ValidationError
from .definitions import (
    BluetoothProtocolConfig,
    CommonProtocolConfig,
    CustomizedProtocolConfig,
    CustomizedVisitorConfig,
    Device,
    DeviceModel,
    ModbusProtocolConfig,
    OpcuaProtocolConfig,
    PropertyDefinition,
    PropertyVisitor,
    ProtocolType,
)
from .registry import DeviceModelRegistry

logger = logging.getLogger(__name__)

BAUD_RATES = frozenset({
    115200, 57600, 38400, 19200, 9600, 4800, 2400, 1800,
    1200, 600, 300, 200, 150, 134, 110, 75, 50,
})
DATA_BITS = frozenset({5, 6, 7, 8})
PARITIES = frozenset({"none", "even", "odd"})
STOP_BITS = frozenset({1, 2})
COLLECT_TYPES = frozenset({"sync", "async"})


@dataclass
class ResolvedVisitor:
    """A property visitor bound to its schema and effective settings."""
    device_id: str
    definition: PropertyDefinition
    visitor: PropertyVisitor
    protocol: ProtocolType
    collect_cycle: float
    report_cycle: float
    collect_retry_times: int
    collect_timeout: float
    data_topic: Optional[str] = None
    reconn_timeout: Optional[float] = None
    reconn_retry_times: int = 0

    @property
    def property_name(self) -> str:
        return self.definition.name

    @property
    def accepts_desired(self) -> bool:
        """Data-only and ReadOnly properties never take desired values."""
        return not self.definition.is_read_only and self.data_topic is None


@dataclass
class DeviceBinding:
    """Outcome of admitting a device."""
    device: Device
    model: DeviceModel
    visitors: Dict[str, ResolvedVisitor]


class VisitorResolver:
    """Validates devices against the model registry and codec engine."""

    def __init__(
        self,
        registry: DeviceModelRegistry,
        engine: CodecEngine,
        settings: Optional[ReconcileSettings] = None,
    ):
        self.registry = registry
        self.engine = engine
        self.settings = settings or ReconcileSettings()

    def resolve(self, device: Device) -> DeviceBinding:
        """
        Resolve every visitor of a device.

        Args:
            device: Device to admit.

        Returns:
            DeviceBinding with one ResolvedVisitor per property.

        Raises:
            ConfigError: If the model is missing.
            ValidationError: With every problem found in the device.
        """
        model = self.registry.get(device.model_name)
        if model is None:
            raise ConfigError(
                f"Device '{device.name}' references unknown model '{device.model_name}'"
            )

        error = ValidationError(f"Device '{device.name}' is invalid")
        if not device.name:
            error.add_error("name", "device name is required")

        self._check_protocol(device, error)

        common = device.protocol.common or CommonProtocolConfig()
        resolved: Dict[str, ResolvedVisitor] = {}

        for index, visitor in enumerate(device.property_visitors):
            field = f"propertyVisitors[{index}]"
            definition = model.get_property(visitor.property_name)

            if definition is None:
                error.add_error(
                    field, f"property '{visitor.property_name}' is not in model '{model.name}'"
                )
                continue
            if visitor.property_name in resolved:
                error.add_error(field, f"duplicate visitor for '{visitor.property_name}'")
                continue

            try:
                problems = self.engine.validate(device.protocol_type, visitor.config)
            except ConfigError as e:
                error.add_error(field, e.message)
                continue
            for problem in problems:
                error.add_error(field, problem)
            self._check_customized_name(device, visitor, field, error)

            cycles = self._effective_cycles(visitor, common, field, error)
            if problems or cycles is None:
                continue

            collect_cycle, report_cycle, retry_times = cycles
            resolved[visitor.property_name] = ResolvedVisitor(
                device_id=device.device_id,
                definition=definition,
                visitor=visitor,
                protocol=device.protocol_type,
                collect_cycle=collect_cycle,
                report_cycle=report_cycle,
                collect_retry_times=retry_times,
                collect_timeout=common.collect_timeout or self.settings.collect_timeout,
                reconn_timeout=common.reconn_timeout,
                reconn_retry_times=common.reconn_retry_times or 0,
            )

        if device.data is not None:
            visited = {visitor.property_name for visitor in device.property_visitors}
            for data_property in device.data.data_properties:
                name = data_property.property_name
                if model.get_property(name) is None:
                    error.add_error("data.dataProperties", f"property '{name}' is not in model")
                elif name in resolved:
                    resolved[name].data_topic = device.data.topic_for(device.name)
                elif name not in visited:
                    error.add_error(
                        "data.dataProperties", f"property '{name}' has no property visitor"
                    )

        if error.has_errors():
            raise error

        logger.debug(
            f"Resolved {len(resolved)} visitors for device {device.name} "
            f"(model={model.name}, protocol={device.protocol_type.value})"
        )
        return DeviceBinding(device=device, model=model, visitors=resolved)

    def _effective_cycles(self, visitor, common, field, error):
        collect_cycle = visitor.collect_cycle or self.settings.default_collect_cycle
        report_cycle = visitor.report_cycle or self.settings.default_report_cycle
        retry_times = visitor.collect_retry_times
        if retry_times is None:
            retry_times = common.collect_retry_times
        if retry_times is None:
            retry_times = self.settings.default_collect_retry_times

        valid = True
        if collect_cycle < self.settings.min_cycle:
            error.add_error(field, f"collectCycle must be at least {self.settings.min_cycle}s")
            valid = False
        if report_cycle < self.settings.min_cycle:
            error.add_error(field, f"reportCycle must be at least {self.settings.min_cycle}s")
            valid = False
        if retry_times < 0:
            error.add_error(field, "collectRetryTimes must not be negative")
            valid = False
        return (collect_cycle, report_cycle, retry_times) if valid else None

    @staticmethod
    def _check_customized_name(device, visitor, field, error) -> None:
        variant = device.protocol.variant
        config = visitor.config
        if (
            isinstance(variant, CustomizedProtocolConfig)
            and isinstance(config, CustomizedVisitorConfig)
            and variant.protocol_name
            and config.protocol_name
            and variant.protocol_name != config.protocol_name
        ):
            error.add_error(
                field,
                f"visitor protocol '{config.protocol_name}' differs from device "
                f"protocol '{variant.protocol_name}'",
            )

    @staticmethod
    def _check_protocol(device: Device, error: ValidationError) -> None:
        variant = device.protocol.variant

        if isinstance(variant, ModbusProtocolConfig):
            if variant.slave_id is None:
                error.add_error("protocol.modbus", "slaveID is required")
            elif not 0 <= variant.slave_id <= 255:
                error.add_error("protocol.modbus", "slaveID must be within 0-255")
        elif isinstance(variant, OpcuaProtocolConfig):
            if not variant.url:
                error.add_error("protocol.opcua", "url is required")
        elif isinstance(variant, CustomizedProtocolConfig):
            if not variant.protocol_name:
                error.add_error("protocol.customizedProtocol", "protocolName is required")
        elif not isinstance(variant, BluetoothProtocolConfig):
            error.add_error("protocol", f"unsupported protocol config {type(variant).__name__}")

        common = device.protocol.common
        if common is None:
            return
        if common.com is not None:
            com = common.com
            if not com.serial_port:
                error.add_error("protocol.common.com", "serialPort is required")
            if com.baud_rate not in BAUD_RATES:
                error.add_error("protocol.common.com", f"unsupported baudRate {com.baud_rate}")
            if com.data_bits not in DATA_BITS:
                error.add_error("protocol.common.com", f"unsupported dataBits {com.data_bits}")
            if com.parity not in PARITIES:
                error.add_error("protocol.common.com", f"unsupported parity '{com.parity}'")
            if com.stop_bits not in STOP_BITS:
                error.add_error("protocol.common.com", f"unsupported stopBits {com.stop_bits}")
        if common.tcp is not None and (not common.tcp.ip or common.tcp.port is None):
            error.add_error("protocol.common.tcp", "ip and port are required")
        if common.collect_type not in COLLECT_TYPES:
            error.add_error("protocol.common", f"unsupported collectType '{common.collect_type}'")
        if common.collect_timeout is not None and common.collect_timeout <= 0:
            error.add_error("protocol.common", "collectTimeout must be positive")
        if common.reconn_timeout is not None and common.reconn_timeout <= 0:
            error.add_error("protocol.common", "reconnTimeout must be positive")
        if common.reconn_retry_times is not None and common.reconn_retry_times < 0:
            error.add_error("protocol.common", "reconnRetryTimes must not be negative")
