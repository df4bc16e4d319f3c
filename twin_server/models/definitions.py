"""
Device model and device definitions.

Defines dataclasses for property schemas, per-protocol device
configuration and per-property visitor configuration.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from ..exceptions import ConfigError


class DataType(str, Enum):
    """Semantic property types."""
    INT = "int"
    DOUBLE = "double"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    BYTES = "bytes"


class AccessMode(str, Enum):
    """Property access modes."""
    READ_ONLY = "ReadOnly"
    READ_WRITE = "ReadWrite"


class ProtocolType(str, Enum):
    """Device protocol variants."""
    BLUETOOTH = "bluetooth"
    MODBUS = "modbus"
    OPCUA = "opcua"
    CUSTOMIZED = "customizedProtocol"


class ModbusRegisterType(str, Enum):
    """Modbus register kinds."""
    COIL = "CoilRegister"
    DISCRETE_INPUT = "DiscreteInputRegister"
    INPUT = "InputRegister"
    HOLDING = "HoldingRegister"

    @property
    def is_bit_register(self) -> bool:
        return self in (ModbusRegisterType.COIL, ModbusRegisterType.DISCRETE_INPUT)


class OperationType(str, Enum):
    """Arithmetic steps of a bluetooth data converter."""
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"


def _as_enum(enum_cls, value):
    """Convert a string to an enum member, leaving unknown values as-is."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


# ---------------------------------------------------------------------------
# Device model
# ---------------------------------------------------------------------------

@dataclass
class PropertyDefinition:
    """Schema for a single device property."""
    name: str
    data_type: DataType
    access_mode: AccessMode = AccessMode.READ_ONLY
    default_value: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    unit: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.data_type, str):
            try:
                self.data_type = DataType(self.data_type)
            except ValueError:
                raise ConfigError(
                    f"Property '{self.name}' has unknown type '{self.data_type}'"
                )
        if isinstance(self.access_mode, str):
            try:
                self.access_mode = AccessMode(self.access_mode)
            except ValueError:
                raise ConfigError(
                    f"Property '{self.name}' has unknown access mode '{self.access_mode}'"
                )

    @property
    def is_read_only(self) -> bool:
        return self.access_mode == AccessMode.READ_ONLY


@dataclass
class DeviceModel:
    """
    Immutable set of property schemas shared by devices.

    Property order is preserved; names are unique.
    """
    name: str
    properties: Tuple[PropertyDefinition, ...] = ()
    description: Optional[str] = None

    def __post_init__(self):
        self.properties = tuple(self.properties)
        seen = set()
        for prop in self.properties:
            if prop.name in seen:
                raise ConfigError(
                    f"Device model '{self.name}' declares property '{prop.name}' twice"
                )
            seen.add(prop.name)

    def get_property(self, name: str) -> Optional[PropertyDefinition]:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    @property
    def property_names(self) -> List[str]:
        return [prop.name for prop in self.properties]


# ---------------------------------------------------------------------------
# Protocol configuration (device level)
# ---------------------------------------------------------------------------

@dataclass
class BluetoothProtocolConfig:
    """Bluetooth device address."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.BLUETOOTH
    mac_address: Optional[str] = None


@dataclass
class ModbusProtocolConfig:
    """Modbus slave addressing."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.MODBUS
    slave_id: Optional[int] = None


@dataclass
class OpcuaProtocolConfig:
    """OPC-UA endpoint and security settings."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.OPCUA
    url: Optional[str] = None
    user_name: Optional[str] = None
    password: Optional[str] = None
    security_mode: str = "none"
    security_policy: str = "none"
    certificate: Optional[str] = None
    private_key: Optional[str] = None
    timeout: Optional[int] = None


@dataclass
class CustomizedProtocolConfig:
    """Vendor protocol handled by an externally registered codec."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.CUSTOMIZED
    protocol_name: Optional[str] = None
    config_data: Dict[str, Any] = field(default_factory=dict)


ProtocolVariant = Union[
    BluetoothProtocolConfig,
    ModbusProtocolConfig,
    OpcuaProtocolConfig,
    CustomizedProtocolConfig,
]


@dataclass
class SerialConfig:
    """Serial line settings for COM based devices."""
    serial_port: Optional[str] = None
    baud_rate: Optional[int] = None
    data_bits: Optional[int] = None
    parity: str = "none"
    stop_bits: Optional[int] = None


@dataclass
class TCPConfig:
    """TCP endpoint for network attached devices."""
    ip: Optional[str] = None
    port: Optional[int] = None


@dataclass
class CommonProtocolConfig:
    """Settings shared by every protocol variant."""
    com: Optional[SerialConfig] = None
    tcp: Optional[TCPConfig] = None
    comm_type: Optional[str] = None
    reconn_timeout: Optional[int] = None
    reconn_retry_times: Optional[int] = None
    collect_timeout: Optional[float] = None
    collect_retry_times: Optional[int] = None
    collect_type: str = "sync"
    customized_values: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProtocolConfig:
    """Protocol variant of a device plus its common settings."""
    variant: ProtocolVariant
    common: Optional[CommonProtocolConfig] = None

    @property
    def protocol_type(self) -> ProtocolType:
        return self.variant.protocol_type


# ---------------------------------------------------------------------------
# Property visitors
# ---------------------------------------------------------------------------

@dataclass
class BluetoothOperation:
    """One arithmetic step applied while decoding."""
    operation_type: OperationType
    operation_value: float

    def __post_init__(self):
        self.operation_type = _as_enum(OperationType, self.operation_type)


@dataclass
class BluetoothDataConverter:
    """How to turn a characteristic value into a number."""
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    shift_left: Optional[int] = None
    shift_right: Optional[int] = None
    order_of_operations: List[BluetoothOperation] = field(default_factory=list)


@dataclass
class BluetoothVisitorConfig:
    """Bluetooth characteristic access for one property."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.BLUETOOTH
    characteristic_uuid: Optional[str] = None
    data_converter: Optional[BluetoothDataConverter] = None
    data_write: Dict[str, bytes] = field(default_factory=dict)


@dataclass
class ModbusVisitorConfig:
    """Register range holding one property."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.MODBUS
    register: Optional[ModbusRegisterType] = None
    offset: Optional[int] = None
    limit: Optional[int] = None
    scale: float = 1.0
    is_swap: bool = False
    is_register_swap: bool = False

    def __post_init__(self):
        self.register = _as_enum(ModbusRegisterType, self.register)
        if self.scale is None:
            self.scale = 1.0


@dataclass
class OpcuaVisitorConfig:
    """OPC-UA node holding one property."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.OPCUA
    node_id: Optional[str] = None
    browse_name: Optional[str] = None


@dataclass
class CustomizedVisitorConfig:
    """Opaque visitor data for a vendor codec."""
    protocol_type: ClassVar[ProtocolType] = ProtocolType.CUSTOMIZED
    protocol_name: Optional[str] = None
    config_data: Optional[Dict[str, Any]] = None


VisitorConfig = Union[
    BluetoothVisitorConfig,
    ModbusVisitorConfig,
    OpcuaVisitorConfig,
    CustomizedVisitorConfig,
]


@dataclass
class PropertyVisitor:
    """
    How to reach one property of a device.

    Cycles and retry counts are optional here; the resolver fills
    them from the device common config or the server defaults.
    """
    property_name: str
    config: VisitorConfig
    collect_cycle: Optional[float] = None
    report_cycle: Optional[float] = None
    collect_retry_times: Optional[int] = None
    customized_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def protocol_type(self) -> ProtocolType:
        return self.config.protocol_type


# ---------------------------------------------------------------------------
# Device
# ---------------------------------------------------------------------------

DEFAULT_DATA_TOPIC = "$ke/events/device/+/data/update"


@dataclass
class DataProperty:
    """A property published on the data topic."""
    property_name: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeviceData:
    """Data-only properties and the topic they are published on."""
    data_topic: str = DEFAULT_DATA_TOPIC
    data_properties: List[DataProperty] = field(default_factory=list)

    def topic_for(self, device_name: str) -> str:
        return self.data_topic.replace("+", device_name)

    def is_data_property(self, property_name: str) -> bool:
        return any(p.property_name == property_name for p in self.data_properties)


@dataclass
class Device:
    """A device instance bound to a model and a protocol."""
    name: str
    model_name: str
    protocol: ProtocolConfig
    property_visitors: List[PropertyVisitor] = field(default_factory=list)
    node_selector: Dict[str, Any] = field(default_factory=dict)
    data: Optional[DeviceData] = None
    namespace: str = "default"
    description: Optional[str] = None

    @property
    def device_id(self) -> str:
        return self.name

    @property
    def protocol_type(self) -> ProtocolType:
        return self.protocol.protocol_type

    def get_visitor(self, property_name: str) -> Optional[PropertyVisitor]:
        for visitor in self.property_visitors:
            if visitor.property_name == property_name:
                return visitor
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "namespace": self.namespace,
            "model": self.model_name,
            "protocol": self.protocol_type.value,
            "node_selector": dict(self.node_selector),
            "properties": [v.property_name for v in self.property_visitors],
        }
