"""
Manifest loader.

Loads DeviceModel and Device definitions from YAML manifests shaped
like the devices.kubeedge.io resources (camelCase keys, one resource
per YAML document). Cycle lengths are given in seconds.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..exceptions import ConfigError
from .definitions import (
    BluetoothDataConverter,
    BluetoothOperation,
    BluetoothProtocolConfig,
    BluetoothVisitorConfig,
    CommonProtocolConfig,
    CustomizedProtocolConfig,
    CustomizedVisitorConfig,
    DataProperty,
    DEFAULT_DATA_TOPIC,
    Device,
    DeviceData,
    DeviceModel,
    ModbusProtocolConfig,
    ModbusVisitorConfig,
    OpcuaProtocolConfig,
    OpcuaVisitorConfig,
    PropertyDefinition,
    PropertyVisitor,
    ProtocolConfig,
    ProtocolType,
    SerialConfig,
    TCPConfig,
)

logger = logging.getLogger(__name__)

VARIANT_KEYS = tuple(p.value for p in ProtocolType)


class ManifestLoader:
    """
    Loads device models and devices from YAML manifests.

    Provides methods to parse and validate manifests, converting
    them into DeviceModel and Device objects.
    """

    def __init__(self, manifests_dir: Optional[Path] = None):
        """
        Initialize the manifest loader.

        Args:
            manifests_dir: Directory containing manifest YAML files.
                Defaults to ./manifests.
        """
        self.manifests_dir = Path(manifests_dir) if manifests_dir else Path("manifests")

    def load_documents(self, file_path: Path) -> List[Dict[str, Any]]:
        """
        Read every YAML document of a manifest file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            yaml.YAMLError: If the file contains invalid YAML.
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Manifest file not found: {file_path}")

        logger.info(f"Loading manifests from {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            documents = [doc for doc in yaml.safe_load_all(f) if doc]

        expanded = []
        for doc in documents:
            # Accept "kind: List" wrappers as produced by kubectl get -o yaml
            if isinstance(doc, dict) and "items" in doc and "kind" not in doc.get("spec", {}):
                expanded.extend(item for item in doc["items"] if item)
            else:
                expanded.append(doc)
        return expanded

    def load_from_file(self, file_path: Path) -> Tuple[List[DeviceModel], List[Device]]:
        """
        Load models and devices from a single manifest file.

        Documents that fail to parse are logged and skipped.
        """
        models: List[DeviceModel] = []
        devices: List[Device] = []

        for doc in self.load_documents(file_path):
            kind = doc.get("kind")
            name = doc.get("metadata", {}).get("name", "unknown")
            try:
                if kind == "DeviceModel":
                    models.append(self.parse_model(doc))
                elif kind == "Device":
                    devices.append(self.parse_device(doc))
                else:
                    logger.warning(f"Skipping unsupported manifest kind '{kind}' ({name})")
            except ConfigError as e:
                logger.error(f"Failed to parse {kind} {name}: {e}")
                continue

        logger.info(
            f"Loaded {len(models)} models and {len(devices)} devices from {file_path}"
        )
        return models, devices

    def load_all(self) -> Tuple[List[DeviceModel], List[Device]]:
        """
        Load every *.yaml manifest in the manifests directory.

        Models are returned before devices so callers can register
        them first.
        """
        all_models: List[DeviceModel] = []
        all_devices: List[Device] = []

        for manifest in sorted(self.manifests_dir.glob("*.yaml")):
            try:
                models, devices = self.load_from_file(manifest)
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Failed to load {manifest}: {e}")
                continue
            all_models.extend(models)
            all_devices.extend(devices)

        logger.info(
            f"Loaded {len(all_models)} models and {len(all_devices)} devices total"
        )
        return all_models, all_devices

    # ------------------------------------------------------------------
    # Device models
    # ------------------------------------------------------------------

    def parse_model(self, data: Dict[str, Any]) -> DeviceModel:
        """
        Parse a DeviceModel resource.

        Raises:
            ConfigError: If required fields are missing.
        """
        name = data.get("metadata", {}).get("name")
        if not name:
            raise ConfigError("DeviceModel 'metadata.name' is required")

        spec = data.get("spec") or {}
        properties = [self._parse_property(p) for p in spec.get("properties") or []]
        return DeviceModel(
            name=name,
            properties=properties,
            description=spec.get("description"),
        )

    def _parse_property(self, data: Dict[str, Any]) -> PropertyDefinition:
        name = data.get("name")
        if not name:
            raise ConfigError("Property 'name' is required")

        type_spec = data.get("type") or {}
        if len(type_spec) != 1:
            raise ConfigError(f"Property '{name}' must declare exactly one type")
        data_type, attrs = next(iter(type_spec.items()))
        attrs = attrs or {}

        if "accessMode" not in attrs:
            raise ConfigError(f"Property '{name}' requires accessMode")

        return PropertyDefinition(
            name=name,
            data_type=data_type,
            access_mode=attrs["accessMode"],
            default_value=attrs.get("defaultValue"),
            minimum=attrs.get("minimum"),
            maximum=attrs.get("maximum"),
            unit=attrs.get("unit"),
            description=data.get("description"),
        )

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def parse_device(self, data: Dict[str, Any]) -> Device:
        """
        Parse a Device resource.

        Raises:
            ConfigError: If required fields are missing.
        """
        metadata = data.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            raise ConfigError("Device 'metadata.name' is required")

        spec = data.get("spec") or {}
        model_ref = (spec.get("deviceModelRef") or {}).get("name")
        if not model_ref:
            raise ConfigError(f"Device '{name}' requires deviceModelRef.name")

        return Device(
            name=name,
            namespace=metadata.get("namespace", "default"),
            model_name=model_ref,
            protocol=self._parse_protocol(name, spec.get("protocol") or {}),
            property_visitors=[
                self._parse_visitor(name, v) for v in spec.get("propertyVisitors") or []
            ],
            node_selector=spec.get("nodeSelector") or {},
            data=self._parse_data(spec.get("data")),
            description=spec.get("description"),
        )

    @staticmethod
    def _single_variant(owner: str, data: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        present = [key for key in VARIANT_KEYS if data.get(key) is not None]
        if len(present) != 1:
            raise ConfigError(
                f"{owner} must configure exactly one of {', '.join(VARIANT_KEYS)} "
                f"(found {len(present)})"
            )
        return present[0], data[present[0]] or {}

    def _parse_protocol(self, device_name: str, data: Dict[str, Any]) -> ProtocolConfig:
        key, attrs = self._single_variant(f"Device '{device_name}' protocol", data)

        if key == ProtocolType.BLUETOOTH.value:
            variant = BluetoothProtocolConfig(mac_address=attrs.get("macAddress"))
        elif key == ProtocolType.MODBUS.value:
            variant = ModbusProtocolConfig(slave_id=attrs.get("slaveID"))
        elif key == ProtocolType.OPCUA.value:
            variant = OpcuaProtocolConfig(
                url=attrs.get("url"),
                user_name=attrs.get("userName"),
                password=attrs.get("password"),
                security_mode=attrs.get("securityMode", "none"),
                security_policy=attrs.get("securityPolicy", "none"),
                certificate=attrs.get("certificate"),
                private_key=attrs.get("privateKey"),
                timeout=attrs.get("timeout"),
            )
        else:
            variant = CustomizedProtocolConfig(
                protocol_name=attrs.get("protocolName"),
                config_data=attrs.get("configData") or {},
            )

        return ProtocolConfig(variant=variant, common=self._parse_common(data.get("common")))

    @staticmethod
    def _parse_common(data: Optional[Dict[str, Any]]) -> Optional[CommonProtocolConfig]:
        if not data:
            return None

        com = data.get("com")
        tcp = data.get("tcp")
        return CommonProtocolConfig(
            com=SerialConfig(
                serial_port=com.get("serialPort"),
                baud_rate=com.get("baudRate"),
                data_bits=com.get("dataBits"),
                parity=com.get("parity", "none"),
                stop_bits=com.get("stopBits"),
            ) if com else None,
            tcp=TCPConfig(ip=tcp.get("ip"), port=tcp.get("port")) if tcp else None,
            comm_type=data.get("commType"),
            reconn_timeout=data.get("reconnTimeout"),
            reconn_retry_times=data.get("reconnRetryTimes"),
            collect_timeout=data.get("collectTimeout"),
            collect_retry_times=data.get("collectRetryTimes"),
            collect_type=data.get("collectType", "sync"),
            customized_values=data.get("customizedValues") or {},
        )

    def _parse_visitor(self, device_name: str, data: Dict[str, Any]) -> PropertyVisitor:
        property_name = data.get("propertyName")
        if not property_name:
            raise ConfigError(f"Device '{device_name}' has a visitor without propertyName")

        key, attrs = self._single_variant(
            f"Visitor '{property_name}' of device '{device_name}'", data
        )

        if key == ProtocolType.BLUETOOTH.value:
            config = self._parse_bluetooth_visitor(property_name, attrs)
        elif key == ProtocolType.MODBUS.value:
            config = ModbusVisitorConfig(
                register=attrs.get("register"),
                offset=attrs.get("offset"),
                limit=attrs.get("limit"),
                scale=attrs.get("scale", 1.0),
                is_swap=bool(attrs.get("isSwap", False)),
                is_register_swap=bool(attrs.get("isRegisterSwap", False)),
            )
        elif key == ProtocolType.OPCUA.value:
            config = OpcuaVisitorConfig(
                node_id=attrs.get("nodeID"),
                browse_name=attrs.get("browseName"),
            )
        else:
            config = CustomizedVisitorConfig(
                protocol_name=attrs.get("protocolName"),
                config_data=attrs.get("configData"),
            )

        return PropertyVisitor(
            property_name=property_name,
            config=config,
            collect_cycle=data.get("collectCycle"),
            report_cycle=data.get("reportCycle"),
            collect_retry_times=data.get("collectRetryTimes"),
            customized_values=data.get("customizedValues") or {},
        )

    @staticmethod
    def _parse_bluetooth_visitor(property_name: str, data: Dict[str, Any]) -> BluetoothVisitorConfig:
        converter = None
        converter_data = data.get("dataConverter")
        if converter_data is not None:
            converter = BluetoothDataConverter(
                start_index=converter_data.get("startIndex"),
                end_index=converter_data.get("endIndex"),
                shift_left=converter_data.get("shiftLeft"),
                shift_right=converter_data.get("shiftRight"),
                order_of_operations=[
                    BluetoothOperation(
                        operation_type=op.get("operationType"),
                        operation_value=op.get("operationValue", 0.0),
                    )
                    for op in converter_data.get("orderOfOperations") or []
                ],
            )

        data_write = {}
        for token, payload in (data.get("dataWrite") or {}).items():
            try:
                data_write[str(token)] = bytes(payload)
            except (TypeError, ValueError):
                raise ConfigError(
                    f"dataWrite '{token}' of '{property_name}' must be a list of bytes"
                )

        return BluetoothVisitorConfig(
            characteristic_uuid=data.get("characteristicUUID"),
            data_converter=converter,
            data_write=data_write,
        )

    @staticmethod
    def _parse_data(data: Optional[Dict[str, Any]]) -> Optional[DeviceData]:
        if not data:
            return None
        return DeviceData(
            data_topic=data.get("dataTopic") or DEFAULT_DATA_TOPIC,
            data_properties=[
                DataProperty(
                    property_name=p.get("propertyName"),
                    metadata=p.get("metadata") or {},
                )
                for p in data.get("dataProperties") or []
            ],
        )
