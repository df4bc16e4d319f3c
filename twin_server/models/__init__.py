"""
Device models, devices and their admission-time resolution.
"""
from .definitions import (
    AccessMode,
    DataType,
    ProtocolType,
    ModbusRegisterType,
    OperationType,
    PropertyDefinition,
    DeviceModel,
    ProtocolConfig,
    CommonProtocolConfig,
    PropertyVisitor,
    DeviceData,
    Device,
)
from .registry import DeviceModelRegistry
from .loader import ManifestLoader
from .resolver import DeviceBinding, ResolvedVisitor, VisitorResolver

__all__ = [
    "AccessMode",
    "DataType",
    "ProtocolType",
    "ModbusRegisterType",
    "OperationType",
    "PropertyDefinition",
    "DeviceModel",
    "ProtocolConfig",
    "CommonProtocolConfig",
    "PropertyVisitor",
    "DeviceData",
    "Device",
    "DeviceModelRegistry",
    "ManifestLoader",
    "DeviceBinding",
    "ResolvedVisitor",
    "VisitorResolver",
]
