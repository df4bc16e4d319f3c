"""
Test data factories for the twin server.

Provides factory classes for generating manifest documents and
sync objects.
"""
from .device_factory import (
    BluetoothVisitorManifestFactory,
    DeviceManifestFactory,
    ModbusVisitorManifestFactory,
    OpcuaVisitorManifestFactory,
)
from .model_factory import DeviceModelManifestFactory, PropertyManifestFactory
from .object_factory import SourceObjectFactory

__all__ = [
    "BluetoothVisitorManifestFactory",
    "DeviceManifestFactory",
    "ModbusVisitorManifestFactory",
    "OpcuaVisitorManifestFactory",
    "DeviceModelManifestFactory",
    "PropertyManifestFactory",
    "SourceObjectFactory",
]
