"""
Twin Server - device twins and reliable cloud/edge object sync.

Decodes protocol wire data into typed property values, reconciles
desired and reported device state, and tracks object delivery to
edge targets.
"""
from .config import TwinServerSettings, get_twin_server_settings
from .exceptions import TwinError
from .models import DeviceModelRegistry, ManifestLoader
from .main import TwinServer

__all__ = [
    "TwinServerSettings",
    "get_twin_server_settings",
    "TwinError",
    "DeviceModelRegistry",
    "ManifestLoader",
    "TwinServer",
]
