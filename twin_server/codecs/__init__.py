"""
Protocol codec engine and per-protocol codecs.
"""
from .base import Codec
from .bluetooth import BluetoothCodec
from .customized import CustomizedCodec, CustomizedCodecRegistry, CustomizedProtocolCodec
from .engine import CodecEngine
from .modbus import ModbusCodec
from .opcua import OpcuaCodec
from .values import canonicalize, check_range, coerce

__all__ = [
    "Codec",
    "BluetoothCodec",
    "CustomizedCodec",
    "CustomizedCodecRegistry",
    "CustomizedProtocolCodec",
    "CodecEngine",
    "ModbusCodec",
    "OpcuaCodec",
    "canonicalize",
    "check_range",
    "coerce",
]
