"""
Protocol codec engine.

Selects the codec for a protocol variant and turns protocol specific
wire data into typed property values and back.
"""
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigError, DecodeError, EncodeError
from ..models.definitions import DataType, ProtocolType
from .base import Codec
from .bluetooth import BluetoothCodec
from .customized import CustomizedCodecRegistry, CustomizedProtocolCodec
from .modbus import ModbusCodec
from .opcua import OpcuaCodec


class CodecEngine:
    """
    Stateless decode/encode dispatcher.

    Every codec is pure, so one engine can be shared by all
    reconciliation tasks without locking.
    """

    def __init__(self, customized: Optional[CustomizedCodecRegistry] = None):
        self.customized = customized or CustomizedCodecRegistry()
        self._codecs: Dict[ProtocolType, Codec] = {
            ProtocolType.BLUETOOTH: BluetoothCodec(),
            ProtocolType.MODBUS: ModbusCodec(),
            ProtocolType.OPCUA: OpcuaCodec(),
            ProtocolType.CUSTOMIZED: CustomizedProtocolCodec(self.customized),
        }

    def codec_for(self, protocol: ProtocolType, config: Any) -> Codec:
        """
        Get the codec for a protocol and check the visitor variant matches.

        Raises:
            ConfigError: If the protocol is unknown or the visitor config
                belongs to another protocol.
        """
        codec = self._codecs.get(protocol)
        if codec is None:
            raise ConfigError(f"Unsupported protocol '{protocol}'")
        config_protocol = getattr(config, "protocol_type", None)
        if config_protocol != protocol:
            raise ConfigError(
                f"Visitor config for '{config_protocol}' used with a "
                f"'{protocol.value}' device"
            )
        return codec

    def validate(self, protocol: ProtocolType, config: Any) -> List[str]:
        """Admission checks for a visitor config."""
        return self.codec_for(protocol, config).validate(config)

    def decode(
        self,
        protocol: ProtocolType,
        config: Any,
        raw: bytes,
        data_type: DataType,
    ) -> Any:
        """
        Decode raw wire data into a semantic value.

        Raises:
            ConfigError: If the visitor config cannot be used.
            DecodeError: If the data is malformed.
        """
        codec = self.codec_for(protocol, config)
        try:
            return codec.decode(config, raw, data_type)
        except (ConfigError, DecodeError):
            raise
        except Exception as e:
            raise DecodeError(f"{protocol.value} decode failed: {e}")

    def encode(
        self,
        protocol: ProtocolType,
        config: Any,
        value: Any,
        data_type: DataType,
    ) -> bytes:
        """
        Encode a semantic value into raw wire data.

        Raises:
            ConfigError: If the visitor config cannot be used.
            EncodeError: If the value cannot be represented.
        """
        codec = self.codec_for(protocol, config)
        try:
            return codec.encode(config, value, data_type)
        except (ConfigError, EncodeError):
            raise
        except Exception as e:
            raise EncodeError(f"{protocol.value} encode failed: {e}")
