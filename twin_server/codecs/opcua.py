"""
OPC-UA node codec.

Node values arrive as UTF-8 text and are coerced straight to the
property type; there is no byte level transform.
"""
from typing import Any, List

from ..exceptions import ConfigError, DecodeError, EncodeError
from ..models.definitions import DataType, OpcuaVisitorConfig, ProtocolType
from .base import expect_config
from .values import canonicalize, coerce


class OpcuaCodec:
    """Identity codec for OPC-UA property visitors."""

    protocol_type = ProtocolType.OPCUA

    def validate(self, config: Any) -> List[str]:
        config = expect_config(config, OpcuaVisitorConfig)
        if not config.node_id:
            return ["nodeID is required"]
        return []

    def decode(self, config: Any, raw: bytes, data_type: DataType) -> Any:
        config = self._checked(config)
        try:
            if data_type == DataType.BYTES:
                return bytes(raw)
            return coerce(bytes(raw), data_type)
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(
                f"Node {config.node_id} value is not a valid {data_type.value}: {e}",
                details={"node_id": config.node_id},
            )

    def encode(self, config: Any, value: Any, data_type: DataType) -> bytes:
        config = self._checked(config)
        if data_type == DataType.BYTES:
            try:
                return coerce(value, DataType.BYTES)
            except ValueError as e:
                raise EncodeError(f"Node {config.node_id}: {e}")
        try:
            return canonicalize(value, data_type).encode("utf-8")
        except ValueError as e:
            raise EncodeError(
                f"Node {config.node_id} cannot take '{value}': {e}",
                details={"node_id": config.node_id},
            )

    @staticmethod
    def _checked(config: Any) -> OpcuaVisitorConfig:
        config = expect_config(config, OpcuaVisitorConfig)
        if not config.node_id:
            raise ConfigError("OPC-UA visitor requires nodeID")
        return config
