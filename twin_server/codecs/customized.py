"""
Customized protocol codecs.

Vendor codecs are registered by protocol name. The core never
interprets their config data and refuses to run a visitor whose
protocol has no registered implementation.
"""
import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol

from ..exceptions import ConfigError
from ..models.definitions import CustomizedVisitorConfig, DataType, ProtocolType
from .base import expect_config

logger = logging.getLogger(__name__)


class CustomizedCodec(Protocol):
    """Codec supplied by a vendor integration."""

    def decode(self, config_data: Dict[str, Any], raw: bytes, data_type: DataType) -> Any:
        ...

    def encode(self, config_data: Dict[str, Any], value: Any, data_type: DataType) -> bytes:
        ...


class CustomizedCodecRegistry:
    """Maps protocol names to vendor codec implementations."""

    def __init__(self):
        self._codecs: Dict[str, CustomizedCodec] = {}

    def register(self, protocol_name: str, codec: CustomizedCodec) -> None:
        """
        Register a vendor codec.

        Raises:
            ConfigError: If the name is empty or already registered.
        """
        if not protocol_name:
            raise ConfigError("Customized protocol name must not be empty")
        if protocol_name in self._codecs:
            raise ConfigError(
                f"Customized protocol '{protocol_name}' is already registered"
            )
        self._codecs[protocol_name] = codec
        logger.debug(f"Registered customized protocol codec: {protocol_name}")

    def unregister(self, protocol_name: str) -> Optional[CustomizedCodec]:
        return self._codecs.pop(protocol_name, None)

    def get(self, protocol_name: str) -> Optional[CustomizedCodec]:
        return self._codecs.get(protocol_name)

    def require(self, protocol_name: Optional[str]) -> CustomizedCodec:
        codec = self._codecs.get(protocol_name) if protocol_name else None
        if codec is None:
            raise ConfigError(
                f"No codec registered for customized protocol '{protocol_name}'"
            )
        return codec

    def __contains__(self, protocol_name: str) -> bool:
        return protocol_name in self._codecs

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._codecs))

    def __len__(self) -> int:
        return len(self._codecs)


class CustomizedProtocolCodec:
    """Delegates to the vendor codec named by the visitor."""

    protocol_type = ProtocolType.CUSTOMIZED

    def __init__(self, registry: CustomizedCodecRegistry):
        self.registry = registry

    def validate(self, config: Any) -> List[str]:
        config = expect_config(config, CustomizedVisitorConfig)
        errors = []
        if not config.protocol_name:
            errors.append("protocolName is required")
        elif config.protocol_name not in self.registry:
            errors.append(f"no codec registered for '{config.protocol_name}'")
        if config.config_data is None:
            errors.append("configData is required")
        return errors

    def decode(self, config: Any, raw: bytes, data_type: DataType) -> Any:
        config = expect_config(config, CustomizedVisitorConfig)
        codec = self.registry.require(config.protocol_name)
        return codec.decode(config.config_data or {}, raw, data_type)

    def encode(self, config: Any, value: Any, data_type: DataType) -> bytes:
        config = expect_config(config, CustomizedVisitorConfig)
        codec = self.registry.require(config.protocol_name)
        return codec.encode(config.config_data or {}, value, data_type)
