"""
Codec protocol shared by every protocol variant.
"""
from typing import Any, List, Protocol, Type, TypeVar

from ..exceptions import ConfigError
from ..models.definitions import DataType, ProtocolType

C = TypeVar("C")


class Codec(Protocol):
    """Decode/encode pair for one protocol variant. Must be stateless."""

    protocol_type: ProtocolType

    def validate(self, config: Any) -> List[str]:
        """Return admission problems with a visitor config (empty when valid)."""
        ...

    def decode(self, config: Any, raw: bytes, data_type: DataType) -> Any:
        """Turn raw wire data into a semantic value."""
        ...

    def encode(self, config: Any, value: Any, data_type: DataType) -> bytes:
        """Turn a semantic value into raw wire data."""
        ...


def expect_config(config: Any, config_cls: Type[C]) -> C:
    """Ensure a visitor config has the variant a codec handles."""
    if not isinstance(config, config_cls):
        raise ConfigError(
            f"Expected {config_cls.__name__}, got {type(config).__name__}"
        )
    return config
