"""
Bluetooth characteristic codec.

Decoding slices the characteristic value, reads it as an unsigned
big-endian integer, runs the configured arithmetic steps in order
and finally applies the bit shifts. Encoding is a lookup table from
output tokens to fixed byte sequences and is not the inverse of
decoding.
"""
from typing import Any, List, Union

from ..exceptions import ConfigError, DecodeError, EncodeError
from ..models.definitions import (
    BluetoothDataConverter,
    BluetoothVisitorConfig,
    DataType,
    OperationType,
    ProtocolType,
)
from .base import expect_config
from .values import canonicalize

Number = Union[int, float]


class BluetoothCodec:
    """Codec for bluetooth property visitors."""

    protocol_type = ProtocolType.BLUETOOTH

    def validate(self, config: Any) -> List[str]:
        config = expect_config(config, BluetoothVisitorConfig)
        errors = []

        if not config.characteristic_uuid:
            errors.append("characteristicUUID is required")

        converter = config.data_converter
        if converter is not None:
            if converter.start_index is None or converter.end_index is None:
                errors.append("dataConverter requires startIndex and endIndex")
            elif converter.start_index < 0 or converter.end_index < 0:
                errors.append("dataConverter indices must not be negative")
            for step in converter.order_of_operations:
                if not isinstance(step.operation_type, OperationType):
                    errors.append(f"unknown operationType '{step.operation_type}'")

        for token, payload in config.data_write.items():
            if not isinstance(payload, (bytes, bytearray)):
                errors.append(f"dataWrite entry '{token}' must be a byte sequence")

        return errors

    def decode(self, config: Any, raw: bytes, data_type: DataType) -> Number:
        config = expect_config(config, BluetoothVisitorConfig)
        converter = config.data_converter
        if converter is None or converter.start_index is None or converter.end_index is None:
            raise ConfigError(
                f"Bluetooth visitor {config.characteristic_uuid} has no "
                f"startIndex/endIndex to decode with"
            )

        window = self._slice(converter, raw)
        value: Number = int.from_bytes(window, "big", signed=False)

        for step in converter.order_of_operations:
            value = self._apply(step.operation_type, value, step.operation_value)

        if converter.shift_left:
            value = int(value) << converter.shift_left
        if converter.shift_right:
            value = int(value) >> converter.shift_right

        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return value

    def encode(self, config: Any, value: Any, data_type: DataType) -> bytes:
        config = expect_config(config, BluetoothVisitorConfig)
        token = value if isinstance(value, str) else canonicalize(value, data_type)

        payload = config.data_write.get(token)
        if payload is None:
            raise EncodeError(
                f"No dataWrite entry for '{token}' on characteristic "
                f"{config.characteristic_uuid}",
                details={"known": sorted(config.data_write)},
            )
        return bytes(payload)

    @staticmethod
    def _slice(converter: BluetoothDataConverter, raw: bytes) -> bytes:
        start, end = converter.start_index, converter.end_index
        if max(start, end) >= len(raw):
            raise DecodeError(
                f"Slice [{start}..{end}] exceeds {len(raw)} byte buffer",
                details={"length": len(raw), "start": start, "end": end},
            )
        if start <= end:
            return bytes(raw[start:end + 1])
        return bytes(reversed(raw[end:start + 1]))

    @staticmethod
    def _apply(operation: OperationType, value: Number, operand: float) -> Number:
        if operation == OperationType.ADD:
            return value + operand
        if operation == OperationType.SUBTRACT:
            return value - operand
        if operation == OperationType.MULTIPLY:
            return value * operand
        if operation == OperationType.DIVIDE:
            if operand == 0:
                raise DecodeError("Divide operation with operand 0")
            return value / operand
        raise ConfigError(f"Unknown operation '{operation}'")
