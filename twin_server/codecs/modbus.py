"""
Modbus register codec.

Raw data for holding and input registers is the big-endian register
payload of a read response (two bytes per register). Coil and discrete
input data is the packed bit payload (LSB first).
"""
import struct
from typing import Any, List

from ..exceptions import ConfigError, DecodeError, EncodeError
from ..models.definitions import (
    DataType,
    ModbusRegisterType,
    ModbusVisitorConfig,
    ProtocolType,
)
from .base import expect_config
from .values import coerce


def _swap_bytes(word: int) -> int:
    return ((word & 0xFF) << 8) | ((word >> 8) & 0xFF)


class ModbusCodec:
    """Codec for modbus property visitors."""

    protocol_type = ProtocolType.MODBUS

    def validate(self, config: Any) -> List[str]:
        config = expect_config(config, ModbusVisitorConfig)
        errors = []

        if config.register is None:
            errors.append("register is required")
        elif not isinstance(config.register, ModbusRegisterType):
            errors.append(f"unknown register type '{config.register}'")

        if config.offset is None:
            errors.append("offset is required")
        elif config.offset < 0:
            errors.append("offset must not be negative")

        if config.limit is None:
            errors.append("limit is required")
        elif config.limit < 1:
            errors.append("limit must be at least 1")

        if config.scale == 0:
            errors.append("scale must not be 0")

        return errors

    def decode(self, config: Any, raw: bytes, data_type: DataType) -> float:
        config = expect_config(config, ModbusVisitorConfig)
        self._require(config)

        if config.register.is_bit_register:
            value = self._decode_bits(config, raw)
        else:
            words = self._unpack_words(config, raw)
            value = 0
            for word in words:
                value = (value << 16) | word

        return value * config.scale

    def encode(self, config: Any, value: Any, data_type: DataType) -> bytes:
        config = expect_config(config, ModbusVisitorConfig)
        self._require(config)

        try:
            if data_type == DataType.BOOLEAN:
                number = 1 if coerce(value, DataType.BOOLEAN) else 0
            else:
                number = coerce(value, DataType.DOUBLE)
        except ValueError as e:
            raise EncodeError(f"Cannot write '{value}' to modbus register: {e}")
        raw_value = int(round(number / config.scale))

        if config.register.is_bit_register:
            return self._encode_bits(config, raw_value)

        width = 16 * config.limit
        if raw_value < 0:
            if raw_value < -(1 << (width - 1)):
                raise EncodeError(f"{value} does not fit in {config.limit} registers")
            raw_value &= (1 << width) - 1
        if raw_value >= (1 << width):
            raise EncodeError(f"{value} does not fit in {config.limit} registers")

        words = [
            (raw_value >> (16 * (config.limit - 1 - i))) & 0xFFFF
            for i in range(config.limit)
        ]
        # Reverse of decode: byte swap first, then register order.
        if config.is_swap:
            words = [_swap_bytes(w) for w in words]
        if config.is_register_swap:
            words.reverse()
        return struct.pack(f">{config.limit}H", *words)

    @staticmethod
    def _require(config: ModbusVisitorConfig) -> None:
        if config.register is None or config.offset is None or config.limit is None:
            raise ConfigError("Modbus visitor requires register, offset and limit")
        if not isinstance(config.register, ModbusRegisterType):
            raise ConfigError(f"Unknown modbus register type '{config.register}'")

    @staticmethod
    def _unpack_words(config: ModbusVisitorConfig, raw: bytes) -> List[int]:
        needed = 2 * config.limit
        if len(raw) < needed:
            raise DecodeError(
                f"Expected {needed} bytes for {config.limit} registers, got {len(raw)}",
                details={"offset": config.offset, "length": len(raw)},
            )
        words = list(struct.unpack(f">{config.limit}H", bytes(raw[:needed])))
        if config.is_register_swap:
            words.reverse()
        if config.is_swap:
            words = [_swap_bytes(w) for w in words]
        return words

    @staticmethod
    def _decode_bits(config: ModbusVisitorConfig, raw: bytes) -> int:
        needed = (config.limit + 7) // 8
        if len(raw) < needed:
            raise DecodeError(
                f"Expected {needed} bytes for {config.limit} bits, got {len(raw)}",
                details={"offset": config.offset, "length": len(raw)},
            )
        value = 0
        for i in range(config.limit):
            if raw[i // 8] & (1 << (i % 8)):
                value |= 1 << i
        return value

    @staticmethod
    def _encode_bits(config: ModbusVisitorConfig, raw_value: int) -> bytes:
        if raw_value < 0 or raw_value >= (1 << config.limit):
            raise EncodeError(f"{raw_value} does not fit in {config.limit} coils")
        payload = bytearray((config.limit + 7) // 8)
        for i in range(config.limit):
            if raw_value & (1 << i):
                payload[i // 8] |= 1 << (i % 8)
        return bytes(payload)
