"""
Unit tests for the bluetooth codec.

Tests slicing, ordered arithmetic, bit shifts and dataWrite lookup.
"""
import pytest

from twin_server.codecs.engine import CodecEngine
from twin_server.exceptions import ConfigError, DecodeError, EncodeError
from twin_server.models.definitions import (
    BluetoothDataConverter,
    BluetoothOperation,
    BluetoothVisitorConfig,
    DataType,
    ProtocolType,
)

RAW = bytes([0x00, 0x01, 0x02, 0x03])


def make_config(start=1, end=2, operations=(), shift_left=None, shift_right=None, data_write=None):
    return BluetoothVisitorConfig(
        characteristic_uuid="f000aa0104514000b000000000000000",
        data_converter=BluetoothDataConverter(
            start_index=start,
            end_index=end,
            shift_left=shift_left,
            shift_right=shift_right,
            order_of_operations=[BluetoothOperation(op, value) for op, value in operations],
        ),
        data_write=data_write or {},
    )


@pytest.fixture
def engine():
    return CodecEngine()


def decode(engine, config, raw=RAW, data_type=DataType.INT):
    return engine.decode(ProtocolType.BLUETOOTH, config, raw, data_type)


class TestBluetoothDecode:
    """Test characteristic value decoding."""

    def test_slice_add_and_shift(self, engine):
        """Test slice [1..2], Add 10 then shiftLeft 1 gives 536."""
        config = make_config(operations=[("Add", 10)], shift_left=1)

        assert decode(engine, config) == 536

    def test_base_value_is_big_endian_unsigned(self, engine):
        assert decode(engine, make_config()) == 258

    def test_operation_order_matters(self, engine):
        """Test [Add 10, Multiply 2] differs from [Multiply 2, Add 10]."""
        add_first = make_config(operations=[("Add", 10), ("Multiply", 2)])
        multiply_first = make_config(operations=[("Multiply", 2), ("Add", 10)])

        assert decode(engine, add_first) == 536
        assert decode(engine, multiply_first) == 526

    def test_decode_is_deterministic(self, engine):
        config = make_config(operations=[("Subtract", 8), ("Divide", 2)])

        assert decode(engine, config) == decode(engine, config) == 125

    def test_reversed_indices_read_little_endian(self, engine):
        """Test startIndex > endIndex reverses the slice."""
        assert decode(engine, make_config(start=2, end=1)) == 0x0201

    def test_shift_right(self, engine):
        assert decode(engine, make_config(shift_right=1)) == 129

    def test_divide_keeps_fraction(self, engine):
        config = make_config(operations=[("Divide", 4)])

        assert decode(engine, config, data_type=DataType.DOUBLE) == 64.5

    def test_slice_out_of_range_raises(self, engine):
        with pytest.raises(DecodeError):
            decode(engine, make_config(start=1, end=4))

    def test_divide_by_zero_raises(self, engine):
        with pytest.raises(DecodeError):
            decode(engine, make_config(operations=[("Divide", 0)]))

    def test_missing_converter_raises_config_error(self, engine):
        config = BluetoothVisitorConfig(characteristic_uuid="uuid")

        with pytest.raises(ConfigError):
            decode(engine, config)


class TestBluetoothEncode:
    """Test dataWrite lookup."""

    @pytest.fixture
    def config(self):
        return make_config(data_write={"ON": b"\x01", "OFF": b"\x00", "true": b"\xff"})

    def test_encode_known_token(self, engine, config):
        assert engine.encode(ProtocolType.BLUETOOTH, config, "ON", DataType.STRING) == b"\x01"

    def test_encode_non_string_uses_canonical_form(self, engine, config):
        assert engine.encode(ProtocolType.BLUETOOTH, config, True, DataType.BOOLEAN) == b"\xff"

    def test_encode_unknown_token_raises(self, engine, config):
        with pytest.raises(EncodeError) as exc_info:
            engine.encode(ProtocolType.BLUETOOTH, config, "DIM", DataType.STRING)

        assert exc_info.value.details["known"] == ["OFF", "ON", "true"]

    def test_encode_is_not_inverse_of_decode(self, engine, config):
        """Test dataWrite and dataConverter are configured independently."""
        raw = engine.encode(ProtocolType.BLUETOOTH, config, "ON", DataType.STRING)

        with pytest.raises(DecodeError):
            decode(engine, config, raw=raw)


class TestBluetoothValidate:
    """Test admission checks."""

    def test_missing_characteristic_uuid(self, engine):
        config = make_config()
        config.characteristic_uuid = None

        problems = engine.validate(ProtocolType.BLUETOOTH, config)

        assert "characteristicUUID is required" in problems

    def test_unknown_operation_reported(self, engine):
        config = make_config(operations=[("Modulo", 3)])

        problems = engine.validate(ProtocolType.BLUETOOTH, config)

        assert any("Modulo" in p for p in problems)

    def test_valid_config_has_no_problems(self, engine):
        assert engine.validate(ProtocolType.BLUETOOTH, make_config()) == []
