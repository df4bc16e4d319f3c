"""
Semantic value helpers.

Converts decoded values into the Python type of a property, renders
the canonical string stored in twins, and enforces declared ranges.
"""
import math
from typing import Any

from ..models.definitions import DataType, PropertyDefinition

TRUE_VALUES = frozenset({"true", "1", "on", "yes"})
FALSE_VALUES = frozenset({"false", "0", "off", "no"})

NUMERIC_TYPES = (DataType.INT, DataType.DOUBLE, DataType.FLOAT)


def _as_text(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8").strip()
    return value


def coerce(value: Any, data_type: DataType) -> Any:
    """
    Convert a value to the Python type of a semantic property type.

    Raises:
        ValueError: If the value cannot represent the type.
    """
    if value is None:
        raise ValueError("value is missing")

    if data_type == DataType.BYTES:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return bytes.fromhex(value)
        raise ValueError(f"cannot convert {type(value).__name__} to bytes")

    value = _as_text(value)

    if data_type == DataType.STRING:
        return value if isinstance(value, str) else str(value)

    if data_type == DataType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        text = str(value).strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False
        raise ValueError(f"'{value}' is not a boolean")

    if data_type == DataType.INT:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        number = float(value)
        if not math.isfinite(number) or not number.is_integer():
            raise ValueError(f"'{value}' is not an integer")
        return int(number)

    if data_type in (DataType.DOUBLE, DataType.FLOAT):
        if isinstance(value, bool):
            return float(value)
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"'{value}' is not a finite number")
        return number

    raise ValueError(f"unsupported type {data_type}")


def canonicalize(value: Any, data_type: DataType) -> str:
    """
    Render the canonical string form of a value.

    Desired and reported values are compared in this form, so
    "1", 1 and 1.0 all agree for a double property.
    """
    typed = coerce(value, data_type)
    if data_type == DataType.BOOLEAN:
        return "true" if typed else "false"
    if data_type == DataType.BYTES:
        return typed.hex()
    if data_type in (DataType.DOUBLE, DataType.FLOAT):
        return repr(typed)
    return str(typed)


def check_range(value: Any, definition: PropertyDefinition) -> None:
    """
    Enforce minimum/maximum of a numeric property.

    Raises:
        ValueError: If the value falls outside the declared range.
    """
    if definition.data_type not in NUMERIC_TYPES:
        return
    typed = coerce(value, definition.data_type)
    if definition.minimum is not None and typed < definition.minimum:
        raise ValueError(
            f"{typed} is below minimum {definition.minimum} of '{definition.name}'"
        )
    if definition.maximum is not None and typed > definition.maximum:
        raise ValueError(
            f"{typed} is above maximum {definition.maximum} of '{definition.name}'"
        )
