"""Fixed-width scalar types for operation declarations.

Python's ``int`` and ``str`` are unbounded, but some operations need the
narrower shapes their callers expect: a single character, or a signed
integer of a given width.  Declare a parameter as ``Char``, ``Byte``,
``Short`` or ``Long`` and the converter enforces the shape.

``Byte`` and ``Short`` narrow out-of-range values by two's-complement
wrapping, as a cast would; ``Long`` rejects them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class Char(str):
    """A single character."""

    def __new__(cls, value: Any = "\0") -> "Char":
        if isinstance(value, int) and not isinstance(value, bool):
            value = chr(value & 0xFFFF)
        text = str(value)
        if len(text) != 1:
            raise ValueError(f"Char requires exactly one character, got {text!r}")
        return super().__new__(cls, text)


class BoundedInt(int):
    """Base for signed integers of a fixed bit width."""

    BITS = 64
    WRAPS = True

    def __new__(cls, value: Any = 0) -> "BoundedInt":
        number = int(value)
        if not cls.in_range(number):
            if not cls.WRAPS:
                raise OverflowError(f"{number} out of range for {cls.__name__}")
            number = cls.wrap(number)
        return super().__new__(cls, number)

    @classmethod
    def min_value(cls) -> int:
        return -(1 << (cls.BITS - 1))

    @classmethod
    def max_value(cls) -> int:
        return (1 << (cls.BITS - 1)) - 1

    @classmethod
    def in_range(cls, number: int | Decimal) -> bool:
        return cls.min_value() <= number <= cls.max_value()

    @classmethod
    def wrap(cls, number: int) -> int:
        mask = (1 << cls.BITS) - 1
        number &= mask
        if number > cls.max_value():
            number -= 1 << cls.BITS
        return number


class Byte(BoundedInt):
    BITS = 8


class Short(BoundedInt):
    BITS = 16


class Long(BoundedInt):
    BITS = 64
    WRAPS = False


# Types whose absent value is a zero rather than ``None``.
PRIMITIVE_DEFAULTS: dict[type, Any] = {
    bool: False,
    int: 0,
    float: 0.0,
    Char: Char("\0"),
    Byte: Byte(0),
    Short: Short(0),
    Long: Long(0),
}


def is_primitive(tp: Any) -> bool:
    return tp in PRIMITIVE_DEFAULTS


def zero_value(tp: Any) -> Any:
    return PRIMITIVE_DEFAULTS[tp]
