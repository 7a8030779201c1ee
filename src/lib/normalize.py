"""
Value normalization for FieldSeal.

Every value is canonicalized before it is encrypted or hashed so that equal
logical values always produce the same blind index, no matter when or how
they were written:

- text:  surrounding whitespace removed
- email: surrounding whitespace removed, lowercased
- money: currency symbols and separators removed, parsed as a binary
  double and fixed to two decimals (the rounding of JavaScript's
  `Number.prototype.toFixed(2)`, so digests match JS writers)

Examples:
    >>> normalize_email(" Foo@Bar.COM ")
    'foo@bar.com'
    >>> normalize_money("₱1,234.5")
    '1234.50'
"""

from __future__ import annotations

import re
import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any

from src.lib.exceptions import InvalidMoneyError, UnsupportedTypeError


class NormalizationKind(Enum):
    """How a field value is canonicalized before sealing."""
    TEXT = "text"
    EMAIL = "email"
    MONEY = "money"


_MONEY_NOISE = re.compile(r"[^\d.\-]")
_CENTS = Decimal("0.01")

# toFixed switches to exponent notation from here on
_FIXED_LIMIT = 1e21


def normalize_text(value: Any) -> str:
    """Return the string form of value with surrounding whitespace removed."""
    return str(value).strip()


def normalize_email(value: Any) -> str:
    """Return the trimmed, lowercased string form of value."""
    return str(value).strip().lower()


def _to_fixed(number: float) -> str:
    """
    Format a finite double like JavaScript's `number.toFixed(2)`.

    The exact binary value is rounded, ties away from zero, so 2.675
    (stored as 2.67499999...) becomes "2.67". Magnitudes of 1e21 and above
    keep the shortest round-trip form, e.g. "1e+21".
    """
    if abs(number) >= _FIXED_LIMIT:
        return repr(number)

    exact = Decimal(abs(number))
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, exact.adjusted() + 3)
        cents = exact.quantize(_CENTS, rounding=ROUND_HALF_UP)

    # -0.0 is not negative, -0.001 is: "0.00" vs "-0.00"
    sign = "-" if number < 0 else ""
    return sign + format(cents, "f")


def normalize_money(value: Any) -> str:
    """
    Canonicalize a money amount to a string with exactly two decimals.

    Args:
        value: A finite int, float or Decimal, or a string such as
            "1,234.50" or "₱1234.5". Every character of a string that is
            not a digit, "." or "-" is discarded before parsing.

    Returns:
        The amount formatted with two decimal places, e.g. "1234.50"

    Raises:
        InvalidMoneyError: If the value is missing, not finite, or the
            string does not parse as a number.
        UnsupportedTypeError: If the value is of any other type.
    """
    if value is None:
        raise InvalidMoneyError("Missing money value")

    # bool is an int subclass but never a money amount
    if isinstance(value, bool):
        raise UnsupportedTypeError("Unsupported money type: bool")

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError) as e:
            raise InvalidMoneyError(f"Invalid money number: {type(value).__name__} not representable as a double") from e
        if not math.isfinite(number):
            raise InvalidMoneyError(f"Invalid money number: {value!r}")
        return _to_fixed(number)

    if isinstance(value, str):
        cleaned = _MONEY_NOISE.sub("", value.strip())
        if not cleaned:
            raise InvalidMoneyError(f'Invalid money string: "{value}"')
        try:
            number = float(cleaned)
        except ValueError as e:
            raise InvalidMoneyError(f'Invalid money string: "{value}"') from e
        if not math.isfinite(number):
            raise InvalidMoneyError(f'Invalid money string: "{value}"')
        return _to_fixed(number)

    raise UnsupportedTypeError(f"Unsupported money type: {type(value).__name__}")


_NORMALIZERS = {
    NormalizationKind.TEXT: normalize_text,
    NormalizationKind.EMAIL: normalize_email,
    NormalizationKind.MONEY: normalize_money,
}


def normalize(kind: NormalizationKind, value: Any) -> str:
    """Normalize value according to kind."""
    return _NORMALIZERS[kind](value)


__all__ = [
    "NormalizationKind",
    "normalize",
    "normalize_email",
    "normalize_money",
    "normalize_text",
]
