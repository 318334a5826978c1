# -*- coding: utf-8 -*-
"""Number normalisation and text helpers for CO2eq values and diffs."""

import sys
from typing import Optional, Union

#: Magnitudes below this are floating point noise.
EPSILON = sys.float_info.epsilon

_NUMBER_WORDS = (
    "zero", "one", "two", "three", "four",
    "five", "six", "seven", "eight", "nine", "ten",
)


def epsilon_zero(value: float) -> float:
    """Snap values below machine epsilon to exactly zero.

    Avoids ``-0.0`` and float noise such as ``1e-18`` in diffs.
    """
    if abs(value) < EPSILON:
        return 0
    return value


def _format_number(value: float, maximum_fraction_digits: int) -> str:
    text = f"{value:,.{maximum_fraction_digits}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def diff_to_string(
    value: float,
    value_string: Optional[str] = None,
    zero_string: Optional[str] = None,
    maximum_fraction_digits: int = 1,
) -> str:
    """Render a diff with an explicit sign.

    ``0`` renders as ``±0``, positive values get a ``+`` prefix and
    negative values keep their minus sign.

    Args:
        value: Diff to render.
        value_string: Pre-formatted text to use instead of the number.
        zero_string: Text to use when the diff is zero.
        maximum_fraction_digits: Digits after the decimal point.
    """
    value = epsilon_zero(value)
    if value == 0:
        return f"±{zero_string or value_string or _format_number(0, maximum_fraction_digits)}"
    text = value_string or _format_number(value, maximum_fraction_digits)
    if value < 0:
        return text
    return f"+{text}"


def number_to_string(num: Union[int, float]) -> str:
    """Spell out small whole numbers (``3`` -> ``"three"``)."""
    if isinstance(num, int) and 0 <= num < len(_NUMBER_WORDS):
        return _NUMBER_WORDS[num]
    if isinstance(num, float) and num.is_integer() and 0 <= num < len(_NUMBER_WORDS):
        return _NUMBER_WORDS[int(num)]
    return f"{num:g}" if isinstance(num, float) else str(num)


def pluralize_word(count: Union[int, float, str], singular: str, plural: Optional[str] = None) -> str:
    """Pick the English plural form of a word for a count."""
    if count == 1:
        return singular
    if plural is not None:
        return plural
    if singular.endswith("y") and not singular.endswith(("ay", "ey", "oy", "uy")):
        return f"{singular[:-1]}ies"
    if singular.endswith(("s", "sh", "ch", "x", "z")):
        return f"{singular}es"
    return f"{singular}s"


def pluralize(count: Union[int, float, str], singular: str, plural: Optional[str] = None) -> str:
    """``pluralize(3, "component")`` -> ``"three components"``."""
    amount = count if isinstance(count, str) else number_to_string(count)
    return f"{amount} {pluralize_word(count, singular, plural)}"


__all__ = [
    "EPSILON",
    "epsilon_zero",
    "diff_to_string",
    "number_to_string",
    "pluralize_word",
    "pluralize",
]
