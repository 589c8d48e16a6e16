"""
Text Coercion Utilities
=======================

Single source of truth for turning request text into primitives.
Path segments, query strings, headers, cookies and form fields all arrive
as text; the schema engine calls these helpers before structural checks.

Usage:
    from apicontract.utils.normalize import to_int, to_bool, CoercionError

    try:
        limit = to_int("20")
    except CoercionError as e:
        ...
"""

import re
from typing import Any, List, Optional, Union


# ASCII literals only: int() and float() also take "1_000" and non-ASCII digits
INT_PATTERN = re.compile(r"[+-]?[0-9]+")
FLOAT_PATTERN = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)

TRUE_STRINGS = ("true", "1", "yes", "on")
FALSE_STRINGS = ("false", "0", "no", "off")


class CoercionError(ValueError):
    """Raised when text cannot be converted to the expected primitive."""

    def __init__(self, message: str, received_value=None):
        super().__init__(message)
        self.received_value = received_value


def is_blank(value: Any) -> bool:
    """Text sources report an absent value as None or an empty string."""
    return value is None or value == ""


def to_int(value: Union[str, int]) -> int:
    """
    Convert text to int.

    Raises:
        CoercionError: If value is not an integer literal
    """
    if isinstance(value, bool):
        raise CoercionError(f"Expected integer, got {value!r}", received_value=value)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if not INT_PATTERN.fullmatch(text):
            raise ValueError(text)
        return int(text)
    except ValueError:
        raise CoercionError(
            f"Expected integer, got {value!r}",
            received_value=value,
        )


def to_float(value: Union[str, float]) -> float:
    """
    Convert text to float.

    Raises:
        CoercionError: If value is not a numeric literal
    """
    if isinstance(value, bool):
        raise CoercionError(f"Expected number, got {value!r}", received_value=value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    try:
        if not FLOAT_PATTERN.fullmatch(text):
            raise ValueError(text)
        return float(text)
    except ValueError:
        raise CoercionError(
            f"Expected number, got {value!r}",
            received_value=value,
        )


def to_number(value: Union[str, int, float]) -> Union[int, float]:
    """
    Convert text to the narrowest numeric type.

    "42" -> 42, "4.5" -> 4.5, "1e3" -> 1000.0

    Raises:
        CoercionError: If value is not a numeric literal
    """
    try:
        return to_int(value)
    except CoercionError:
        pass
    result = to_float(value)
    if result != result or result in (float("inf"), float("-inf")):
        raise CoercionError(f"Expected number, got {value!r}", received_value=value)
    return result


def to_bool(value: Union[str, bool]) -> bool:
    """
    Convert text to bool.

    Accepts (case-insensitive):
        True: 'true', '1', 'yes', 'on'
        False: 'false', '0', 'no', 'off'

    Raises:
        CoercionError: If value is not a recognized boolean string
    """
    if isinstance(value, bool):
        return value
    lower = str(value).strip().lower()
    if lower in TRUE_STRINGS:
        return True
    if lower in FALSE_STRINGS:
        return False
    raise CoercionError(f"Expected boolean, got {value!r}", received_value=value)


def to_list(value: Any) -> Optional[List[Any]]:
    """
    Wrap a single text value in a list.

    Repeated query keys already arrive as lists and pass through.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
