"""Synchronous evaluators — pure value-classification predicates.

Every evaluator has the signature ``evaluate(value, args) -> bool``:
no I/O, no shared state, same input → same output.
"""

import math
import re
from typing import Any, Optional, Union

from pienut.validation.models import TypeName

Number = Union[int, float]

_INT_TEXT = re.compile(r"[+-]?\d+", re.ASCII)
_DECIMAL_TEXT = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)", re.ASCII)
_DIGITS = re.compile(r"\d+", re.ASCII)
_EMAIL = re.compile(r"[^\s@]+@[^\s@.]+(?:\.[^\s@.]+)+")


# ── Coercion helpers ──

def is_empty(value: Any) -> bool:
    """True for the markers ``required`` rejects: None, blank text, empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def is_native_number(value: Any) -> bool:
    """int or finite float; booleans are not numbers."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _parse_int(text: str) -> Optional[int]:
    # int() refuses text past the interpreter's digit limit
    try:
        return int(text)
    except ValueError:
        return None


def to_number(value: Any) -> Optional[Number]:
    """Native number as-is, or text that parses entirely as a finite decimal number."""
    if is_native_number(value):
        return value
    if isinstance(value, str):
        if _INT_TEXT.fullmatch(value):
            return _parse_int(value)
        if _DECIMAL_TEXT.fullmatch(value):
            number = float(value)
            return number if math.isfinite(number) else None
    return None


def to_int(value: Any) -> Optional[int]:
    """Native int as-is, or text that parses entirely as an integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_TEXT.fullmatch(value):
        return _parse_int(value)
    return None


def coerce_for(type_name: Optional[TypeName], value: Any) -> Any:
    """Coerce ``value`` the way the field's declared type reads it.

    Only ``int`` and ``number`` coerce; anything else (or a value that does
    not coerce) compares raw.
    """
    if type_name == TypeName.INT:
        coerced = to_int(value)
    elif type_name == TypeName.NUMBER:
        coerced = to_number(value)
    else:
        return value
    return value if coerced is None else coerced


def same_value(a: Any, b: Any) -> bool:
    """Equality where booleans never equal numbers (``True != 1``)."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


# ── Type family checks ──

def _is_float(value: Any) -> bool:
    return isinstance(value, float) and math.isfinite(value) and not value.is_integer()


TYPE_CHECKS = {
    TypeName.STRING: lambda v: isinstance(v, str),
    TypeName.ALPHA: lambda v: isinstance(v, str) and v.isalpha(),
    TypeName.ALPHANUMERIC: lambda v: isinstance(v, str) and v.isalnum(),
    TypeName.NUMERIC: lambda v: isinstance(v, str) and _DIGITS.fullmatch(v) is not None,
    TypeName.NUMBER: lambda v: to_number(v) is not None,
    TypeName.INT: lambda v: to_int(v) is not None,
    TypeName.FLOAT: _is_float,
    TypeName.BOOL: lambda v: isinstance(v, bool),
    TypeName.CHAR: lambda v: isinstance(v, str) and len(v) == 1,
}


# ── Evaluators ──

def check_required(value: Any, args: tuple) -> bool:
    return not is_empty(value)


def check_type(value: Any, args: tuple) -> bool:
    (type_name,) = args
    return TYPE_CHECKS[type_name](value)


def check_min_len(value: Any, args: tuple) -> bool:
    (minimum,) = args
    return isinstance(value, str) and len(value) >= minimum


def check_max_len(value: Any, args: tuple) -> bool:
    (maximum,) = args
    return isinstance(value, str) and len(value) <= maximum


def check_between(value: Any, args: tuple) -> bool:
    low, high = args
    number = to_number(value)
    if number is None:
        return False
    return low <= number <= high


def _contains(value: Any, members: tuple, companion: Optional[TypeName]) -> bool:
    needle = coerce_for(companion, value)
    return any(same_value(needle, coerce_for(companion, m)) for m in members)


def check_in(value: Any, args: tuple) -> bool:
    members, companion = args
    return _contains(value, members, companion)


def check_not_in(value: Any, args: tuple) -> bool:
    members, companion = args
    return not _contains(value, members, companion)


def check_email(value: Any, args: tuple) -> bool:
    return isinstance(value, str) and _EMAIL.fullmatch(value) is not None


def check_regex(value: Any, args: tuple) -> bool:
    # Anchoring is left to the caller's pattern
    (pattern,) = args
    return isinstance(value, str) and pattern.search(value) is not None
