"""JavaScript value semantics for Python values.

Scripts and saved dashboards were written against JavaScript's ``Number()``
and ``String()`` conversions, so type inference and variable coercion
reproduce those rules on the Python side.
"""
from __future__ import annotations

import binascii
import decimal
import math
import re
from datetime import date, datetime, time as dtime
from typing import Any

_DECIMAL_LITERAL = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_RADIX_LITERAL = re.compile(r"^0(?:[xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$")


class JsUndefined:
    """JavaScript ``undefined``, kept apart from ``null`` (None) across the engine boundary."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "undefined"


JS_UNDEFINED = JsUndefined()


def to_json_value(value: Any) -> Any:
    """Plain JSON form of a resolved value; ``undefined`` becomes None."""
    return None if value is JS_UNDEFINED else value


def js_number_text(num: float) -> str:
    """Render a float the way ``String(num)`` does in JavaScript."""
    if math.isnan(num):
        return "NaN"
    if math.isinf(num):
        return "Infinity" if num > 0 else "-Infinity"
    if num == int(num) and abs(num) < 1e21:
        return str(int(num))
    if 1e-6 <= abs(num) < 1e21:
        return format(decimal.Decimal(repr(num)), "f")
    mantissa, _, exponent = repr(num).partition("e")
    exp = int(exponent)
    return f"{mantissa}e{'+' if exp > 0 else '-'}{abs(exp)}"


def js_string(value: Any) -> str:
    """Equivalent of JavaScript ``String(value)`` for JSON-like Python values."""
    if value is None:
        return "null"
    if value is JS_UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (float, decimal.Decimal)):
        return js_number_text(float(value))
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join("" if v is None else js_string(v) for v in value)
    if isinstance(value, dict):
        return "[object Object]"
    if isinstance(value, (datetime, date, dtime)):
        return value.isoformat()
    return str(value)


def js_number(value: Any) -> float:
    """Equivalent of JavaScript ``Number(value)``; returns NaN when not numeric."""
    if value is JS_UNDEFINED:
        return math.nan
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, (float, decimal.Decimal)):
        return float(value)
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return 0.0
        if len(value) == 1:
            return js_number(js_string(value[0]) if value[0] is not None else "")
        return math.nan
    if not isinstance(value, str):
        return math.nan
    text = value.strip()
    if text == "":
        return 0.0
    if text in ("Infinity", "+Infinity"):
        return math.inf
    if text == "-Infinity":
        return -math.inf
    if _DECIMAL_LITERAL.match(text):
        return float(text)
    if _RADIX_LITERAL.match(text):
        return float(int(text, 0))
    return math.nan


def json_safe_cell(v: Any) -> Any:
    """Coerce DB values to JSON-serializable primitives.
    - bytes/bytearray/memoryview → utf-8 text, else hex string (0x...)
    - Decimal → float (fallback to str if not representable)
    - date/datetime/time → ISO string
    - Default: return as-is
    """
    if v is JS_UNDEFINED:
        return None
    if isinstance(v, (bytes, bytearray, memoryview)):
        try:
            return bytes(v).decode("utf-8")
        except UnicodeDecodeError:
            return "0x" + binascii.hexlify(bytes(v)).decode("ascii")
    if isinstance(v, decimal.Decimal):
        try:
            return float(v)
        except (ValueError, OverflowError):
            return str(v)
    if isinstance(v, datetime):
        return v.isoformat(sep=" ") if v.tzinfo is None else v.isoformat()
    if isinstance(v, (date, dtime)):
        return v.isoformat()
    if isinstance(v, tuple):
        return list(v)
    if isinstance(v, (set, frozenset)):
        return list(v)
    return v
