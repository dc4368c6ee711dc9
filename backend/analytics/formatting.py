from __future__ import annotations

import decimal
import math
import re
from datetime import timezone
from typing import Any, Optional

from dateutil import parser as date_parser

from .jsvalues import js_number, js_string
from .schemas import FormattingSettings

DEFAULT_FORMATTING_SETTINGS = FormattingSettings()

_THOUSANDS_RE = re.compile(r"\B(?=(\d{3})+(?!\d))")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _to_fixed(value: float, digits: int) -> str:
    # JavaScript toFixed rounds ties away from zero on the exact binary value
    quant = decimal.Decimal(1).scaleb(-digits)
    return str(decimal.Decimal(value).quantize(quant, rounding=decimal.ROUND_HALF_UP))


def _group_thousands(integer_part: str, separator: str) -> str:
    return _THOUSANDS_RE.sub(separator, integer_part)


def format_number(
    value: float,
    settings: Optional[FormattingSettings],
    fmt: str = "number",
    decimal_places: Optional[int] = None,
) -> str:
    """Fixed-point number with the dashboard's separators; ``percent`` scales by 100."""
    if math.isnan(value) or math.isinf(value):
        return js_string(value)
    config = settings or DEFAULT_FORMATTING_SETTINGS
    digits = decimal_places if decimal_places is not None else config.numberDecimalPlaces
    number = value * 100 if fmt == "percent" else value

    integer_part, _, decimal_part = _to_fixed(number, digits).partition(".")
    integer_part = _group_thousands(integer_part, config.thousandsSeparator)

    result = f"{integer_part}{config.decimalSeparator}{decimal_part}" if decimal_part and digits > 0 else integer_part
    if fmt == "percent":
        result += "%"
    return result


def format_currency(value: float, settings: Optional[FormattingSettings]) -> str:
    if math.isnan(value) or math.isinf(value):
        return js_string(value)
    config = settings or DEFAULT_FORMATTING_SETTINGS
    integer_part, _, decimal_part = _to_fixed(value, config.currencyDecimalPlaces).partition(".")
    integer_part = _group_thousands(integer_part, config.thousandsSeparator)
    amount = f"{integer_part}{config.decimalSeparator}{decimal_part}" if decimal_part else integer_part
    if config.currencyPosition == "prefix":
        return f"{config.currencySymbol} {amount}"
    return f"{amount} {config.currencySymbol}"


def _format_date(text: str, kind: str, settings: Optional[FormattingSettings]) -> str:
    config = settings or DEFAULT_FORMATTING_SETTINGS
    source = f"{text}T00:00:00Z" if _ISO_DATE_RE.match(text) else text
    try:
        parsed = date_parser.parse(source)
    except (ValueError, OverflowError):
        return text
    # Naive timestamps are read as UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)

    pattern = config.dateFormat if kind == "date" else config.dateTimeFormat
    return (
        pattern.replace("YYYY", str(parsed.year))
        .replace("MM", f"{parsed.month:02d}")
        .replace("DD", f"{parsed.day:02d}")
        .replace("HH", f"{parsed.hour:02d}")
        .replace("mm", f"{parsed.minute:02d}")
        .replace("ss", f"{parsed.second:02d}")
    )


def format_value(value: Any, column_type: Optional[str], settings: Optional[FormattingSettings]) -> str:
    """Render one cell for display according to its column type."""
    if value is None:
        return ""
    kind = column_type or "text"
    try:
        if kind == "integer":
            return format_number(js_number(value), settings, "number", 0)
        if kind == "decimal":
            return format_number(js_number(value), settings, "number")
        if kind == "currency":
            return format_currency(js_number(value), settings)
        if kind in ("date", "datetime"):
            return _format_date(js_string(value), kind, settings)
        return js_string(value)
    except (ValueError, TypeError, ArithmeticError):
        return js_string(value)
