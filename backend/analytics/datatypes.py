from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import ScriptExecutionError
from .jsruntime import MODE_EXPRESSION, run_js
from .jsvalues import JS_UNDEFINED, js_number, js_number_text, js_string
from .schemas import QueryResult

DEFAULT_SAMPLE_ROWS = 50

# String cells are classified with the engine's `new Date` parser
_DATE_KINDS_JS = r"""
return values.map(function (val) {
  if (val === '' || !isNaN(Number(val))) return 'none';
  var d = new Date(val);
  if (isNaN(d.getTime())) return 'none';
  if (/^\d{4}-\d{2}-\d{2}$/.test(val)) return 'date';
  if (val.indexOf('T') >= 0 || (val.indexOf(' ') >= 0 && val.indexOf(':') >= 0)) return 'datetime';
  if (d.getUTCHours() === 0 && d.getUTCMinutes() === 0 && d.getUTCSeconds() === 0 && d.getUTCMilliseconds() === 0) {
    return 'date';
  }
  return 'datetime';
});
"""


def _is_integer(val: Any) -> bool:
    num = js_number(val)
    if math.isnan(num) or math.isinf(num) or not num.is_integer():
        return False
    return js_number_text(num) == js_string(val)


def _is_decimal(val: Any) -> bool:
    return math.isfinite(js_number(val))


def _is_boolean(val: Any) -> bool:
    return js_string(val).lower() in ("true", "false", "1", "0")


def _classify_strings(texts: Sequence[str]) -> Dict[str, str]:
    if not texts:
        return {}
    outcome = run_js(_DATE_KINDS_JS, [("values", list(texts))], mode=MODE_EXPRESSION)
    if not outcome.ok:
        raise ScriptExecutionError(outcome.error, outcome.logs)
    return dict(zip(texts, outcome.value))


def _kind_of(val: Any, kinds: Mapping[str, str]) -> str:
    if isinstance(val, datetime):
        return "datetime"
    if isinstance(val, date):
        return "date"
    if isinstance(val, str):
        return kinds.get(val, "none")
    return "none"


def _string_cells(values: Sequence[Any]) -> List[str]:
    return list(dict.fromkeys(v for v in values if isinstance(v, str) and v != ""))


def date_kinds(values: Sequence[Any]) -> List[str]:
    """Classify each value as 'date', 'datetime' or 'none' (one engine call for all strings)."""
    kinds = _classify_strings(_string_cells(values))
    return [_kind_of(v, kinds) for v in values]


def date_kind(val: Any) -> str:
    return date_kinds([val])[0]


def _is_blank(val: Any) -> bool:
    return val is None or val is JS_UNDEFINED or js_string(val).strip() == ""


def infer_column_types(result: Optional[QueryResult], sample_rows: int = DEFAULT_SAMPLE_ROWS) -> Dict[str, str]:
    """Infer a display type for every column from the first ``sample_rows`` rows."""
    if result is None or not result.columns:
        return {}
    if not result.rows:
        return {col: "text" for col in result.columns}

    sample = result.rows[: max(1, int(sample_rows))]
    kinds = _classify_strings(_string_cells([cell for row in sample for cell in row]))
    column_types: Dict[str, str] = {}
    for idx, col in enumerate(result.columns):
        is_int = True
        is_dec = True
        is_bool = True
        has_date = False
        has_datetime = False
        non_null = 0
        for row in sample:
            value = row[idx] if idx < len(row) else None
            if _is_blank(value):
                continue
            non_null += 1
            if is_int and not _is_integer(value):
                is_int = False
            if is_dec and not _is_decimal(value):
                is_dec = False
            if is_bool and not _is_boolean(value):
                is_bool = False
            kind = _kind_of(value, kinds)
            if kind == "datetime":
                has_datetime = True
            elif kind == "date":
                has_date = True

        if non_null == 0:
            column_types[col] = "text"
        elif has_datetime:
            column_types[col] = "datetime"
        elif has_date:
            column_types[col] = "date"
        elif is_bool:
            column_types[col] = "boolean"
        elif is_int:
            column_types[col] = "integer"
        elif is_dec:
            column_types[col] = "decimal"
        else:
            column_types[col] = "text"
    return column_types


def merge_column_types(inferred: Mapping[str, str], saved: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Saved (user-chosen) types win, but only for columns still in the result."""
    saved = saved or {}
    return {col: (saved.get(col) or kind) for col, kind in inferred.items()}
