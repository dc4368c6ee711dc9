from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping, Optional, Sequence

from .expressions import evaluate
from .jsvalues import js_string, json_safe_cell
from .metrics import counter_inc
from .schemas import Variable
from .variables import resolve_all_variables

logger = logging.getLogger(__name__)

# Lazy and newline-tolerant so multi-line expressions inside {{ }} work
PLACEHOLDER_RE = re.compile(r"\{\{(.+?)\}\}", re.DOTALL)

_TOP_RE = re.compile(r"\bTOP\s+\d+\s", re.IGNORECASE)
_LIMIT_RE = re.compile(r"\bLIMIT\s+\d+(\s+OFFSET\s+\d+)?\b", re.IGNORECASE)
_OFFSET_FETCH_RE = re.compile(
    r"\bOFFSET\s+(?:@?\w+|\d+)\s+ROWS\s+FETCH\s+(?:NEXT|FIRST)\s+(?:@?\w+|\d+)\s+ROWS\s+ONLY\b",
    re.IGNORECASE,
)
_MONGO_LIMIT_RE = re.compile(
    r',\s*{[^{}]*(?:"\$limit"|\$limit)\s*:\s*\d+[^{}]*}(?=\s*,\s*{[^{}]*(?:"\$project"|\$project))'
    r'|,\s*{[^{}]*(?:"\$limit"|\$limit)\s*:\s*\d+[^{}]*}(?=\s*])'
)


def display_text(value: Any) -> str:
    """String form used when a context value is spliced into text."""
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=json_safe_cell, ensure_ascii=False, separators=(",", ":"))
    return js_string(value)


def substitute_with_context(
    text: str,
    context: Mapping[str, Any],
    library_script: Optional[str] = None,
    **limits: int,
) -> str:
    """Replace every ``{{...}}`` in ``text`` using an already-resolved context.

    Each placeholder is evaluated as an expression; on failure the trimmed
    inner text is looked up as a plain key; when both fail the placeholder is
    left as written. Substituted text is never rescanned.
    """
    if not text or "{{" not in text:
        return text

    def _replace(match: re.Match) -> str:
        expression = match.group(1)
        result = evaluate(expression, context, library_script, **limits)
        if result.ok:
            return result.text
        key = expression.strip()
        if key in context:
            return display_text(context[key])
        counter_inc("substitution_misses_total")
        logger.warning(f"[Substitute] Variable or expression {{{{{expression}}}}} could not be resolved.")
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def substitute_variables(
    text: str,
    variables: Sequence[Variable],
    library_script: Optional[str] = None,
    **limits: int,
) -> str:
    """Resolve ``variables`` once, then substitute every placeholder in ``text``."""
    if not text or "{{" not in text:
        return text
    resolved = resolve_all_variables(variables, library_script, **limits)
    return substitute_with_context(text, resolved, library_script, **limits)


def remove_sql_limits(sql: str) -> str:
    """Strip row-limiting clauses so an export sees the full dataset.

    Handles ``TOP n``, ``LIMIT n [OFFSET m]``, SQL Server ``OFFSET .. FETCH``
    and Mongo pipeline ``$limit`` stages.
    """
    modified = _TOP_RE.sub(" ", sql, count=1)
    modified = _LIMIT_RE.sub("", modified, count=1)
    modified = _OFFSET_FETCH_RE.sub("", modified, count=1)
    modified = _MONGO_LIMIT_RE.sub("", modified)
    return modified.strip()
