from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from .errors import EvalResult
from .jsruntime import MODE_EXPRESSION, run_js
from .metrics import counter_inc

logger = logging.getLogger(__name__)

EVAL_ERROR_PREFIX = "[EVAL_ERROR:"

_RETURN_RE = re.compile(r"\breturn\b")


def build_body(expression: str, library_script: Optional[str] = None) -> str:
    """Combine the optional library and the expression into one function body.

    Input containing an explicit ``return`` is used verbatim (multi-statement
    scripts); anything else is wrapped in ``return (...)`` so a bare object
    literal is not parsed as a block.
    """
    if _RETURN_RE.search(expression):
        body = expression
    else:
        body = f"return (\n{expression}\n);"
    if library_script:
        return f"{library_script}\n\n{body}"
    return body


def evaluate(
    expression: str,
    context: Mapping[str, Any],
    library_script: Optional[str] = None,
    *,
    timeout_ms: int = 0,
    memory_limit_mb: int = 0,
) -> EvalResult:
    """Evaluate a JavaScript expression or body against ``context``.

    The function parameters are exactly the context keys, called with the
    context values in the same order.
    """
    outcome = run_js(
        build_body(expression, library_script),
        list(context.items()),
        mode=MODE_EXPRESSION,
        timeout_ms=timeout_ms,
        memory_limit_mb=memory_limit_mb,
    )
    for line in outcome.logs:
        logger.debug(f"[Expr] console: {line}")
    if outcome.ok:
        counter_inc("expression_evals_total", {"status": "ok"})
        return EvalResult(ok=True, value=outcome.value, text=outcome.text, logs=outcome.logs)
    counter_inc("expression_evals_total", {"status": "error"})
    logger.info(f'[Expr] Error evaluating expression "{expression}": {outcome.error.display()}')
    return EvalResult(ok=False, error=outcome.error, logs=outcome.logs)


def eval_error_text(result: EvalResult) -> str:
    message = result.error.message if result.error else ""
    return f"{EVAL_ERROR_PREFIX} {message}]"


def is_eval_error(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EVAL_ERROR_PREFIX)


def evaluate_expression(
    expression: str,
    context: Mapping[str, Any],
    library_script: Optional[str] = None,
    **limits: int,
) -> Any:
    """Soft-fail evaluation: the value on success, ``[EVAL_ERROR: <message>]`` on failure."""
    result = evaluate(expression, context, library_script, **limits)
    if result.ok:
        return result.value
    return eval_error_text(result)
