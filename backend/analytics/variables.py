from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from .expressions import evaluate_expression
from .jsvalues import js_number_text
from .schemas import Variable

FIXED_DEPARTMENT_ID = "fixed-department"
FIXED_OWNER_ID = "fixed-owner"


def coerce_plain_value(raw: str) -> Any:
    """Type coercion applied to plain variables before they enter a context.

    A value becomes a number only when it survives ``String(parseFloat(v))``
    unchanged, so "42" and "3.5" convert but "042" and "1e3" stay text.
    """
    try:
        num = float(raw)
    except (TypeError, ValueError):
        num = math.nan
    if not math.isnan(num) and js_number_text(num) == raw:
        if math.isfinite(num) and num.is_integer():
            return int(num)
        return num
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw


def build_variable_context(variables: Sequence[Variable]) -> Dict[str, Any]:
    """Context of the plain (non-expression) variables, coerced. Later names overwrite earlier ones."""
    return {v.name: coerce_plain_value(v.value) for v in variables if not v.isExpression}


def resolve_variable_value(
    variable: Variable,
    context: Dict[str, Any],
    library_script: Optional[str] = None,
    **limits: int,
) -> Any:
    if not variable.isExpression or not variable.value:
        return variable.value
    return evaluate_expression(variable.value, context, library_script, **limits)


def resolve_all_variables(
    variables: Sequence[Variable],
    library_script: Optional[str] = None,
    **limits: int,
) -> Dict[str, Any]:
    """Resolve every variable to a concrete value.

    Expression variables are evaluated against the plain variables only;
    they never see one another's results. Failed expressions resolve to the
    ``[EVAL_ERROR: ...]`` string.
    """
    plain = [v for v in variables if not v.isExpression]
    expressions = [v for v in variables if v.isExpression]

    context = build_variable_context(plain)
    resolved: Dict[str, Any] = dict(context)
    for v in expressions:
        resolved[v.name] = evaluate_expression(v.value, context, library_script, **limits)
    return resolved


def build_card_variables(
    variables: Sequence[Variable],
    dashboard_id: Optional[str] = None,
    department: Optional[str] = None,
    owner: Optional[str] = None,
) -> List[Variable]:
    """Fixed request-scoped variables followed by the dashboard's own variables.

    When ``dashboard_id`` is None every supplied variable is kept.
    """
    fixed: List[Variable] = []
    if department:
        fixed.append(Variable(id=FIXED_DEPARTMENT_ID, dashboardId=dashboard_id, name="department", value=department))
    if owner:
        fixed.append(Variable(id=FIXED_OWNER_ID, dashboardId=dashboard_id, name="owner", value=owner))
    if dashboard_id is None:
        user_vars = list(variables)
    else:
        user_vars = [v for v in variables if v.dashboardId == dashboard_id]
    return fixed + user_vars
