from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_limits
from ..expressions import evaluate
from ..jsvalues import to_json_value
from ..pipeline import SandboxLimits
from ..schemas import (
    EvaluateRequest,
    EvaluateResponse,
    ResolveVariablesRequest,
    ResolveVariablesResponse,
    SubstituteRequest,
    SubstituteResponse,
)
from ..substitution import substitute_variables
from ..variables import build_card_variables, resolve_all_variables

router = APIRouter(prefix="/variables", tags=["variables"])


@router.post("/resolve", response_model=ResolveVariablesResponse)
def resolve_variables(payload: ResolveVariablesRequest, limits: SandboxLimits = Depends(get_limits)) -> ResolveVariablesResponse:
    card_vars = build_card_variables(payload.variables, payload.dashboardId, payload.department, payload.owner)
    values = resolve_all_variables(card_vars, payload.libraryScript, **limits.as_kwargs())
    return ResolveVariablesResponse(values={k: to_json_value(v) for k, v in values.items()})


@router.post("/evaluate", response_model=EvaluateResponse)
def evaluate_expression_route(payload: EvaluateRequest, limits: SandboxLimits = Depends(get_limits)) -> EvaluateResponse:
    res = evaluate(payload.expression, payload.context, payload.libraryScript, **limits.as_kwargs())
    if res.ok:
        return EvaluateResponse(ok=True, value=to_json_value(res.value), text=res.text, logs=res.logs)
    return EvaluateResponse(ok=False, error=res.error.display() if res.error else None, logs=res.logs)


@router.post("/substitute", response_model=SubstituteResponse)
def substitute_text(payload: SubstituteRequest, limits: SandboxLimits = Depends(get_limits)) -> SubstituteResponse:
    card_vars = build_card_variables(payload.variables, payload.dashboardId, payload.department, payload.owner)
    return SubstituteResponse(text=substitute_variables(payload.text, card_vars, payload.libraryScript, **limits.as_kwargs()))
