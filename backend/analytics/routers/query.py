from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from ..config import settings
from ..deps import get_limits
from ..drivers import execute
from ..errors import DriverError, UnsupportedDriverError
from ..pipeline import SandboxLimits
from ..schemas import (
    QueryRequest,
    QueryRunRequest,
    QueryRunResponse,
    RequestContext,
    StripLimitsRequest,
    StripLimitsResponse,
)
from ..substitution import remove_sql_limits, substitute_variables
from ..variables import build_card_variables

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query", tags=["query"])


@router.post("", response_model=QueryRunResponse)
def run_query(payload: QueryRunRequest, limits: SandboxLimits = Depends(get_limits)) -> QueryRunResponse:
    sql = remove_sql_limits(payload.query) if payload.removeLimits else payload.query
    card_vars = build_card_variables(payload.variables, None, payload.department, payload.owner)
    final_query = substitute_variables(sql, card_vars, payload.libraryScript, **limits.as_kwargs())

    start = time.perf_counter()
    try:
        result = execute(
            QueryRequest(dataSource=payload.dataSource, query=final_query),
            RequestContext(department=payload.department, owner=payload.owner),
            max_rows=settings.query_max_rows,
        )
    except UnsupportedDriverError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DriverError as e:
        raise HTTPException(status_code=400, detail=f"Query failed: {e}")
    elapsed = int((time.perf_counter() - start) * 1000)
    logger.info(f"[Query] {payload.dataSource.type} returned {len(result.rows)} rows in {elapsed} ms")
    return QueryRunResponse(columns=result.columns, rows=result.rows, query=final_query, elapsedMs=elapsed)


@router.post("/strip-limits", response_model=StripLimitsResponse)
def strip_limits(payload: StripLimitsRequest) -> StripLimitsResponse:
    return StripLimitsResponse(sql=remove_sql_limits(payload.sql))
