from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import JSONResponse

from ..config import settings
from ..datatypes import infer_column_types, merge_column_types
from ..deps import get_limits
from ..errors import CardExecutionError, DataSourceNotFoundError, ScriptExecutionError
from ..export_service import export_card
from ..pipeline import CardOutcome, SandboxLimits, process_card, run_card
from ..postprocessing import execute_post_processing_script
from ..schemas import (
    CardExportRequest,
    CardProcessRequest,
    CardRunRequest,
    CardRunResponse,
    InferTypesRequest,
    InferTypesResponse,
    ScriptRunRequest,
    ScriptRunResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cards", tags=["cards"])


def _out(outcome: CardOutcome) -> CardRunResponse:
    return CardRunResponse(
        title=outcome.title,
        description=outcome.description,
        result=outcome.result,
        columnTypes=outcome.column_types,
        logs=outcome.logs,
        error=outcome.error,
    )


@router.post("/process", response_model=CardRunResponse)
def process(payload: CardProcessRequest, limits: SandboxLimits = Depends(get_limits)) -> CardRunResponse:
    outcome = process_card(
        payload.card,
        payload.results,
        payload.variables,
        library_script=payload.libraryScript,
        department=payload.department,
        owner=payload.owner,
        saved_column_types=payload.savedColumnTypes,
        limits=limits,
        sample_rows=settings.type_sample_rows,
    )
    return _out(outcome)


@router.post("/run", response_model=CardRunResponse)
def run(payload: CardRunRequest, limits: SandboxLimits = Depends(get_limits)) -> CardRunResponse:
    try:
        outcome = run_card(
            payload.card,
            payload.dataSources,
            payload.variables,
            library_script=payload.libraryScript,
            department=payload.department,
            owner=payload.owner,
            saved_column_types=payload.savedColumnTypes,
            limits=limits,
            sample_rows=settings.type_sample_rows,
            max_rows=settings.query_max_rows,
        )
    except DataSourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CardExecutionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _out(outcome)


@router.post("/export")
def export(payload: CardExportRequest, limits: SandboxLimits = Depends(get_limits)) -> Response:
    try:
        exported = export_card(
            payload.card,
            payload.dataSources,
            payload.variables,
            formatting=payload.formattingSettings,
            library_script=payload.libraryScript,
            department=payload.department,
            owner=payload.owner,
            limits=limits,
        )
    except CardExecutionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@router.post("/infer-types", response_model=InferTypesResponse)
def infer_types(payload: InferTypesRequest) -> InferTypesResponse:
    inferred = infer_column_types(payload.result, settings.type_sample_rows)
    return InferTypesResponse(columnTypes=merge_column_types(inferred, payload.savedColumnTypes))


@router.post("/script", response_model=ScriptRunResponse)
def run_script(payload: ScriptRunRequest, limits: SandboxLimits = Depends(get_limits)):
    try:
        res = execute_post_processing_script(
            payload.data, payload.script, payload.context, payload.libraryScript, **limits.as_kwargs()
        )
    except ScriptExecutionError as e:
        return JSONResponse(status_code=422, content={"error": e.display_message, "logs": e.logs})
    return ScriptRunResponse(processedData=res.processed_data, logs=res.logs)
