from __future__ import annotations

from fastapi import APIRouter

from ..metrics import snapshot

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/snapshot")
async def metrics_snapshot() -> dict:
    return snapshot()
