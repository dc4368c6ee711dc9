from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import close_demo_connection, dispose_all_engines, get_demo_connection, get_engine_from_dsn, test_engine_connection
from .drivers import DEMO_TYPES, get_driver
from .errors import UnsupportedDriverError
from .metrics import gauge_dec, gauge_inc, render_prometheus, summary_observe
from .routers import cards as cards_router
from .routers import metrics as metrics_router
from .routers import query as query_router
from .routers import variables as variables_router
from .schemas import HealthResponse, TestConnectionRequest, TestConnectionResponse

logging.basicConfig(
    level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1):3000",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def _metrics_mw(request: Request, call_next):
    path = request.url.path or ""
    method = request.method or "GET"
    is_api = path.startswith("/api/")
    if is_api:
        gauge_inc("app_active_requests", 1.0, {"path": path, "method": method})
    started = time.perf_counter()
    try:
        resp: Response = await call_next(request)
        return resp
    finally:
        elapsed = int((time.perf_counter() - started) * 1000)
        if is_api:
            gauge_dec("app_active_requests", 1.0, {"path": path, "method": method})
            summary_observe("app_request_duration_ms", elapsed, {"path": path, "method": method})


app.include_router(variables_router.router, prefix="/api")
app.include_router(query_router.router, prefix="/api")
app.include_router(cards_router.router, prefix="/api")
app.include_router(metrics_router.router, prefix="/api")


@app.get("/api/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    return HealthResponse(status="ok", app=settings.app_name, env=settings.environment)


@app.post("/api/test-connection", response_model=TestConnectionResponse)
def test_connection(payload: TestConnectionRequest) -> TestConnectionResponse:
    ds = payload.dataSource
    try:
        get_driver(ds.type)
    except UnsupportedDriverError as e:
        return TestConnectionResponse(ok=False, error=str(e))
    if (ds.type or "").strip().lower() in DEMO_TYPES:
        cur = get_demo_connection().cursor()
        try:
            cur.execute("SELECT 1")
        except Exception as e:
            return TestConnectionResponse(ok=False, error=str(e))
        finally:
            cur.close()
        return TestConnectionResponse(ok=True, error=None)
    dsn = (ds.connectionString or "").strip()
    if not dsn:
        return TestConnectionResponse(ok=False, error="Connection string is required.")
    try:
        engine = get_engine_from_dsn(dsn)
    except Exception as e:
        logger.warning(f"[TestConnection] Invalid connection string for {ds.type}: {e}")
        return TestConnectionResponse(ok=False, error=str(e))
    ok, err = test_engine_connection(engine)
    return TestConnectionResponse(ok=ok, error=err)


@app.get("/")
async def root():
    return {"ok": True, "app": settings.app_name}


@app.get("/api/metrics")
async def metrics() -> Response:
    body = render_prometheus()
    return Response(content=body, media_type="text/plain; version=0.0.4; charset=utf-8")


@app.on_event("shutdown")
async def _shutdown():
    close_demo_connection()
    disposed = dispose_all_engines()
    logger.info(f"[Shutdown] Closed demo store, disposed {disposed} engine(s)")
