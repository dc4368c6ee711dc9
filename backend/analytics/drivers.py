from __future__ import annotations

import logging
from typing import Optional, Protocol

from sqlalchemy import text

from .db import get_demo_connection, get_engine_from_dsn
from .errors import DriverError, UnsupportedDriverError
from .jsvalues import json_safe_cell
from .metrics import counter_inc
from .schemas import QueryRequest, QueryResult, RequestContext

logger = logging.getLogger(__name__)

DEMO_TYPES = {"localstorage (demo)", "duckdb"}
SQL_TYPES = {"postgresql", "mysql", "sql server"}


class QueryDriver(Protocol):
    def execute_query(self, request: QueryRequest, context: Optional[RequestContext] = None) -> QueryResult:
        ...


def _to_result(columns, rows, max_rows: Optional[int]) -> QueryResult:
    if max_rows is not None and max_rows > 0:
        rows = rows[:max_rows]
    return QueryResult(
        columns=[str(c) for c in columns],
        rows=[[json_safe_cell(v) for v in row] for row in rows],
    )


class DuckDbDemoDriver:
    """Runs SQL against the seeded in-process DuckDB demo store."""

    name = "duckdb-demo"

    def __init__(self, max_rows: Optional[int] = None):
        self.max_rows = max_rows

    def execute_query(self, request: QueryRequest, context: Optional[RequestContext] = None) -> QueryResult:
        counter_inc("query_requests_total", {"driver": self.name})
        cur = get_demo_connection().cursor()
        try:
            cur.execute(request.query)
            columns = [d[0] for d in (cur.description or [])]
            rows = cur.fetchall() if columns else []
        except Exception as e:
            logger.warning(f"[Driver] Demo query failed: {e}")
            raise DriverError(str(e)) from e
        finally:
            cur.close()
        return _to_result(columns, rows, self.max_rows)


class SqlDriver:
    """Runs SQL through a cached SQLAlchemy engine built from the data source's DSN."""

    name = "sqlalchemy"

    def __init__(self, max_rows: Optional[int] = None):
        self.max_rows = max_rows

    def execute_query(self, request: QueryRequest, context: Optional[RequestContext] = None) -> QueryResult:
        counter_inc("query_requests_total", {"driver": self.name})
        dsn = (request.dataSource.connectionString or "").strip()
        if not dsn:
            raise DriverError(f"Data source '{request.dataSource.name or request.dataSource.id}' has no connection string.")
        try:
            engine = get_engine_from_dsn(dsn)
            with engine.connect() as conn:
                res = conn.execute(text(request.query))
                if not res.returns_rows:
                    return QueryResult(columns=[], rows=[])
                columns = list(res.keys())
                rows = [tuple(r) for r in res.fetchall()]
        except Exception as e:
            logger.warning(f"[Driver] SQL query failed on {request.dataSource.type}: {e}")
            raise DriverError(str(e)) from e
        return _to_result(columns, rows, self.max_rows)


def get_driver(data_source_type: str, max_rows: Optional[int] = None) -> QueryDriver:
    kind = (data_source_type or "").strip().lower()
    if kind in DEMO_TYPES:
        return DuckDbDemoDriver(max_rows=max_rows)
    if kind in SQL_TYPES:
        return SqlDriver(max_rows=max_rows)
    raise UnsupportedDriverError(f"Data source type '{data_source_type}' is not supported by this server.")


def execute(request: QueryRequest, context: Optional[RequestContext] = None, max_rows: Optional[int] = None) -> QueryResult:
    return get_driver(request.dataSource.type, max_rows=max_rows).execute_query(request, context)