from __future__ import annotations

import os
import threading
from typing import Any, Dict, List, Optional, Tuple

import duckdb
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from .config import settings

_ENGINE_CACHE: Dict[str, Engine] = {}
_ENGINE_LOCK = threading.Lock()

_DEMO_LOCK = threading.Lock()
_DEMO_CONN: Optional[duckdb.DuckDBPyConnection] = None

# Demo store contents (mirrors the browser demo data source)
DEMO_TABLES: Dict[str, Tuple[List[Tuple[str, str]], List[Tuple[Any, ...]]]] = {
    "orders": (
        [("id", "INTEGER"), ("user_id", "INTEGER"), ("total", "DOUBLE"), ("status", "VARCHAR"), ("created_at", "VARCHAR")],
        [
            (1, 101, 150.50, "Completed", "2023-01-15"),
            (2, 102, 75.00, "Completed", "2023-01-16"),
            (3, 101, 220.00, "Processing", "2023-02-10"),
            (4, 103, 95.20, "Shipped", "2023-02-12"),
            (5, 102, 310.75, "Shipped", "2023-03-01"),
        ],
    ),
    "users": (
        [("id", "INTEGER"), ("name", "VARCHAR"), ("email", "VARCHAR"), ("signup_date", "VARCHAR")],
        [
            (101, "Alice", "alice@example.com", "2023-01-05"),
            (102, "Bob", "bob@example.com", "2023-01-10"),
        ],
    ),
    "products": (
        [("id", "INTEGER"), ("name", "VARCHAR"), ("category", "VARCHAR"), ("price", "DOUBLE")],
        [
            (201, "Laptop", "Electronics", 1200),
            (202, "Mouse", "Electronics", 25),
        ],
    ),
}


def _normalize_duck_path(p: str) -> str:
    if not p or p == ":memory:":
        return ":memory:"
    path = os.path.abspath(os.path.expanduser(p))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return path


def seed_demo_tables(conn: duckdb.DuckDBPyConnection) -> None:
    """Create the demo tables if missing and fill them when empty (idempotent)."""
    for table, (columns, rows) in DEMO_TABLES.items():
        ddl = ", ".join(f'"{name}" {kind}' for name, kind in columns)
        conn.execute(f'CREATE TABLE IF NOT EXISTS "{table}" ({ddl})')
        count = conn.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]
        if count == 0:
            placeholders = ", ".join("?" for _ in columns)
            conn.executemany(f'INSERT INTO "{table}" VALUES ({placeholders})', rows)


def get_demo_connection() -> duckdb.DuckDBPyConnection:
    """Shared DuckDB connection for the demo data source, seeded on first use."""
    global _DEMO_CONN
    with _DEMO_LOCK:
        if _DEMO_CONN is None:
            conn = duckdb.connect(_normalize_duck_path(settings.demo_duckdb_path))
            seed_demo_tables(conn)
            _DEMO_CONN = conn
        return _DEMO_CONN


def close_demo_connection() -> None:
    global _DEMO_CONN
    with _DEMO_LOCK:
        if _DEMO_CONN is not None:
            _DEMO_CONN.close()
            _DEMO_CONN = None


def get_engine_from_dsn(dsn: str) -> Engine:
    """Create (and cache) an engine from a SQLAlchemy DSN.

    Normalizes MySQL DSNs to pymysql and reuses engines across requests.
    """
    d = (dsn or "").strip()
    low = d.lower()
    if low.startswith("mysql://"):
        d = "mysql+pymysql://" + d[len("mysql://"):]
    elif low.startswith("postgres://"):
        d = "postgresql://" + d[len("postgres://"):]

    with _ENGINE_LOCK:
        eng = _ENGINE_CACHE.get(d)
        if eng is not None:
            return eng
        kwargs: dict = {"pool_pre_ping": True}
        if low.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        elif not low.startswith("duckdb"):
            kwargs.update({"pool_size": 5, "max_overflow": 20, "pool_recycle": 1800})
        eng = create_engine(d, **kwargs)
        _ENGINE_CACHE[d] = eng
        return eng


def dispose_all_engines() -> int:
    with _ENGINE_LOCK:
        engines = list(_ENGINE_CACHE.values())
        _ENGINE_CACHE.clear()
    for eng in engines:
        eng.dispose()
    return len(engines)


def test_engine_connection(engine: Engine) -> tuple[bool, Optional[str]]:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True, None
    except Exception as e:  # pragma: no cover - basic smoke test only
        return False, str(e)
