from __future__ import annotations

from typing import Any, Dict, List, Sequence

from .schemas import QueryResult


def to_object_array(result: QueryResult) -> List[Dict[str, Any]]:
    """Turn a columns/rows result into one dict per row keyed by column name."""
    columns = list(result.columns)
    return [{col: row[i] for i, col in enumerate(columns)} for row in result.rows]


def to_query_result(objects: Sequence[Dict[str, Any]]) -> QueryResult:
    """Turn an array of row objects back into columns/rows.

    Columns come from the first object's keys; keys that only appear in later
    rows are dropped and missing keys become None.
    """
    if not objects:
        return QueryResult(columns=[], rows=[])
    columns = list(objects[0].keys())
    rows = [[obj.get(col) for col in columns] for obj in objects]
    return QueryResult(columns=columns, rows=rows)
