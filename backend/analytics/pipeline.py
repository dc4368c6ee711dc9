"""Card pipeline: variables → queries → post-processing → column types.

``process_card`` works on results the caller already fetched; ``run_card``
executes the card's queries through the drivers first.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .converters import to_object_array, to_query_result
from .datatypes import DEFAULT_SAMPLE_ROWS, infer_column_types, merge_column_types
from .drivers import execute
from .errors import CardExecutionError, DataSourceNotFoundError, DriverError, ScriptExecutionError
from .metrics import counter_inc
from .postprocessing import execute_post_processing_script
from .schemas import CardConfig, DataSource, QueryDefinition, QueryRequest, QueryResult, RequestContext, Variable
from .substitution import remove_sql_limits, substitute_with_context
from .variables import build_card_variables, resolve_all_variables

logger = logging.getLogger(__name__)

SCRIPT_FAILED_PREFIX = "Post-processing script failed: \n"


@dataclass
class SandboxLimits:
    timeout_ms: int = 0
    memory_limit_mb: int = 0

    def as_kwargs(self) -> Dict[str, int]:
        return {"timeout_ms": self.timeout_ms, "memory_limit_mb": self.memory_limit_mb}


@dataclass
class CardOutcome:
    title: str = ""
    description: Optional[str] = None
    result: Optional[QueryResult] = None
    column_types: Dict[str, str] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class CardContext:
    """Variables of one card, resolved once and shared by every substitution."""

    variables: List[Variable]
    resolved: Dict[str, Any]
    library_script: Optional[str]
    limits: SandboxLimits

    def substitute(self, text: Optional[str]) -> Optional[str]:
        if text is None:
            return None
        return substitute_with_context(text, self.resolved, self.library_script, **self.limits.as_kwargs())


def build_card_context(
    card: CardConfig,
    variables: Sequence[Variable],
    *,
    library_script: Optional[str] = None,
    department: Optional[str] = None,
    owner: Optional[str] = None,
    limits: Optional[SandboxLimits] = None,
) -> CardContext:
    limits = limits or SandboxLimits()
    card_vars = build_card_variables(variables, card.dashboardId, department, owner)
    resolved = resolve_all_variables(card_vars, library_script, **limits.as_kwargs())
    return CardContext(variables=card_vars, resolved=resolved, library_script=library_script, limits=limits)


def card_queries(card: CardConfig) -> List[QueryDefinition]:
    """The card's queries; ``queries`` supersedes the legacy single query. Entries without a data source are skipped."""
    if card.queries:
        candidates = list(card.queries)
    else:
        candidates = [QueryDefinition(id="legacy", dataSourceId=card.dataSourceId, query=card.query)]
    return [q for q in candidates if q.dataSourceId]


def apply_script(
    datasets: List[List[Dict[str, Any]]],
    script: Optional[str],
    resolved: Mapping[str, Any],
    library_script: Optional[str],
    limits: SandboxLimits,
):
    """Run the card script over the first dataset with every dataset exposed as ``datasets``."""
    data = datasets[0] if datasets else []
    context = {**resolved, "datasets": datasets}
    return execute_post_processing_script(data, script or "", context, library_script, **limits.as_kwargs())


def process_card(
    card: CardConfig,
    results: Sequence[QueryResult],
    variables: Sequence[Variable],
    *,
    library_script: Optional[str] = None,
    department: Optional[str] = None,
    owner: Optional[str] = None,
    saved_column_types: Optional[Mapping[str, str]] = None,
    limits: Optional[SandboxLimits] = None,
    sample_rows: int = DEFAULT_SAMPLE_ROWS,
    card_context: Optional[CardContext] = None,
) -> CardOutcome:
    """Post-process fetched results for a card and reconcile column types.

    A failing script does not raise: the outcome carries the error message
    and the logs captured before the failure.
    """
    ctx = card_context or build_card_context(
        card, variables, library_script=library_script, department=department, owner=owner, limits=limits
    )
    outcome = CardOutcome(title=ctx.substitute(card.title) or "", description=ctx.substitute(card.description))
    saved = saved_column_types if saved_column_types is not None else (card.columnTypes or {})

    script = card.postProcessingScript or ""
    if script.strip():
        datasets = [to_object_array(r) for r in results]
        try:
            processed = apply_script(datasets, script, ctx.resolved, ctx.library_script, ctx.limits)
        except ScriptExecutionError as e:
            counter_inc("card_runs_total", {"status": "script_error"})
            outcome.error = f"{SCRIPT_FAILED_PREFIX}{e.display_message}"
            outcome.logs = e.logs
            return outcome
        result = to_query_result(processed.processed_data)
        outcome.logs = processed.logs
    else:
        result = results[0] if results else QueryResult(columns=[], rows=[])

    outcome.result = result
    outcome.column_types = merge_column_types(infer_column_types(result, sample_rows), saved)
    counter_inc("card_runs_total", {"status": "ok"})
    return outcome


def fetch_card_results(
    card: CardConfig,
    data_sources: Sequence[DataSource],
    ctx: CardContext,
    *,
    department: Optional[str] = None,
    owner: Optional[str] = None,
    strip_limits: bool = False,
    max_rows: Optional[int] = None,
) -> List[QueryResult]:
    """Substitute variables into each of the card's queries and execute them."""
    queries = card_queries(card)
    if not queries:
        raise CardExecutionError("No valid queries configured for this card.")
    by_id = {ds.id: ds for ds in data_sources}
    request_ctx = RequestContext(department=department, owner=owner)

    results: List[QueryResult] = []
    for q in queries:
        ds = by_id.get(q.dataSourceId)
        if ds is None:
            raise DataSourceNotFoundError("Data source not found.")
        query_text = remove_sql_limits(q.query) if strip_limits else q.query
        final_query = ctx.substitute(query_text) or ""
        logger.debug(f"[Card] Running query {q.id} on {ds.type}: {final_query[:200]}")
        try:
            results.append(execute(QueryRequest(dataSource=ds, query=final_query), request_ctx, max_rows=max_rows))
        except DriverError as e:
            counter_inc("card_runs_total", {"status": "query_error"})
            raise CardExecutionError(str(e)) from e
    return results


def run_card(
    card: CardConfig,
    data_sources: Sequence[DataSource],
    variables: Sequence[Variable],
    *,
    library_script: Optional[str] = None,
    department: Optional[str] = None,
    owner: Optional[str] = None,
    saved_column_types: Optional[Mapping[str, str]] = None,
    limits: Optional[SandboxLimits] = None,
    sample_rows: int = DEFAULT_SAMPLE_ROWS,
    max_rows: Optional[int] = None,
) -> CardOutcome:
    """Execute a card end-to-end. Raises CardExecutionError when a query cannot run."""
    ctx = build_card_context(
        card, variables, library_script=library_script, department=department, owner=owner, limits=limits
    )
    results = fetch_card_results(card, data_sources, ctx, department=department, owner=owner, max_rows=max_rows)
    return process_card(
        card,
        results,
        variables,
        saved_column_types=saved_column_types,
        sample_rows=sample_rows,
        card_context=ctx,
    )
