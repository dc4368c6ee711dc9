"""Post-processing script sandbox.

A post-processing script receives ``data`` (list of row objects) plus every
resolved dashboard variable and a ``console`` facade, and must evaluate to
an array of plain objects. The optional script library is prepended.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import ScriptExecutionError
from .jsruntime import MODE_SCRIPT, run_js
from .metrics import counter_inc, observe_ms

logger = logging.getLogger(__name__)


@dataclass
class ScriptResult:
    processed_data: List[Dict[str, Any]]
    logs: List[str] = field(default_factory=list)


def execute_post_processing_script(
    data: List[Dict[str, Any]],
    script: str,
    context: Optional[Mapping[str, Any]] = None,
    library_script: Optional[str] = None,
    *,
    timeout_ms: int = 0,
    memory_limit_mb: int = 0,
) -> ScriptResult:
    """Run ``script`` against ``data`` and return the transformed rows with captured logs.

    Raises ScriptExecutionError (error + logs emitted before the failure) when
    the script throws or does not return an array of objects.
    """
    if not script or not script.strip():
        return ScriptResult(processed_data=data, logs=[])

    body = f"{library_script}\n{script}" if library_script else script
    params = [("data", data)] + list((context or {}).items())

    with observe_ms("script_duration_ms"):
        outcome = run_js(
            body,
            params,
            mode=MODE_SCRIPT,
            inject_console=True,
            timeout_ms=timeout_ms,
            memory_limit_mb=memory_limit_mb,
        )

    for line in outcome.logs:
        logger.info(f">> [Post-processing LOG]: {line}")

    if not outcome.ok:
        counter_inc("script_runs_total", {"status": "error"})
        logger.error(f"[PostProcessing] Script execution failed: {outcome.error.display()}")
        raise ScriptExecutionError(outcome.error, outcome.logs)

    counter_inc("script_runs_total", {"status": "ok"})
    return ScriptResult(processed_data=list(outcome.value or []), logs=outcome.logs)
