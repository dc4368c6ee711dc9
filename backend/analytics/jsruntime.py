"""Embedded JavaScript runtime.

Every call gets a fresh V8 context (mini-racer). Inputs cross the boundary
as a JSON literal, the user body is compiled with ``new Function(...)`` so
syntax errors are caught inside the harness, and the outcome comes back as a
JSON envelope: ``{ok, value, undefined, text, error: {name, message, isError}, logs}``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from py_mini_racer import JSEvalException, JSTimeoutException, MiniRacer

from .errors import ScriptError
from .jsvalues import JS_UNDEFINED, json_safe_cell

logger = logging.getLogger(__name__)

MODE_EXPRESSION = "expression"
MODE_SCRIPT = "script"

_HARNESS = r"""
(function () {
  globalThis.__logs = [];
  var __fmt = function (arg) {
    if (typeof arg === 'function') return '[Function]';
    if (typeof arg === 'object' && arg !== null) {
      try {
        var out = JSON.stringify(arg, function (k, v) {
          return typeof v === 'function' ? '[Function]' : v;
        }, 2);
        return out === undefined ? String(arg) : out;
      } catch (e) {
        return String(arg);
      }
    }
    return String(arg);
  };
  var __log = function () {
    var parts = [];
    for (var i = 0; i < arguments.length; i++) parts.push(__fmt(arguments[i]));
    globalThis.__logs.push(parts.join(' '));
  };
  var __console = { log: __log, info: __log, warn: __log, error: __log, debug: __log };
  globalThis.console = __console;
  var __describe = function (err) {
    if (err instanceof Error) return { name: err.name, message: err.message, isError: true };
    return { name: 'Error', message: String(err), isError: false };
  };
  var __text = function (v) {
    if (typeof v === 'object' && v !== null) {
      var s = JSON.stringify(v);
      return s === undefined ? String(v) : s;
    }
    return String(v);
  };
  // Row keys holding undefined stay in the output as null
  var __keepUndefined = function (k, v) {
    return v === undefined ? null : v;
  };
  var __params = %(params)s;
  var __body = %(body)s;
  var __mode = %(mode)s;
  var __injectConsole = %(inject_console)s;
  try {
    var keys = __params.keys.slice();
    var values = __params.values.slice();
    __params.undefinedAt.forEach(function (i) { values[i] = undefined; });
    if (__injectConsole) {
      var at = keys.indexOf('console');
      if (at >= 0) { values[at] = __console; } else { keys.push('console'); values.push(__console); }
    }
    var fn = Function.apply(null, keys.concat([__body]));
    var value = fn.apply(null, values);
    if (__mode === 'script') {
      if (!Array.isArray(value)) {
        throw new Error('Post-processing script must return an array.');
      }
      if (value.length > 0 && (typeof value[0] !== 'object' || value[0] === null)) {
        throw new Error('The returned array must contain objects.');
      }
    }
    var envelope = { ok: true, value: value, undefined: value === undefined, text: __text(value), logs: globalThis.__logs };
    return JSON.stringify(envelope, __mode === 'script' ? __keepUndefined : null);
  } catch (err) {
    return JSON.stringify({ ok: false, error: __describe(err), logs: globalThis.__logs });
  }
})()
"""

_RECOVER_LOGS = "JSON.stringify(globalThis.__logs || [])"


@dataclass
class JsOutcome:
    ok: bool
    value: Any = None
    text: str = ""
    error: Optional[ScriptError] = None
    logs: List[str] = field(default_factory=list)


def _to_json(obj: Any) -> str:
    return json.dumps(obj, default=json_safe_cell, ensure_ascii=False, allow_nan=True)


def build_source(body: str, params: Sequence[Tuple[str, Any]], mode: str, inject_console: bool) -> str:
    keys: List[str] = []
    values: List[Any] = []
    undefined_at: List[int] = []
    for i, (key, value) in enumerate(params):
        keys.append(key)
        if value is JS_UNDEFINED:
            undefined_at.append(i)
            value = None
        values.append(value)
    payload = {"keys": keys, "values": values, "undefinedAt": undefined_at}
    return _HARNESS % {
        "params": _to_json(payload),
        "body": json.dumps(body),
        "mode": json.dumps(mode),
        "inject_console": "true" if inject_console else "false",
    }


def _recover_logs(ctx: MiniRacer) -> List[str]:
    try:
        raw = ctx.eval(_RECOVER_LOGS)
        return list(json.loads(raw)) if isinstance(raw, str) else []
    except Exception as e:
        logger.debug(f"[JsRuntime] Could not recover logs after abort: {e}")
        return []


def run_js(
    body: str,
    params: Sequence[Tuple[str, Any]],
    *,
    mode: str = MODE_EXPRESSION,
    inject_console: bool = False,
    timeout_ms: int = 0,
    memory_limit_mb: int = 0,
) -> JsOutcome:
    """Compile ``body`` as a function of ``params`` and invoke it in a fresh context.

    Never raises for failures of the user code; engine aborts (timeout, heap
    exhaustion) are reported as a failed outcome as well.
    """
    source = build_source(body, params, mode, inject_console)
    timeout_sec = (timeout_ms / 1000.0) if timeout_ms and timeout_ms > 0 else None
    ctx = MiniRacer()
    try:
        if memory_limit_mb and memory_limit_mb > 0:
            ctx.set_hard_memory_limit(int(memory_limit_mb) * 1024 * 1024)
        try:
            raw = ctx.eval(source, timeout_sec=timeout_sec)
        except JSTimeoutException:
            logger.warning(f"[JsRuntime] Evaluation exceeded {timeout_ms} ms and was terminated")
            return JsOutcome(
                ok=False,
                error=ScriptError("TimeoutError", f"Script execution exceeded {timeout_ms} ms"),
                logs=_recover_logs(ctx),
            )
        except JSEvalException as e:
            logger.warning(f"[JsRuntime] Engine aborted evaluation: {e}")
            return JsOutcome(ok=False, error=ScriptError("InternalError", str(e)), logs=_recover_logs(ctx))
    finally:
        ctx.close()

    envelope = json.loads(raw)
    logs = [str(line) for line in (envelope.get("logs") or [])]
    if envelope.get("ok"):
        value = JS_UNDEFINED if envelope.get("undefined") else envelope.get("value")
        return JsOutcome(ok=True, value=value, text=str(envelope.get("text", "")), logs=logs)
    err = envelope.get("error") or {}
    return JsOutcome(
        ok=False,
        error=ScriptError(
            name=str(err.get("name") or "Error"),
            message=str(err.get("message") or ""),
            is_error_object=bool(err.get("isError", True)),
        ),
        logs=logs,
    )
