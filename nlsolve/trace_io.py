"""
Run directories for solver results.

Layout::

    <run_dir>/results.npz   zero, residual, initial_x
    <run_dir>/meta.json     method, flags, tolerances, counts
    <run_dir>/trace.json    iters, fnorm, stepnorm, extras
"""

from __future__ import annotations

import json
import math
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

import numpy as np

from nlsolve.solvers.types import SolverResults, SolveTrace, TraceEntry
from nlsolve.types import FloatArray

SCHEMA_VERSION = 1

_RESULTS_NAME = "results.npz"
_META_NAME = "meta.json"
_TRACE_NAME = "trace.json"


def _jsonify_value(value: Any) -> Any:
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    return str(value)


def _jsonify_extras(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{k: _jsonify_value(v) for k, v in item.items()} for item in items]


def _load_json_dict(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return cast(dict[str, Any], data)


def _to_float(value: Any) -> float:
    return math.nan if value is None else float(value)


def write_trace(path: str | Path, trace: SolveTrace) -> Path:
    trace_path = Path(path)
    payload = {
        "iters": trace.iters,
        "fnorm": trace.fnorm,
        "stepnorm": trace.stepnorm,
        "extras": _jsonify_extras(trace.extras),
    }
    with trace_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
    return trace_path


def load_trace(path: str | Path) -> SolveTrace:
    trace_path = Path(path)
    raw = _load_json_dict(trace_path)
    iters_raw = raw.get("iters")
    fnorm_raw = raw.get("fnorm")
    stepnorm_raw = raw.get("stepnorm")
    extras_raw = raw.get("extras")

    if not isinstance(iters_raw, list):
        raise ValueError(f"trace.json missing 'iters' list in {trace_path}")
    if not isinstance(fnorm_raw, list):
        raise ValueError(f"trace.json missing 'fnorm' list in {trace_path}")
    if not isinstance(stepnorm_raw, list):
        raise ValueError(f"trace.json missing 'stepnorm' list in {trace_path}")
    if not isinstance(extras_raw, list):
        raise ValueError(f"trace.json missing 'extras' list in {trace_path}")
    if not len(iters_raw) == len(fnorm_raw) == len(stepnorm_raw) == len(extras_raw):
        raise ValueError(f"trace.json lists have different lengths in {trace_path}")

    entries: list[TraceEntry] = []
    for it, fnorm, stepnorm, extras in zip(
        iters_raw, fnorm_raw, stepnorm_raw, extras_raw, strict=True
    ):
        if not isinstance(extras, dict):
            raise ValueError(f"trace.json extras must be list[dict] in {trace_path}")
        entries.append(
            TraceEntry(
                iteration=int(it),
                fnorm=_to_float(fnorm),
                stepnorm=_to_float(stepnorm),
                extras=cast(dict[str, Any], extras),
            )
        )
    return SolveTrace(entries=tuple(entries))


def write_results(
    out_dir: str | Path,
    res: SolverResults,
    *,
    name: str | None = None,
    extra_meta: dict[str, Any] | None = None,
) -> Path:
    out_path = Path(out_dir).expanduser()
    out_path.mkdir(parents=True, exist_ok=True)

    np.savez_compressed(
        out_path / _RESULTS_NAME,
        zero=np.asarray(res.zero, dtype=np.float64),
        residual=np.asarray(res.residual, dtype=np.float64),
        initial_x=np.asarray(res.initial_x, dtype=np.float64),
    )

    meta: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "name": name or out_path.name,
        "saved_at": datetime.now(UTC).isoformat(),
        "method": res.method,
        "iterations": int(res.iterations),
        "converged": bool(res.converged),
        "x_converged": bool(res.x_converged),
        "f_converged": bool(res.f_converged),
        "xtol": float(res.xtol),
        "ftol": float(res.ftol),
        "residual_norm": float(res.residual_norm),
        "f_calls": int(res.f_calls),
        "j_calls": int(res.j_calls),
    }
    if extra_meta:
        meta["extra"] = {k: _jsonify_value(v) for k, v in extra_meta.items()}
    with (out_path / _META_NAME).open("w", encoding="utf-8") as handle:
        json.dump(meta, handle, indent=2, sort_keys=True)

    write_trace(out_path / _TRACE_NAME, res.trace)
    return out_path


def _load_vector(data: Any, key: str, path: Path) -> FloatArray:
    if key not in data.files:
        raise KeyError(f"Missing required key '{key}' in {path}")
    return np.array(data[key], dtype=np.float64, copy=True).reshape(-1)


def load_results(path: str | Path) -> SolverResults:
    run_dir = Path(path).expanduser()
    if not run_dir.is_dir():
        raise FileNotFoundError(f"Run directory not found: {run_dir}")
    results_path = run_dir / _RESULTS_NAME
    meta_path = run_dir / _META_NAME
    if not results_path.is_file():
        raise FileNotFoundError(f"No {_RESULTS_NAME} found in {run_dir}")
    if not meta_path.is_file():
        raise FileNotFoundError(f"No {_META_NAME} found in {run_dir}")

    with np.load(results_path) as data:
        zero = _load_vector(data, "zero", results_path)
        residual = _load_vector(data, "residual", results_path)
        initial_x = _load_vector(data, "initial_x", results_path)
    meta = _load_json_dict(meta_path)
    trace_path = run_dir / _TRACE_NAME
    trace = load_trace(trace_path) if trace_path.is_file() else SolveTrace()

    return SolverResults(
        method=str(meta["method"]),
        initial_x=initial_x,
        zero=zero,
        residual=residual,
        residual_norm=float(meta["residual_norm"]),
        iterations=int(meta["iterations"]),
        x_converged=bool(meta["x_converged"]),
        xtol=float(meta["xtol"]),
        f_converged=bool(meta["f_converged"]),
        ftol=float(meta["ftol"]),
        trace=trace,
        f_calls=int(meta["f_calls"]),
        j_calls=int(meta["j_calls"]),
    )


__all__ = [
    "SCHEMA_VERSION",
    "write_trace",
    "load_trace",
    "write_results",
    "load_results",
]
