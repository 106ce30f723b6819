"""Termination tests and per-iteration trace recording."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

import numpy as np

from nlsolve.errors import EvaluationError
from nlsolve.solvers.types import SolverOptions, SolveTrace, TraceEntry
from nlsolve.types import FloatArray

logger = logging.getLogger(__name__)

# stepnorm of the initial entry
NO_STEP = math.nan


def assess_convergence(
    x: FloatArray,
    x_previous: FloatArray | None,
    fx: FloatArray,
    xtol: float,
    ftol: float,
) -> tuple[bool, bool]:
    """
    Return (x_converged, f_converged).

    x_converged: ||x - x_previous||_2 < xtol; never true for xtol == 0 or
    without a finite previous iterate. f_converged: ||fx||_inf < ftol.
    """
    x_converged = False
    if x_previous is not None and xtol > 0.0 and not np.any(np.isnan(x_previous)):
        x_converged = bool(np.linalg.norm(x - x_previous) < xtol)
    fnorm = float(np.linalg.norm(fx, np.inf)) if fx.size > 0 else 0.0
    f_converged = fnorm < ftol
    return x_converged, f_converged


def check_isfinite(x: FloatArray, values: FloatArray, what: str) -> None:
    if not np.all(np.isfinite(values)):
        raise EvaluationError(f"{what} contains non-finite values", x)


def format_trace_line(
    entry: TraceEntry, *, precision: int = 3, iter_width: int = 4
) -> str:
    prec = max(0, precision)
    line = (
        f"[iter {entry.iteration:0{iter_width}d}] "
        f"|f|={entry.fnorm:.{prec}e} "
        f"step={entry.stepnorm:.{prec}e}"
    )
    scalars = [
        f"{k}={float(v):.{prec}e}"
        for k, v in entry.extras.items()
        if isinstance(v, int | float | np.floating)
    ]
    if scalars:
        line = f"{line} {' '.join(scalars)}"
    return line


class TraceRecorder:
    """
    Collects TraceEntry items while a solver runs.

    Entries are kept only under store_trace and logged only under show_trace.
    extended_trace adds solver extras to those entries; it never turns on
    storage by itself. Extras come from a factory called only when needed.
    """

    def __init__(self, store_trace: bool, show_trace: bool, extended_trace: bool) -> None:
        self.store_trace = store_trace
        self.show_trace = show_trace
        self.extended_trace = extended_trace
        self._entries: list[TraceEntry] = []

    @classmethod
    def from_options(cls, options: SolverOptions) -> TraceRecorder:
        return cls(options.store_trace, options.show_trace, options.extended_trace)

    @property
    def enabled(self) -> bool:
        return self.store_trace or self.show_trace

    def record(
        self,
        iteration: int,
        fx: FloatArray,
        stepnorm: float,
        extras: Callable[[], dict[str, Any]] | None = None,
    ) -> None:
        if not self.enabled:
            return
        payload: dict[str, Any] = {}
        if self.extended_trace and extras is not None:
            payload = extras()
        fnorm = float(np.linalg.norm(fx, np.inf)) if fx.size > 0 else 0.0
        entry = TraceEntry(
            iteration=int(iteration),
            fnorm=fnorm,
            stepnorm=float(stepnorm),
            extras=payload,
        )
        if self.store_trace:
            self._entries.append(entry)
        if self.show_trace:
            logger.info("%s", format_trace_line(entry))

    def freeze(self) -> SolveTrace:
        return SolveTrace(entries=tuple(self._entries))


__all__ = [
    "assess_convergence",
    "check_isfinite",
    "format_trace_line",
    "TraceRecorder",
    "NO_STEP",
]
