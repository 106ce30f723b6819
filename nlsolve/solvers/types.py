from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

from nlsolve.constants import FACTOR_DEFAULT, FTOL_DEFAULT, ITERATIONS_DEFAULT, XTOL_DEFAULT
from nlsolve.linesearch import BackTracking, LineSearch
from nlsolve.types import FloatArray

Method = Literal["trust_region", "newton"]


@dataclass(frozen=True)
class SolverOptions:
    xtol: float = XTOL_DEFAULT
    ftol: float = FTOL_DEFAULT
    iterations: int = ITERATIONS_DEFAULT
    store_trace: bool = False
    show_trace: bool = False
    extended_trace: bool = False
    # trust region only
    factor: float = FACTOR_DEFAULT
    autoscale: bool = True
    # newton only
    linesearch: LineSearch = field(default_factory=BackTracking)

    def __post_init__(self) -> None:
        if not self.xtol >= 0.0:
            raise ValueError("xtol must be >= 0")
        if not self.ftol >= 0.0:
            raise ValueError("ftol must be >= 0")
        if self.iterations < 0:
            raise ValueError("iterations must be >= 0")
        if not self.factor > 0.0 or math.isinf(self.factor):
            raise ValueError("factor must be finite and > 0")


@dataclass(frozen=True)
class TraceEntry:
    iteration: int
    fnorm: float
    stepnorm: float
    extras: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SolveTrace:
    entries: tuple[TraceEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def iters(self) -> list[int]:
        return [e.iteration for e in self.entries]

    @property
    def fnorm(self) -> list[float]:
        return [e.fnorm for e in self.entries]

    @property
    def stepnorm(self) -> list[float]:
        return [e.stepnorm for e in self.entries]

    @property
    def extras(self) -> list[dict[str, Any]]:
        return [dict(e.extras) for e in self.entries]


def _frozen_copy(arr: FloatArray) -> FloatArray:
    out = np.array(arr, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True, eq=False)
class SolverResults:
    method: str
    initial_x: FloatArray
    zero: FloatArray
    residual: FloatArray
    residual_norm: float
    iterations: int
    x_converged: bool
    xtol: float
    f_converged: bool
    ftol: float
    trace: SolveTrace
    f_calls: int
    j_calls: int

    @classmethod
    def assemble(
        cls,
        method: str,
        *,
        initial_x: FloatArray,
        x: FloatArray,
        fx: FloatArray,
        iterations: int,
        x_converged: bool,
        f_converged: bool,
        options: SolverOptions,
        trace: SolveTrace,
        f_calls: int,
        j_calls: int,
    ) -> SolverResults:
        return cls(
            method=method,
            initial_x=_frozen_copy(initial_x),
            zero=_frozen_copy(x),
            residual=_frozen_copy(fx),
            residual_norm=float(np.linalg.norm(fx, np.inf)) if fx.size > 0 else 0.0,
            iterations=int(iterations),
            x_converged=bool(x_converged),
            xtol=float(options.xtol),
            f_converged=bool(f_converged),
            ftol=float(options.ftol),
            trace=trace,
            f_calls=int(f_calls),
            j_calls=int(j_calls),
        )

    @property
    def converged(self) -> bool:
        return self.x_converged or self.f_converged


__all__ = [
    "Method",
    "SolverOptions",
    "TraceEntry",
    "SolveTrace",
    "SolverResults",
]
