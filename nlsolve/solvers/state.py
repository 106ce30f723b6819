from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from nlsolve.convergence import check_isfinite
from nlsolve.errors import ShapeError
from nlsolve.functions import DifferentiableMultivariateFunction
from nlsolve.types import FloatArray


def prepare_initial_x(fn: DifferentiableMultivariateFunction, initial_x: Any) -> FloatArray:
    x = np.array(initial_x, dtype=np.float64, copy=True)
    if x.ndim != 1:
        raise ShapeError(f"initial_x must be 1D, got shape {x.shape}")
    if x.size == 0:
        raise ShapeError("initial_x must have at least one entry")
    if fn.n is not None and x.size != fn.n:
        raise ShapeError(f"initial_x length {x.size} does not match n={fn.n}")
    if not np.all(np.isfinite(x)):
        raise ValueError("initial_x must be finite")
    return x


@dataclass
class SolverState:
    """
    Mutable iterate owned by a single solve call.

    All evaluations go through the *_at methods, which count calls and
    reject non-finite output. f_calls counts every residual evaluation,
    including the n + 1 per Jacobian spent on finite differences.
    """

    fn: DifferentiableMultivariateFunction
    x: FloatArray
    fx: FloatArray
    fjac: FloatArray
    iteration: int = 0
    f_calls: int = 0
    j_calls: int = 0
    # trust region
    delta: float = math.nan
    d: FloatArray = field(default_factory=lambda: np.empty(0, dtype=np.float64))
    # newton
    alpha: float = math.nan

    @classmethod
    def initialize(cls, fn: DifferentiableMultivariateFunction, initial_x: Any) -> SolverState:
        x = prepare_initial_x(fn, initial_x)
        n = int(x.size)
        state = cls(
            fn=fn,
            x=x,
            fx=np.empty(n, dtype=np.float64),
            fjac=np.empty((n, n), dtype=np.float64),
        )
        state.both_at(state.x, state.fx, state.fjac)
        return state

    @property
    def n(self) -> int:
        return int(self.x.size)

    def residual_at(self, x: FloatArray, fx: FloatArray) -> None:
        self.f_calls += 1
        self.fn.evaluate_residual(x, fx)
        check_isfinite(x, fx, "residual")

    def jacobian_at(self, x: FloatArray, fjac: FloatArray) -> None:
        self.j_calls += 1
        if not self.fn.analytic_jacobian:
            self.f_calls += self.n + 1
        self.fn.evaluate_jacobian(x, fjac)
        check_isfinite(x, fjac, "jacobian")

    def both_at(self, x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        self.f_calls += 1
        self.j_calls += 1
        if not self.fn.analytic_jacobian:
            self.f_calls += self.n
        self.fn.evaluate_both(x, fx, fjac)
        check_isfinite(x, fx, "residual")
        check_isfinite(x, fjac, "jacobian")

    def gradient(self) -> FloatArray:
        """J^T f at the current iterate, the gradient of 0.5 * ||f||^2."""
        return np.asarray(self.fjac.T @ self.fx, dtype=np.float64)


__all__ = ["prepare_initial_x", "SolverState"]
