"""
Step-length selection for the Newton solver.

The solver hands a strategy the merit function
phi(alpha) = 0.5 * ||f(x + alpha * d)||^2, its slope phi'(0) = (J^T f) . d and
the direction d, and gets back a step length. Any object implementing the
``LineSearch`` protocol can be passed as ``SolverOptions.linesearch``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np
from scipy.optimize import line_search

from nlsolve.types import FloatArray

logger = logging.getLogger(__name__)

ResidualOp = Callable[[FloatArray, FloatArray], None]
BothOp = Callable[[FloatArray, FloatArray, FloatArray], None]


@dataclass
class MeritFunction:
    """phi(alpha) = 0.5 * ||f(x + alpha * direction)||^2 along a fixed direction."""

    residual: ResidualOp
    both: BothOp
    x: FloatArray
    direction: FloatArray
    phi0: float
    n_evals: int = 0
    _f_trial: FloatArray = field(init=False, repr=False)
    _j_trial: FloatArray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        n = int(self.x.shape[0])
        self._f_trial = np.empty(n, dtype=np.float64)
        self._j_trial = np.empty((n, n), dtype=np.float64)

    def point(self, alpha: float) -> FloatArray:
        return self.x + float(alpha) * self.direction

    def __call__(self, alpha: float) -> float:
        if alpha == 0.0:
            return self.phi0
        self.residual(self.point(alpha), self._f_trial)
        self.n_evals += 1
        return 0.5 * float(np.dot(self._f_trial, self._f_trial))

    def derivative(self, alpha: float) -> float:
        """phi'(alpha) = (J^T f)(x + alpha d) . d; costs a residual/Jacobian evaluation."""
        self.both(self.point(alpha), self._f_trial, self._j_trial)
        self.n_evals += 1
        g = self._j_trial.T @ self._f_trial
        return float(np.dot(g, self.direction))


class LineSearch(Protocol):
    """Return a step length along direction for the given merit function."""

    def __call__(self, merit: MeritFunction, slope: float, direction: FloatArray) -> float: ...


@dataclass(frozen=True)
class Static:
    """Always take the same step (alpha = 1 is the undamped Newton step)."""

    alpha: float = 1.0

    def __post_init__(self) -> None:
        if not self.alpha > 0.0:
            raise ValueError("alpha must be > 0")

    def __call__(self, merit: MeritFunction, slope: float, direction: FloatArray) -> float:
        return self.alpha


@dataclass(frozen=True)
class BackTracking:
    """
    Armijo backtracking with safeguarded interpolation.

    The first reduction minimizes the quadratic through phi(0), phi'(0) and
    the rejected trial; later ones use the cubic through the last two trials
    (``order=3``). Each new trial stays within [rho_lo, rho_hi] times the
    previous one.
    """

    c1: float = 1e-4
    rho_hi: float = 0.5
    rho_lo: float = 0.1
    iterations: int = 1000
    order: int = 3
    maxstep: float = math.inf

    def __post_init__(self) -> None:
        if not 0.0 < self.c1 < 1.0:
            raise ValueError("c1 must be in (0, 1)")
        if not 0.0 < self.rho_lo <= self.rho_hi < 1.0:
            raise ValueError("require 0 < rho_lo <= rho_hi < 1")
        if self.order not in (2, 3):
            raise ValueError("order must be 2 or 3")
        if self.iterations < 1:
            raise ValueError("iterations must be >= 1")
        if not self.maxstep > 0.0:
            raise ValueError("maxstep must be > 0")

    def initial_step(self, direction: FloatArray) -> float:
        dnorm = float(np.linalg.norm(direction))
        if math.isinf(self.maxstep) or dnorm == 0.0:
            return 1.0
        return min(1.0, self.maxstep / dnorm)

    def __call__(self, merit: MeritFunction, slope: float, direction: FloatArray) -> float:
        phi0 = merit.phi0
        alpha_prev = alpha = self.initial_step(direction)
        phi_prev = phi_alpha = merit(alpha)

        it = 0
        while phi_alpha > phi0 + self.c1 * alpha * slope:
            it += 1
            if it > self.iterations:
                logger.warning(
                    "backtracking did not satisfy Armijo after %d reductions (alpha=%.3e)",
                    self.iterations,
                    alpha,
                )
                break
            if self.order == 2 or it == 1:
                denom = 2.0 * (phi_alpha - phi0 - slope * alpha)
                if denom != 0.0:
                    alpha_tmp = -(slope * alpha * alpha) / denom
                else:
                    alpha_tmp = alpha * self.rho_hi
            else:
                alpha_tmp = self._cubic_step(phi0, slope, alpha_prev, phi_prev, alpha, phi_alpha)
            alpha_prev, phi_prev = alpha, phi_alpha
            if not math.isfinite(alpha_tmp):
                alpha_tmp = alpha * self.rho_hi
            alpha = max(min(alpha_tmp, alpha * self.rho_hi), alpha * self.rho_lo)
            phi_alpha = merit(alpha)
        return alpha

    @staticmethod
    def _cubic_step(
        phi0: float, slope: float, a0: float, phi_a0: float, a1: float, phi_a1: float
    ) -> float:
        """Minimizer of the cubic through phi(0), phi'(0), phi(a0) and phi(a1)."""
        if a0 == 0.0 or a1 == 0.0 or a0 == a1:
            return math.nan
        r1 = phi_a1 - phi0 - slope * a1
        r0 = phi_a0 - phi0 - slope * a0
        div = 1.0 / (a0 * a0 * a1 * a1 * (a1 - a0))
        a = (a0 * a0 * r1 - a1 * a1 * r0) * div
        b = (-(a0**3) * r1 + a1**3 * r0) * div
        if abs(a) <= np.finfo(np.float64).eps:
            return -slope / (2.0 * b) if b != 0.0 else math.nan
        disc = max(b * b - 3.0 * a * slope, 0.0)
        return (-b + math.sqrt(disc)) / (3.0 * a)


@dataclass(frozen=True)
class StrongWolfe:
    """
    Strong Wolfe conditions via ``scipy.optimize.line_search``.

    The search runs on the one-dimensional merit problem; when scipy finds no
    acceptable step the fallback strategy decides.
    """

    c1: float = 1e-4
    c2: float = 0.9
    maxiter: int = 10
    fallback: BackTracking = field(default_factory=BackTracking)

    def __post_init__(self) -> None:
        if not 0.0 < self.c1 < self.c2 < 1.0:
            raise ValueError("require 0 < c1 < c2 < 1")
        if self.maxiter < 1:
            raise ValueError("maxiter must be >= 1")

    def __call__(self, merit: MeritFunction, slope: float, direction: FloatArray) -> float:
        def phi(a: FloatArray) -> float:
            return merit(float(a[0]))

        def dphi(a: FloatArray) -> FloatArray:
            return np.array([merit.derivative(float(a[0]))], dtype=np.float64)

        res = line_search(
            phi,
            dphi,
            np.zeros(1, dtype=np.float64),
            np.ones(1, dtype=np.float64),
            gfk=np.array([slope], dtype=np.float64),
            old_fval=merit.phi0,
            c1=self.c1,
            c2=self.c2,
            maxiter=self.maxiter,
        )
        alpha = res[0]
        if alpha is None:
            logger.warning("strong Wolfe search failed, falling back to backtracking")
            return self.fallback(merit, slope, direction)
        return float(alpha)


__all__ = [
    "MeritFunction",
    "LineSearch",
    "Static",
    "BackTracking",
    "StrongWolfe",
]
