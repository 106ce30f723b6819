"""
Newton's method globalized by a line search on 0.5 * ||f(x)||^2.

There is no fallback for a singular Jacobian: the solve aborts with
SingularJacobianError.
"""

from __future__ import annotations

import logging
import math
from functools import partial
from typing import Any

import numpy as np

from nlsolve.convergence import NO_STEP, TraceRecorder, assess_convergence
from nlsolve.errors import SingularJacobianError
from nlsolve.functions import DifferentiableMultivariateFunction
from nlsolve.linesearch import MeritFunction
from nlsolve.solvers.state import SolverState
from nlsolve.solvers.types import SolverOptions, SolverResults
from nlsolve.types import FloatArray

logger = logging.getLogger(__name__)

METHOD_NAME = "Newton with line-search"


def newton_direction(fjac: FloatArray, fx: FloatArray, iteration: int) -> FloatArray:
    try:
        p = np.linalg.solve(fjac, -fx)
    except np.linalg.LinAlgError as exc:
        raise SingularJacobianError(
            f"singular Jacobian at iteration {iteration}", iteration
        ) from exc
    if not np.all(np.isfinite(p)):
        raise SingularJacobianError(
            f"Newton direction is not finite at iteration {iteration}", iteration
        )
    return np.asarray(p, dtype=np.float64)


def _extras(state: SolverState, alpha: float) -> dict[str, Any]:
    return {
        "x": state.x.copy(),
        "fx": state.fx.copy(),
        "g": state.gradient(),
        "alpha": float(alpha),
    }


def newton(
    fn: DifferentiableMultivariateFunction,
    initial_x: Any,
    options: SolverOptions | None = None,
) -> SolverResults:
    opts = options if options is not None else SolverOptions()
    state = SolverState.initialize(fn, initial_x)
    initial = state.x.copy()
    recorder = TraceRecorder.from_options(opts)

    x_converged, f_converged = assess_convergence(state.x, None, state.fx, opts.xtol, opts.ftol)
    converged = x_converged or f_converged
    recorder.record(0, state.fx, NO_STEP, partial(_extras, state, math.nan))

    x_old = np.empty(state.n, dtype=np.float64)
    while not converged and state.iteration < opts.iterations:
        state.iteration += 1
        direction = newton_direction(state.fjac, state.fx, state.iteration)
        slope = float(np.dot(state.gradient(), direction))
        merit = MeritFunction(
            residual=state.residual_at,
            both=state.both_at,
            x=state.x.copy(),
            direction=direction,
            phi0=0.5 * float(np.dot(state.fx, state.fx)),
        )
        alpha = float(opts.linesearch(merit, slope, direction))
        if not math.isfinite(alpha) or alpha < 0.0:
            raise ValueError(f"line search returned invalid step length {alpha}")
        state.alpha = alpha

        x_old[:] = state.x
        state.x[:] = x_old + alpha * direction
        state.both_at(state.x, state.fx, state.fjac)

        x_converged, f_converged = assess_convergence(
            state.x, x_old, state.fx, opts.xtol, opts.ftol
        )
        converged = x_converged or f_converged
        recorder.record(
            state.iteration,
            state.fx,
            float(np.linalg.norm(state.x - x_old)),
            partial(_extras, state, alpha),
        )

    if not converged:
        logger.debug("newton stopped after %d iterations without convergence", state.iteration)

    return SolverResults.assemble(
        METHOD_NAME,
        initial_x=initial,
        x=state.x,
        fx=state.fx,
        iterations=state.iteration,
        x_converged=x_converged,
        f_converged=f_converged,
        options=opts,
        trace=recorder.freeze(),
        f_calls=state.f_calls,
        j_calls=state.j_calls,
    )


__all__ = ["METHOD_NAME", "newton_direction", "newton"]
