"""
Trust-region dogleg solver (Nocedal & Wright, ch. 4 and 11).

With autoscale the region is a sphere in the coordinates d * x, where d
holds the Jacobian column norms. Only norms are taken in scaled coordinates;
iterates stay in user coordinates throughout.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import partial
from typing import Any, Literal

import numpy as np

from nlsolve.constants import (
    TR_ETA,
    TR_GROW,
    TR_RHO_GROW,
    TR_RHO_SHRINK,
    TR_SCALE_DECAY,
    TR_SHRINK,
)
from nlsolve.convergence import NO_STEP, TraceRecorder, assess_convergence
from nlsolve.functions import DifferentiableMultivariateFunction
from nlsolve.kernels import dogleg_tau, initial_scaling, update_scaling, weighted_norm
from nlsolve.solvers.state import SolverState
from nlsolve.solvers.types import SolverOptions, SolverResults
from nlsolve.types import FloatArray

logger = logging.getLogger(__name__)

METHOD_NAME = "Trust-region with dogleg and autoscaling"

StepKind = Literal["newton", "cauchy", "dogleg"]


@dataclass(frozen=True)
class DoglegStep:
    p: FloatArray
    kind: StepKind
    singular: bool = False


def gauss_newton_step(fjac: FloatArray, fx: FloatArray) -> FloatArray | None:
    """Solve J p = -f; None when the system is singular."""
    try:
        p = np.linalg.solve(fjac, -fx)
    except np.linalg.LinAlgError:
        return None
    if not np.all(np.isfinite(p)):
        return None
    return np.asarray(p, dtype=np.float64)


def cauchy_point(
    fjac: FloatArray, fx: FloatArray, d: FloatArray
) -> tuple[FloatArray, FloatArray]:
    """
    Return (g, p_c) with g = J^T f / d^2 and p_c the minimizer of the
    quadratic model along -g. p_c is zero when J g vanishes.
    """
    g = (fjac.T @ fx) / (d * d)
    jg = fjac @ g
    curvature = float(np.dot(jg, jg))
    if curvature == 0.0:
        return g, np.zeros_like(g)
    gnorm = weighted_norm(d, g)
    return g, -(gnorm * gnorm / curvature) * g


def dogleg_step(fjac: FloatArray, fx: FloatArray, d: FloatArray, delta: float) -> DoglegStep:
    """Dogleg step with ||d * p|| <= delta."""
    p_gn = gauss_newton_step(fjac, fx)
    if p_gn is not None and weighted_norm(d, p_gn) <= delta:
        return DoglegStep(p=p_gn, kind="newton")

    g, p_c = cauchy_point(fjac, fx, d)
    gnorm = weighted_norm(d, g)
    if weighted_norm(d, p_c) >= delta and gnorm > 0.0:
        return DoglegStep(p=-(delta / gnorm) * g, kind="cauchy", singular=p_gn is None)
    if p_gn is None:
        return DoglegStep(p=p_c, kind="cauchy", singular=True)

    p_diff = p_gn - p_c
    tau = dogleg_tau(p_c, p_diff, d, float(delta))
    return DoglegStep(p=p_c + tau * p_diff, kind="dogleg")


def reduction_ratio(fx: FloatArray, f_trial: FloatArray, f_model: FloatArray) -> float:
    """
    Actual over predicted reduction of 0.5 * ||f||^2.

    f_model is the linear model f + J p. Returns 0 when the model predicts
    no decrease.
    """
    f2 = float(np.dot(fx, fx))
    predicted = f2 - float(np.dot(f_model, f_model))
    if not predicted > 0.0:
        return 0.0
    actual = f2 - float(np.dot(f_trial, f_trial))
    return actual / predicted


def update_radius(delta: float, rho: float, stepnorm: float) -> float:
    if rho < TR_RHO_SHRINK:
        return TR_SHRINK * delta
    if rho >= TR_RHO_GROW:
        return max(delta, TR_GROW * stepnorm)
    return delta


def _extras(
    state: SolverState, delta: float, rho: float, kind: str | None
) -> dict[str, Any]:
    return {
        "x": state.x.copy(),
        "fx": state.fx.copy(),
        "g": state.gradient(),
        "delta": float(delta),
        "rho": float(rho),
        "step_kind": kind,
    }


def trust_region(
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

    n = state.n
    if opts.autoscale:
        state.d = initial_scaling(state.fjac)
    else:
        state.d = np.ones(n, dtype=np.float64)
    state.delta = opts.factor * weighted_norm(state.d, state.x)
    if state.delta == 0.0:
        state.delta = opts.factor

    recorder.record(0, state.fx, NO_STEP, partial(_extras, state, state.delta, math.nan, None))

    x_old = np.empty(n, dtype=np.float64)
    f_trial = np.empty(n, dtype=np.float64)
    while not converged and state.iteration < opts.iterations:
        state.iteration += 1
        delta = state.delta
        step = dogleg_step(state.fjac, state.fx, state.d, delta)
        if step.singular:
            logger.debug(
                "singular Gauss-Newton system at iteration %d, using Cauchy step",
                state.iteration,
            )

        x_trial = state.x + step.p
        state.residual_at(x_trial, f_trial)
        rho = reduction_ratio(state.fx, f_trial, state.fx + state.fjac @ step.p)
        scaled_stepnorm = weighted_norm(state.d, step.p)

        if rho > TR_ETA:
            x_old[:] = state.x
            state.x[:] = x_trial
            state.fx[:] = f_trial
            state.jacobian_at(state.x, state.fjac)
            if opts.autoscale:
                update_scaling(state.d, state.fjac, TR_SCALE_DECAY)
            x_converged, f_converged = assess_convergence(
                state.x, x_old, state.fx, opts.xtol, opts.ftol
            )
            stepnorm = float(np.linalg.norm(state.x - x_old))
        else:
            x_converged = False
            stepnorm = 0.0

        state.delta = update_radius(delta, rho, scaled_stepnorm)
        converged = x_converged or f_converged
        recorder.record(
            state.iteration,
            state.fx,
            stepnorm,
            partial(_extras, state, delta, rho, step.kind),
        )

    if not converged:
        logger.debug(
            "trust region stopped after %d iterations without convergence", state.iteration
        )

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


__all__ = [
    "METHOD_NAME",
    "StepKind",
    "DoglegStep",
    "gauss_newton_step",
    "cauchy_point",
    "dogleg_step",
    "reduction_ratio",
    "update_radius",
    "trust_region",
]
