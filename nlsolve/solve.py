from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from nlsolve.functions import DifferentiableMultivariateFunction, as_function
from nlsolve.solvers.newton import newton
from nlsolve.solvers.trust_region import trust_region
from nlsolve.solvers.types import Method, SolverOptions, SolverResults
from nlsolve.types import FloatArray

logger = logging.getLogger(__name__)

Solver = Callable[[DifferentiableMultivariateFunction, Any, SolverOptions | None], SolverResults]

SOLVERS: dict[str, Solver] = {
    "trust_region": trust_region,
    "newton": newton,
}


def solve(
    f: DifferentiableMultivariateFunction | Callable[[FloatArray], Any],
    initial_x: Any,
    *,
    method: Method = "trust_region",
    options: SolverOptions | None = None,
    jacobian: Callable[[FloatArray], Any] | None = None,
) -> SolverResults:
    """
    Find x with f(x) = 0 starting from initial_x.

    f is either a DifferentiableMultivariateFunction or an out-of-place
    residual callable; in the latter case jacobian may supply J(x), otherwise
    forward differences are used.
    """
    solver = SOLVERS.get(method)
    if solver is None:
        raise ValueError(f"Unsupported method: {method}")
    fn = as_function(f, jacobian)
    opts = options if options is not None else SolverOptions()
    logger.debug(
        "solve start (method=%s, convention=%s, analytic_jacobian=%s)",
        method,
        fn.convention,
        fn.analytic_jacobian,
    )
    res = solver(fn, initial_x, opts)
    logger.debug(
        "solve done (converged=%s, iterations=%d, |f|=%.3e)",
        res.converged,
        res.iterations,
        res.residual_norm,
    )
    return res


__all__ = ["SOLVERS", "solve"]
