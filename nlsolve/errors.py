"""Exceptions raised by the solvers."""

from __future__ import annotations

import numpy as np

from nlsolve.types import FloatArray


class NLSolveError(Exception):
    """Base class for nlsolve failures."""


class ShapeError(NLSolveError, ValueError):
    """Initial point, residual and Jacobian dimensions disagree."""


class EvaluationError(NLSolveError, RuntimeError):
    """A user callable failed or produced non-finite values at ``x``."""

    def __init__(self, message: str, x: FloatArray) -> None:
        super().__init__(message)
        self.x = np.array(x, dtype=np.float64, copy=True)


class SingularJacobianError(NLSolveError, np.linalg.LinAlgError):
    """The Newton system J d = -f could not be solved."""

    def __init__(self, message: str, iteration: int) -> None:
        super().__init__(message)
        self.iteration = int(iteration)


__all__ = ["NLSolveError", "ShapeError", "EvaluationError", "SingularJacobianError"]
