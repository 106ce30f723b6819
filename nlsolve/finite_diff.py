"""
Forward-difference Jacobian built on an in-place residual evaluator.

Column j uses the step h_j = sqrt(eps) * max(|x_j|, 1). One baseline residual
is evaluated per call and shared by all n columns.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from nlsolve.constants import SQRT_EPS
from nlsolve.types import FloatArray

ResidualOp = Callable[[FloatArray, FloatArray], None]


def finite_difference_step(xj: float) -> float:
    return SQRT_EPS * max(abs(float(xj)), 1.0)


def finite_difference_jacobian(
    residual: ResidualOp, x: FloatArray, fx: FloatArray, fjac: FloatArray
) -> None:
    """
    Fill fjac with forward differences of residual around x.

    fx must already hold residual(x); it is not modified.
    """
    n = int(x.shape[0])
    if fjac.shape != (fx.shape[0], n):
        raise ValueError(f"fjac shape {fjac.shape} does not match ({fx.shape[0]}, {n})")
    x_pert = np.array(x, dtype=np.float64, copy=True)
    f_pert = np.empty_like(fx)
    for j in range(n):
        xj = float(x_pert[j])
        x_pert[j] = xj + finite_difference_step(xj)
        # use the representable step, not the requested one
        h = float(x_pert[j]) - xj
        residual(x_pert, f_pert)
        fjac[:, j] = (f_pert - fx) / h
        x_pert[j] = xj


@dataclass(frozen=True)
class FiniteDifferenceJacobian:
    residual: ResidualOp

    def jacobian(self, x: FloatArray, fjac: FloatArray) -> None:
        fx = np.empty(fjac.shape[0], dtype=np.float64)
        self.residual(x, fx)
        finite_difference_jacobian(self.residual, x, fx, fjac)

    def both(self, x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        self.residual(x, fx)
        finite_difference_jacobian(self.residual, x, fx, fjac)


__all__ = [
    "ResidualOp",
    "finite_difference_step",
    "finite_difference_jacobian",
    "FiniteDifferenceJacobian",
]
