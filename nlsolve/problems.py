"""
Standard square test systems with analytic Jacobians.

Most come from Moré, Garbow & Hillstrom, "Testing unconstrained optimization
software" (1981). ``root`` is None where no closed form is known or no root
exists.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from nlsolve.functions import DifferentiableMultivariateFunction
from nlsolve.types import FloatArray

SQRT5 = math.sqrt(5.0)
SQRT10 = math.sqrt(10.0)
TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class Problem:
    name: str
    n: int
    residual: Callable[[FloatArray], FloatArray]
    jacobian: Callable[[FloatArray], FloatArray]
    x0: FloatArray
    root: FloatArray | None = None
    description: str = ""

    def function(self, *, analytic: bool = True) -> DifferentiableMultivariateFunction:
        """Out-of-place wrapper; finite differences when analytic is False."""
        return DifferentiableMultivariateFunction.out_of_place(
            self.residual,
            self.jacobian if analytic else None,
            n=self.n,
        )

    def initial_x(self) -> FloatArray:
        return np.array(self.x0, dtype=np.float64, copy=True)


def _readme_f(x: FloatArray) -> FloatArray:
    return np.array(
        [
            (x[0] + 3.0) * (x[1] ** 3 - 7.0) + 18.0,
            math.sin(x[1] * math.exp(x[0]) - 1.0),
        ]
    )


def _readme_j(x: FloatArray) -> FloatArray:
    u = math.exp(x[0])
    c = math.cos(x[1] * u - 1.0)
    return np.array(
        [
            [x[1] ** 3 - 7.0, 3.0 * x[1] ** 2 * (x[0] + 3.0)],
            [c * x[1] * u, c * u],
        ]
    )


def _rosenbrock_f(x: FloatArray) -> FloatArray:
    return np.array([10.0 * (x[1] - x[0] ** 2), 1.0 - x[0]])


def _rosenbrock_j(x: FloatArray) -> FloatArray:
    return np.array([[-20.0 * x[0], 10.0], [-1.0, 0.0]])


def _powell_singular_f(x: FloatArray) -> FloatArray:
    return np.array(
        [
            x[0] + 10.0 * x[1],
            SQRT5 * (x[2] - x[3]),
            (x[1] - 2.0 * x[2]) ** 2,
            SQRT10 * (x[0] - x[3]) ** 2,
        ]
    )


def _powell_singular_j(x: FloatArray) -> FloatArray:
    a = 2.0 * (x[1] - 2.0 * x[2])
    b = 2.0 * SQRT10 * (x[0] - x[3])
    return np.array(
        [
            [1.0, 10.0, 0.0, 0.0],
            [0.0, 0.0, SQRT5, -SQRT5],
            [0.0, a, -2.0 * a, 0.0],
            [b, 0.0, 0.0, -b],
        ]
    )


def _helical_theta(x1: float, x2: float) -> float:
    if x1 > 0.0:
        return math.atan(x2 / x1) / TWO_PI
    if x1 < 0.0:
        return math.atan(x2 / x1) / TWO_PI + 0.5
    return math.copysign(0.25, x2)


def _helical_valley_f(x: FloatArray) -> FloatArray:
    r = math.hypot(x[0], x[1])
    return np.array(
        [
            10.0 * (x[2] - 10.0 * _helical_theta(x[0], x[1])),
            10.0 * (r - 1.0),
            x[2],
        ]
    )


def _helical_valley_j(x: FloatArray) -> FloatArray:
    r2 = x[0] ** 2 + x[1] ** 2
    r = math.sqrt(r2)
    return np.array(
        [
            [100.0 * x[1] / (TWO_PI * r2), -100.0 * x[0] / (TWO_PI * r2), 10.0],
            [10.0 * x[0] / r, 10.0 * x[1] / r, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )


def _powell_badly_scaled_f(x: FloatArray) -> FloatArray:
    return np.array(
        [
            1e4 * x[0] * x[1] - 1.0,
            math.exp(-x[0]) + math.exp(-x[1]) - 1.0001,
        ]
    )


def _powell_badly_scaled_j(x: FloatArray) -> FloatArray:
    return np.array(
        [
            [1e4 * x[1], 1e4 * x[0]],
            [-math.exp(-x[0]), -math.exp(-x[1])],
        ]
    )


AFFINE_A = np.array([[4.0, 1.0, 0.0], [1.0, 3.0, 1.0], [0.0, 1.0, 2.0]])
AFFINE_B = np.array([1.0, 2.0, 3.0])


def _affine_f(x: FloatArray) -> FloatArray:
    return np.asarray(AFFINE_A @ x - AFFINE_B, dtype=np.float64)


def _affine_j(x: FloatArray) -> FloatArray:
    return AFFINE_A.copy()


def _constant_f(x: FloatArray) -> FloatArray:
    return np.ones(1, dtype=np.float64)


def _constant_j(x: FloatArray) -> FloatArray:
    return np.zeros((1, 1), dtype=np.float64)


PROBLEMS: dict[str, Problem] = {
    p.name: p
    for p in (
        Problem(
            name="readme",
            n=2,
            residual=_readme_f,
            jacobian=_readme_j,
            x0=np.array([0.1, 1.2]),
            root=np.array([0.0, 1.0]),
            description="[(x+3)(y^3-7)+18, sin(y e^x - 1)]",
        ),
        Problem(
            name="rosenbrock",
            n=2,
            residual=_rosenbrock_f,
            jacobian=_rosenbrock_j,
            x0=np.array([-1.2, 1.0]),
            root=np.array([1.0, 1.0]),
            description="Rosenbrock function as a 2x2 system",
        ),
        Problem(
            name="powell_singular",
            n=4,
            residual=_powell_singular_f,
            jacobian=_powell_singular_j,
            x0=np.array([3.0, -1.0, 0.0, 1.0]),
            root=np.zeros(4),
            description="Powell singular function (singular Jacobian at the root)",
        ),
        Problem(
            name="helical_valley",
            n=3,
            residual=_helical_valley_f,
            jacobian=_helical_valley_j,
            x0=np.array([-1.0, 0.0, 0.0]),
            root=np.array([1.0, 0.0, 0.0]),
            description="Fletcher-Powell helical valley",
        ),
        Problem(
            name="powell_badly_scaled",
            n=2,
            residual=_powell_badly_scaled_f,
            jacobian=_powell_badly_scaled_j,
            x0=np.array([0.0, 1.0]),
            description="Powell badly scaled function",
        ),
        Problem(
            name="affine",
            n=3,
            residual=_affine_f,
            jacobian=_affine_j,
            x0=np.zeros(3),
            root=np.linalg.solve(AFFINE_A, AFFINE_B),
            description="A x - b with a symmetric positive definite A",
        ),
        Problem(
            name="constant",
            n=1,
            residual=_constant_f,
            jacobian=_constant_j,
            x0=np.array([1.0]),
            description="f(x) = 1, no root",
        ),
    )
}


def get_problem(name: str) -> Problem:
    try:
        return PROBLEMS[name]
    except KeyError:
        raise KeyError(f"Unknown problem: {name}") from None


__all__ = ["Problem", "PROBLEMS", "get_problem"]
