import numpy as np

from nlsolve.constants import SQRT_EPS
from nlsolve.finite_diff import (
    FiniteDifferenceJacobian,
    finite_difference_jacobian,
    finite_difference_step,
)
from nlsolve.types import FloatArray


def test_step_scales_with_magnitude() -> None:
    assert finite_difference_step(0.0) == SQRT_EPS
    assert finite_difference_step(0.5) == SQRT_EPS
    assert finite_difference_step(-100.0) == 100.0 * SQRT_EPS


def test_affine_residual_reproduces_matrix() -> None:
    rng = np.random.default_rng(0)
    n = 5
    A = rng.normal(size=(n, n)) + n * np.eye(n)
    b = rng.normal(size=n)

    def residual(x: FloatArray, out: FloatArray) -> None:
        out[:] = A @ x - b

    x = rng.normal(size=n) * 10.0
    fx = np.empty(n)
    residual(x, fx)
    fjac = np.empty((n, n))
    finite_difference_jacobian(residual, x, fx, fjac)

    col_err = np.linalg.norm(fjac - A, axis=0) / np.linalg.norm(A, axis=0)
    assert float(col_err.max()) < 1e-6


def test_provider_uses_n_plus_one_residuals_and_reuses_baseline() -> None:
    calls = {"count": 0}

    def residual(x: FloatArray, out: FloatArray) -> None:
        calls["count"] += 1
        out[0] = x[0] ** 2 + x[1]
        out[1] = np.sin(x[0]) * x[2]
        out[2] = x[2] ** 3

    provider = FiniteDifferenceJacobian(residual)
    x = np.array([1.0, 2.0, 0.5])
    fx = np.empty(3)
    fjac = np.empty((3, 3))
    provider.both(x, fx, fjac)

    assert calls["count"] == 4
    np.testing.assert_allclose(fx, [3.0, np.sin(1.0) * 0.5, 0.125])
    expected = np.array(
        [
            [2.0, 1.0, 0.0],
            [np.cos(1.0) * 0.5, 0.0, np.sin(1.0)],
            [0.0, 0.0, 0.75],
        ]
    )
    np.testing.assert_allclose(fjac, expected, rtol=1e-6, atol=1e-6)

    calls["count"] = 0
    provider.jacobian(x, fjac)
    assert calls["count"] == 4


def test_finite_differences_are_deterministic() -> None:
    def residual(x: FloatArray, out: FloatArray) -> None:
        out[:] = np.exp(x) - x[::-1]

    x = np.array([0.3, -1.7])
    fx = np.empty(2)
    residual(x, fx)
    j1 = np.empty((2, 2))
    j2 = np.empty((2, 2))
    finite_difference_jacobian(residual, x, fx, j1)
    finite_difference_jacobian(residual, x, fx, j2)
    np.testing.assert_array_equal(j1, j2)
