import dataclasses

import numpy as np
import pytest

from nlsolve import (
    DifferentiableMultivariateFunction,
    EvaluationError,
    ShapeError,
    SolverOptions,
    solve,
)
from nlsolve.solvers.types import Method
from nlsolve.types import FloatArray


def _f(x: FloatArray) -> FloatArray:
    return np.array([x[0] ** 2 + x[1] ** 2 - 4.0, x[0] - x[1]])


def _j(x: FloatArray) -> FloatArray:
    return np.array([[2.0 * x[0], 2.0 * x[1]], [1.0, -1.0]])


@pytest.mark.parametrize("method", ["trust_region", "newton"])
def test_plain_callables(method: Method) -> None:
    res = solve(_f, np.array([1.0, 2.0]), method=method, jacobian=_j)
    assert res.converged
    root = np.sqrt(2.0)
    np.testing.assert_allclose(res.zero, [root, root], atol=1e-7)


def test_plain_residual_without_jacobian() -> None:
    res = solve(_f, [1.0, 2.0])
    assert res.converged
    np.testing.assert_allclose(res.zero, [np.sqrt(2.0)] * 2, atol=1e-6)


def test_unknown_method() -> None:
    with pytest.raises(ValueError, match="Unsupported method"):
        solve(_f, np.ones(2), method="anderson")  # type: ignore[arg-type]


def test_initial_point_validation() -> None:
    fn = DifferentiableMultivariateFunction.out_of_place(_f, _j, n=2)
    with pytest.raises(ShapeError):
        solve(fn, np.ones(3))
    with pytest.raises(ShapeError):
        solve(fn, np.ones((2, 1)))
    with pytest.raises(ShapeError):
        solve(fn, np.array([]))
    with pytest.raises(ValueError, match="finite"):
        solve(fn, np.array([np.nan, 1.0]))


def test_residual_length_mismatch() -> None:
    with pytest.raises(ShapeError):
        solve(lambda x: np.zeros(3), np.ones(2))


def test_non_finite_residual_raises_evaluation_error() -> None:
    x0 = np.array([1.0, 2.0])
    with pytest.raises(EvaluationError) as excinfo:
        solve(lambda x: np.array([np.nan, 0.0]), x0, jacobian=_j)
    np.testing.assert_array_equal(excinfo.value.x, x0)


def test_user_exception_propagates_as_evaluation_error() -> None:
    def f(x: FloatArray) -> FloatArray:
        raise KeyError("missing")

    with pytest.raises(EvaluationError):
        solve(f, np.ones(2), method="newton", jacobian=_j)


def test_initial_point_is_not_modified() -> None:
    x0 = np.array([1.0, 2.0])
    res = solve(_f, x0, jacobian=_j)
    np.testing.assert_array_equal(x0, [1.0, 2.0])
    assert not res.zero.flags.writeable
    with pytest.raises(dataclasses.FrozenInstanceError):
        res.iterations = 0  # type: ignore[misc]


@pytest.mark.parametrize(
    "kwargs",
    [{"xtol": -1.0}, {"ftol": -1e-8}, {"iterations": -1}, {"factor": 0.0}, {"factor": np.inf}],
)
def test_options_validation(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        SolverOptions(**kwargs)  # type: ignore[arg-type]


@pytest.mark.parametrize("method", ["trust_region", "newton"])
def test_wrong_jacobian_shape_fails_before_iterating(method: Method) -> None:
    calls = {"f": 0}

    def f(x: FloatArray) -> FloatArray:
        calls["f"] += 1
        return _f(x)

    with pytest.raises(ShapeError, match="jacobian"):
        solve(f, np.ones(2), method=method, jacobian=lambda x: np.zeros((3, 3)))
    assert calls["f"] == 1


@pytest.mark.parametrize("method", ["trust_region", "newton"])
def test_f_calls_include_finite_difference_evaluations(method: Method) -> None:
    calls = {"f": 0}

    def f(x: FloatArray) -> FloatArray:
        calls["f"] += 1
        return _f(x)

    res = solve(f, np.array([1.0, 2.0]), method=method)
    assert res.converged
    assert res.f_calls == calls["f"]


@pytest.mark.parametrize("method", ["trust_region", "newton"])
def test_f_calls_with_analytic_jacobian(method: Method) -> None:
    calls = {"f": 0, "j": 0}

    def f(x: FloatArray) -> FloatArray:
        calls["f"] += 1
        return _f(x)

    def j(x: FloatArray) -> FloatArray:
        calls["j"] += 1
        return _j(x)

    res = solve(f, np.array([1.0, 2.0]), method=method, jacobian=j)
    assert res.f_calls == calls["f"]
    assert res.j_calls == calls["j"]
