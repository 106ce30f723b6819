import numpy as np
import pytest

from nlsolve.errors import SingularJacobianError
from nlsolve.linesearch import Static, StrongWolfe
from nlsolve.problems import get_problem
from nlsolve.solvers.newton import newton, newton_direction
from nlsolve.solvers.types import SolverOptions


def test_readme_problem_backtracking() -> None:
    problem = get_problem("readme")
    res = newton(problem.function(), problem.initial_x())

    assert res.converged
    assert res.residual_norm < 1e-8
    np.testing.assert_allclose(res.zero, [0.0, 1.0], atol=1e-6)


def test_readme_problem_strong_wolfe() -> None:
    problem = get_problem("readme")
    res = newton(problem.function(), problem.initial_x(), SolverOptions(linesearch=StrongWolfe()))

    assert res.converged
    np.testing.assert_allclose(res.zero, [0.0, 1.0], atol=1e-6)


def test_rosenbrock_converges() -> None:
    problem = get_problem("rosenbrock")
    res = newton(problem.function(), problem.initial_x())
    assert res.converged
    np.testing.assert_allclose(res.zero, [1.0, 1.0], atol=1e-6)


def test_affine_needs_one_full_step() -> None:
    problem = get_problem("affine")
    opts = SolverOptions(store_trace=True, extended_trace=True)
    res = newton(problem.function(), problem.initial_x(), opts)

    assert res.converged
    assert res.iterations == 1
    assert problem.root is not None
    np.testing.assert_allclose(res.zero, problem.root, atol=1e-12)
    assert res.trace.extras[1]["alpha"] == 1.0
    # initial both, one line-search residual, both at the new iterate
    assert res.f_calls == 3
    assert res.j_calls == 2


def test_static_step_is_plain_newton() -> None:
    problem = get_problem("readme")
    opts = SolverOptions(linesearch=Static(), store_trace=True, extended_trace=True)
    res = newton(problem.function(), problem.initial_x(), opts)
    assert res.converged
    assert all(e["alpha"] == 1.0 for e in res.trace.extras[1:])


def test_singular_jacobian_raises() -> None:
    problem = get_problem("constant")
    with pytest.raises(SingularJacobianError) as excinfo:
        newton(problem.function(), problem.initial_x())
    assert excinfo.value.iteration == 1
    assert isinstance(excinfo.value, np.linalg.LinAlgError)


def test_newton_direction_solves_linear_system() -> None:
    fjac = np.array([[2.0, 0.0], [0.0, 4.0]])
    np.testing.assert_allclose(newton_direction(fjac, np.array([2.0, 2.0]), 1), [-1.0, -0.5])
    with pytest.raises(SingularJacobianError):
        newton_direction(np.zeros((2, 2)), np.ones(2), 3)


def test_iteration_cap() -> None:
    problem = get_problem("rosenbrock")
    opts = SolverOptions(iterations=1, ftol=0.0, store_trace=True)
    res = newton(problem.function(), problem.initial_x(), opts)

    assert res.iterations == 1
    assert not res.converged
    assert res.trace.iters == [0, 1]


def test_zero_iterations_returns_initial_point() -> None:
    problem = get_problem("readme")
    res = newton(problem.function(), problem.initial_x(), SolverOptions(iterations=0))
    assert res.iterations == 0
    np.testing.assert_array_equal(res.zero, res.initial_x)
    assert not res.converged


def test_show_trace_does_not_store_trace() -> None:
    problem = get_problem("affine")
    res = newton(problem.function(), problem.initial_x(), SolverOptions(show_trace=True))
    assert res.converged
    assert len(res.trace) == 0
