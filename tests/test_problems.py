import numpy as np
import pytest

from nlsolve.finite_diff import finite_difference_jacobian
from nlsolve.problems import PROBLEMS, get_problem
from nlsolve.types import FloatArray


@pytest.mark.parametrize("name", sorted(PROBLEMS))
def test_analytic_jacobian_matches_finite_differences(name: str) -> None:
    problem = get_problem(name)

    def residual(x: FloatArray, out: FloatArray) -> None:
        out[:] = problem.residual(x)

    for x in (problem.initial_x(), problem.initial_x() + 0.1):
        fx = np.empty(problem.n)
        residual(x, fx)
        fjac = np.empty((problem.n, problem.n))
        finite_difference_jacobian(residual, x, fx, fjac)
        np.testing.assert_allclose(fjac, problem.jacobian(x), rtol=1e-5, atol=1e-5)


@pytest.mark.parametrize("name", sorted(PROBLEMS))
def test_known_roots_are_roots(name: str) -> None:
    problem = get_problem(name)
    assert problem.x0.shape == (problem.n,)
    if problem.root is not None:
        assert float(np.max(np.abs(problem.residual(problem.root)))) < 1e-12


def test_unknown_problem() -> None:
    with pytest.raises(KeyError, match="Unknown problem"):
        get_problem("nope")
