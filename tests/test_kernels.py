import numpy as np

from nlsolve.kernels import (
    column_norms,
    dogleg_tau,
    initial_scaling,
    update_scaling,
    weighted_dot,
    weighted_norm,
)


def test_weighted_norm_and_dot_match_numpy() -> None:
    rng = np.random.default_rng(0)
    d = rng.uniform(0.1, 3.0, size=6)
    u = rng.normal(size=6)
    v = rng.normal(size=6)

    assert np.isclose(weighted_norm(d, u), np.linalg.norm(d * u), rtol=1e-14)
    assert np.isclose(weighted_dot(d, u, v), np.dot(d * u, d * v), rtol=1e-12)


def test_column_norms_match_numpy() -> None:
    rng = np.random.default_rng(1)
    fjac = rng.normal(size=(4, 4))
    np.testing.assert_allclose(column_norms(fjac), np.linalg.norm(fjac, axis=0), rtol=1e-14)


def test_initial_scaling_maps_zero_columns_to_one() -> None:
    fjac = np.array([[3.0, 0.0], [4.0, 0.0]])
    np.testing.assert_array_equal(initial_scaling(fjac), np.array([5.0, 1.0]))


def test_update_scaling_keeps_decayed_previous_value() -> None:
    d = np.array([10.0, 1.0])
    fjac = np.array([[1.0, 3.0], [0.0, 4.0]])
    update_scaling(d, fjac, 0.1)
    np.testing.assert_allclose(d, np.array([1.0, 5.0]))


def test_dogleg_tau_hits_boundary() -> None:
    rng = np.random.default_rng(2)
    for _ in range(20):
        d = rng.uniform(0.5, 2.0, size=3)
        p_c = 0.1 * rng.normal(size=3)
        p_diff = rng.normal(size=3) * 5.0
        delta = weighted_norm(d, p_c) + 0.5
        if weighted_norm(d, p_c + p_diff) <= delta:
            continue
        tau = dogleg_tau(p_c, p_diff, d, delta)
        assert 0.0 <= tau <= 1.0
        assert np.isclose(weighted_norm(d, p_c + tau * p_diff), delta, rtol=1e-10)
