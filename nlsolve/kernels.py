"""
Compiled helpers for scaled norms and the dogleg path.

The scaling vector ``d`` defines the norm ``||d * v||_2`` used by the trust
region. With ``d`` all ones these reduce to the Euclidean quantities.

Example:
    >>> import numpy as np
    >>> from nlsolve.kernels import weighted_norm
    >>> weighted_norm(np.array([1.0, 2.0]), np.array([3.0, 2.0]))
    5.0
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import numpy as np

from nlsolve.types import Float1DArray, Float2DArray

F = TypeVar("F", bound=Callable[..., Any])
if TYPE_CHECKING:

    def njit(*args: Any, **kwargs: Any) -> Callable[[F], F]: ...

else:
    from numba import njit  # type: ignore[import-untyped]


@njit(cache=True)
def weighted_norm(d: Float1DArray, v: Float1DArray) -> float:
    acc = 0.0
    for i in range(v.shape[0]):
        t = d[i] * v[i]
        acc += t * t
    return math.sqrt(acc)


@njit(cache=True)
def weighted_dot(d: Float1DArray, u: Float1DArray, v: Float1DArray) -> float:
    acc = 0.0
    for i in range(u.shape[0]):
        acc += d[i] * d[i] * u[i] * v[i]
    return acc


@njit(cache=True)
def column_norms(fjac: Float2DArray) -> Float1DArray:
    n_rows = fjac.shape[0]
    n_cols = fjac.shape[1]
    out = np.zeros(n_cols, dtype=np.float64)
    for j in range(n_cols):
        acc = 0.0
        for i in range(n_rows):
            acc += fjac[i, j] * fjac[i, j]
        out[j] = math.sqrt(acc)
    return out


@njit(cache=True)
def initial_scaling(fjac: Float2DArray) -> Float1DArray:
    """Column norms of the Jacobian, with zero columns mapped to 1."""
    d = column_norms(fjac)
    for j in range(d.shape[0]):
        if d[j] == 0.0:
            d[j] = 1.0
    return d


@njit(cache=True)
def update_scaling(d: Float1DArray, fjac: Float2DArray, decay: float) -> None:
    """In place: d_j <- max(decay * d_j, ||J[:, j]||)."""
    norms = column_norms(fjac)
    for j in range(d.shape[0]):
        d[j] = max(decay * d[j], norms[j])


@njit(cache=True)
def dogleg_tau(
    p_c: Float1DArray,
    p_diff: Float1DArray,
    d: Float1DArray,
    delta: float,
) -> float:
    """
    Positive root tau of ||d * (p_c + tau * p_diff)|| = delta, clipped to [0, 1].

    Assumes p_c lies strictly inside the region, so the constant term is
    negative and the roots have opposite signs.
    """
    a = weighted_dot(d, p_diff, p_diff)
    if a == 0.0:
        return 0.0
    b = 2.0 * weighted_dot(d, p_c, p_diff)
    c = weighted_dot(d, p_c, p_c) - delta * delta
    disc = max(b * b - 4.0 * a * c, 0.0)
    sq = math.sqrt(disc)
    if b >= 0.0:
        q = -0.5 * (b + sq)
        tau = c / q if q != 0.0 else 0.0
    else:
        q = -0.5 * (b - sq)
        tau = q / a
    return min(max(tau, 0.0), 1.0)


__all__ = [
    "weighted_norm",
    "weighted_dot",
    "column_norms",
    "initial_scaling",
    "update_scaling",
    "dogleg_tau",
]
