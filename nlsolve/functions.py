"""
Residual/Jacobian wrapper shared by all solvers.

Whatever calling convention the user picks, the solvers only see three
in-place operations::

    evaluate_residual(x, fx)
    evaluate_jacobian(x, fjac)
    evaluate_both(x, fx, fjac)

The caller owns fx and fjac; the wrapper writes into them. fx, fjac and x
must not alias each other.

Example:
    >>> import numpy as np
    >>> from nlsolve.functions import DifferentiableMultivariateFunction
    >>> fn = DifferentiableMultivariateFunction.out_of_place(lambda x: x**2 - 4.0)
    >>> fx = np.empty(1)
    >>> fn.evaluate_residual(np.array([3.0]), fx)
    >>> fx
    array([5.])
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from nlsolve.errors import EvaluationError, NLSolveError, ShapeError
from nlsolve.finite_diff import FiniteDifferenceJacobian
from nlsolve.types import FloatArray

Convention = Literal["inplace", "out-of-place", "scalar-args"]

ResidualOp = Callable[[FloatArray, FloatArray], None]
JacobianOp = Callable[[FloatArray, FloatArray], None]
BothOp = Callable[[FloatArray, FloatArray, FloatArray], None]


def _guarded(label: str, func: Callable[..., Any], x: FloatArray, *args: Any) -> Any:
    try:
        return func(*args)
    except NLSolveError:
        raise
    except Exception as exc:
        raise EvaluationError(
            f"{label} evaluation raised {type(exc).__name__}: {exc}", x
        ) from exc


def _copy_into(out: FloatArray, value: Any, label: str) -> None:
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != out.shape:
        raise ShapeError(f"{label} returned shape {arr.shape}, expected {out.shape}")
    out[...] = arr


# in-place convention


def _inplace_residual(f: Callable[[FloatArray, FloatArray], Any]) -> ResidualOp:
    def residual(x: FloatArray, fx: FloatArray) -> None:
        _guarded("residual", f, x, x, fx)

    return residual


def _inplace_jacobian(j: Callable[[FloatArray, FloatArray], Any]) -> JacobianOp:
    def jacobian(x: FloatArray, fjac: FloatArray) -> None:
        _guarded("jacobian", j, x, x, fjac)

    return jacobian


def _inplace_both(fj: Callable[[FloatArray, FloatArray, FloatArray], Any]) -> BothOp:
    def both(x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        _guarded("residual/jacobian", fj, x, x, fx, fjac)

    return both


# out-of-place convention


def _oop_residual(f: Callable[[FloatArray], Any]) -> ResidualOp:
    def residual(x: FloatArray, fx: FloatArray) -> None:
        _copy_into(fx, _guarded("residual", f, x, x), "residual")

    return residual


def _oop_jacobian(j: Callable[[FloatArray], Any]) -> JacobianOp:
    def jacobian(x: FloatArray, fjac: FloatArray) -> None:
        _copy_into(fjac, _guarded("jacobian", j, x, x), "jacobian")

    return jacobian


def _oop_both(fj: Callable[[FloatArray], tuple[Any, Any]]) -> BothOp:
    def both(x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        fval, jval = _guarded("residual/jacobian", fj, x, x)
        _copy_into(fx, fval, "residual")
        _copy_into(fjac, jval, "jacobian")

    return both


# scalar-argument convention


def _unpack(x: FloatArray, n: int) -> list[float]:
    if x.shape != (n,):
        raise ShapeError(f"point has shape {x.shape}, expected ({n},)")
    return [float(v) for v in x]


def _scalar_residual(f: Callable[..., Sequence[float]], n: int) -> ResidualOp:
    def residual(x: FloatArray, fx: FloatArray) -> None:
        _copy_into(fx, _guarded("residual", f, x, *_unpack(x, n)), "residual")

    return residual


def _scalar_jacobian(j: Callable[..., Any], n: int) -> JacobianOp:
    def jacobian(x: FloatArray, fjac: FloatArray) -> None:
        _copy_into(fjac, _guarded("jacobian", j, x, *_unpack(x, n)), "jacobian")

    return jacobian


# synthesized operations


def _jacobian_from_both(both: BothOp) -> JacobianOp:
    def jacobian(x: FloatArray, fjac: FloatArray) -> None:
        both(x, np.empty(fjac.shape[0], dtype=np.float64), fjac)

    return jacobian


def _residual_from_both(both: BothOp) -> ResidualOp:
    def residual(x: FloatArray, fx: FloatArray) -> None:
        both(x, fx, np.empty((fx.shape[0], x.shape[0]), dtype=np.float64))

    return residual


def _sequential_both(residual: ResidualOp, jacobian: JacobianOp) -> BothOp:
    def both(x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        residual(x, fx)
        jacobian(x, fjac)

    return both


@dataclass(frozen=True)
class DifferentiableMultivariateFunction:
    """
    Resolved residual/Jacobian operations of a square system.

    Build instances with one of the classmethods; each resolves the user's
    calling convention once, so no inspection happens during a solve.
    """

    residual_op: ResidualOp
    jacobian_op: JacobianOp
    both_op: BothOp
    convention: Convention
    n: int | None = None
    analytic_jacobian: bool = True
    fused: bool = False

    def __post_init__(self) -> None:
        if self.n is not None and self.n < 1:
            raise ValueError("n must be >= 1")

    def evaluate_residual(self, x: FloatArray, fx: FloatArray) -> None:
        self.residual_op(x, fx)

    def evaluate_jacobian(self, x: FloatArray, fjac: FloatArray) -> None:
        self.jacobian_op(x, fjac)

    def evaluate_both(self, x: FloatArray, fx: FloatArray, fjac: FloatArray) -> None:
        self.both_op(x, fx, fjac)

    @classmethod
    def _assemble(
        cls,
        residual: ResidualOp,
        jacobian: JacobianOp | None,
        both: BothOp | None,
        *,
        convention: Convention,
        n: int | None,
    ) -> DifferentiableMultivariateFunction:
        if jacobian is None and both is None:
            fd = FiniteDifferenceJacobian(residual)
            return cls(
                residual_op=residual,
                jacobian_op=fd.jacobian,
                both_op=fd.both,
                convention=convention,
                n=n,
                analytic_jacobian=False,
                fused=False,
            )
        fused = both is not None
        if jacobian is None:
            assert both is not None
            jacobian = _jacobian_from_both(both)
        if both is None:
            both = _sequential_both(residual, jacobian)
        return cls(
            residual_op=residual,
            jacobian_op=jacobian,
            both_op=both,
            convention=convention,
            n=n,
            analytic_jacobian=True,
            fused=fused,
        )

    @classmethod
    def inplace(
        cls,
        f: Callable[[FloatArray, FloatArray], Any],
        j: Callable[[FloatArray, FloatArray], Any] | None = None,
        fj: Callable[[FloatArray, FloatArray, FloatArray], Any] | None = None,
        *,
        n: int | None = None,
    ) -> DifferentiableMultivariateFunction:
        """f(x, fx), j(x, fjac) and fj(x, fx, fjac) write into their buffers."""
        return cls._assemble(
            _inplace_residual(f),
            None if j is None else _inplace_jacobian(j),
            None if fj is None else _inplace_both(fj),
            convention="inplace",
            n=n,
        )

    @classmethod
    def out_of_place(
        cls,
        f: Callable[[FloatArray], Any],
        j: Callable[[FloatArray], Any] | None = None,
        fj: Callable[[FloatArray], tuple[Any, Any]] | None = None,
        *,
        n: int | None = None,
    ) -> DifferentiableMultivariateFunction:
        """f(x) and j(x) return new arrays; fj(x) returns (f(x), J(x))."""
        return cls._assemble(
            _oop_residual(f),
            None if j is None else _oop_jacobian(j),
            None if fj is None else _oop_both(fj),
            convention="out-of-place",
            n=n,
        )

    @classmethod
    def scalar_args(
        cls,
        f: Callable[..., Sequence[float]],
        n: int,
        j: Callable[..., Any] | None = None,
    ) -> DifferentiableMultivariateFunction:
        """f(x1, ..., xn) returns n values; j(x1, ..., xn) an n x n nested sequence."""
        if n < 1:
            raise ValueError("n must be >= 1")
        return cls._assemble(
            _scalar_residual(f, n),
            None if j is None else _scalar_jacobian(j, n),
            None,
            convention="scalar-args",
            n=n,
        )

    @classmethod
    def only_fj(
        cls,
        fj: Callable[..., Any],
        *,
        inplace: bool = True,
        n: int | None = None,
    ) -> DifferentiableMultivariateFunction:
        """Only a combined residual/Jacobian callable is available."""
        both = _inplace_both(fj) if inplace else _oop_both(fj)
        return cls._assemble(
            _residual_from_both(both),
            _jacobian_from_both(both),
            both,
            convention="inplace" if inplace else "out-of-place",
            n=n,
        )


def as_function(
    f: DifferentiableMultivariateFunction | Callable[[FloatArray], Any],
    jacobian: Callable[[FloatArray], Any] | None = None,
) -> DifferentiableMultivariateFunction:
    """Accept a wrapper as is, or wrap an out-of-place residual (and Jacobian)."""
    if isinstance(f, DifferentiableMultivariateFunction):
        if jacobian is not None:
            raise ValueError("jacobian must be None when f is already wrapped")
        return f
    return DifferentiableMultivariateFunction.out_of_place(f, jacobian)


__all__ = [
    "Convention",
    "ResidualOp",
    "JacobianOp",
    "BothOp",
    "DifferentiableMultivariateFunction",
    "as_function",
]
