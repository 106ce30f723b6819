"""Solvers for square systems of nonlinear equations."""

from nlsolve.errors import EvaluationError, NLSolveError, ShapeError, SingularJacobianError
from nlsolve.functions import DifferentiableMultivariateFunction
from nlsolve.linesearch import BackTracking, MeritFunction, Static, StrongWolfe
from nlsolve.solve import solve
from nlsolve.solvers.types import SolverOptions, SolverResults, SolveTrace, TraceEntry

__all__ = [
    "BackTracking",
    "DifferentiableMultivariateFunction",
    "EvaluationError",
    "MeritFunction",
    "NLSolveError",
    "ShapeError",
    "SingularJacobianError",
    "SolveTrace",
    "SolverOptions",
    "SolverResults",
    "Static",
    "StrongWolfe",
    "TraceEntry",
    "solve",
]
