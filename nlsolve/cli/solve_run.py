from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from time import perf_counter

import numpy as np

from nlsolve.constants import FACTOR_DEFAULT, FTOL_DEFAULT, ITERATIONS_DEFAULT, XTOL_DEFAULT
from nlsolve.linesearch import BackTracking, LineSearch, Static, StrongWolfe
from nlsolve.problems import PROBLEMS, get_problem
from nlsolve.solve import SOLVERS, solve
from nlsolve.solvers.types import SolverOptions, SolverResults
from nlsolve.trace_io import write_results

logger = logging.getLogger(__name__)

LINESEARCHES: dict[str, Callable[[], LineSearch]] = {
    "backtracking": BackTracking,
    "static": Static,
    "strong-wolfe": StrongWolfe,
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Solve a test system of nonlinear equations")
    ap.add_argument(
        "--problem",
        required=True,
        choices=sorted(PROBLEMS),
        help="test problem name",
    )
    ap.add_argument("--out", dest="out_dir", default=None, help="output run directory")
    ap.add_argument(
        "--method",
        type=str,
        default="trust_region",
        choices=sorted(SOLVERS),
        help="solver method",
    )
    ap.add_argument("--x0", type=float, nargs="+", default=None, help="initial point")
    ap.add_argument("--xtol", type=float, default=XTOL_DEFAULT, help="step-norm tolerance")
    ap.add_argument("--ftol", type=float, default=FTOL_DEFAULT, help="residual inf-norm tolerance")
    ap.add_argument(
        "--iterations", type=int, default=ITERATIONS_DEFAULT, help="maximum iterations"
    )
    ap.add_argument(
        "--factor", type=float, default=FACTOR_DEFAULT, help="initial trust-region scale"
    )
    ap.add_argument("--no-autoscale", action="store_true", help="disable column scaling")
    ap.add_argument(
        "--linesearch",
        type=str,
        default="backtracking",
        choices=sorted(LINESEARCHES),
        help="line search for the newton method",
    )
    ap.add_argument(
        "--finite-difference",
        action="store_true",
        help="ignore the analytic Jacobian and use forward differences",
    )
    ap.add_argument("--show-trace", action="store_true", help="log every iteration")
    ap.add_argument(
        "--extended-trace", action="store_true", help="store solver internals in the trace"
    )
    ap.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING"],
        help="logging level",
    )
    return ap.parse_args(argv)


def _configure_logging(level: str, out_dir: Path | None) -> None:
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler(stream=sys.stdout)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(out_dir / "solve.log", mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )


def build_options(args: argparse.Namespace) -> SolverOptions:
    linesearch: LineSearch = LINESEARCHES[args.linesearch]()
    return SolverOptions(
        xtol=args.xtol,
        ftol=args.ftol,
        iterations=args.iterations,
        store_trace=args.out_dir is not None or args.extended_trace,
        show_trace=args.show_trace,
        extended_trace=args.extended_trace,
        factor=args.factor,
        autoscale=not args.no_autoscale,
        linesearch=linesearch,
    )


def _log_summary(res: SolverResults, elapsed: float) -> None:
    logger.info("method: %s", res.method)
    logger.info("zero: %s", np.array2string(res.zero, precision=6))
    logger.info("inf-norm(residual): %.3e", res.residual_norm)
    logger.info("iterations: %d", res.iterations)
    logger.info("x converged: %s (xtol=%.1e)", res.x_converged, res.xtol)
    logger.info("f converged: %s (ftol=%.1e)", res.f_converged, res.ftol)
    logger.info("calls: f=%d j=%d", res.f_calls, res.j_calls)
    logger.info("elapsed: %.3fs", elapsed)


def run_solve(args: argparse.Namespace) -> int:
    out_dir = Path(args.out_dir) if args.out_dir is not None else None
    problem = get_problem(args.problem)
    x0 = problem.initial_x() if args.x0 is None else np.array(args.x0, dtype=np.float64)
    options = build_options(args)

    logger.info(
        "solve start (problem=%s, n=%d, method=%s, analytic_jacobian=%s)",
        problem.name,
        problem.n,
        args.method,
        not args.finite_difference,
    )
    t0 = perf_counter()
    res = solve(
        problem.function(analytic=not args.finite_difference),
        x0,
        method=args.method,
        options=options,
    )
    elapsed = perf_counter() - t0
    _log_summary(res, elapsed)

    if problem.root is not None:
        logger.info("distance to known root: %.3e", float(np.linalg.norm(res.zero - problem.root)))
    if not res.converged:
        logger.warning("solver did not converge in %d iterations", res.iterations)

    if out_dir is not None:
        write_results(
            out_dir,
            res,
            name=problem.name,
            extra_meta={
                "problem": problem.name,
                "solver": args.method,
                "linesearch": args.linesearch,
                "finite_difference": bool(args.finite_difference),
                "autoscale": not args.no_autoscale,
                "factor": args.factor,
                "elapsed_s": elapsed,
            },
        )
        logger.info("wrote run to %s", out_dir)

    return 0 if res.converged else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    out_dir = Path(args.out_dir) if args.out_dir is not None else None
    _configure_logging(args.log_level, out_dir)
    return run_solve(args)


if __name__ == "__main__":
    raise SystemExit(main())
