import json
from pathlib import Path

import pytest

from nlsolve.cli.solve_run import build_options, parse_args, run_solve
from nlsolve.linesearch import StrongWolfe
from nlsolve.trace_io import load_results


def test_parse_args_defaults() -> None:
    args = parse_args(["--problem", "readme"])
    assert args.method == "trust_region"
    assert args.out_dir is None
    assert args.x0 is None

    opts = build_options(args)
    assert opts.ftol == 1e-8
    assert opts.autoscale
    assert not opts.store_trace


def test_build_options_from_flags() -> None:
    args = parse_args(
        [
            "--problem",
            "rosenbrock",
            "--method",
            "newton",
            "--linesearch",
            "strong-wolfe",
            "--no-autoscale",
            "--extended-trace",
        ]
    )
    opts = build_options(args)
    assert isinstance(opts.linesearch, StrongWolfe)
    assert not opts.autoscale
    assert opts.store_trace
    assert opts.extended_trace


def test_unknown_problem_is_rejected() -> None:
    with pytest.raises(SystemExit):
        parse_args(["--problem", "nope"])


def test_run_writes_run_directory(tmp_path: Path) -> None:
    out = tmp_path / "affine_run"
    args = parse_args(["--problem", "affine", "--out", str(out), "--method", "newton"])
    assert run_solve(args) == 0

    meta = json.loads((out / "meta.json").read_text(encoding="utf-8"))
    assert meta["converged"]
    assert meta["extra"]["problem"] == "affine"
    assert meta["extra"]["solver"] == "newton"

    res = load_results(out)
    assert res.iterations == 1
    assert res.trace.iters == [0, 1]


def test_run_without_convergence_returns_one() -> None:
    args = parse_args(["--problem", "constant", "--iterations", "3", "--x0", "2.0"])
    assert run_solve(args) == 1
