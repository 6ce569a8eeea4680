"""Command-line interfaces for corrpairs."""

from __future__ import annotations

import argparse
from typing import Iterable

import numpy as np

from corrpairs.stats.null import generate_null


def run_main(argv: Iterable[str] | None = None) -> int:
    """Run the gene-pair pipeline from a JSON config.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="corrpairs gene-pair pipeline")
    parser.add_argument("--config", required=True, help="Path to a .json config file")
    args = parser.parse_args(list(argv) if argv is not None else None)

    from corrpairs.pipeline.run import run_pairs_pipeline

    summary = run_pairs_pipeline(args.config)
    print(f"n_pairs={summary['n_pairs']}")
    print(f"n_fdr_05={summary['n_fdr_05']}")
    print(f"pairs_path={summary['pairs_path']}")
    return 0


def null_main(argv: Iterable[str] | None = None) -> int:
    """Simulate an unconditioned null and print its quantiles.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code (0 for success).
    """
    parser = argparse.ArgumentParser(description="corrpairs null distribution")
    parser.add_argument("--n-obs", type=int, required=True, help="Number of observations")
    parser.add_argument("--iters", type=int, default=10_000, help="Number of simulations")
    parser.add_argument("--seed", type=int, default=0, help="Random seed")
    parser.add_argument(
        "--method",
        default="auto",
        choices=("auto", "permutation"),
        help="Simulation method (designs are not available here)",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    null = generate_null(n_obs=args.n_obs, iters=args.iters, seed=args.seed, method=args.method)
    print(f"n_obs={null.n_obs} iters={null.iters} seed={null.seed}")
    print(f"variance={null.variance():.6g}")
    for q in (0.005, 0.025, 0.5, 0.975, 0.995):
        print(f"q{q}={float(np.quantile(null.values, q)):.6g}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (if None, uses sys.argv).

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(description="corrpairs CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the gene-pair pipeline")
    sub.add_parser("null", help="Simulate a null distribution")

    args, remainder = parser.parse_known_args(list(argv) if argv is not None else None)
    if args.command == "run":
        return run_main(remainder)
    if args.command == "null":
        return null_main(remainder)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
