"""
Command-line interface for data availability sampling experiments.

Provides two commands:
1. simulate: Run one configuration and output summary JSON (optionally per-trial CSV)
2. sweep: Run one of the built-in parameter sweeps and output one CSV row per configuration
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path

from das_sim.config import DEFAULT_TRIALS, ExperimentConfig
from das_sim.metrics import TrialResult, summary_header, summary_row
from das_sim.sampling import parse_strategy
from das_sim.simulate import (
    block_sampling_configs,
    run,
    run_sweep,
    small_grid_configs,
)


logger = logging.getLogger(__name__)

SWEEPS = {
    "small-grids": small_grid_configs,
    "block-sampling": block_sampling_configs,
}


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run one configuration and output its summary."""
    config = ExperimentConfig(
        n=args.n,
        dims=args.dims,
        n_clients=args.n_clients,
        percent_censored=args.percent_censored,
        n_samples=args.n_samples,
        sample_strategy=parse_strategy(args.strategy),
        availability_threshold=args.availability_threshold,
    )
    summary = run(
        config,
        n_trials=args.n_trials,
        seed=args.seed,
        n_workers=args.workers,
        keep_trials=args.csv is not None,
    )

    if args.csv:
        csv_path = Path(args.csv)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        fields = list(TrialResult.__dataclass_fields__)
        with open(csv_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fields)
            writer.writeheader()
            for trial in summary.trials:
                writer.writerow(trial.to_record())
        print(f"Per-trial CSV saved to: {csv_path}", file=sys.stderr)

    payload = {"config": config.to_record(), "summary": summary.to_record()}
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w") as f:
            json.dump(payload, f, indent=2)
        print(f"Summary JSON written to {out_path}", file=sys.stderr)
    else:
        print(json.dumps(payload, indent=2))

    return 0


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run a built-in sweep and write one CSV row per configuration."""
    overrides = {}
    if args.n_clients is not None:
        overrides["n_clients_values"] = args.n_clients
    if args.percent_censored is not None:
        overrides["percent_censored_values"] = args.percent_censored
    if args.dims is not None:
        overrides["dims_values"] = args.dims
    configs = SWEEPS[args.sweep](**overrides)
    print(f"Running {len(configs)} experiments ({args.n_trials} trials each)", file=sys.stderr)

    results = run_sweep(configs, n_trials=args.n_trials, seed=args.seed, n_workers=args.workers)

    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        f = open(out_path, "w", newline="")
    else:
        f = sys.stdout
    try:
        writer = csv.writer(f)
        writer.writerow(summary_header())
        for config, summary in results:
            writer.writerow(summary_row(config, summary))
    finally:
        if f is not sys.stdout:
            f.close()
    if args.output:
        print(f"Sweep CSV saved to: {args.output}", file=sys.stderr)
    return 0


def parse_list(s: str, dtype=float) -> list:
    """Parse comma-separated string into list."""
    return [dtype(x.strip()) for x in s.split(",")]


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--n-trials", type=int, default=DEFAULT_TRIALS, help=f"Trials per configuration (default: {DEFAULT_TRIALS})")
    parser.add_argument("--seed", type=int, default=42, help="Master random seed (default: 42)")
    parser.add_argument("--workers", type=int, default=1, help="Worker threads (default: 1)")
    parser.add_argument("--output", "-o", type=str, default=None, help="Output file (default: stdout)")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="das-sim",
        description="Data availability sampling over erasure-coded grids",
    )
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # === simulate command ===
    sim_parser = subparsers.add_parser(
        "simulate",
        help="Run one configuration and output summary",
    )
    sim_parser.add_argument("--n", type=int, default=16, help="Extended grid side (default: 16)")
    sim_parser.add_argument("--dims", type=int, default=2, choices=[1, 2], help="Encoding dimensions (default: 2)")
    sim_parser.add_argument("--n-clients", type=int, default=50, help="Sampling clients (default: 50)")
    sim_parser.add_argument("--percent-censored", type=float, default=0.0, help="Fraction of cells withheld (default: 0.0)")
    sim_parser.add_argument("--n-samples", type=int, default=10, help="Samples per client (default: 10)")
    sim_parser.add_argument("--strategy", type=str, default="random", help="'random' or 'box:WxH' (default: random)")
    sim_parser.add_argument("--availability-threshold", type=float, default=1.0, help="Fraction counted as available (default: 1.0)")
    sim_parser.add_argument("--csv", type=str, default=None, help="Also save per-trial records to this CSV file")
    _add_run_options(sim_parser)
    sim_parser.set_defaults(func=cmd_simulate)

    # === sweep command ===
    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Run a built-in parameter sweep and output CSV",
    )
    sweep_parser.add_argument("sweep", choices=sorted(SWEEPS), help="Sweep to run")
    sweep_parser.add_argument(
        "--n-clients",
        type=lambda s: parse_list(s, int),
        default=None,
        help="Comma-separated client counts (default: sweep's own)",
    )
    sweep_parser.add_argument(
        "--percent-censored",
        type=lambda s: parse_list(s, float),
        default=None,
        help="Comma-separated censored fractions (default: sweep's own)",
    )
    sweep_parser.add_argument(
        "--dims",
        type=lambda s: parse_list(s, int),
        default=None,
        help="Comma-separated dimension modes (default: 1,2)",
    )
    _add_run_options(sweep_parser)
    sweep_parser.set_defaults(func=cmd_sweep)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except ValueError as exc:
        logger.debug("invalid configuration", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
