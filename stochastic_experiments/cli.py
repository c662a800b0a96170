"""Command line entry point for the bundled experiments."""

import argparse
import logging
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
import yaml

from .config import HarnessConfig, setup_logging
from .exceptions import StochasticExperimentsError
from .experiments import EXPERIMENTS
from .harness import run_from_config

logger = logging.getLogger(__name__)


def _parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into a dict, YAML-parsing each value."""
    overrides: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Parameter override must look like KEY=VALUE, got {pair!r}")
        overrides[key] = yaml.safe_load(value)
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stochastic-experiments",
        description="Compare Monte Carlo estimates with theoretical predictions",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List the available experiments")

    run_parser = subparsers.add_parser("run", help="Run one experiment")
    run_parser.add_argument("name", help="Experiment name (see `list`)")
    run_parser.add_argument("--samples", type=int, help="Total number of trials")
    run_parser.add_argument("--workers", type=int, help="Number of parallel workers")
    run_parser.add_argument("--seed", type=int, help="Root generator seed")
    run_parser.add_argument("--backend", choices=["thread", "process"], help="Worker pool")
    run_parser.add_argument("--config", type=Path, help="YAML file with harness settings")
    run_parser.add_argument(
        "--progress", action="store_true", default=None, help="Show a progress bar"
    )
    run_parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    run_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override an experiment parameter (repeatable)",
    )
    return parser


def _list_experiments() -> int:
    width = max(len(name) for name in EXPERIMENTS)
    for name, entry in EXPERIMENTS.items():
        print(f"{name:<{width}}  {entry.description}")
    return 0


def _run(args: argparse.Namespace) -> int:
    if args.name not in EXPERIMENTS:
        print(
            f"Unknown experiment: {args.name}. Choose from: {', '.join(sorted(EXPERIMENTS))}",
            file=sys.stderr,
        )
        return 2
    entry = EXPERIMENTS[args.name]

    base = HarnessConfig.from_yaml(args.config) if args.config else None
    config = HarnessConfig.from_dict(
        {
            "n_samples": args.samples,
            "n_workers": args.workers,
            "seed": args.seed,
            "backend": args.backend,
            "progress_bar": args.progress,
        },
        base_config=base,
    )
    if args.log_level:
        config.logging.level = args.log_level
    setup_logging(config.logging)

    parameters = entry.parameters(**_parse_overrides(args.param))
    logger.info("Running %s with %s", args.name, parameters)

    result = run_from_config(entry.experiment, entry.theory, parameters, config)
    print(result.summary())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line interface.

    Returns:
        Process exit code: 0 on success, 1 on a failed run, 2 on bad input.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "list":
        return _list_experiments()

    try:
        return _run(args)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        print(f"[FAILED] {e}", file=sys.stderr)
        return 2
    except StochasticExperimentsError as e:
        print(f"[FAILED] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
