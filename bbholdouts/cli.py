from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import List

from .config_loader import SearchConfig, load_config
from .errors import MalformedTable
from .machine import Configuration, Halted, Simulation
from .orchestrator import Classifier, classify_all
from .results import read_holdouts, summary_lines
from .runner import run_search
from .table import TransitionTable
from .tally import SearchTally


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Tree normal form enumeration and holdout search for Busy Beaver machines",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log decider and enumeration details")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Enumerate and classify every machine of a given size")
    search.add_argument("config", type=Path, help="Path to the YAML search configuration")
    search.add_argument("--states", type=int, help="Override the number of states")
    search.add_argument("--workers", type=int, help="Worker processes running partitions")
    search.add_argument("--partitions", type=int, help="Number of independent search partitions")
    search.add_argument("--time-budget", type=float, help="Stop after this many seconds and checkpoint")
    search.add_argument("--max-candidates", type=int, help="Stop each partition after this many candidates")
    search.add_argument("--checkpoint", type=Path, help="Base path of the partition checkpoints")
    search.add_argument("--output", type=Path, help="Results file listing holdouts and the best machine")
    search.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the final tally as JSON",
    )

    run = subparsers.add_parser("run", help="Simulate and classify a single machine")
    run.add_argument("table", help="Machine in standard text form, e.g. 1RB1LB_1LA1RZ")
    run.add_argument("--config", type=Path, help="YAML configuration supplying decider settings")
    run.add_argument(
        "--max-steps",
        type=int,
        default=10_000,
        help="Maximum number of simulation steps",
    )
    run.add_argument(
        "--trace",
        action="store_true",
        help="Print the configuration after every step",
    )
    run.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the result as JSON",
    )

    recheck = subparsers.add_parser("recheck", help="Classify the holdouts of a results file again")
    recheck.add_argument("results", type=Path, help="Results file written by a search")
    recheck.add_argument("--config", type=Path, help="YAML configuration with stronger decider settings")
    recheck.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print the new tally as JSON",
    )
    return parser


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _print_summary(config: SearchConfig, tally: SearchTally, complete: bool) -> None:
    for line in summary_lines(config, tally, complete):
        print(line)
    if tally.holdouts:
        print("Holdouts:")
        for table in tally.holdouts:
            print(f"  {table}")


def _search(args: argparse.Namespace) -> int:
    config = load_config(args.config).with_overrides(
        states=args.states,
        workers=args.workers,
        partitions=args.partitions,
        time_budget=args.time_budget,
        max_candidates=args.max_candidates,
        checkpoint=args.checkpoint,
        output=args.output,
    )
    outcome = run_search(config)

    if args.json_output:
        payload = {"complete": outcome.complete, "elapsed": outcome.elapsed, "tally": outcome.tally.to_dict()}
        print(json.dumps(payload, indent=2))
        return 0

    _print_summary(config, outcome.tally, outcome.complete)
    return 0


def _run(args: argparse.Namespace) -> int:
    table = TransitionTable.from_text(args.table)
    config = load_config(args.config) if args.config is not None else SearchConfig(states=table.states)
    config = replace(config, max_steps=args.max_steps)

    trace: List[Configuration] = []
    simulation = Simulation(table)
    result = simulation.advance(args.max_steps, trace=trace if args.trace else None)
    verdict = Classifier(config).classify(table)

    if args.json_output:
        payload = {
            "table": table.to_text(),
            "halted": isinstance(result, Halted),
            "steps": result.configuration.step,
            "sigma": simulation.tape.nonzero(),
            "verdict": asdict(verdict),
            "trace": [configuration.to_dict() for configuration in trace],
        }
        print(json.dumps(payload, indent=2))
        return 0

    header = f"Machine {table.to_text()}"
    print("=" * len(header))
    print(header)
    print("=" * len(header))
    if isinstance(result, Halted):
        print(f"Halted after {result.steps} steps, sigma={result.sigma}")
    else:
        print(f"Still running after {result.configuration.step} steps")
    print(f"Verdict: {verdict.describe()}")
    if args.trace:
        print("Configurations:")
        for configuration in trace:
            print(configuration.format())
    return 0


def _recheck(args: argparse.Namespace) -> int:
    tables = [TransitionTable.from_text(text) for text in read_holdouts(args.results)]
    if args.config is not None:
        config = load_config(args.config)
    else:
        config = SearchConfig(states=tables[0].states if tables else SearchConfig.states)
    tally = classify_all(config, tables)

    if args.json_output:
        print(json.dumps(tally.to_dict(), indent=2))
        return 0

    _print_summary(config, tally, True)
    return 0


COMMANDS = {"search": _search, "run": _run, "recheck": _recheck}


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    try:
        return COMMANDS[args.command](args)
    except (MalformedTable, OSError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
