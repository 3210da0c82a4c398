from __future__ import annotations

from pathlib import Path
from typing import List

from .config_loader import SearchConfig
from .scoring import growth_class
from .tally import SearchTally


def summary_lines(config: SearchConfig, tally: SearchTally, complete: bool) -> List[str]:
    lines = [
        f"states={config.states} symbols={config.symbols} score={tally.score} complete={'yes' if complete else 'no'}",
        f"candidates={tally.candidates} halted={tally.halted} proven={tally.proven_total} "
        f"holdouts={len(tally.holdouts)} unknown={tally.unknown}",
    ]
    for name in sorted(tally.proven):
        lines.append(f"proven by {name}: {tally.proven[name]}")
    for reason in sorted(tally.pruned):
        lines.append(f"pruned ({reason}): {tally.pruned[reason]}")
    if tally.best is None:
        lines.append("best: none")
    else:
        best = tally.best
        lines.append(
            f"best: {best.table} steps={best.steps} sigma={best.sigma} "
            f"growth={growth_class(best.sigma)} steps_growth={growth_class(best.steps)}"
        )
    return lines


def write_results(path: Path, config: SearchConfig, tally: SearchTally, complete: bool) -> None:
    """Header lines start with '#'; every other line is one holdout table."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        for line in summary_lines(config, tally, complete):
            handle.write(f"# {line}\n")
        for table in tally.holdouts:
            handle.write(f"{table}\n")


def read_holdouts(path: Path) -> List[str]:
    with path.open("r", encoding="utf-8") as handle:
        return [line.strip() for line in handle if line.strip() and not line.startswith("#")]
