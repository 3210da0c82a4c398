from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from .scoring import growth_class, score_key

HALTED = "halted"
PROVEN = "proven"
HOLDOUT = "holdout"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class Verdict:
    """Classification attached to one transition table."""

    kind: str
    steps: int = 0
    sigma: int = 0
    decider: str = ""
    certificate: Dict = field(default_factory=dict)

    @classmethod
    def halted(cls, steps: int, sigma: int) -> "Verdict":
        return cls(HALTED, steps=steps, sigma=sigma)

    @classmethod
    def proven(cls, decider: str, certificate: Dict) -> "Verdict":
        return cls(PROVEN, decider=decider, certificate=dict(certificate))

    @classmethod
    def holdout(cls, steps: int) -> "Verdict":
        return cls(HOLDOUT, steps=steps)

    @classmethod
    def unknown(cls) -> "Verdict":
        return cls(UNKNOWN)

    def describe(self) -> str:
        if self.kind == HALTED:
            return f"halted after {self.steps} steps, sigma={self.sigma} ({growth_class(self.sigma)})"
        if self.kind == PROVEN:
            return f"never halts ({self.decider}: {self.certificate})"
        if self.kind == HOLDOUT:
            return f"holdout, still running after {self.steps} steps"
        return "unknown"


@dataclass
class BestMachine:
    table: str
    steps: int
    sigma: int


@dataclass
class SearchTally:
    """Running results of a search; partitions merge theirs at the join."""

    score: str = "steps"
    candidates: int = 0
    halted: int = 0
    unknown: int = 0
    proven: Dict[str, int] = field(default_factory=dict)
    pruned: Dict[str, int] = field(default_factory=dict)
    holdouts: List[str] = field(default_factory=list)
    best: Optional[BestMachine] = None

    @property
    def proven_total(self) -> int:
        return sum(self.proven.values())

    def beats_best(self, steps: int, sigma: int) -> bool:
        if self.best is None:
            return True
        return score_key(self.score, steps, sigma) > score_key(self.score, self.best.steps, self.best.sigma)

    def record(self, table: str, verdict: Verdict) -> None:
        self.candidates += 1
        if verdict.kind == HALTED:
            self.halted += 1
            if self.beats_best(verdict.steps, verdict.sigma):
                self.best = BestMachine(table=table, steps=verdict.steps, sigma=verdict.sigma)
        elif verdict.kind == PROVEN:
            self.proven[verdict.decider] = self.proven.get(verdict.decider, 0) + 1
        elif verdict.kind == HOLDOUT:
            self.holdouts.append(table)
        else:
            self.unknown += 1

    def prune(self, reason: str, count: int = 1) -> None:
        self.pruned[reason] = self.pruned.get(reason, 0) + count

    def merge(self, other: "SearchTally") -> None:
        """Fold ``other`` in; on equal scores the machine already held wins."""

        self.candidates += other.candidates
        self.halted += other.halted
        self.unknown += other.unknown
        for name, count in other.proven.items():
            self.proven[name] = self.proven.get(name, 0) + count
        for reason, count in other.pruned.items():
            self.prune(reason, count)
        self.holdouts.extend(other.holdouts)
        if other.best is not None and self.beats_best(other.best.steps, other.best.sigma):
            self.best = BestMachine(other.best.table, other.best.steps, other.best.sigma)

    def to_dict(self) -> Dict:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict) -> "SearchTally":
        best = data.get("best")
        return SearchTally(
            score=str(data["score"]),
            candidates=int(data["candidates"]),
            halted=int(data["halted"]),
            unknown=int(data["unknown"]),
            proven={str(name): int(count) for name, count in data["proven"].items()},
            pruned={str(reason): int(count) for reason, count in data["pruned"].items()},
            holdouts=[str(table) for table in data["holdouts"]],
            best=None if best is None else BestMachine(str(best["table"]), int(best["steps"]), int(best["sigma"])),
        )
