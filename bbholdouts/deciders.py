from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Callable, Deque, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from . import closed_tape
from .machine import Simulation
from .table import TransitionTable, state_letter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeciderLimits:
    cycler_steps: int = 1_000
    translated_steps: int = 5_000
    translated_records: int = 32
    ctl_dfa_states: int = 3

    def scaled(self, factor: int) -> "DeciderLimits":
        return replace(
            self,
            cycler_steps=self.cycler_steps * factor,
            translated_steps=self.translated_steps * factor,
        )


@dataclass(frozen=True)
class Proven:
    """The machine never halts."""

    decider: str
    certificate: Dict = field(default_factory=dict)


@dataclass(frozen=True)
class Refuted:
    """The decider watched the machine halt."""

    decider: str
    steps: int


@dataclass(frozen=True)
class Inconclusive:
    decider: str
    reason: str = ""


Outcome = Union[Proven, Refuted, Inconclusive]


class Decider(NamedTuple):
    name: str
    decide: Callable[[TransitionTable, DeciderLimits], Outcome]
    scalable: bool


def decide_halt_reachability(table: TransitionTable, limits: DeciderLimits) -> Outcome:
    if table.can_halt_from(0):
        return Inconclusive("halt_reachability", "halt reachable in state graph")
    reachable = sorted(table.reachable_states(0))
    return Proven("halt_reachability", {"reachable": [state_letter(state) for state in reachable]})


def decide_cycler(table: TransitionTable, limits: DeciderLimits) -> Outcome:
    simulation = Simulation(table)
    seen: Dict[Tuple, int] = {simulation.configuration().key(): 0}
    while simulation.steps < limits.cycler_steps:
        if not simulation.step():
            return Refuted("cycler", simulation.steps)
        key = (simulation.state, simulation.head, simulation.tape.snapshot())
        first = seen.get(key)
        if first is not None:
            return Proven("cycler", {"start": first, "period": simulation.steps - first})
        seen[key] = simulation.steps
    return Inconclusive("cycler", f"no repeat within {limits.cycler_steps} steps")


@dataclass
class _Record:
    """Head at a never-visited cell on one side of the tape."""

    step: int
    state: int
    head: int
    origin: int
    window: Tuple[int, ...]
    extreme: int

    def read(self, start: int, end: int) -> Tuple[int, ...]:
        last = self.origin + len(self.window)
        return tuple(
            self.window[index - self.origin] if self.origin <= index < last else 0
            for index in range(start, end + 1)
        )


def _match_right(records: Iterable[_Record], simulation: Simulation) -> Optional[Dict]:
    head = simulation.head
    for record in records:
        if record.state != simulation.state:
            continue
        offset = head - record.head
        lowest = record.extreme
        if record.read(lowest, record.head) == simulation.tape.window(lowest + offset, head):
            return {"side": "right", "start": record.step, "period": simulation.steps - record.step, "offset": offset}
    return None


def _match_left(records: Iterable[_Record], simulation: Simulation) -> Optional[Dict]:
    head = simulation.head
    for record in records:
        if record.state != simulation.state:
            continue
        offset = record.head - head
        highest = record.extreme
        if record.read(record.head, highest) == simulation.tape.window(head, highest - offset):
            return {"side": "left", "start": record.step, "period": simulation.steps - record.step, "offset": offset}
    return None


def decide_translated_cycler(table: TransitionTable, limits: DeciderLimits) -> Outcome:
    """Detect a machine that repeats the same record-breaking sweep, shifted along the tape.

    Two records on the same side in the same state prove non-halting when the
    cells read between them (from the farthest point the head went back to,
    up to the head) are identical once shifted by the distance between them.
    """

    simulation = Simulation(table)
    lowest = highest = 0
    cap = limits.translated_records
    right: Deque[_Record] = deque(maxlen=cap)
    left: Deque[_Record] = deque(maxlen=cap)
    right.append(_Record(0, 0, 0, 0, (0,), 0))
    left.append(_Record(0, 0, 0, 0, (0,), 0))

    while simulation.steps < limits.translated_steps:
        if not simulation.step():
            return Refuted("translated_cycler", simulation.steps)
        head = simulation.head
        # Extremes are monotone along each deque, so only a suffix changes.
        for record in reversed(right):
            if record.extreme <= head:
                break
            record.extreme = head
        for record in reversed(left):
            if record.extreme >= head:
                break
            record.extreme = head

        if head > highest:
            highest = head
            certificate = _match_right(reversed(right), simulation)
            if certificate is not None:
                return Proven("translated_cycler", certificate)
            window = simulation.tape.window(lowest, head)
            right.append(_Record(simulation.steps, simulation.state, head, lowest, window, head))
        elif head < lowest:
            lowest = head
            certificate = _match_left(reversed(left), simulation)
            if certificate is not None:
                return Proven("translated_cycler", certificate)
            window = simulation.tape.window(head, highest)
            left.append(_Record(simulation.steps, simulation.state, head, head, window, head))

    return Inconclusive("translated_cycler", f"no translated repeat within {limits.translated_steps} steps")


def decide_closed_tape_language(table: TransitionTable, limits: DeciderLimits) -> Outcome:
    certificate = closed_tape.search(table, limits.ctl_dfa_states)
    if certificate is None:
        return Inconclusive("closed_tape_language", f"no language with up to {limits.ctl_dfa_states} DFA states")
    return Proven("closed_tape_language", certificate)


DECIDERS: Tuple[Decider, ...] = (
    Decider("halt_reachability", decide_halt_reachability, False),
    Decider("cycler", decide_cycler, True),
    Decider("translated_cycler", decide_translated_cycler, True),
    Decider("closed_tape_language", decide_closed_tape_language, False),
)
DECIDER_NAMES = tuple(decider.name for decider in DECIDERS)


def select_deciders(names: Iterable[str]) -> List[Decider]:
    """Registry entries for ``names``, always in increasing cost order."""

    wanted = set(names)
    unknown = wanted.difference(DECIDER_NAMES)
    if unknown:
        raise ValueError(f"Unknown deciders: {sorted(unknown)}. Available: {list(DECIDER_NAMES)}.")
    return [decider for decider in DECIDERS if decider.name in wanted]


def run_bank(
    table: TransitionTable,
    deciders: Iterable[Decider],
    limits: DeciderLimits,
    *,
    scalable_only: bool = False,
) -> Outcome:
    """Run deciders cheapest first and stop at the first decisive outcome."""

    last: Outcome = Inconclusive("none", "no decider ran")
    for decider in deciders:
        if scalable_only and not decider.scalable:
            continue
        try:
            outcome = decider.decide(table, limits)
        except Exception:
            logger.warning("Decider %s failed on %s", decider.name, table.to_text(), exc_info=True)
            outcome = Inconclusive(decider.name, "decider error")
        if not isinstance(outcome, Inconclusive):
            logger.debug("%s: %s -> %s", decider.name, table.to_text(), type(outcome).__name__)
            return outcome
        last = outcome
    return last
