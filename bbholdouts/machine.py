from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union, cast

from .table import HALT, TransitionTable, state_letter

Cells = Tuple[Tuple[int, int], ...]


@dataclass(frozen=True)
class Configuration:
    """Instantaneous description: step, state, head position and non-blank cells."""

    step: int
    state: int
    head: int
    cells: Cells = ()

    def key(self) -> Tuple[int, int, Cells]:
        return (self.state, self.head, self.cells)

    def format(self, radius: int = 20) -> str:
        tape = Tape.from_cells(self.cells)
        return (
            f"Step {self.step:04d}: state={state_letter(self.state)}, head={self.head}\n"
            f"  tape: {tape.view(self.head, radius)}"
        )

    def to_dict(self) -> Dict:
        return {
            "step": self.step,
            "state": self.state,
            "head": self.head,
            "cells": [list(cell) for cell in self.cells],
        }

    @staticmethod
    def from_dict(data: Dict) -> "Configuration":
        cells = tuple(sorted((int(position), int(symbol)) for position, symbol in data["cells"]))
        return Configuration(
            step=int(data["step"]),
            state=int(data["state"]),
            head=int(data["head"]),
            cells=tuple(cell for cell in cells if cell[1]),
        )


@dataclass(frozen=True)
class Halted:
    steps: int
    sigma: int
    configuration: Configuration


@dataclass(frozen=True)
class StepLimitReached:
    configuration: Configuration

    @property
    def steps(self) -> int:
        return self.configuration.step


@dataclass(frozen=True)
class UndefinedTransition:
    """Execution is about to read an undefined slot; nothing has been applied yet."""

    state: int
    symbol: int
    configuration: Configuration


RunResult = Union[Halted, StepLimitReached, UndefinedTransition]


class Tape:
    """Sparse tape, infinite in both directions, blank symbol 0."""

    def __init__(self) -> None:
        self.cells: Dict[int, int] = {}
        self.min_index = 0
        self.max_index = 0

    @classmethod
    def from_cells(cls, cells: Cells) -> "Tape":
        tape = cls()
        for position, symbol in cells:
            tape.write(position, symbol)
        return tape

    def read(self, position: int) -> int:
        return self.cells.get(position, 0)

    def write(self, position: int, symbol: int) -> None:
        self.cells[position] = symbol
        if position < self.min_index:
            self.min_index = position
        elif position > self.max_index:
            self.max_index = position

    def window(self, start: int, end: int) -> Tuple[int, ...]:
        """Symbols on ``[start, end]`` inclusive."""

        cells = self.cells
        return tuple(cells.get(index, 0) for index in range(start, end + 1))

    def nonzero(self) -> int:
        return sum(1 for symbol in self.cells.values() if symbol)

    def snapshot(self) -> Cells:
        return tuple(sorted((position, symbol) for position, symbol in self.cells.items() if symbol))

    def view(self, head_position: int, radius: int = 20) -> str:
        start = min(self.min_index, head_position - radius)
        end = max(self.max_index, head_position + radius)
        cells = []
        for index in range(start, end + 1):
            symbol = self.read(index)
            if index == head_position:
                cells.append(f"[{symbol}]")
            else:
                cells.append(str(symbol))
        return "".join(cells)


class Simulation:
    """Resumable execution of one transition table from a blank tape."""

    def __init__(self, table: TransitionTable, configuration: Optional[Configuration] = None) -> None:
        self.table = table
        self.tape = Tape()
        self.state = 0
        self.head = 0
        self.steps = 0
        self.halted = False
        if configuration is not None:
            self.tape = Tape.from_cells(configuration.cells)
            self.state = configuration.state
            self.head = configuration.head
            self.steps = configuration.step

    @classmethod
    def resume(cls, table: TransitionTable, configuration: Configuration) -> "Simulation":
        return cls(table, configuration)

    def configuration(self) -> Configuration:
        return Configuration(step=self.steps, state=self.state, head=self.head, cells=self.tape.snapshot())

    def _halted(self) -> Halted:
        return Halted(steps=self.steps, sigma=self.tape.nonzero(), configuration=self.configuration())

    def step(self) -> bool:
        """Apply one transition. Returns False once the machine has halted."""

        if self.halted:
            return False
        result = self.advance(self.steps + 1)
        return not isinstance(result, Halted)

    def advance(
        self,
        until_step: int,
        *,
        stop_on_undefined: bool = False,
        trace: Optional[List[Configuration]] = None,
    ) -> RunResult:
        """Run until ``until_step`` total steps, a halt, or (optionally) an undefined slot."""

        if self.halted:
            return self._halted()

        tape = self.tape
        rules = self.table.rules
        symbols = self.table.symbols

        while self.steps < until_step:
            symbol = tape.read(self.head)
            rule = rules[self.state * symbols + symbol]
            if rule is None:
                if stop_on_undefined:
                    return UndefinedTransition(state=self.state, symbol=symbol, configuration=self.configuration())
                self.steps += 1
                self.halted = True
                if trace is not None:
                    trace.append(self.configuration())
                return self._halted()

            tape.write(self.head, rule.write)
            self.head += rule.offset
            self.steps += 1
            if rule.next_state == HALT:
                self.halted = True
            else:
                self.state = rule.next_state
            if trace is not None:
                trace.append(self.configuration())
            if self.halted:
                return self._halted()

        return StepLimitReached(configuration=self.configuration())


def run(table: TransitionTable, max_steps: int) -> Union[Halted, StepLimitReached]:
    """Simulate ``table`` from a blank tape for at most ``max_steps`` steps."""

    return cast(Union[Halted, StepLimitReached], Simulation(table).advance(max_steps))
