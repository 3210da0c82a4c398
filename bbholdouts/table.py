from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple

from .errors import MalformedTable

HALT = -1
LEFT = "L"
RIGHT = "R"
MOVES = (LEFT, RIGHT)

UNDEFINED_TEXT = "---"
HALT_LETTERS = {"Z", "H"}
MAX_STATES = 25
MAX_SYMBOLS = 10


def state_letter(state: int) -> str:
    if state == HALT:
        return "Z"
    return chr(ord("A") + state)


def _parse_state(letter: str) -> int:
    if letter in HALT_LETTERS:
        return HALT
    if len(letter) != 1 or not "A" <= letter <= "Y":
        raise MalformedTable(f"Invalid state letter: {letter!r}.")
    return ord(letter) - ord("A")


@dataclass(frozen=True)
class Rule:
    """One transition: write a symbol, move the head, switch state."""

    write: int
    move: str
    next_state: int

    @property
    def halts(self) -> bool:
        return self.next_state == HALT

    @property
    def offset(self) -> int:
        return 1 if self.move == RIGHT else -1

    def format(self) -> str:
        return f"{self.write}{self.move}{state_letter(self.next_state)}"

    @staticmethod
    def parse(text: str) -> Optional["Rule"]:
        if text == UNDEFINED_TEXT:
            return None
        if len(text) != 3:
            raise MalformedTable(f"Rule {text!r} must have exactly three characters.")
        write, move, letter = text
        if not write.isdigit():
            raise MalformedTable(f"Invalid write symbol in rule {text!r}.")
        if move not in MOVES:
            raise MalformedTable(f"Invalid move in rule {text!r}. Allowed values: {MOVES}.")
        return Rule(write=int(write), move=move, next_state=_parse_state(letter))


HALT_RULE = Rule(write=1, move=RIGHT, next_state=HALT)


class TransitionTable:
    """Immutable (state, symbol) -> rule table; an undefined slot halts without writing."""

    __slots__ = ("states", "symbols", "rules", "_text")

    def __init__(self, states: int, symbols: int, rules) -> None:
        if not 1 <= states <= MAX_STATES:
            raise MalformedTable(f"State count must be between 1 and {MAX_STATES}, got {states}.")
        if not 2 <= symbols <= MAX_SYMBOLS:
            raise MalformedTable(f"Symbol count must be between 2 and {MAX_SYMBOLS}, got {symbols}.")
        rules = tuple(rules)
        if len(rules) != states * symbols:
            raise MalformedTable(
                f"Expected {states * symbols} rules for {states} states and {symbols} symbols, "
                f"got {len(rules)}."
            )
        for index, rule in enumerate(rules):
            if rule is None:
                continue
            if not isinstance(rule, Rule):
                raise MalformedTable(f"Slot #{index} does not hold a rule: {rule!r}.")
            if not 0 <= rule.write < symbols:
                raise MalformedTable(f"Write symbol out of range in slot #{index}: {rule.write}.")
            if rule.move not in MOVES:
                raise MalformedTable(f"Invalid move in slot #{index}: {rule.move!r}.")
            if rule.next_state != HALT and not 0 <= rule.next_state < states:
                raise MalformedTable(f"Next state out of range in slot #{index}: {rule.next_state}.")
        self.states = states
        self.symbols = symbols
        self.rules: Tuple[Optional[Rule], ...] = rules
        self._text: Optional[str] = None

    @classmethod
    def empty(cls, states: int, symbols: int) -> "TransitionTable":
        return cls(states, symbols, [None] * (states * symbols))

    @classmethod
    def from_text(cls, text: str) -> "TransitionTable":
        """Parse the standard ``1RB1LB_1LA1RZ`` notation."""

        blocks = text.strip().split("_")
        if not blocks or not blocks[0]:
            raise MalformedTable("Empty machine text.")
        width = len(blocks[0])
        if width % 3 or width == 0:
            raise MalformedTable(f"State block {blocks[0]!r} is not a sequence of three-character rules.")
        rules: List[Optional[Rule]] = []
        for block in blocks:
            if len(block) != width:
                raise MalformedTable(f"State block {block!r} does not match the width of the first block.")
            rules.extend(Rule.parse(block[i : i + 3]) for i in range(0, width, 3))
        return cls(len(blocks), width // 3, rules)

    def to_text(self) -> str:
        if self._text is None:
            blocks = []
            for state in range(self.states):
                row = self.rules[state * self.symbols : (state + 1) * self.symbols]
                blocks.append("".join(UNDEFINED_TEXT if rule is None else rule.format() for rule in row))
            self._text = "_".join(blocks)
        return self._text

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"TransitionTable.from_text({self.to_text()!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransitionTable):
            return NotImplemented
        return self.states == other.states and self.symbols == other.symbols and self.rules == other.rules

    def __hash__(self) -> int:
        return hash((self.states, self.symbols, self.rules))

    def next(self, state: int, symbol: int) -> Optional[Rule]:
        if not 0 <= state < self.states or not 0 <= symbol < self.symbols:
            raise MalformedTable(f"Lookup out of range: state={state}, symbol={symbol}.")
        return self.rules[state * self.symbols + symbol]

    def with_rule(self, state: int, symbol: int, rule: Optional[Rule]) -> "TransitionTable":
        rules = list(self.rules)
        rules[state * self.symbols + symbol] = rule
        return TransitionTable(self.states, self.symbols, rules)

    def undefined_slots(self) -> Iterator[Tuple[int, int]]:
        for index, rule in enumerate(self.rules):
            if rule is None:
                yield divmod(index, self.symbols)

    def used_states(self) -> Set[int]:
        """State A plus every state some defined rule points to."""

        used = {0}
        for rule in self.rules:
            if rule is not None and not rule.halts:
                used.add(rule.next_state)
        return used

    def mirrored(self) -> "TransitionTable":
        rules = [
            None if rule is None else Rule(rule.write, LEFT if rule.move == RIGHT else RIGHT, rule.next_state)
            for rule in self.rules
        ]
        return TransitionTable(self.states, self.symbols, rules)

    def reachable_states(self, state: int = 0) -> Set[int]:
        stack = [state]
        seen: Set[int] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            for symbol in range(self.symbols):
                rule = self.next(current, symbol)
                if rule is not None and not rule.halts:
                    stack.append(rule.next_state)
        return seen

    def can_halt_from(self, state: int = 0) -> bool:
        """True if an undefined slot or explicit halt is reachable in the state graph."""

        for current in self.reachable_states(state):
            for symbol in range(self.symbols):
                rule = self.next(current, symbol)
                if rule is None or rule.halts:
                    return True
        return False
