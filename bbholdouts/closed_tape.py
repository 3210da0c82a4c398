"""Closed tape language search.

The machine is studied modulo a DFA that classifies left half-tapes (read
from the far left up to the head). Under that quotient the machine becomes
a pushdown system whose stack is the right half-tape: control states are
``states * q + f + 1`` for DFA state ``q`` and machine state ``f``, with 0
reserved for HALT. Backward reachability (pre*) of the halting control state
is saturated into a multi-automaton following

    Bouajjani, A., Esparza, J., & Maler, O. (1997). Reachability analysis of
    pushdown automata: Application to model-checking. CONCUR '97.

If the initial configuration with any number of blank cells on the right is
not accepted, no halting configuration is reachable and the machine runs
forever.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .table import LEFT, TransitionTable

PdsRule = Tuple[Tuple[int, int], Tuple[int, Tuple[int, ...]]]
Nfa = List[List[int]]


def iter_dfas(size: int, symbols: int) -> Iterator[List[int]]:
    """Yield every DFA with ``size`` states, up to relabeling.

    A DFA is a flat list ``T`` with ``delta(q, s) == T[symbols * q + s]``.
    ``T[0] == 0`` so leading blanks do not change the class of a tape, and
    states first appear in increasing order when the list is read left to
    right.
    """

    table = [0] * (size * symbols)

    def fill(index: int, used: int) -> Iterator[List[int]]:
        if index == len(table):
            if used == size:
                yield list(table)
            return
        if index // symbols >= used:
            return
        upper = 1 if index == 0 else min(used + 1, size)
        for target in range(upper):
            table[index] = target
            yield from fill(index + 1, used + 1 if target == used else used)

    yield from fill(0, 1)


def quotient_pds(table: TransitionTable, dfa: Sequence[int]) -> Iterator[PdsRule]:
    states, symbols = table.states, table.symbols
    for state in range(states):
        for read in range(symbols):
            rule = table.next(state, read)
            for index, target in enumerate(dfa):
                q1, s1 = divmod(index, symbols)
                if rule is None or rule.halts:
                    # One halting transition per DFA state is enough.
                    if s1 == 0:
                        yield (states * q1 + state + 1, read), (0, ())
                elif rule.move == LEFT:
                    # [delta(q1, s1)] f@read RHS => [q1] t@s1 write RHS
                    yield (states * target + state + 1, read), (states * q1 + rule.next_state + 1, (s1, rule.write))
                elif s1 == rule.write:
                    # [q1] f@read RHS => [delta(q1, write)] t@RHS
                    yield (states * q1 + state + 1, read), (states * target + rule.next_state + 1, ())


def step_nfa(nfa: Nfa, mask: int, symbol: int) -> int:
    """Bitmask of states reachable from ``mask`` by reading ``symbol``."""

    row = nfa[symbol]
    result = 0
    while mask:
        low = mask & -mask
        mask ^= low
        result |= row[low.bit_length() - 1]
    return result


def run_nfa(nfa: Nfa, start: int, word: Sequence[int]) -> int:
    mask = 1 << start
    for symbol in word:
        mask = step_nfa(nfa, mask, symbol)
    return mask


def right_half_tape_nfa(table: TransitionTable, dfa: Sequence[int]) -> Nfa:
    """Saturate the pre* multi-automaton; ``nfa[s][q]`` is the successor mask of q on s."""

    control_states = table.states * (len(dfa) // table.symbols) + 1
    pds = list(quotient_pds(table, dfa))
    # HALT accepts anything that follows it.
    nfa = [[1] + [0] * (control_states - 1) for _ in range(table.symbols)]
    grew = True
    first_pass = True
    while grew:
        grew = False
        for (source, read), (target, word) in pds:
            updated = nfa[read][source] | run_nfa(nfa, target, word)
            if updated != nfa[read][source]:
                nfa[read][source] = updated
                grew = True
        if first_pass:
            # Rules that push nothing add fixed edges; one pass is enough for them.
            pds = [rule for rule in pds if rule[1][1]]
            first_pass = False
    return nfa


def accepts_blank_suffix(nfa: Nfa, start: int) -> bool:
    """Whether ``start`` followed by some number of blanks reaches HALT."""

    previous = 0
    current = 1 << start
    while previous != current:
        previous, current = current, current | step_nfa(nfa, current, 0)
    return bool(current & 1)


def search(table: TransitionTable, max_dfa_states: int) -> Optional[Dict]:
    """Look for a closed tape language that excludes every halting configuration."""

    orientations = (("direct", table), ("mirrored", table.mirrored()))
    for size in range(1, max_dfa_states + 1):
        for orientation, candidate in orientations:
            for dfa in iter_dfas(size, table.symbols):
                nfa = right_half_tape_nfa(candidate, dfa)
                if not accepts_blank_suffix(nfa, 1):
                    return {"orientation": orientation, "dfa": list(dfa)}
    return None
