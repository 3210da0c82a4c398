"""Tree normal form enumeration.

Every machine starts with all slots undefined. Its forced execution from a
blank tape runs until it reaches an undefined slot, and the search branches
over every way to fill that slot. Only slots the machine actually reaches
ever get defined, so each distinct behavior is generated once.

The search is depth first over an explicit stack. The stack is the whole
search state: serializing it is enough to resume later.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .config_loader import SearchConfig
from .machine import Configuration, Halted, Simulation, StepLimitReached, UndefinedTransition
from .table import HALT_RULE, LEFT, MOVES, Rule, TransitionTable
from .tally import SearchTally

logger = logging.getLogger(__name__)

ROOT_PARENT = -1


@dataclass(frozen=True)
class SearchNode:
    """Partial table whose forced execution stopped at ``configuration``."""

    node_id: int
    parent: int
    table: TransitionTable
    configuration: Configuration


@dataclass(frozen=True)
class Candidate:
    """Concrete table handed to the classifier."""

    node_id: int
    parent: int
    table: TransitionTable


StackItem = Union[SearchNode, Candidate]


def item_to_dict(item: StackItem) -> Dict:
    data = {
        "kind": "candidate" if isinstance(item, Candidate) else "node",
        "id": item.node_id,
        "parent": item.parent,
        "table": item.table.to_text(),
    }
    if isinstance(item, SearchNode):
        data["configuration"] = item.configuration.to_dict()
    return data


def item_from_dict(data: Dict) -> StackItem:
    table = TransitionTable.from_text(data["table"])
    if data["kind"] == "candidate":
        return Candidate(int(data["id"]), int(data["parent"]), table)
    if data["kind"] != "node":
        raise ValueError(f"Unknown stack item kind: {data['kind']!r}.")
    return SearchNode(int(data["id"]), int(data["parent"]), table, Configuration.from_dict(data["configuration"]))


def _sigma_after_halt(configuration: Configuration) -> int:
    """Sigma once the halt rule has written a 1 under the head."""

    under_head = any(position == configuration.head for position, _ in configuration.cells)
    return len(configuration.cells) + (0 if under_head else 1)


class Enumerator:
    """Lazy, restartable tree normal form search."""

    def __init__(
        self,
        config: SearchConfig,
        tally: Optional[SearchTally] = None,
        *,
        stack: Optional[Sequence[StackItem]] = None,
        next_id: int = 1,
    ) -> None:
        self.config = config
        self.tally = tally if tally is not None else SearchTally(score=config.score)
        if stack is None:
            root = SearchNode(
                node_id=0,
                parent=ROOT_PARENT,
                table=TransitionTable.empty(config.states, config.symbols),
                configuration=Configuration(step=0, state=0, head=0),
            )
            stack = [root]
        self.stack: List[StackItem] = list(stack)
        self.next_id = next_id

    def _new_id(self) -> int:
        node_id = self.next_id
        self.next_id += 1
        return node_id

    def expand(self, node: SearchNode) -> List[StackItem]:
        """Children of ``node`` in canonical order."""

        simulation = Simulation.resume(node.table, node.configuration)
        result = simulation.advance(self.config.enum_steps, stop_on_undefined=True)
        if isinstance(result, (StepLimitReached, Halted)):
            return [Candidate(node.node_id, node.parent, node.table)]

        return self._branch(node.node_id, node.table, result)

    def reopen(self, candidate: Candidate, undefined: UndefinedTransition) -> None:
        """Branch over an undefined slot that classification reached after ``enum_steps``.

        The children go on top of the stack, so they come next in the sequence.
        """

        logger.debug("Reopening %s at step %d", candidate.table.to_text(), undefined.configuration.step)
        self.stack.extend(reversed(self._branch(candidate.node_id, candidate.table, undefined)))

    def _branch(self, node_id: int, table: TransitionTable, undefined: UndefinedTransition) -> List[StackItem]:
        state, symbol, configuration = undefined.state, undefined.symbol, undefined.configuration
        first_slot = configuration.step == 0
        children: List[StackItem] = []

        halt_steps = configuration.step + 1
        halt_sigma = _sigma_after_halt(configuration)
        if self.config.prune_dominated_halters and not self.tally.beats_best(halt_steps, halt_sigma):
            self.tally.prune("dominated_halter")
        else:
            children.append(Candidate(self._new_id(), node_id, table.with_rule(state, symbol, HALT_RULE)))

        # A new state may only be the lowest one not used yet.
        targets = range(min(max(table.used_states()) + 2, table.states))
        for write in range(table.symbols):
            for move in MOVES:
                if first_slot and move == LEFT:
                    continue
                for target in targets:
                    if first_slot and target == 0:
                        # A0 -> A keeps reading blanks forever.
                        self.tally.prune("blank_self_loop")
                        continue
                    child_table = table.with_rule(state, symbol, Rule(write, move, target))
                    if not child_table.can_halt_from(target):
                        self.tally.prune("halt_unreachable")
                        continue
                    children.append(SearchNode(self._new_id(), node_id, child_table, configuration))
        return children

    def __iter__(self) -> Iterator[Candidate]:
        while self.stack:
            item = self.stack.pop()
            if isinstance(item, Candidate):
                yield item
            else:
                self.stack.extend(reversed(self.expand(item)))

    def snapshot(self) -> Dict:
        return {"next_id": self.next_id, "stack": [item_to_dict(item) for item in self.stack]}


def split_frontier(
    config: SearchConfig, depth: int, tally: Optional[SearchTally] = None
) -> Tuple[List[StackItem], int]:
    """Expand the root ``depth`` levels deep.

    Returns the frontier in depth-first order and the next free node id.
    """

    enumerator = Enumerator(config, tally)
    frontier: List[StackItem] = list(enumerator.stack)
    for _ in range(depth):
        expanded: List[StackItem] = []
        for item in frontier:
            if isinstance(item, Candidate):
                expanded.append(item)
            else:
                expanded.extend(enumerator.expand(item))
        frontier = expanded
    logger.debug("Frontier at depth %d holds %d items", depth, len(frontier))
    return frontier, enumerator.next_id


def partition(frontier: Sequence[StackItem], count: int) -> List[List[StackItem]]:
    """Deal frontier items round-robin into ``count`` independent partitions."""

    return [list(frontier[index::count]) for index in range(count)]
