from __future__ import annotations

import itertools
from dataclasses import replace

from bbholdouts.config_loader import SearchConfig
from bbholdouts.enumerator import (
    Candidate,
    Enumerator,
    SearchNode,
    item_from_dict,
    item_to_dict,
    partition,
    split_frontier,
)
from bbholdouts.deciders import DeciderLimits
from bbholdouts.machine import Configuration, Halted, Simulation, run
from bbholdouts.orchestrator import Orchestrator
from bbholdouts.table import TransitionTable
from bbholdouts.tally import SearchTally, Verdict

TWO_STATE = SearchConfig(states=2, symbols=2, enum_steps=50, max_steps=500, prune_dominated_halters=False)
THREE_STATE = SearchConfig(
    states=3,
    enum_steps=200,
    max_steps=250,
    deciders=("halt_reachability", "cycler", "translated_cycler"),
    limits=DeciderLimits(cycler_steps=100, translated_steps=300, translated_records=16, ctl_dfa_states=1),
    escalations=0,
    prune_dominated_halters=False,
)


def _halting_scores(tables):
    scores = set()
    for table in tables:
        result = run(table, 100)
        if isinstance(result, Halted):
            scores.add((result.steps, result.sigma))
    return scores


def test_root_expansion_follows_tree_normal_form() -> None:
    enumerator = Enumerator(TWO_STATE)
    root = enumerator.stack[0]

    children = enumerator.expand(root)

    assert [child.table.to_text() for child in children] == [
        "1RZ---_------",
        "0RB---_------",
        "1RB---_------",
    ]
    assert isinstance(children[0], Candidate)
    assert all(isinstance(child, SearchNode) for child in children[1:])
    assert all(child.parent == root.node_id for child in children)
    assert enumerator.tally.pruned == {"blank_self_loop": 2}


def test_new_states_are_introduced_in_order() -> None:
    config = replace(TWO_STATE, states=3)
    enumerator = Enumerator(config)
    node = enumerator.expand(enumerator.stack[0])[-1]

    children = enumerator.expand(node)

    targets = {child.table.next(1, 0).next_state for child in children if isinstance(child, SearchNode)}
    assert targets == {0, 1, 2}
    first_rules = {child.table.next(0, 0).format() for child in children}
    assert first_rules == {"1RB"}


def test_every_candidate_lookup_is_defined_or_halting() -> None:
    for candidate in Enumerator(TWO_STATE):
        table = candidate.table
        for state in range(table.states):
            for symbol in range(table.symbols):
                rule = table.next(state, symbol)
                assert rule is None or 0 <= rule.write < table.symbols


def test_enumeration_is_deterministic() -> None:
    first = [candidate.table.to_text() for candidate in Enumerator(TWO_STATE)]
    second = [candidate.table.to_text() for candidate in Enumerator(TWO_STATE)]

    assert first == second
    assert len(first) == len(set(first))


def test_symmetry_pruning_keeps_every_halting_behavior() -> None:
    # Brute force: every 2-state table whose only halt rule is 1RZ.
    options = ["1RZ"] + [f"{w}{m}{s}" for w in "01" for m in "LR" for s in "AB"]
    brute_force = (
        TransitionTable.from_text(f"{a0}{a1}_{b0}{b1}")
        for a0, a1, b0, b1 in itertools.product(options, repeat=4)
    )

    enumerated = [candidate.table for candidate in Enumerator(TWO_STATE)]

    assert _halting_scores(enumerated) == _halting_scores(brute_force)


def test_dominated_halters_are_pruned_against_the_tally() -> None:
    config = replace(TWO_STATE, prune_dominated_halters=True)
    tally = SearchTally()
    tally.record("1RB1LB_1LA1RZ", Verdict.halted(6, 4))
    enumerator = Enumerator(config, tally)

    children = enumerator.expand(enumerator.stack[0])

    assert all(isinstance(child, SearchNode) for child in children)
    assert tally.pruned["dominated_halter"] == 1


def test_step_limited_nodes_become_candidates() -> None:
    config = replace(TWO_STATE, enum_steps=3)
    node = SearchNode(7, 3, TransitionTable.from_text("1RB---_0RA---"), Configuration(step=0, state=0, head=0))

    children = Enumerator(config).expand(node)

    assert children == [Candidate(7, 3, node.table)]


def test_snapshot_resumes_the_same_sequence() -> None:
    full = [candidate.table.to_text() for candidate in Enumerator(TWO_STATE)]

    enumerator = Enumerator(TWO_STATE)
    iterator = iter(enumerator)
    head = [next(iterator).table.to_text() for _ in range(5)]
    snapshot = enumerator.snapshot()

    restored = Enumerator(
        TWO_STATE,
        stack=[item_from_dict(item) for item in snapshot["stack"]],
        next_id=snapshot["next_id"],
    )
    tail = [candidate.table.to_text() for candidate in restored]

    assert head + tail == full


def test_stack_items_survive_dict_form() -> None:
    enumerator = Enumerator(TWO_STATE)
    items = enumerator.expand(enumerator.stack[0])

    assert [item_from_dict(item_to_dict(item)) for item in items] == items


def test_partitions_cover_the_frontier() -> None:
    frontier, next_id = split_frontier(TWO_STATE, 2)
    parts = partition(frontier, 3)

    assert next_id > 1
    assert sorted(item.node_id for part in parts for item in part) == sorted(item.node_id for item in frontier)
    assert parts[0][0] == frontier[0]

    split = []
    for part in parts:
        split.extend(candidate.table.to_text() for candidate in Enumerator(TWO_STATE, stack=list(reversed(part))))
    whole = [candidate.table.to_text() for candidate in Enumerator(TWO_STATE)]
    assert sorted(split) == sorted(whole)


def _search(config: SearchConfig) -> SearchTally:
    tally = SearchTally()
    assert Orchestrator(config).run(Enumerator(config, tally), tally)
    return tally


def test_reopen_branches_over_the_slot_classification_reached() -> None:
    table = TransitionTable.from_text("1RB---_------")
    undefined = Simulation(table).advance(100, stop_on_undefined=True)
    enumerator = Enumerator(TWO_STATE, stack=[])

    enumerator.reopen(Candidate(5, 2, table), undefined)

    children = list(reversed(enumerator.stack))
    assert [child.table.to_text() for child in children[:3]] == [
        "1RB---_1RZ---",
        "1RB---_0LA---",
        "1RB---_0LB---",
    ]
    assert len(children) == 9
    assert all(child.parent == 5 for child in children)
    assert all(child.configuration == undefined.configuration for child in children[1:])


def test_short_forced_execution_does_not_lose_subtrees() -> None:
    assert _search(replace(TWO_STATE, enum_steps=1)) == _search(TWO_STATE)


def test_three_state_search_does_not_depend_on_enum_steps() -> None:
    full = _search(THREE_STATE)
    short = _search(replace(THREE_STATE, enum_steps=5))

    assert short.candidates == full.candidates
    assert short.halted == full.halted
    assert short.proven == full.proven
    assert sorted(short.holdouts) == sorted(full.holdouts)
    assert (short.best.steps, short.best.sigma) == (full.best.steps, full.best.sigma)
    assert full.best.steps == 21
    assert short.pruned == full.pruned
