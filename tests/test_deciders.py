from __future__ import annotations

import logging

import pytest

from bbholdouts import closed_tape
from bbholdouts.deciders import (
    DECIDER_NAMES,
    DECIDERS,
    Decider,
    DeciderLimits,
    Inconclusive,
    Proven,
    Refuted,
    decide_closed_tape_language,
    decide_cycler,
    decide_halt_reachability,
    decide_translated_cycler,
    run_bank,
    select_deciders,
)
from bbholdouts.machine import Halted, run
from bbholdouts.table import TransitionTable

LIMITS = DeciderLimits(cycler_steps=500, translated_steps=2_000, translated_records=16, ctl_dfa_states=2)

HALTERS = [
    "1RZ---",
    "1RB1LB_1LA1RZ",
    "1RB1RZ_1LB0RC_1LC1LA",
    "1RB0RB_1LA1RZ",
]


def test_halt_reachability_proves_machines_without_reachable_halt() -> None:
    outcome = decide_halt_reachability(TransitionTable.from_text("1RB1LB_1LA1RA"), LIMITS)

    assert isinstance(outcome, Proven)
    assert outcome.certificate == {"reachable": ["A", "B"]}


def test_halt_reachability_is_inconclusive_when_halt_is_reachable() -> None:
    outcome = decide_halt_reachability(TransitionTable.from_text("1RB1LB_1LA1RZ"), LIMITS)

    assert isinstance(outcome, Inconclusive)


def test_cycler_finds_exact_repeat() -> None:
    outcome = decide_cycler(TransitionTable.from_text("0RB---_0LA---"), LIMITS)

    assert isinstance(outcome, Proven)
    assert outcome.certificate == {"start": 0, "period": 2}


def test_cycler_reports_observed_halts() -> None:
    outcome = decide_cycler(TransitionTable.from_text("1RB1LB_1LA1RZ"), LIMITS)

    assert outcome == Refuted("cycler", 6)


def test_cycler_cannot_see_translation() -> None:
    outcome = decide_cycler(TransitionTable.from_text("1RA---"), LIMITS)

    assert isinstance(outcome, Inconclusive)


@pytest.mark.parametrize(
    "text, side",
    [
        ("1RA---", "right"),
        ("1LA---", "left"),
    ],
)
def test_translated_cycler_detects_drift(text: str, side: str) -> None:
    outcome = decide_translated_cycler(TransitionTable.from_text(text), LIMITS)

    assert isinstance(outcome, Proven)
    assert outcome.certificate["side"] == side
    assert outcome.certificate["offset"] == 1
    assert outcome.certificate["period"] == 1


def test_translated_cycler_with_longer_period() -> None:
    # Writes 1 0 1 0 ... while moving right through two states.
    outcome = decide_translated_cycler(TransitionTable.from_text("1RB---_0RA---"), LIMITS)

    assert isinstance(outcome, Proven)
    assert outcome.certificate["offset"] == 2
    assert outcome.certificate["period"] == 2


def test_translated_cycler_ignores_plain_cycles() -> None:
    outcome = decide_translated_cycler(TransitionTable.from_text("0RB---_0LA---"), LIMITS)

    assert isinstance(outcome, Inconclusive)


def test_closed_tape_language_proves_runaway_machine() -> None:
    outcome = decide_closed_tape_language(TransitionTable.from_text("1RA---"), LIMITS)

    assert isinstance(outcome, Proven)
    assert outcome.certificate == {"orientation": "direct", "dfa": [0, 0]}


def test_dfa_enumeration_is_canonical() -> None:
    assert list(closed_tape.iter_dfas(1, 2)) == [[0, 0]]
    assert list(closed_tape.iter_dfas(2, 2)) == [
        [0, 1, 0, 0],
        [0, 1, 0, 1],
        [0, 1, 1, 0],
        [0, 1, 1, 1],
    ]
    assert all(dfa[0] == 0 for dfa in closed_tape.iter_dfas(3, 2))


@pytest.mark.parametrize("text", HALTERS)
def test_no_decider_proves_a_halting_machine(text: str) -> None:
    table = TransitionTable.from_text(text)
    assert isinstance(run(table, 1_000), Halted)

    for decider in DECIDERS:
        outcome = decider.decide(table, LIMITS)
        assert not isinstance(outcome, Proven), decider.name


def test_cycler_is_sound_against_simulation_for_small_machines() -> None:
    # Every table over A/B with 1RZ as the only halt rule.
    options = ["1RZ"] + [f"{w}{m}{s}" for w in "01" for m in "LR" for s in "AB"]
    for a0 in options[1:]:
        for a1 in options:
            for b0 in options:
                table = TransitionTable.from_text(f"{a0}{a1}_{b0}1RZ")
                if isinstance(decide_cycler(table, LIMITS), Proven):
                    assert not isinstance(run(table, LIMITS.cycler_steps), Halted), table.to_text()


def test_bank_stops_at_first_decisive_outcome() -> None:
    calls = []

    def never(table, limits):
        calls.append("never")
        return Proven("never", {})

    def late(table, limits):
        calls.append("late")
        return Inconclusive("late")

    bank = [Decider("never", never, False), Decider("late", late, True)]

    assert run_bank(TransitionTable.from_text("1RA---"), bank, LIMITS) == Proven("never", {})
    assert calls == ["never"]


def test_bank_treats_decider_errors_as_inconclusive() -> None:
    def broken(table, limits):
        raise IndexError("boom")

    outcome = run_bank(TransitionTable.from_text("1RA---"), [Decider("broken", broken, True)], LIMITS)

    assert outcome == Inconclusive("broken", "decider error")


def test_bank_logs_any_decider_exception(caplog: pytest.LogCaptureFixture) -> None:
    def rejects(table, limits):
        raise ValueError("unsupported tape shape")

    bank = [Decider("rejects", rejects, True), Decider("cycler", decide_cycler, True)]

    with caplog.at_level(logging.WARNING):
        outcome = run_bank(TransitionTable.from_text("0RB---_0LA---"), bank, LIMITS)

    assert outcome == Proven("cycler", {"start": 0, "period": 2})
    assert "Decider rejects failed" in caplog.text


def test_scalable_only_skips_fixed_cost_deciders() -> None:
    bank = select_deciders(["halt_reachability", "cycler"])

    outcome = run_bank(TransitionTable.from_text("1RA1RA"), bank, LIMITS, scalable_only=True)

    assert isinstance(outcome, Inconclusive)
    assert outcome.decider == "cycler"


def test_select_deciders_keeps_cost_order() -> None:
    names = [decider.name for decider in select_deciders(reversed(DECIDER_NAMES))]

    assert names == list(DECIDER_NAMES)
    with pytest.raises(ValueError):
        select_deciders(["oracle"])


def test_limits_scale_only_step_bounds() -> None:
    scaled = LIMITS.scaled(10)

    assert scaled.cycler_steps == 5_000
    assert scaled.translated_steps == 20_000
    assert scaled.ctl_dfa_states == LIMITS.ctl_dfa_states
