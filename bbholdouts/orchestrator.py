from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional, Union, cast

from .config_loader import SearchConfig
from .deciders import Proven, Refuted, run_bank, select_deciders
from .enumerator import Candidate, Enumerator
from .machine import Halted, Simulation, UndefinedTransition
from .table import TransitionTable
from .tally import HOLDOUT, SearchTally, Verdict

logger = logging.getLogger(__name__)


class Classifier:
    """Decider bank first, then direct simulation, then escalating bounds."""

    def __init__(self, config: SearchConfig) -> None:
        self.config = config
        self.deciders = select_deciders(config.deciders)

    def classify(self, table: TransitionTable) -> Verdict:
        """Classify ``table`` as given; reaching an undefined slot counts as a halt."""

        return cast(Verdict, self._classify(table, stop_on_undefined=False))

    def classify_candidate(self, table: TransitionTable) -> Union[Verdict, UndefinedTransition]:
        """Classify an enumerated table, stopping at the first undefined slot it reaches."""

        return self._classify(table, stop_on_undefined=True)

    def _classify(self, table: TransitionTable, *, stop_on_undefined: bool) -> Union[Verdict, UndefinedTransition]:
        limits = self.config.limits
        simulation = Simulation(table)
        bound = self.config.max_steps

        for level in range(self.config.escalations + 1):
            outcome = run_bank(table, self.deciders, limits, scalable_only=level > 0)
            if isinstance(outcome, Proven):
                return Verdict.proven(outcome.decider, outcome.certificate)
            if isinstance(outcome, Refuted):
                # The halt happened within the decider's bound; replay it for sigma.
                bound = max(bound, outcome.steps)

            result = simulation.advance(bound, stop_on_undefined=stop_on_undefined)
            if isinstance(result, UndefinedTransition):
                return result
            if isinstance(result, Halted):
                return Verdict.halted(result.steps, result.sigma)
            if level < self.config.escalations:
                logger.debug("Escalating %s to level %d", table.to_text(), level + 1)
                limits = limits.scaled(self.config.escalation_factor)
                bound *= self.config.escalation_factor

        return Verdict.holdout(simulation.steps)


CheckpointHook = Callable[[Enumerator, SearchTally, bool], None]


class Orchestrator:
    """Feeds enumerated candidates to the classifier and keeps the tally."""

    def __init__(self, config: SearchConfig, classifier: Optional[Classifier] = None) -> None:
        self.config = config
        self.classifier = classifier if classifier is not None else Classifier(config)

    def run(
        self,
        enumerator: Enumerator,
        tally: SearchTally,
        *,
        deadline: Optional[float] = None,
        max_candidates: Optional[int] = None,
        checkpoint_hook: Optional[CheckpointHook] = None,
    ) -> bool:
        """Process candidates until the enumeration ends or a budget runs out.

        Returns True when the enumeration finished. Budgets are only checked
        between candidates, so a checkpoint never splits one.
        """

        processed = 0
        for candidate in enumerator:
            if self.process(candidate, enumerator, tally) is not None:
                processed += 1
                if checkpoint_hook is not None and processed % self.config.checkpoint_every == 0:
                    checkpoint_hook(enumerator, tally, False)
                if max_candidates is not None and processed >= max_candidates:
                    break
            if deadline is not None and time.time() >= deadline:
                break

        finished = not enumerator.stack
        if not finished:
            logger.info("Budget exhausted after %d candidates; %d items left on the stack", processed, len(enumerator.stack))
        if checkpoint_hook is not None:
            checkpoint_hook(enumerator, tally, finished)
        return finished

    def process(self, candidate: Candidate, enumerator: Enumerator, tally: SearchTally) -> Optional[Verdict]:
        """Classify and record ``candidate``, or reopen it when it reaches an undefined slot."""

        verdict = self.classifier.classify_candidate(candidate.table)
        if isinstance(verdict, UndefinedTransition):
            enumerator.reopen(candidate, verdict)
            return None
        tally.record(candidate.table.to_text(), verdict)
        if verdict.kind == HOLDOUT:
            logger.info("Holdout: %s", candidate.table.to_text())
        return verdict


def classify_all(config: SearchConfig, tables: Iterable[TransitionTable]) -> SearchTally:
    """Classify an explicit list of tables, e.g. a holdout file from an earlier run."""

    classifier = Classifier(config)
    tally = SearchTally(score=config.score)
    for table in tables:
        tally.record(table.to_text(), classifier.classify(table))
    return tally
