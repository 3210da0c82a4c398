from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass
from typing import Dict, List, Optional

from .checkpoint import load_checkpoint, partition_path, save_checkpoint
from .config_loader import SearchConfig
from .enumerator import Enumerator, StackItem, partition, split_frontier
from .errors import CheckpointCorrupt
from .orchestrator import Orchestrator
from .results import write_results
from .tally import SearchTally

logger = logging.getLogger(__name__)


@dataclass
class PartitionResult:
    index: int
    tally: SearchTally
    complete: bool
    elapsed: float


@dataclass
class SearchOutcome:
    tally: SearchTally
    complete: bool
    elapsed: float


def format_duration(seconds: float) -> str:
    """Compact duration such as ``1h2m3s`` or ``4.2s``."""

    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    parts = [(days, "d"), (hours, "h"), (minutes, "m"), (secs, "s")]
    return "".join(f"{value}{unit}" for value, unit in parts if value)


def run_partition(
    config: SearchConfig,
    index: int,
    items: List[StackItem],
    next_id: int,
    deadline: Optional[float] = None,
) -> PartitionResult:
    """Enumerate and classify one partition, resuming from its checkpoint when there is one."""

    started = time.time()
    path = None if config.checkpoint is None else partition_path(config.checkpoint, index)
    state = None
    if path is not None:
        try:
            state = load_checkpoint(path, config, index)
        except CheckpointCorrupt as error:
            logger.warning("%s Starting partition %d from scratch.", error, index)

    if state is not None and state.complete:
        logger.info("Partition %d already complete in %s", index, path)
        return PartitionResult(index, state.tally, True, 0.0)

    if state is not None:
        tally = state.tally
        enumerator = Enumerator(config, tally, stack=state.stack, next_id=state.next_id)
        logger.info("Partition %d resumed with %d stack items", index, len(state.stack))
    else:
        tally = SearchTally(score=config.score)
        # The stack pops from the end, so reverse to keep frontier order.
        enumerator = Enumerator(config, tally, stack=list(reversed(items)), next_id=next_id)

    hook = None
    if path is not None:
        def hook(current: Enumerator, current_tally: SearchTally, complete: bool) -> None:
            save_checkpoint(path, config, index, current, current_tally, complete)

    complete = Orchestrator(config).run(
        enumerator,
        tally,
        deadline=deadline,
        max_candidates=config.max_candidates,
        checkpoint_hook=hook,
    )
    return PartitionResult(index, tally, complete, time.time() - started)


def _report_status(pending: Dict[Future, int], finished: int, total: int, started: float) -> None:
    elapsed = format_duration(time.time() - started)
    running = ", ".join(str(index) for index in sorted(pending.values()))
    logger.info("> %d/%d partitions done, elapsed %s; running: %s", finished, total, elapsed, running or "-")


def run_search(config: SearchConfig) -> SearchOutcome:
    """Split the search tree, run every partition and merge the tallies in partition order."""

    started = time.time()
    deadline = None if config.time_budget is None else started + config.time_budget

    frontier_tally = SearchTally(score=config.score)
    frontier, next_id = split_frontier(config, config.split_depth, frontier_tally)
    partitions = partition(frontier, config.partitions)
    logger.info(
        "Searching %d-state %d-symbol machines: %d frontier items in %d partitions, %d workers",
        config.states,
        config.symbols,
        len(frontier),
        config.partitions,
        config.workers,
    )

    results: Dict[int, PartitionResult] = {}
    if config.workers == 1 or config.partitions == 1:
        for index, items in enumerate(partitions):
            result = run_partition(config, index, items, next_id, deadline)
            results[index] = result
            logger.info(
                "Partition %d %s, %s, %d candidates",
                index,
                "finished" if result.complete else "stopped",
                format_duration(result.elapsed),
                result.tally.candidates,
            )
    else:
        with ProcessPoolExecutor(max_workers=config.workers) as pool:
            pending = {
                pool.submit(run_partition, config, index, items, next_id, deadline): index
                for index, items in enumerate(partitions)
            }
            while pending:
                done, _ = wait(pending, timeout=config.report_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    index = pending.pop(future)
                    result = future.result()
                    results[index] = result
                    logger.info(
                        "Partition %d %s, %s, %d candidates",
                        index,
                        "finished" if result.complete else "stopped",
                        format_duration(result.elapsed),
                        result.tally.candidates,
                    )
                _report_status(pending, len(results), len(partitions), started)

    merged = SearchTally(score=config.score)
    merged.merge(frontier_tally)
    for index in range(len(partitions)):
        merged.merge(results[index].tally)
    complete = all(result.complete for result in results.values())
    elapsed = time.time() - started

    if config.output is not None:
        write_results(config.output, config, merged, complete)
        logger.info("Results written to %s", config.output)
    logger.info("All done in %s.", format_duration(elapsed))
    return SearchOutcome(tally=merged, complete=complete, elapsed=elapsed)
