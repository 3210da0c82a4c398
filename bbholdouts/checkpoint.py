from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .config_loader import SearchConfig
from .enumerator import Enumerator, StackItem, item_from_dict
from .errors import CheckpointCorrupt
from .tally import SearchTally

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


@dataclass
class PartitionState:
    """What a partition checkpoint restores: the frontier stack and the tally so far."""

    stack: List[StackItem]
    next_id: int
    tally: SearchTally
    complete: bool


def partition_path(base: Path, index: int) -> Path:
    return base.with_name(f"{base.stem}.p{index:03d}.json")


def _digest(body: Dict) -> str:
    encoded = json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def save_checkpoint(
    path: Path,
    config: SearchConfig,
    partition: int,
    enumerator: Enumerator,
    tally: SearchTally,
    complete: bool,
) -> None:
    body = {
        "version": FORMAT_VERSION,
        "fingerprint": config.fingerprint(),
        "partition": partition,
        "complete": complete,
        "enumerator": enumerator.snapshot(),
        "tally": tally.to_dict(),
    }
    payload = {"body": body, "sha256": _digest(body)}
    path.parent.mkdir(parents=True, exist_ok=True)
    temporary = path.with_suffix(path.suffix + ".tmp")
    with temporary.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle)
    os.replace(temporary, path)
    logger.debug("Checkpoint written to %s (%d stack items)", path, len(enumerator.stack))


def load_checkpoint(path: Path, config: SearchConfig, partition: int) -> Optional[PartitionState]:
    """Read a partition checkpoint; None when there is none, CheckpointCorrupt when it is invalid."""

    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as error:
        raise CheckpointCorrupt(f"{path}: unreadable checkpoint ({error}).") from error

    if not isinstance(payload, dict) or not isinstance(payload.get("body"), dict):
        raise CheckpointCorrupt(f"{path}: missing checkpoint body.")
    body = payload["body"]
    if payload.get("sha256") != _digest(body):
        raise CheckpointCorrupt(f"{path}: digest mismatch.")
    if body.get("version") != FORMAT_VERSION:
        raise CheckpointCorrupt(f"{path}: unsupported version {body.get('version')!r}.")
    if body.get("fingerprint") != config.fingerprint():
        raise CheckpointCorrupt(f"{path}: written for a different search configuration.")
    if body.get("partition") != partition:
        raise CheckpointCorrupt(f"{path}: belongs to partition {body.get('partition')!r}, not {partition}.")

    try:
        enumerator = body["enumerator"]
        stack = [item_from_dict(item) for item in enumerator["stack"]]
        tally = SearchTally.from_dict(body["tally"])
        next_id = int(enumerator["next_id"])
    except (KeyError, TypeError, ValueError, AttributeError) as error:
        # MalformedTable is a ValueError, so broken tables land here too.
        raise CheckpointCorrupt(f"{path}: invalid search state ({error}).") from error
    for item in stack:
        if item.table.states != config.states or item.table.symbols != config.symbols:
            raise CheckpointCorrupt(f"{path}: stack table {item.table.to_text()} has the wrong shape.")
    return PartitionState(stack=stack, next_id=next_id, tally=tally, complete=bool(body.get("complete")))
