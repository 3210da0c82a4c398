from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .deciders import DECIDER_NAMES, DeciderLimits
from .errors import MalformedTable
from .scoring import SCORES
from .table import MAX_STATES, MAX_SYMBOLS


@dataclass(frozen=True)
class SearchConfig:
    """Immutable description of one enumeration run."""

    states: int = 7
    symbols: int = 2
    enum_steps: int = 1_000
    max_steps: int = 10_000
    deciders: Tuple[str, ...] = DECIDER_NAMES
    limits: DeciderLimits = field(default_factory=DeciderLimits)
    escalations: int = 1
    escalation_factor: int = 10
    score: str = "steps"
    prune_dominated_halters: bool = True
    partitions: int = 1
    split_depth: int = 2
    workers: int = 1
    time_budget: Optional[float] = None
    max_candidates: Optional[int] = None
    checkpoint: Optional[Path] = None
    checkpoint_every: int = 1_000
    output: Optional[Path] = None
    report_interval: float = 10.0

    def fingerprint(self) -> Dict[str, Any]:
        """Settings that change which candidates exist or how they are classified."""

        return {
            "states": self.states,
            "symbols": self.symbols,
            "enum_steps": self.enum_steps,
            "max_steps": self.max_steps,
            "deciders": list(self.deciders),
            "limits": {
                "cycler_steps": self.limits.cycler_steps,
                "translated_steps": self.limits.translated_steps,
                "translated_records": self.limits.translated_records,
                "ctl_dfa_states": self.limits.ctl_dfa_states,
            },
            "escalations": self.escalations,
            "escalation_factor": self.escalation_factor,
            "score": self.score,
            "prune_dominated_halters": self.prune_dominated_halters,
            "partitions": self.partitions,
            "split_depth": self.split_depth,
        }

    def with_overrides(self, **overrides: Any) -> "SearchConfig":
        """Apply non-None overrides (e.g. from the command line) and re-validate."""

        values = {key: value for key, value in overrides.items() if value is not None}
        updated = replace(self, **values)
        validate_config(updated)
        return updated


def _normalize_config(data: Dict) -> Dict:
    """Accept configurations with or without the 'search' node."""

    if "search" in data and isinstance(data["search"], dict):
        return data["search"]
    return data


def _require_int(config: Dict, key: str, default: int, minimum: int) -> int:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedTable(f"'{key}' must be an integer, got {value!r}.")
    if value < minimum:
        raise MalformedTable(f"'{key}' must be at least {minimum}, got {value}.")
    return value


def _optional_number(config: Dict, key: str) -> Optional[float]:
    value = config.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise MalformedTable(f"'{key}' must be a positive number, got {value!r}.")
    return value


def validate_config(config: SearchConfig) -> None:
    if not 1 <= config.states <= MAX_STATES:
        raise MalformedTable(f"'states' must be between 1 and {MAX_STATES}, got {config.states}.")
    if not 2 <= config.symbols <= MAX_SYMBOLS:
        raise MalformedTable(f"'symbols' must be between 2 and {MAX_SYMBOLS}, got {config.symbols}.")
    if config.max_steps <= config.enum_steps:
        raise MalformedTable("'max_steps' must be greater than 'enum_steps'.")
    if config.score not in SCORES:
        raise MalformedTable(f"'score' must be one of {SCORES}, got {config.score!r}.")
    unknown = set(config.deciders).difference(DECIDER_NAMES)
    if unknown:
        raise MalformedTable(f"Unknown deciders: {sorted(unknown)}. Available: {list(DECIDER_NAMES)}.")
    if config.partitions < 1 or config.workers < 1:
        raise MalformedTable("'partitions' and 'workers' must be at least 1.")
    if config.escalation_factor < 2 and config.escalations:
        raise MalformedTable("'escalation_factor' must be at least 2 when escalations are enabled.")


def config_from_mapping(raw_data: Dict) -> SearchConfig:
    if not isinstance(raw_data, dict):
        raise MalformedTable("The configuration must be a mapping.")
    config = _normalize_config(raw_data)

    limits_block = config.get("limits") or {}
    if not isinstance(limits_block, dict):
        raise MalformedTable("The 'limits' block must be a mapping.")
    defaults = DeciderLimits()
    limits = DeciderLimits(
        cycler_steps=_require_int(limits_block, "cycler_steps", defaults.cycler_steps, 1),
        translated_steps=_require_int(limits_block, "translated_steps", defaults.translated_steps, 1),
        translated_records=_require_int(limits_block, "translated_records", defaults.translated_records, 1),
        ctl_dfa_states=_require_int(limits_block, "ctl_dfa_states", defaults.ctl_dfa_states, 1),
    )

    deciders = config.get("deciders", list(DECIDER_NAMES))
    if isinstance(deciders, str):
        deciders = [deciders]
    if not isinstance(deciders, list):
        raise MalformedTable("'deciders' must be a list of decider names.")

    base = SearchConfig()
    checkpoint = config.get("checkpoint")
    output = config.get("output")
    result = SearchConfig(
        states=_require_int(config, "states", base.states, 1),
        symbols=_require_int(config, "symbols", base.symbols, 2),
        enum_steps=_require_int(config, "enum_steps", base.enum_steps, 1),
        max_steps=_require_int(config, "max_steps", base.max_steps, 1),
        deciders=tuple(str(name) for name in deciders),
        limits=limits,
        escalations=_require_int(config, "escalations", base.escalations, 0),
        escalation_factor=_require_int(config, "escalation_factor", base.escalation_factor, 1),
        score=str(config.get("score", base.score)),
        prune_dominated_halters=bool(config.get("prune_dominated_halters", base.prune_dominated_halters)),
        partitions=_require_int(config, "partitions", base.partitions, 1),
        split_depth=_require_int(config, "split_depth", base.split_depth, 0),
        workers=_require_int(config, "workers", base.workers, 1),
        time_budget=_optional_number(config, "time_budget"),
        max_candidates=None if config.get("max_candidates") is None else _require_int(config, "max_candidates", 0, 1),
        checkpoint=None if checkpoint is None else Path(checkpoint),
        checkpoint_every=_require_int(config, "checkpoint_every", base.checkpoint_every, 1),
        output=None if output is None else Path(output),
        report_interval=_optional_number(config, "report_interval") or base.report_interval,
    )
    validate_config(result)
    return result


def load_config(path: str | Path) -> SearchConfig:
    """Load and validate the YAML file describing a search."""

    with Path(path).open("r", encoding="utf-8") as handle:
        raw_data = yaml.safe_load(handle)
    if raw_data is None:
        raw_data = {}
    return config_from_mapping(raw_data)
