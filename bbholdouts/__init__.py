from .config_loader import SearchConfig, load_config
from .deciders import DECIDERS, DeciderLimits
from .enumerator import Candidate, Enumerator, SearchNode
from .errors import CheckpointCorrupt, MalformedTable
from .machine import Configuration, Halted, Simulation, StepLimitReached, run
from .orchestrator import Classifier, Orchestrator
from .runner import run_search
from .table import Rule, TransitionTable
from .tally import SearchTally, Verdict

__all__ = [
    "SearchConfig",
    "load_config",
    "DECIDERS",
    "DeciderLimits",
    "Candidate",
    "Enumerator",
    "SearchNode",
    "CheckpointCorrupt",
    "MalformedTable",
    "Configuration",
    "Halted",
    "Simulation",
    "StepLimitReached",
    "run",
    "Classifier",
    "Orchestrator",
    "run_search",
    "Rule",
    "TransitionTable",
    "SearchTally",
    "Verdict",
]
