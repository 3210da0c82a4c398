from __future__ import annotations


class MalformedTable(ValueError):
    """A transition table or search configuration violates arity/range invariants."""


class CheckpointCorrupt(ValueError):
    """Resume data failed validation."""
