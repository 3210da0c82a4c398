from __future__ import annotations

import math
from typing import Tuple

SCORES = ("steps", "sigma")


def tower_height(value: int) -> int:
    """Number of times log10 can be applied before the value drops below 10."""

    height = 0
    current = value
    while current >= 10:
        current = math.log10(current)
        height += 1
    return height


def growth_class(value: int) -> str:
    return f"10^^{tower_height(value)}"


def score_key(score: str, steps: int, sigma: int) -> Tuple[int, int]:
    if score == "sigma":
        return (sigma, steps)
    return (steps, sigma)
