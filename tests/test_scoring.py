from __future__ import annotations

import pytest

from bbholdouts.scoring import growth_class, score_key, tower_height


@pytest.mark.parametrize(
    "value, height",
    [
        (0, 0),
        (9, 0),
        (10, 1),
        (4_098, 1),
        (10**10, 2),
        (10**100, 2),
    ],
)
def test_tower_height(value: int, height: int) -> None:
    assert tower_height(value) == height


def test_growth_class_uses_tower_notation() -> None:
    assert growth_class(47_176_870) == "10^^1"
    assert growth_class(10**100) == "10^^2"


def test_score_key_orders_by_primary_score() -> None:
    assert score_key("steps", 21, 5) > score_key("steps", 20, 6)
    assert score_key("sigma", 20, 6) > score_key("sigma", 21, 5)
    assert score_key("sigma", 21, 5) > score_key("sigma", 20, 5)
