from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Iterable

BALANCED_MAX_GAP = 2

ALL_LEVELS = "All Skill Levels"
MIXED_LEVELS = "Mixed Levels"
SKILL_BANDS: dict[str, tuple[int, int]] = {
    "Beginner (1-3)": (1, 3),
    "Intermediate (4-7)": (4, 7),
    "Advanced (8-10)": (8, 10),
}
SKILL_FILTERS = (ALL_LEVELS, MIXED_LEVELS, *SKILL_BANDS)


@dataclass
class DoublesPair:
    player1: object
    player2: object
    balance_level: str
    skill_score: int


def filter_by_skill(players: Iterable, skill_level: str | None) -> list:
    """Keep players inside the named skill band; unknown or open filters keep all."""

    players = list(players)
    band = SKILL_BANDS.get(skill_level or ALL_LEVELS)
    if band is None:
        return players
    low, high = band
    return [p for p in players if low <= p.rating <= high]


def generate_pairs(players: Iterable, skill_level: str | None = None) -> list[DoublesPair]:
    """Every possible partnership, strongest combined rating first."""

    pairs = [
        DoublesPair(
            player1=first,
            player2=second,
            balance_level=(
                "Balanced"
                if abs(first.rating - second.rating) <= BALANCED_MAX_GAP
                else "Unbalanced"
            ),
            skill_score=first.rating + second.rating,
        )
        for first, second in combinations(filter_by_skill(players, skill_level), 2)
    ]
    pairs.sort(key=lambda pair: pair.skill_score, reverse=True)
    return pairs
