"""Shared numeric helpers for the analyzers.

Every analyzer falls back to NEUTRAL_SCORE when it has too little data,
so the fallback lives here rather than being repeated per factor.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

NEUTRAL_SCORE = 50


def score_or(value: float | None, fallback: float = NEUTRAL_SCORE) -> float:
    """Return *value*, or *fallback* when no score could be computed."""
    return fallback if value is None else value


def clamp_score(value: float, low: float = 0, high: float = 100) -> float:
    """Clamp a factor into [low, high] before it is blended."""
    return max(low, min(high, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 towards +infinity.

    Python's ``round`` uses banker's rounding; scores are documented with
    the conventional rule (72.5 → 73, -2.5 → -2).
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_score(value: float) -> int:
    """Round a blended score to the nearest integer (half up)."""
    return int(math.floor(value + 0.5))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; callers guarantee a non-empty sequence.

    Must stay plain float ``sum / len``: ``statistics.mean`` and ``pstdev`` use
    exact fractions and can land on the other side of a tier boundary
    (e.g. an efficiency of exactly 85) from the float result.
    """
    return sum(values) / len(values)


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (divides by n, not n - 1)."""
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def weighted_sum(pairs: Iterable[tuple[float, float]]) -> float:
    """Sum of ``score * weight`` over (score, weight) pairs, in order."""
    total = 0.0
    for score, weight in pairs:
        total += score * weight
    return total
