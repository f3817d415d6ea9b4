"""
cyclesim/scoring.py - Weighted Rule Accumulator

Shared by every scoring signal. A module walks its ordered rule list,
adding (or subtracting) tiered weights with an optional reason, then bounds
the total and maps it through ordered thresholds to a flag.
"""

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types_state import SignalScore


def round_half_up(x: float) -> int:
    """Round .5 toward +inf (round() would bank to even)."""
    return int(math.floor(x + 0.5))


class ScoreAccumulator:
    """
    Running score with reasons.

    Args:
        floor: lowest final score
        cap: highest final score (None = unbounded)
    """

    def __init__(self, floor: float = 0.0, cap: Optional[float] = None):
        self.floor = floor
        self.cap = cap
        self.score: float = 0
        self.reasons: List[str] = []
        self.calendar_factors: List[str] = []

    def add(self, points: float, reason: Optional[str] = None) -> None:
        self.score += points
        if reason:
            self.reasons.append(reason)

    def add_capped(self, points: float, cap: float, reason: Optional[str] = None) -> None:
        """Add at most `cap` points."""
        self.add(min(points, cap), reason)

    def add_calendar(self, points: float, factor: str, reason: Optional[str] = None) -> None:
        self.add(points, reason)
        self.calendar_factors.append(factor)

    def bounded(self) -> float:
        upper = np.inf if self.cap is None else self.cap
        value = float(np.clip(self.score, self.floor, upper))
        return int(value) if value.is_integer() else value

    def classify(self, thresholds: Sequence[Tuple[float, str]], default: str) -> SignalScore:
        """
        Bound the score and pick the first flag whose threshold it reaches.

        Args:
            thresholds: (minimum, flag) pairs, highest first
            default: flag when no threshold is reached
        """
        value = self.bounded()
        flag = default
        for minimum, name in thresholds:
            if value >= minimum:
                flag = name
                break
        return SignalScore(
            value=value,
            flag=flag,
            reasons=list(self.reasons),
            calendar_factors=list(self.calendar_factors),
        )
