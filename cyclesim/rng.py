"""
cyclesim/rng.py - Deterministic RNG Provider

Every draw inside the kernel comes from a SeededRng. A seed (normally the
cycle id) is mixed through a 32-bit integer hash and then stepped by a
linear-congruential generator, so the same seed always yields the same
sequence. seeded_rng_for() salts the seed per domain, giving independent
streams (crisis picking vs. migration noise) that never consume each
other's draws.

No module may touch the `random` module or any other ambient source.
"""

from typing import Sequence, TypeVar

from .constants import (
    DEFAULT_SALT, HASH_MIX, LCG_DIVISOR, LCG_INCREMENT, LCG_MASK,
    LCG_MULTIPLIER,
)

__all__ = ["SeededRng", "seeded_rng", "seeded_rng_for", "hash_int32", "hash_string", "to_int32"]

T = TypeVar("T")

_MASK32 = 0xffffffff


def to_int32(value) -> int:
    """Two's-complement wrap to a signed 32-bit integer (float inputs truncate)."""
    n = int(value) & _MASK32
    return n - 0x100000000 if n & 0x80000000 else n


def hash_int32(x: int) -> int:
    """
    Avalanche-mix an integer to an unsigned 32-bit value.

    Shifts are arithmetic on signed 32-bit values and the multiplications run
    in double precision, so large products round before they are wrapped.
    hash_int32(42) == 1953478224.
    """
    x = to_int32(x)
    p = float((x >> 16) ^ x) * HASH_MIX
    x = to_int32(p)
    p = float((x >> 16) ^ x) * HASH_MIX
    x = to_int32(p)
    return ((x >> 16) ^ x) & _MASK32


def hash_string(text: str) -> int:
    """31-multiplier string hash folded to an unsigned 32-bit value. '' -> 0."""
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & _MASK32
    return h


class SeededRng:
    """
    Callable LCG stream. `rng()` returns a float in [0, 1).

    Attributes:
        seed: the seed the stream was built from
        draws: number of values drawn so far
    """

    def __init__(self, seed: int):
        self.seed = int(seed)
        self.draws = 0
        self._state = hash_int32(self.seed)

    def __call__(self) -> float:
        # products past 2**53 round as doubles before the mask
        self._state = int(float(self._state) * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        self.draws += 1
        return self._state / LCG_DIVISOR

    def random(self) -> float:
        return self()

    def below(self, n: int) -> int:
        """Integer in [0, n)."""
        if n <= 0:
            raise ValueError(f"below() needs a positive bound, got {n}")
        return int(self() * n)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("choice() from an empty sequence")
        return items[self.below(len(items))]

    def chance(self, p: float) -> bool:
        return self() < p

    def __repr__(self) -> str:
        return f"SeededRng(seed={self.seed}, draws={self.draws})"


def seeded_rng(seed: int) -> SeededRng:
    return SeededRng(seed)


def seeded_rng_for(seed: int, salt: str = DEFAULT_SALT) -> SeededRng:
    """Independent deterministic stream for one domain."""
    return SeededRng((int(seed) & _MASK32) ^ hash_string(salt or DEFAULT_SALT))
