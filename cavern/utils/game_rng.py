"""Deterministic random number generator used for cavern generation.

All randomness that affects a game flows through one :class:`GameRNG`
instance created from the game's seed, so the same seed always digs the same
pair of caverns.
"""

from __future__ import annotations

import random
from typing import Any, MutableSequence, Optional, Sequence

import numpy as np

# numpy seeds must be non-negative; game seeds may be any 64-bit integer
_SEED_MASK = 0xFFFFFFFFFFFFFFFF


class GameRNG:
    def __init__(self, seed: Optional[int] = None) -> None:
        self.initial_seed = seed if seed is not None else random.randint(1, 2**63 - 1)
        self.rng = np.random.default_rng(self.initial_seed & _SEED_MASK)

    # ------------------------------------------------------------------
    # basic random helpers
    # ------------------------------------------------------------------
    def get_int(self, a: int, b: int) -> int:
        """Return an integer uniformly drawn from the closed range [a, b]."""
        if a > b:
            raise ValueError("a <= b")
        return int(self.rng.integers(a, b + 1))

    def get_float(self, a: float = 0.0, b: float = 1.0) -> float:
        if a > b:
            raise ValueError("a <= b")
        return a + (b - a) * float(self.rng.random())

    def chance(self, probability: float) -> bool:
        """Return True with the given probability."""
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability out of range")
        return self.get_float() < probability

    # ------------------------------------------------------------------
    # sequence utilities
    # ------------------------------------------------------------------
    def choice(self, seq: Sequence[Any]) -> Any:
        """Return a random element from *seq*."""
        if not seq:
            raise ValueError("cannot choose from an empty sequence")
        return seq[self.get_int(0, len(seq) - 1)]

    def shuffle(self, seq: MutableSequence[Any]) -> None:
        self.rng.shuffle(seq)

    # ------------------------------------------------------------------
    # seed chaining
    # ------------------------------------------------------------------
    def next_seed(self) -> int:
        """Draw a fresh non-zero seed, e.g. for the next game in a series."""
        return int(self.rng.integers(1, 2**63 - 1))


__all__ = ["GameRNG"]
