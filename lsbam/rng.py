# -*- coding: utf-8 -*-
"""Deterministic pseudo-random stream used by the storm generator."""

# NOTE: storm reproducibility depends only on this generator; agent rolls use numpy generators.

# LCG parameters (modulus, multiplier, increment).
LCG_MODULUS = 233280
LCG_MULTIPLIER = 9301
LCG_INCREMENT = 49297


class SeededGenerator:
    """Linear-congruential stream producing floats in [0, 1).

    Any integer seed is accepted: the seed is reduced modulo ``LCG_MODULUS``,
    so negative or very large seeds behave like their residue.
    """

    __slots__ = ("_state",)

    def __init__(self, seed: int) -> None:
        self._state = int(seed) % LCG_MODULUS

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> float:
        """Advance the stream and return the next value in [0, 1)."""
        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self._state / LCG_MODULUS

    def randint(self, low: int, span: int) -> int:
        """Return ``low + floor(next() * span)``."""
        return low + int(self.next() * span)

    def uniform(self, low: float, high: float) -> float:
        """Return a value in [low, high)."""
        return low + self.next() * (high - low)
