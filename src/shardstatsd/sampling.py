"""Probabilistic sampling gate."""

from __future__ import annotations

import random
from typing import Callable, TypeVar

R = TypeVar("R")

# Returns a uniform float in [0, 1).
RandomSource = Callable[[], float]


class Sampler:
    """Decides whether a measurement taken at a given rate is emitted.

    The random source is injected so tests can force either outcome:

        >>> Sampler(lambda: 0.5).should_sample(0.5)
        True
        >>> Sampler(lambda: 0.6).should_sample(0.5)
        False
    """

    def __init__(self, random_source: RandomSource | None = None) -> None:
        self._random = random_source or random.random

    def should_sample(self, sample_rate: float) -> bool:
        """Draw once and compare against the rate (inclusive)."""
        if sample_rate >= 1:
            return True
        return self._random() <= sample_rate

    def sampled(self, sample_rate: float, body: Callable[[], R]) -> R | None:
        """Run ``body`` if the draw falls within ``sample_rate``."""
        if self.should_sample(sample_rate):
            return body()
        return None
