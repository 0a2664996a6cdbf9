# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# variates.py
# -----------------------------------------------------------------------------
# Purpose:
#   Random-variate helpers shared by the engine and the learning agent:
#   uniform draws, weighted categorical sampling, bounded exponentials.
#
# Design notes:
#   - Every draw goes through one injected random.Random so a seed makes a
#     whole run reproducible; reset() replays the stream from the seed.
#   - Exponential samples are clipped at a multiple of their mean so a single
#     extreme gap cannot stall a short simulated day.
#
# Usage:
#   rv = RandomVariate(seed=7)
#   gap = rv.bounded_exponential(26 / 3600.0)
# -----------------------------------------------------------------------------

from __future__ import annotations
import math, random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

MIN_RATE = 0.0001


class RandomVariate:
    """Seedable source of the few distributions the model needs."""

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self.seed = seed
        self.rng = rng if rng is not None else random.Random(seed)

    def reset(self):
        """Rewind to the construction seed (no-op for unseeded streams)."""
        if self.seed is not None:
            self.rng.seed(self.seed)

    def uniform(self, a: float = 0.0, b: float = 1.0) -> float:
        return a + (b - a) * self.rng.random()

    def chance(self, p: float) -> bool:
        return self.rng.random() < p

    def randrange(self, n: int) -> int:
        return self.rng.randrange(n)

    def weighted_choice(self, options: Sequence[T], weights: Sequence[float]) -> T:
        """Walk the cumulative weights; fall back to the first option."""
        u = self.rng.random()
        cum = 0.0
        for opt, w in zip(options, weights):
            cum += w
            if u <= cum:
                return opt
        return options[0]

    def bounded_exponential(self, rate: float, clip: float = 5.0) -> float:
        """Exponential(rate) sample trimmed to at most clip * mean."""
        safe_rate = max(MIN_RATE, rate)
        value = -math.log(1.0 - self.rng.random()) / safe_rate
        return min(value, clip / safe_rate)
