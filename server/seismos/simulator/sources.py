"""Randomness sources for the simulator (port + implementations)."""

from __future__ import annotations

import itertools
import random
from typing import Iterable, Protocol


class NoiseSource(Protocol):
    """Port: uniform samples in [0, 1)."""

    def uniform(self) -> float: ...


class RandomNoiseSource:
    """NoiseSource backed by random.Random. Seedable for reproducible demos."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def uniform(self) -> float:
        return self._rng.random()


class FixedNoiseSource:
    """NoiseSource cycling through a fixed sequence, for deterministic tests."""

    def __init__(self, values: Iterable[float]) -> None:
        values = list(values)
        if not values:
            raise ValueError("FixedNoiseSource needs at least one value")
        if any(not 0 <= v < 1 for v in values):
            raise ValueError("FixedNoiseSource values must lie in [0, 1)")
        self._values = itertools.cycle(values)

    def uniform(self) -> float:
        return next(self._values)
