"""Synthetic temperature sources for subsystems."""

import logging
import random
from collections.abc import Iterable
from itertools import cycle
from typing import Protocol

from fanrig.model import Subsystem

log = logging.getLogger(__name__)


class TemperatureSampler(Protocol):
    """Anything that can produce one temperature reading for a subsystem."""

    def sample(self, subsystem: Subsystem) -> float:
        ...


class RandomSampler:
    """Draws an independent reading in ``[low, high)`` per subsystem per call."""

    def __init__(self, seed: int | None = None, low: float = 0.0, high: float = 100.0) -> None:
        if low < 0 or high <= low:
            raise ValueError(f"Invalid sampling range [{low}, {high})")
        self._rng = random.Random(seed)
        self._low = low
        self._high = high

    def sample(self, subsystem: Subsystem) -> float:
        value = self._low + self._rng.random() * (self._high - self._low)
        log.debug("Sampled %.2f for subsystem %d", value, subsystem.id)
        return value


class SequenceSampler:
    """Replays a fixed sequence of readings in order, wrapping around at the end.

    Readings are consumed one per ``sample`` call regardless of which subsystem
    asks, so a cycle over N subsystems consumes N values.
    """

    def __init__(self, values: Iterable[float]) -> None:
        values = list(values)
        if not values:
            raise ValueError("SequenceSampler needs at least one value")
        self._values = cycle(values)

    def sample(self, subsystem: Subsystem) -> float:
        return next(self._values)
