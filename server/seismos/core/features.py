"""Damage feature extraction.

Per node, keeps a time-bounded magnitude history and derives the three
features the damage score is built from:

- frequency shift: % drop of the current dominant frequency below baseline
- peak energy: magnitude normalised against an assumed ceiling (2 g)
- abnormal duration: seconds in the sliding window spent at or above the
  abnormal threshold, time-weighted by the gap to the next sample
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from seismos.core.models import DamageFeatures


@dataclass(frozen=True)
class MagnitudeSample:
    magnitude: float
    timestamp_ms: int


class FeatureExtractor:
    def __init__(
        self,
        abnormal_threshold_g: float = 0.5,
        duration_window_ms: int = 10_000,
        max_samples: int = 200,
        energy_ceiling_g: float = 2.0,
    ) -> None:
        if duration_window_ms <= 0 or max_samples < 1 or energy_ceiling_g <= 0:
            raise ValueError("duration window, sample cap and energy ceiling must be positive")
        self.abnormal_threshold_g = abnormal_threshold_g
        self.duration_window_ms = duration_window_ms
        self.max_samples = max_samples
        self.energy_ceiling_g = energy_ceiling_g
        self._history: dict[str, deque[MagnitudeSample]] = {}

    def extract(
        self,
        node_id: str,
        current_magnitude: float,
        current_frequency: float,
        baseline_frequency: float,
        timestamp_ms: int,
    ) -> DamageFeatures:
        self._update_history(node_id, current_magnitude, timestamp_ms)

        if baseline_frequency > 0:
            frequency_shift = (baseline_frequency - current_frequency) / baseline_frequency * 100
        else:
            frequency_shift = 0.0

        return DamageFeatures(
            frequency_shift=frequency_shift,
            peak_energy=min(1.0, current_magnitude / self.energy_ceiling_g),
            abnormal_duration=self.abnormal_duration(node_id),
            current_frequency=current_frequency,
            baseline_frequency=baseline_frequency,
        )

    def _update_history(self, node_id: str, magnitude: float, timestamp_ms: int) -> None:
        history = self._history.get(node_id)
        if history is None:
            history = self._history[node_id] = deque()
        history.append(MagnitudeSample(magnitude, timestamp_ms))

        # Time trim first, then the absolute cap.
        cutoff = timestamp_ms - self.duration_window_ms
        while history and history[0].timestamp_ms < cutoff:
            history.popleft()
        while len(history) > self.max_samples:
            history.popleft()

    def abnormal_duration(self, node_id: str) -> float:
        """Seconds of abnormal vibration currently in the node's window."""
        history = self._history.get(node_id)
        if not history or len(history) < 2:
            return 0.0

        abnormal_ms = 0
        samples = list(history)
        for prev, curr in zip(samples, samples[1:]):
            if prev.magnitude >= self.abnormal_threshold_g:
                abnormal_ms += curr.timestamp_ms - prev.timestamp_ms
        return abnormal_ms / 1000

    def history(self, node_id: str) -> list[MagnitudeSample]:
        return list(self._history.get(node_id, ()))

    def reset(self, node_id: str | None = None) -> None:
        if node_id is None:
            self._history.clear()
        else:
            self._history.pop(node_id, None)
