"""Dominant frequency estimation by mean-crossing count.

Frequency ~= (crossings / 2) / observation time. Cheap and good enough for
tracking a building's natural frequency drifting over a session; an FFT peak
would be more precise.
"""

from __future__ import annotations

from collections import deque


class ZeroCrossingFrequencyEstimator:
    """Rolling per-node window of raw magnitudes."""

    def __init__(
        self,
        window_size: int = 50,
        sample_rate_hz: float = 20.0,
        min_samples: int = 10,
        default_hz: float = 5.0,
        min_hz: float = 0.5,
        max_hz: float = 20.0,
    ) -> None:
        if window_size < 2 or sample_rate_hz <= 0:
            raise ValueError("window_size must be >= 2 and sample_rate_hz positive")
        if min_hz > max_hz:
            raise ValueError(f"min_hz {min_hz} exceeds max_hz {max_hz}")
        self.window_size = window_size
        self.sample_rate_hz = sample_rate_hz
        self.min_samples = min_samples
        self.default_hz = default_hz
        self.min_hz = min_hz
        self.max_hz = max_hz
        self._history: dict[str, deque[float]] = {}

    def estimate(self, node_id: str, magnitude: float) -> float:
        history = self._history.get(node_id)
        if history is None:
            history = self._history[node_id] = deque(maxlen=self.window_size)
        history.append(magnitude)

        # Cold start: too few samples for a stable estimate.
        if len(history) < self.min_samples:
            return self.default_hz

        mean = sum(history) / len(history)
        crossings = 0
        prev = history[0] - mean
        for sample in list(history)[1:]:
            curr = sample - mean
            if (prev < 0 <= curr) or (curr < 0 <= prev):
                crossings += 1
            prev = curr

        observation_s = len(history) / self.sample_rate_hz
        frequency = (crossings / 2) / observation_s
        return max(self.min_hz, min(self.max_hz, frequency))

    def reset(self, node_id: str | None = None) -> None:
        if node_id is None:
            self._history.clear()
        else:
            self._history.pop(node_id, None)
