"""Per-node signal filters.

Each node owns one FilterChain. The chain runs:

    raw magnitude -> high-pass -> abs -> moving average

The high-pass strips the DC/gravity offset before rectification, and the
moving average turns the rectified signal into an envelope.
"""

from __future__ import annotations

import math
from collections import deque


class MovingAverageFilter:
    """Arithmetic mean over the last ``window_size`` values."""

    def __init__(self, window_size: int = 5) -> None:
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self._buffer: deque[float] = deque(maxlen=window_size)

    @property
    def window_size(self) -> int:
        return self._buffer.maxlen

    def apply(self, value: float) -> float:
        self._buffer.append(value)
        return sum(self._buffer) / len(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()


class HighPassFilter:
    """Single-pole IIR high-pass in discrete RC form."""

    def __init__(self, cutoff_hz: float = 0.5, sample_rate_hz: float = 100.0) -> None:
        if cutoff_hz <= 0 or sample_rate_hz <= 0:
            raise ValueError("cutoff_hz and sample_rate_hz must be positive")
        rc = 1 / (2 * math.pi * cutoff_hz)
        dt = 1 / sample_rate_hz
        self.alpha = rc / (rc + dt)
        self._prev_filtered = 0.0
        self._prev_raw = 0.0

    def apply(self, value: float) -> float:
        filtered = self.alpha * (self._prev_filtered + value - self._prev_raw)
        self._prev_filtered = filtered
        self._prev_raw = value
        return filtered

    def reset(self) -> None:
        self._prev_filtered = 0.0
        self._prev_raw = 0.0


class FilterChain:
    """High-pass, rectify, smooth. One instance per node, never shared."""

    def __init__(self, ma_window_size: int = 5, hp_cutoff_hz: float = 0.5,
                 hp_sample_rate_hz: float = 100.0) -> None:
        self.high_pass = HighPassFilter(hp_cutoff_hz, hp_sample_rate_hz)
        self.moving_average = MovingAverageFilter(ma_window_size)

    def apply(self, raw_magnitude: float) -> float:
        return self.moving_average.apply(abs(self.high_pass.apply(raw_magnitude)))

    def reset(self) -> None:
        self.high_pass.reset()
        self.moving_average.reset()
