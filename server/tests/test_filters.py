"""Tests for the moving-average and high-pass filters."""

from __future__ import annotations

import math

import pytest

from seismos.core.filters import FilterChain, HighPassFilter, MovingAverageFilter

SIGNAL = [0.3, 1.2, -0.4, 0.9, 0.05, 2.1, -1.3, 0.7, 0.0, 0.6, 1.8, -0.2]


def test_moving_average_first_value_is_itself():
    ma = MovingAverageFilter(5)
    assert ma.apply(0.8) == pytest.approx(0.8)


def test_moving_average_uses_last_window_values():
    ma = MovingAverageFilter(3)
    for v in (1.0, 2.0, 3.0, 4.0):
        out = ma.apply(v)
    assert out == pytest.approx(3.0)


def test_moving_average_stays_within_buffer_range():
    ma = MovingAverageFilter(4)
    for i, v in enumerate(SIGNAL):
        out = ma.apply(v)
        window = SIGNAL[max(0, i - 3):i + 1]
        assert min(window) - 1e-12 <= out <= max(window) + 1e-12


def test_moving_average_rejects_empty_window():
    with pytest.raises(ValueError):
        MovingAverageFilter(0)


def test_high_pass_alpha():
    hp = HighPassFilter(cutoff_hz=0.5, sample_rate_hz=100)
    rc = 1 / (2 * math.pi * 0.5)
    assert hp.alpha == pytest.approx(rc / (rc + 0.01))


def test_high_pass_rejects_dc():
    hp = HighPassFilter()
    outputs = [hp.apply(1.0) for _ in range(1000)]
    assert outputs[0] == pytest.approx(hp.alpha)
    assert abs(outputs[-1]) < 1e-6
    # Monotonic decay towards zero on a constant input.
    assert all(a > b for a, b in zip(outputs[:50], outputs[1:51]))


def test_high_pass_passes_step_change():
    hp = HighPassFilter()
    for _ in range(1000):
        hp.apply(1.0)
    assert hp.apply(2.0) == pytest.approx(hp.alpha, rel=1e-3)


def test_chain_is_high_pass_then_abs_then_average():
    chain = FilterChain(ma_window_size=3)
    hp = HighPassFilter()
    ma = MovingAverageFilter(3)
    for v in SIGNAL:
        assert chain.apply(v) == pytest.approx(ma.apply(abs(hp.apply(v))))


def test_chain_output_never_negative():
    chain = FilterChain()
    assert all(chain.apply(v) >= 0 for v in SIGNAL)


@pytest.mark.parametrize("make", [
    lambda: MovingAverageFilter(4),
    lambda: HighPassFilter(),
    lambda: FilterChain(),
])
def test_reset_reproduces_output(make):
    f = make()
    first = [f.apply(v) for v in SIGNAL]
    f.reset()
    second = [f.apply(v) for v in SIGNAL]
    assert first == second
