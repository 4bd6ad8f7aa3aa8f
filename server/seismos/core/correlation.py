"""Cross-node event correlation.

Two or more nodes above the threshold within the same short window count as
one seismic event rather than local noise. The check itself is stateless;
the caller owns the recent-readings map and overwrites each node's entry on
every new reading.
"""

from __future__ import annotations

from typing import Mapping

from seismos.core.models import CorrelationResult, RecentReading

RecentReadings = Mapping[str, RecentReading]

MIN_CORRELATED_NODES = 2


def check_correlation(
    readings: RecentReadings,
    now_ms: int,
    threshold_g: float = 0.5,
    window_ms: int = 500,
) -> CorrelationResult:
    correlated = tuple(
        node_id
        for node_id, reading in readings.items()
        if now_ms - reading.timestamp_ms <= window_ms and reading.magnitude >= threshold_g
    )
    if len(correlated) >= MIN_CORRELATED_NODES:
        return CorrelationResult(True, correlated, f"event_{now_ms}")
    return CorrelationResult(False, correlated)


def purge_stale(readings: dict[str, RecentReading], now_ms: int, max_age_ms: int = 5000) -> int:
    """Drop entries older than ``max_age_ms``. Returns the number removed."""
    stale = [nid for nid, r in readings.items() if now_ms - r.timestamp_ms > max_age_ms]
    for nid in stale:
        del readings[nid]
    return len(stale)
