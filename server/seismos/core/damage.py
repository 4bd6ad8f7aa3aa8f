"""Damage score engine.

Weighted, rule-based combination of the extracted features into a 0-100
score:

    score = freq_shift_score * 0.50 + energy_score * 0.35 + duration_score * 0.15

Component scores are each capped at 100. Weights, scaling factors and
category cutoffs are tunable constants (see DamageConfig), not fitted values.

Categories and statuses are resolved through ordered (upper_bound, value)
tables so a cutoff change never touches control flow.
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

from seismos.core.models import (
    ComponentScores,
    DamageCategory,
    DamageFeatures,
    DamageScore,
    NodeStatus,
)

T = TypeVar("T")

# (exclusive upper bound, value); the last entry catches everything above.
Thresholds = Sequence[tuple[float, T]]

CATEGORY_TABLE: Thresholds = (
    (30, DamageCategory.SAFE),
    (60, DamageCategory.RISKY),
    (math.inf, DamageCategory.HEAVILY_DAMAGED),
)

LEGACY_STATUS_TABLE: Thresholds = (
    (15, NodeStatus.STABLE),
    (30, NodeStatus.ANOMALY),
    (50, NodeStatus.WARNING),
    (70, NodeStatus.CRITICAL),
    (math.inf, NodeStatus.COLLAPSE),
)

# Raw filtered-magnitude cutoffs in g.
MAGNITUDE_STATUS_TABLE: Thresholds = (
    (0.2, NodeStatus.STABLE),
    (0.5, NodeStatus.ANOMALY),
    (1.0, NodeStatus.WARNING),
    (math.inf, NodeStatus.CRITICAL),
)


def classify(value: float, table: Thresholds) -> T:
    """Return the value of the first row whose upper bound exceeds ``value``."""
    for upper, result in table:
        if value < upper:
            return result
    return table[-1][1]


def interpret_magnitude(magnitude: float, table: Thresholds = MAGNITUDE_STATUS_TABLE) -> NodeStatus:
    """Threshold status of a filtered magnitude, independent of the damage score."""
    return classify(magnitude, table)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always upwards (not banker's rounding)."""
    return math.floor(value + 0.5)


def build_table(cutoffs: Sequence[float], values: Sequence[T]) -> tuple[tuple[float, T], ...]:
    """Pair ascending cutoffs with values; ``values`` has one more entry than ``cutoffs``."""
    if len(values) != len(cutoffs) + 1:
        raise ValueError("values must have exactly one more entry than cutoffs")
    if list(cutoffs) != sorted(cutoffs):
        raise ValueError(f"cutoffs must be ascending, got {list(cutoffs)}")
    return tuple(zip([*cutoffs, math.inf], values))


class DamageScoreCalculator:
    """Pure: the same features always produce the same score."""

    def __init__(
        self,
        weights: tuple[float, float, float] = (0.50, 0.35, 0.15),
        scaling: tuple[float, float, float] = (4.0, 50.0, 10.0),
        category_table: Thresholds = CATEGORY_TABLE,
        legacy_table: Thresholds = LEGACY_STATUS_TABLE,
    ) -> None:
        if any(w < 0 for w in weights) or not math.isclose(sum(weights), 1.0, abs_tol=1e-6):
            raise ValueError(f"weights must be non-negative and sum to 1, got {weights}")
        self.weight_frequency_shift, self.weight_peak_energy, self.weight_duration = weights
        self.scale_frequency_shift, self.scale_peak_energy, self.scale_duration = scaling
        self.category_table = category_table
        self.legacy_table = legacy_table

    def calculate(self, features: DamageFeatures) -> DamageScore:
        frequency_shift_score = min(100.0, abs(features.frequency_shift) * self.scale_frequency_shift)
        peak_energy_score = min(100.0, features.peak_energy * self.scale_peak_energy)
        duration_score = min(100.0, features.abnormal_duration * self.scale_duration)

        score = round_half_up(
            frequency_shift_score * self.weight_frequency_shift
            + peak_energy_score * self.weight_peak_energy
            + duration_score * self.weight_duration
        )
        score = max(0, min(100, score))

        return DamageScore(
            score=score,
            category=classify(score, self.category_table),
            components=ComponentScores(
                frequency_shift_score=round_half_up(frequency_shift_score),
                peak_energy_score=round_half_up(peak_energy_score),
                duration_score=round_half_up(duration_score),
            ),
            features=features,
            legacy_status=classify(score, self.legacy_table),
        )
