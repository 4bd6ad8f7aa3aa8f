"""Tests for the damage score calculator and threshold tables."""

from __future__ import annotations

import pytest

from seismos.core.damage import (
    CATEGORY_TABLE,
    LEGACY_STATUS_TABLE,
    DamageScoreCalculator,
    build_table,
    classify,
    interpret_magnitude,
    round_half_up,
)
from seismos.core.models import DamageCategory, DamageFeatures, NodeStatus


def features(shift=0.0, energy=0.0, duration=0.0) -> DamageFeatures:
    return DamageFeatures(
        frequency_shift=shift,
        peak_energy=energy,
        abnormal_duration=duration,
        current_frequency=5.0,
        baseline_frequency=5.0,
    )


@pytest.mark.parametrize("score,category", [
    (0, DamageCategory.SAFE),
    (29, DamageCategory.SAFE),
    (30, DamageCategory.RISKY),
    (59, DamageCategory.RISKY),
    (60, DamageCategory.HEAVILY_DAMAGED),
    (100, DamageCategory.HEAVILY_DAMAGED),
])
def test_category_boundaries(score, category):
    assert classify(score, CATEGORY_TABLE) is category


@pytest.mark.parametrize("score,status", [
    (14, NodeStatus.STABLE),
    (15, NodeStatus.ANOMALY),
    (29, NodeStatus.ANOMALY),
    (30, NodeStatus.WARNING),
    (49, NodeStatus.WARNING),
    (50, NodeStatus.CRITICAL),
    (69, NodeStatus.CRITICAL),
    (70, NodeStatus.COLLAPSE),
])
def test_legacy_status_boundaries(score, status):
    assert classify(score, LEGACY_STATUS_TABLE) is status


@pytest.mark.parametrize("f,score,category", [
    (features(shift=14.5), 29, DamageCategory.SAFE),
    (features(shift=15.0), 30, DamageCategory.RISKY),
    (features(shift=25.0, energy=0.5), 59, DamageCategory.RISKY),
    (features(shift=25.0, energy=0.58), 60, DamageCategory.HEAVILY_DAMAGED),
])
def test_calculated_scores_at_boundaries(f, score, category):
    result = DamageScoreCalculator().calculate(f)
    assert result.score == score
    assert result.category is category


def test_weighted_combination():
    # 10% shift -> 40, energy 0.4 -> 20, 2 s -> 20
    result = DamageScoreCalculator().calculate(features(shift=10, energy=0.4, duration=2))
    assert result.components.frequency_shift_score == 40
    assert result.components.peak_energy_score == 20
    assert result.components.duration_score == 20
    assert result.score == 30  # 20 + 7 + 3


@pytest.mark.parametrize("shift,score,status", [
    (7.25, 15, NodeStatus.ANOMALY),   # 14.5 rounds up
    (15.25, 31, NodeStatus.WARNING),  # 30.5 rounds up
    (7.0, 14, NodeStatus.STABLE),
])
def test_half_scores_round_up(shift, score, status):
    result = DamageScoreCalculator().calculate(features(shift=shift))
    assert result.score == score
    assert result.legacy_status is status


def test_half_component_scores_round_up():
    # 0.125% shift -> 0.5 points, 2.25 s -> 22.5 points
    result = DamageScoreCalculator().calculate(features(shift=0.125, duration=2.25))
    assert result.components.frequency_shift_score == 1
    assert result.components.duration_score == 23


@pytest.mark.parametrize("value,expected", [
    (0.5, 1), (1.5, 2), (2.5, 3), (14.5, 15), (30.5, 31), (29.49, 29), (0.0, 0),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_negative_shift_scores_by_magnitude():
    calc = DamageScoreCalculator()
    assert calc.calculate(features(shift=-10)).score == calc.calculate(features(shift=10)).score


@pytest.mark.parametrize("f", [
    features(),
    features(shift=-1000, energy=50, duration=1000),
    features(shift=1e9, energy=1e9, duration=1e9),
    features(energy=-10, duration=-10),
    features(shift=-3, energy=1.7, duration=0.2),
])
def test_score_always_in_range(f):
    score = DamageScoreCalculator().calculate(f).score
    assert 0 <= score <= 100


def test_maximum_score_is_100():
    result = DamageScoreCalculator().calculate(features(shift=50, energy=2.0, duration=20))
    assert result.score == 100
    assert result.legacy_status is NodeStatus.COLLAPSE


def test_result_keeps_features_and_labels():
    f = features(shift=5)
    result = DamageScoreCalculator().calculate(f)
    assert result.features is f
    assert result.category_label == "Güvenli"
    assert DamageCategory.RISKY.label == "Riskli"
    assert DamageCategory.HEAVILY_DAMAGED.label == "Ağır Hasarlı"
    assert result.to_dict()["category"] == "safe"


def test_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        DamageScoreCalculator(weights=(0.5, 0.5, 0.5))


def test_custom_tables():
    table = build_table([50], [DamageCategory.SAFE, DamageCategory.HEAVILY_DAMAGED])
    calc = DamageScoreCalculator(category_table=table)
    assert calc.calculate(features(shift=20)).category is DamageCategory.SAFE


def test_build_table_validation():
    with pytest.raises(ValueError):
        build_table([30, 60], ["a", "b"])
    with pytest.raises(ValueError):
        build_table([60, 30], ["a", "b", "c"])


@pytest.mark.parametrize("magnitude,status", [
    (0.0, NodeStatus.STABLE),
    (0.19, NodeStatus.STABLE),
    (0.2, NodeStatus.ANOMALY),
    (0.5, NodeStatus.WARNING),
    (0.99, NodeStatus.WARNING),
    (1.0, NodeStatus.CRITICAL),
    (5.0, NodeStatus.CRITICAL),
])
def test_interpret_magnitude(magnitude, status):
    assert interpret_magnitude(magnitude) is status
