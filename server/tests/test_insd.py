"""Tests for implicit node silence detection."""

from __future__ import annotations

import itertools

import pytest

from seismos.config import InsdConfig
from seismos.core.insd import (
    InsdDecision,
    InsdThresholds,
    NeighborEvidence,
    ObservedStatus,
    SilenceDetector,
    decide,
    event_correlation_stage,
    heartbeat_stage,
    neighbor_anomaly_stage,
)
from seismos.core.models import Node

from helpers import cluster_nodes

THRESHOLDS = InsdThresholds(
    n_min=2,
    event_threshold_g=0.8,
    heartbeat_timeout_ms=3000,
    anomaly_threshold=40,
)
T0 = 1_000_000


@pytest.mark.parametrize("s1,s2,s3", list(itertools.product([True, False], repeat=3)))
def test_decision_table(s1, s2, s3):
    if s1 and s2 and s3:
        expected = InsdDecision.PROBABLE_COLLAPSE
    elif s1 and s2:
        expected = InsdDecision.SILENT_UNDER_REVIEW
    else:
        expected = InsdDecision.NO_CONFIRMED_FAILURE
    assert decide(s1, s2, s3) is expected


def test_thresholds_validation():
    with pytest.raises(ValueError):
        InsdThresholds(n_min=0, event_threshold_g=0.8, heartbeat_timeout_ms=1000, anomaly_threshold=1)
    with pytest.raises(ValueError):
        InsdThresholds(n_min=1, event_threshold_g=0.8, heartbeat_timeout_ms=0, anomaly_threshold=1)


def test_thresholds_from_config_require_all_values():
    assert InsdThresholds.from_config(InsdConfig()) is None
    assert InsdThresholds.from_config(InsdConfig(n_min=2, event_threshold_g=0.8,
                                                 heartbeat_timeout_ms=3000)) is None
    th = InsdThresholds.from_config(InsdConfig(n_min=2, event_threshold_g=0.8,
                                               heartbeat_timeout_ms=3000, anomaly_threshold=40))
    assert th == THRESHOLDS


def test_event_correlation_stage():
    now = T0
    strong = NeighborEvidence(1.2, now - 100)
    medium = NeighborEvidence(0.6, now - 100)
    old = NeighborEvidence(2.0, now - 600)

    passed, count, intensity = event_correlation_stage([strong, medium, old], now, THRESHOLDS, 0.5, 500)
    assert (passed, count, intensity) == (True, 2, 1.2)

    # Enough neighbours, not enough intensity.
    passed, count, _ = event_correlation_stage([medium, medium], now, THRESHOLDS, 0.5, 500)
    assert passed is False and count == 2

    # Intense, but a single neighbour.
    passed, _, _ = event_correlation_stage([strong], now, THRESHOLDS, 0.5, 500)
    assert passed is False


def test_heartbeat_stage():
    assert heartbeat_stage(T0, T0 + 2999, THRESHOLDS) is False
    assert heartbeat_stage(T0, T0 + 3000, THRESHOLDS) is True
    assert heartbeat_stage(None, T0, THRESHOLDS) is True


def test_neighbor_anomaly_stage():
    calm = NeighborEvidence(0.1, T0, damage_score=10, frequency_shift=2.0)
    hurt = NeighborEvidence(1.0, T0, damage_score=80, frequency_shift=2.0)
    stiff = NeighborEvidence(0.1, T0, damage_score=0, frequency_shift=12.0)

    assert neighbor_anomaly_stage([calm, hurt], THRESHOLDS) == (True, 45.0)
    assert neighbor_anomaly_stage([calm, calm], THRESHOLDS) == (False, 10.0)
    assert neighbor_anomaly_stage([calm, stiff], THRESHOLDS)[0] is True
    assert neighbor_anomaly_stage([], THRESHOLDS) == (False, 0.0)


@pytest.fixture
def detector():
    d = SilenceDetector(THRESHOLDS, neighbor_radius_m=250, silence_grace_ms=1000)
    nodes = cluster_nodes("a", "b", "c", "silent")
    nodes.append(Node(id="far", name="Uzak", lat=41.0500, lng=28.9900))
    d.register(nodes, T0)
    return d


def shaking(now, score):
    return {
        nid: NeighborEvidence(1.2, now - 50, damage_score=score, frequency_shift=0.0)
        for nid in ("a", "b", "c")
    }


def test_neighbourhoods(detector):
    assert set(detector.neighbors("silent")) == {"a", "b", "c"}
    assert detector.neighbors("far") == ()


def test_probable_collapse(detector):
    now = T0 + 3000
    for nid in ("a", "b", "c"):
        detector.record_heartbeat(nid, now - 50)

    result = detector.assess("silent", shaking(now, score=60), now)
    assert result.event_correlated and result.heartbeat_lost and result.neighbor_anomaly
    assert result.decision is InsdDecision.PROBABLE_COLLAPSE
    assert result.observed_status is ObservedStatus.PROBABLE_COLLAPSE
    assert result.reporting_neighbors == 3


def test_silent_under_review(detector):
    now = T0 + 3000
    result = detector.assess("silent", shaking(now, score=10), now)
    assert result.decision is InsdDecision.SILENT_UNDER_REVIEW
    assert result.observed_status is ObservedStatus.SILENT_UNDER_REVIEW


def test_silent_before_timeout(detector):
    now = T0 + 1500
    result = detector.assess("silent", shaking(now, score=60), now)
    assert result.heartbeat_lost is False
    assert result.decision is InsdDecision.NO_CONFIRMED_FAILURE
    assert result.observed_status is ObservedStatus.SILENT


def test_reporting_node_during_event(detector):
    now = T0 + 3000
    detector.record_heartbeat("a", now - 50)
    result = detector.assess("a", shaking(now, score=60), now)
    assert result.decision is InsdDecision.NO_CONFIRMED_FAILURE
    assert result.observed_status is ObservedStatus.ACTIVELY_REPORTING


def test_normal_when_quiet(detector):
    now = T0 + 500
    result = detector.assess("a", {}, now)
    assert result.observed_status is ObservedStatus.NORMAL


def test_no_latch_once_neighbours_calm(detector):
    now = T0 + 3000
    assert detector.assess("silent", shaking(now, 60), now).decision is InsdDecision.PROBABLE_COLLAPSE

    later = now + 1000
    calm = {nid: NeighborEvidence(0.05, later - 50, damage_score=5) for nid in ("a", "b", "c")}
    result = detector.assess("silent", calm, later)
    assert result.decision is InsdDecision.NO_CONFIRMED_FAILURE
    assert result.observed_status is ObservedStatus.SILENT


def test_quiet_live_neighbours_do_not_dilute_anomaly():
    d = SilenceDetector(THRESHOLDS, neighbor_radius_m=250, silence_grace_ms=1000)
    d.register(cluster_nodes("a", "b", "q1", "q2", "silent"), T0)
    now = T0 + 3000
    evidence = {
        "a": NeighborEvidence(1.2, now - 50, damage_score=60),
        "b": NeighborEvidence(1.2, now - 50, damage_score=60),
        "q1": NeighborEvidence(0.05, now - 50, damage_score=0),
        "q2": NeighborEvidence(0.05, now - 50, damage_score=0),
    }

    result = d.assess("silent", evidence, now)
    assert result.anomaly_level == 60.0
    assert result.neighbor_anomaly is True
    assert result.decision is InsdDecision.PROBABLE_COLLAPSE


def test_quiet_live_neighbour_can_flag_stiffness():
    d = SilenceDetector(THRESHOLDS, neighbor_radius_m=250, silence_grace_ms=1000)
    d.register(cluster_nodes("a", "b", "q", "silent"), T0)
    now = T0 + 3000
    evidence = {
        "a": NeighborEvidence(1.2, now - 50, damage_score=10),
        "b": NeighborEvidence(1.2, now - 50, damage_score=10),
        "q": NeighborEvidence(0.05, now - 50, damage_score=0, frequency_shift=15.0),
    }

    result = d.assess("silent", evidence, now)
    assert result.anomaly_level == 10.0
    assert result.decision is InsdDecision.PROBABLE_COLLAPSE

    # A neighbour past the heartbeat timeout no longer counts.
    evidence["q"] = NeighborEvidence(0.05, now - 3000, frequency_shift=15.0)
    assert d.assess("silent", evidence, now).decision is InsdDecision.SILENT_UNDER_REVIEW


def test_heartbeat_never_moves_backwards(detector):
    detector.record_heartbeat("a", T0 + 500)
    detector.record_heartbeat("a", T0 + 100)
    assert detector.last_seen("a") == T0 + 500


def test_reset_restarts_clocks(detector):
    now = T0 + 5000
    detector.reset(now)
    assert detector.assess("silent", shaking(now, 60), now).heartbeat_lost is False


def test_assess_all_covers_registered_nodes(detector):
    results = detector.assess_all({}, T0)
    assert set(results) == {"a", "b", "c", "silent", "far"}
