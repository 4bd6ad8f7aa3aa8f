"""Tests for cross-node event correlation."""

from __future__ import annotations

from seismos.core.correlation import check_correlation, purge_stale
from seismos.core.models import RecentReading

NOW = 1_700_000_000_000


def test_two_nodes_in_window_are_correlated():
    readings = {
        "a": RecentReading(0.6, NOW - 100),
        "b": RecentReading(0.6, NOW - 400),
        "c": RecentReading(0.1, NOW - 50),
    }
    result = check_correlation(readings, NOW)
    assert result.is_correlated is True
    assert set(result.correlated_nodes) == {"a", "b"}
    assert result.event_id == f"event_{NOW}"


def test_single_node_is_not_correlated():
    readings = {
        "a": RecentReading(0.6, NOW),
        "b": RecentReading(0.3, NOW),
    }
    result = check_correlation(readings, NOW)
    assert result.is_correlated is False
    assert result.correlated_nodes == ("a",)
    assert result.event_id is None


def test_window_edge_is_inclusive():
    readings = {
        "a": RecentReading(0.6, NOW - 500),
        "b": RecentReading(0.6, NOW - 501),
        "c": RecentReading(0.6, NOW),
    }
    result = check_correlation(readings, NOW)
    assert set(result.correlated_nodes) == {"a", "c"}


def test_threshold_is_inclusive():
    readings = {"a": RecentReading(0.5, NOW), "b": RecentReading(0.5, NOW)}
    assert check_correlation(readings, NOW).is_correlated is True
    assert check_correlation(readings, NOW, threshold_g=0.51).is_correlated is False


def test_empty_map():
    result = check_correlation({}, NOW)
    assert result.is_correlated is False
    assert result.correlated_nodes == ()


def test_purge_stale():
    readings = {
        "fresh": RecentReading(0.1, NOW - 5000),
        "stale": RecentReading(0.1, NOW - 5001),
    }
    assert purge_stale(readings, NOW, max_age_ms=5000) == 1
    assert list(readings) == ["fresh"]
