"""Implicit Node Silence Detection (INSD).

A node that stops reporting cannot be asked whether it collapsed. Instead
its neighbourhood is examined through three independent channels:

1. Event correlation: at least ``n_min`` neighbours report a seismic event
   and the strongest of them reaches ``event_threshold_g``.
2. Heartbeat continuity: the node itself has been silent for at least
   ``heartbeat_timeout_ms``.
3. Neighbourhood anomaly: the mean damage score of reporting neighbours
   reaches ``anomaly_threshold``, or a neighbour flags a stiffness shift.

    1 and 2 and 3  -> PROBABLE_COLLAPSE
    1 and 2        -> SILENT_UNDER_REVIEW
    otherwise      -> NO_CONFIRMED_FAILURE

The four thresholds have no defaults and must come from configuration.
Decisions are re-evaluated every tick; nothing latches.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Mapping

import structlog

if TYPE_CHECKING:
    from seismos.config import InsdConfig
    from seismos.core.models import Node

log = structlog.get_logger()

# Earth radius in meters (for Haversine).
_EARTH_R = 6_371_000.0


class InsdDecision(str, Enum):
    PROBABLE_COLLAPSE = "PROBABLE_COLLAPSE"
    SILENT_UNDER_REVIEW = "SILENT_UNDER_REVIEW"
    NO_CONFIRMED_FAILURE = "NO_CONFIRMED_FAILURE"


class ObservedStatus(str, Enum):
    NORMAL = "NORMAL"
    ACTIVELY_REPORTING = "ACTIVELY_REPORTING"
    SILENT = "SILENT"
    SILENT_UNDER_REVIEW = "SILENT_UNDER_REVIEW"
    PROBABLE_COLLAPSE = "PROBABLE_COLLAPSE"


@dataclass(frozen=True)
class InsdThresholds:
    n_min: int
    event_threshold_g: float
    heartbeat_timeout_ms: int
    anomaly_threshold: float
    stiffness_shift_pct: float = 10.0

    def __post_init__(self) -> None:
        if self.n_min < 1:
            raise ValueError(f"n_min must be >= 1, got {self.n_min}")
        if self.event_threshold_g < 0 or self.anomaly_threshold < 0:
            raise ValueError("INSD thresholds must be non-negative")
        if self.heartbeat_timeout_ms <= 0:
            raise ValueError(f"heartbeat_timeout_ms must be positive, got {self.heartbeat_timeout_ms}")

    @classmethod
    def from_config(cls, config: InsdConfig) -> InsdThresholds | None:
        """Build thresholds, or None while any required value is unset."""
        if not config.is_configured:
            return None
        return cls(
            n_min=int(config.n_min),
            event_threshold_g=float(config.event_threshold_g),
            heartbeat_timeout_ms=int(config.heartbeat_timeout_ms),
            anomaly_threshold=float(config.anomaly_threshold),
            stiffness_shift_pct=float(config.stiffness_shift_pct),
        )


@dataclass(frozen=True)
class NeighborEvidence:
    """Latest processed report of a node, as seen by its neighbours."""
    magnitude: float
    timestamp_ms: int
    damage_score: int = 0
    frequency_shift: float = 0.0


@dataclass(frozen=True)
class InsdAssessment:
    node_id: str
    event_correlated: bool
    heartbeat_lost: bool
    neighbor_anomaly: bool
    decision: InsdDecision
    observed_status: ObservedStatus
    reporting_neighbors: int
    event_intensity: float
    anomaly_level: float
    silent_for_ms: int

    def to_dict(self) -> dict:
        return {
            "node_id": self.node_id,
            "stages": {
                "event_correlation": self.event_correlated,
                "heartbeat_lost": self.heartbeat_lost,
                "neighbor_anomaly": self.neighbor_anomaly,
            },
            "decision": self.decision.value,
            "observed_status": self.observed_status.value,
            "reporting_neighbors": self.reporting_neighbors,
            "event_intensity": round(self.event_intensity, 4),
            "anomaly_level": round(self.anomaly_level, 2),
            "silent_for_ms": self.silent_for_ms,
        }


def decide(event_correlated: bool, heartbeat_lost: bool, neighbor_anomaly: bool) -> InsdDecision:
    if event_correlated and heartbeat_lost and neighbor_anomaly:
        return InsdDecision.PROBABLE_COLLAPSE
    if event_correlated and heartbeat_lost:
        return InsdDecision.SILENT_UNDER_REVIEW
    return InsdDecision.NO_CONFIRMED_FAILURE


def _haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two points."""
    rlat1, rlat2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    return 2 * _EARTH_R * math.asin(math.sqrt(a))


def reporting_neighbors(
    neighbors: Iterable[NeighborEvidence],
    now_ms: int,
    report_threshold_g: float,
    window_ms: int,
) -> list[NeighborEvidence]:
    """Neighbours whose latest reading is a seismic report inside the window."""
    return [
        n for n in neighbors
        if now_ms - n.timestamp_ms <= window_ms and n.magnitude >= report_threshold_g
    ]


def event_correlation_stage(
    neighbors: Iterable[NeighborEvidence],
    now_ms: int,
    thresholds: InsdThresholds,
    report_threshold_g: float,
    window_ms: int,
) -> tuple[bool, int, float]:
    """Stage 1. Returns (passed, neighbours reporting an event, peak intensity)."""
    reporting = [
        n.magnitude for n in reporting_neighbors(neighbors, now_ms, report_threshold_g, window_ms)
    ]
    intensity = max(reporting, default=0.0)
    passed = len(reporting) >= thresholds.n_min and intensity >= thresholds.event_threshold_g
    return passed, len(reporting), intensity


def heartbeat_stage(last_seen_ms: int | None, now_ms: int, thresholds: InsdThresholds) -> bool:
    """Stage 2. A node never heard from has, by definition, no continuity."""
    if last_seen_ms is None:
        return True
    return now_ms - last_seen_ms >= thresholds.heartbeat_timeout_ms


def neighbor_anomaly_stage(
    neighbors: Iterable[NeighborEvidence],
    thresholds: InsdThresholds,
    stiffness_candidates: Iterable[NeighborEvidence] | None = None,
) -> tuple[bool, float]:
    """Stage 3. Returns (passed, mean neighbour damage score).

    ``neighbors`` are the reporting neighbours the mean is taken over. The
    stiffness flag is checked on ``stiffness_candidates`` (default: the same
    neighbours).
    """
    neighbors = list(neighbors)
    candidates = neighbors if stiffness_candidates is None else list(stiffness_candidates)
    anomaly = sum(n.damage_score for n in neighbors) / len(neighbors) if neighbors else 0.0
    stiffness_flag = any(n.frequency_shift >= thresholds.stiffness_shift_pct for n in candidates)
    return anomaly >= thresholds.anomaly_threshold or stiffness_flag, anomaly


class SilenceDetector:
    """Heartbeat bookkeeping plus per-node INSD evaluation.

    Neighbourhoods are fixed when nodes are registered: every other node
    within ``neighbor_radius_m``.
    """

    def __init__(
        self,
        thresholds: InsdThresholds,
        neighbor_radius_m: float = 250.0,
        silence_grace_ms: int = 1000,
        report_threshold_g: float = 0.5,
        event_window_ms: int = 500,
    ) -> None:
        self.thresholds = thresholds
        self.neighbor_radius_m = neighbor_radius_m
        self.silence_grace_ms = silence_grace_ms
        self.report_threshold_g = report_threshold_g
        self.event_window_ms = event_window_ms
        self._neighbors: dict[str, tuple[str, ...]] = {}
        self._last_seen: dict[str, int] = {}

    def register(self, nodes: Iterable[Node], now_ms: int) -> None:
        """Register nodes and start their heartbeat clocks at ``now_ms``."""
        nodes = list(nodes)
        for node in nodes:
            self._neighbors[node.id] = tuple(
                other.id for other in nodes
                if other.id != node.id
                and _haversine_m(node.lat, node.lng, other.lat, other.lng) <= self.neighbor_radius_m
            )
            self._last_seen[node.id] = now_ms
        log.debug("insd_nodes_registered", count=len(nodes))

    def neighbors(self, node_id: str) -> tuple[str, ...]:
        return self._neighbors.get(node_id, ())

    def record_heartbeat(self, node_id: str, timestamp_ms: int) -> None:
        if timestamp_ms > self._last_seen.get(node_id, -1):
            self._last_seen[node_id] = timestamp_ms

    def last_seen(self, node_id: str) -> int | None:
        return self._last_seen.get(node_id)

    def assess(
        self,
        node_id: str,
        evidence: Mapping[str, NeighborEvidence],
        now_ms: int,
    ) -> InsdAssessment:
        th = self.thresholds
        neighbor_evidence = [evidence[n] for n in self.neighbors(node_id) if n in evidence]
        # The anomaly mean covers reporting neighbours only; any live one may flag stiffness.
        reporting_evidence = reporting_neighbors(
            neighbor_evidence, now_ms, self.report_threshold_g, self.event_window_ms,
        )
        live = [n for n in neighbor_evidence if now_ms - n.timestamp_ms < th.heartbeat_timeout_ms]

        stage1, reporting, intensity = event_correlation_stage(
            neighbor_evidence, now_ms, th, self.report_threshold_g, self.event_window_ms,
        )
        last_seen = self.last_seen(node_id)
        stage2 = heartbeat_stage(last_seen, now_ms, th)
        stage3, anomaly = neighbor_anomaly_stage(reporting_evidence, th, live)
        decision = decide(stage1, stage2, stage3)

        silent_for = now_ms - last_seen if last_seen is not None else now_ms
        if decision is InsdDecision.PROBABLE_COLLAPSE:
            observed = ObservedStatus.PROBABLE_COLLAPSE
        elif decision is InsdDecision.SILENT_UNDER_REVIEW:
            observed = ObservedStatus.SILENT_UNDER_REVIEW
        elif silent_for >= self.silence_grace_ms:
            observed = ObservedStatus.SILENT
        elif stage1:
            observed = ObservedStatus.ACTIVELY_REPORTING
        else:
            observed = ObservedStatus.NORMAL

        return InsdAssessment(
            node_id=node_id,
            event_correlated=stage1,
            heartbeat_lost=stage2,
            neighbor_anomaly=stage3,
            decision=decision,
            observed_status=observed,
            reporting_neighbors=reporting,
            event_intensity=intensity,
            anomaly_level=anomaly,
            silent_for_ms=silent_for,
        )

    def assess_all(
        self,
        evidence: Mapping[str, NeighborEvidence],
        now_ms: int,
    ) -> dict[str, InsdAssessment]:
        return {nid: self.assess(nid, evidence, now_ms) for nid in self._neighbors}

    def reset(self, now_ms: int) -> None:
        """Restart every registered node's heartbeat clock."""
        for nid in self._last_seen:
            self._last_seen[nid] = now_ms
