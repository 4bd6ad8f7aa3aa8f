"""Node store the dashboard reads from.

Feeds each tick through the SignalProcessor, keeps the latest reading,
result and damage score per node, applies INSD overrides to silent nodes and
maintains the building summary and the global pipeline stage board.

Single owner: every mutation happens on the event loop that drives the
simulator, so there is no locking here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

import structlog

from seismos.core.damage import build_table, classify
from seismos.core.insd import InsdAssessment, NeighborEvidence, ObservedStatus
from seismos.core.models import (
    Node,
    NodeStatus,
    PipelineResult,
    PipelineStage,
    PipelineStageStatus,
    SensorReading,
    StageState,
)
from seismos.core.pipeline import wall_clock_ms

if TYPE_CHECKING:
    from seismos.core.insd import SilenceDetector
    from seismos.core.pipeline import Clock, SignalProcessor
    from seismos.core.stats import PipelineStats

log = structlog.get_logger()

# Damage score bands for the building summary.
SUMMARY_TABLE = build_table([30, 70, 90], ["safe", "damaged", "critical", "collapsed"])

# Node status forced onto a silent node by INSD.
INSD_OVERRIDES = {
    ObservedStatus.PROBABLE_COLLAPSE: NodeStatus.COLLAPSE,
    ObservedStatus.SILENT_UNDER_REVIEW: NodeStatus.CRITICAL,
}


@dataclass
class BuildingSummary:
    safe: int = 0
    damaged: int = 0
    critical: int = 0
    collapsed: int = 0

    def to_dict(self) -> dict:
        return {
            "safe": self.safe,
            "damaged": self.damaged,
            "critical": self.critical,
            "collapsed": self.collapsed,
        }


class MonitoringService:
    def __init__(
        self,
        processor: SignalProcessor,
        stats: PipelineStats,
        detector: SilenceDetector | None = None,
        clock: Clock = wall_clock_ms,
    ) -> None:
        self.processor = processor
        self.stats = stats
        self.detector = detector
        self._clock = clock

        self._nodes: dict[str, Node] = {}
        self._latest_readings: dict[str, SensorReading] = {}
        self._results: dict[str, PipelineResult] = {}
        self._assessments: dict[str, InsdAssessment] = {}
        self._stages: dict[PipelineStage, StageState] = {s: StageState() for s in PipelineStage}

        self.peak_magnitude = 0.0
        self.earthquake_active = False
        self.earthquake_progress = 0.0

    # -- nodes --------------------------------------------------------------

    def set_nodes(self, nodes: Iterable[Node]) -> None:
        self._nodes = {n.id: n for n in nodes}
        if self.detector is not None:
            self.detector.register(self._nodes.values(), self._clock())
        log.info("nodes_registered", count=len(self._nodes),
                 insd_enabled=self.detector is not None)

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def result(self, node_id: str) -> PipelineResult | None:
        return self._results.get(node_id)

    def latest_reading(self, node_id: str) -> SensorReading | None:
        return self._latest_readings.get(node_id)

    def assessment(self, node_id: str) -> InsdAssessment | None:
        return self._assessments.get(node_id)

    # -- ingestion ----------------------------------------------------------

    def ingest_tick(self, readings: Iterable[SensorReading]) -> list[PipelineResult]:
        """Run one tick of readings through the pipeline and update the store."""
        readings = list(readings)
        if not readings:
            return []

        self._stages[PipelineStage.RAW] = StageState(PipelineStageStatus.PROCESSING, self._clock())
        for reading in readings:
            self._latest_readings[reading.node_id] = reading
            self.peak_magnitude = max(self.peak_magnitude, reading.magnitude)
            if self.detector is not None:
                self.detector.record_heartbeat(reading.node_id, reading.timestamp_ms)

        results = self.processor.process_tick(readings)
        for result in results:
            node_id = result.reading.node_id
            self._results[node_id] = result
            self.stats.record_reading(node_id, result.raw_magnitude)
            self._stages.update(result.stages)
            self._apply_status(node_id)

        self.stats.record_tick(results[-1].event_id)
        self.update_signal_loss(max(r.timestamp_ms for r in readings))
        return results

    def record_heartbeat(self, node_id: str, timestamp_ms: int | None = None) -> None:
        """Liveness ping without a reading."""
        if self.detector is not None:
            self.detector.record_heartbeat(node_id, timestamp_ms if timestamp_ms is not None else self._clock())

    def update_signal_loss(self, now_ms: int | None = None) -> dict[str, InsdAssessment]:
        """Re-run INSD for every node and apply or lift status overrides."""
        if self.detector is None:
            return {}
        if now_ms is None:
            now_ms = self._clock()

        evidence = {
            node_id: NeighborEvidence(
                magnitude=r.filtered_magnitude,
                timestamp_ms=r.reading.timestamp_ms,
                damage_score=r.damage_score.score,
                frequency_shift=r.damage_score.features.frequency_shift,
            )
            for node_id, r in self._results.items()
        }
        assessments = self.detector.assess_all(evidence, now_ms)

        overrides = 0
        for node_id, assessment in assessments.items():
            previous = self._assessments.get(node_id)
            if previous is None or previous.decision is not assessment.decision:
                log.info("insd_decision", node=node_id,
                         decision=assessment.decision.value,
                         observed=assessment.observed_status.value,
                         neighbors=assessment.reporting_neighbors,
                         anomaly=round(assessment.anomaly_level, 1))
            self._assessments[node_id] = assessment
            if assessment.observed_status in INSD_OVERRIDES:
                overrides += 1
            self._apply_status(node_id)

        if overrides:
            self.stats.record_insd_override(overrides)
        return assessments

    def _apply_status(self, node_id: str) -> None:
        node = self._nodes.get(node_id)
        if node is None:
            return

        assessment = self._assessments.get(node_id)
        result = self._results.get(node_id)
        if assessment is not None and assessment.observed_status in INSD_OVERRIDES:
            status = INSD_OVERRIDES[assessment.observed_status]
        elif result is not None:
            status = result.status
        else:
            status = NodeStatus.STABLE

        if node.status is not status:
            log.debug("node_status_changed", node=node_id,
                      old=node.status.value, new=status.value)
            node.status = status
            self.stats.record_status_change()

    # -- earthquake state ---------------------------------------------------

    def set_earthquake_active(self, active: bool) -> None:
        self.earthquake_active = active
        self.earthquake_progress = 0.0 if active else 100.0

    def set_earthquake_progress(self, progress: float) -> None:
        self.earthquake_progress = progress

    # -- views --------------------------------------------------------------

    def summary(self) -> BuildingSummary:
        counts = BuildingSummary()
        for result in self._results.values():
            band = classify(result.damage_score.score, SUMMARY_TABLE)
            setattr(counts, band, getattr(counts, band) + 1)
        # Nodes that never produced a result count as safe.
        counts.safe += sum(1 for nid in self._nodes if nid not in self._results)
        return counts

    def pipeline_stages(self) -> dict[str, dict]:
        return {
            stage.value: {"status": s.status.value, "timestamp_ms": s.timestamp_ms}
            for stage, s in self._stages.items()
        }

    def reset_to_safe(self) -> None:
        """Force every node back to stable and drop all processing state."""
        for node in self._nodes.values():
            node.status = NodeStatus.STABLE
        self._latest_readings.clear()
        self._results.clear()
        self._assessments.clear()
        self._stages = {s: StageState() for s in PipelineStage}
        self.processor.reset()
        if self.detector is not None:
            self.detector.reset(self._clock())
        self.peak_magnitude = 0.0
        self.earthquake_active = False
        self.earthquake_progress = 0.0
        self.stats.record_reset()
        log.info("reset_to_safe", nodes=len(self._nodes))
