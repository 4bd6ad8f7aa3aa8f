"""Signal processor: runs readings through filter, correlate and interpret.

Per reading:

    RAW        take the reading's magnitude as-is
    FILTER     high-pass -> abs -> moving average (per-node FilterChain)
    CORRELATE  update the shared recent-readings map, check for a
               multi-node event
    INTERPRET  magnitude threshold status, plus frequency estimate,
               damage features and weighted damage score

All per-node state lives in registries owned by one SignalProcessor,
created on first reading and dropped on ``reset``. Processing is
synchronous and deterministic for a given clock.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable

import structlog

from seismos.config import AppConfig
from seismos.core.correlation import check_correlation, purge_stale
from seismos.core.damage import (
    DamageScoreCalculator,
    build_table,
    interpret_magnitude,
)
from seismos.core.features import FeatureExtractor
from seismos.core.filters import FilterChain
from seismos.core.frequency import ZeroCrossingFrequencyEstimator
from seismos.core.models import (
    CorrelationResult,
    DamageCategory,
    NodeStatus,
    PipelineResult,
    PipelineStage,
    PipelineStageStatus,
    RecentReading,
    SensorReading,
    StageState,
)

log = structlog.get_logger()

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class NodePipelineState:
    filters: FilterChain
    baseline_hz: float
    last_frequency_hz: float


@dataclass
class _Filtered:
    reading: SensorReading
    state: NodePipelineState
    filtered: float
    stages: dict[PipelineStage, StageState]


class SignalProcessor:
    """Owns every node's filter chain, frequency window and magnitude history."""

    def __init__(self, config: AppConfig | None = None, clock: Clock = wall_clock_ms) -> None:
        config = config or AppConfig()
        self._config = config
        self._clock = clock

        fc = config.frequency
        self.frequency_estimator = ZeroCrossingFrequencyEstimator(
            window_size=fc.window_size,
            sample_rate_hz=fc.sample_rate_hz,
            min_samples=fc.min_samples,
            default_hz=fc.default_hz,
            min_hz=fc.min_hz,
            max_hz=fc.max_hz,
        )
        ft = config.features
        self.feature_extractor = FeatureExtractor(
            abnormal_threshold_g=ft.abnormal_threshold_g,
            duration_window_ms=ft.duration_window_ms,
            max_samples=ft.max_samples,
            energy_ceiling_g=ft.energy_ceiling_g,
        )
        dc = config.damage
        self.damage_calculator = DamageScoreCalculator(
            weights=(dc.weight_frequency_shift, dc.weight_peak_energy, dc.weight_duration),
            scaling=(dc.scale_frequency_shift, dc.scale_peak_energy, dc.scale_duration),
            category_table=build_table(
                [dc.safe_below, dc.risky_below],
                [DamageCategory.SAFE, DamageCategory.RISKY, DamageCategory.HEAVILY_DAMAGED],
            ),
            legacy_table=build_table(
                [dc.legacy_stable_below, dc.legacy_anomaly_below,
                 dc.legacy_warning_below, dc.legacy_critical_below],
                [NodeStatus.STABLE, NodeStatus.ANOMALY, NodeStatus.WARNING,
                 NodeStatus.CRITICAL, NodeStatus.COLLAPSE],
            ),
        )
        sc = config.status
        self.status_table = build_table(
            [sc.stable_below, sc.anomaly_below, sc.warning_below],
            [NodeStatus.STABLE, NodeStatus.ANOMALY, NodeStatus.WARNING, NodeStatus.CRITICAL],
        )

        self._nodes: dict[str, NodePipelineState] = {}
        self._recent: dict[str, RecentReading] = {}

    # -- registry -----------------------------------------------------------

    def get_or_create(self, node_id: str) -> NodePipelineState:
        state = self._nodes.get(node_id)
        if state is None:
            f = self._config.filters
            state = NodePipelineState(
                filters=FilterChain(f.ma_window_size, f.hp_cutoff_hz, f.hp_sample_rate_hz),
                baseline_hz=self._config.features.baseline_frequency_hz,
                last_frequency_hz=self._config.frequency.default_hz,
            )
            self._nodes[node_id] = state
            log.debug("node_pipeline_created", node=node_id)
        return state

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def recent_readings(self) -> dict[str, RecentReading]:
        return dict(self._recent)

    def baseline(self, node_id: str) -> float:
        state = self._nodes.get(node_id)
        return state.baseline_hz if state else self._config.features.baseline_frequency_hz

    def set_baseline(self, node_id: str, frequency_hz: float) -> None:
        if frequency_hz <= 0:
            raise ValueError(f"baseline frequency must be positive, got {frequency_hz}")
        self.get_or_create(node_id).baseline_hz = frequency_hz

    def calibrate_baselines(self) -> dict[str, float]:
        """Adopt each node's current frequency estimate as its baseline.

        Call during a known-stable period.
        """
        baselines = {}
        for node_id, state in self._nodes.items():
            state.baseline_hz = state.last_frequency_hz
            baselines[node_id] = state.baseline_hz
        log.info("baselines_calibrated", nodes=len(baselines))
        return baselines

    # -- processing ---------------------------------------------------------

    def process(self, reading: SensorReading) -> PipelineResult:
        """Process a single reading; correlation sees every node's latest entry."""
        item = self._filter(reading)
        correlation = self._correlate(reading.timestamp_ms)
        item.stages[PipelineStage.CORRELATE] = self._done()
        return self._interpret(item, correlation)

    def process_tick(self, readings: Iterable[SensorReading]) -> list[PipelineResult]:
        """Process one tick's readings, one per node.

        All readings are filtered before a single correlation check, so every
        node in the tick sees the same event.
        """
        items = [self._filter(r) for r in readings]
        if not items:
            return []

        now_ms = max(item.reading.timestamp_ms for item in items)
        correlation = self._correlate(now_ms)
        for item in items:
            item.stages[PipelineStage.CORRELATE] = self._done()

        if correlation.is_correlated:
            log.info("correlated_event", event_id=correlation.event_id,
                     nodes=len(correlation.correlated_nodes))
        return [self._interpret(item, correlation) for item in items]

    def _done(self) -> StageState:
        return StageState(PipelineStageStatus.COMPLETE, self._clock())

    def _filter(self, reading: SensorReading) -> _Filtered:
        stages = {stage: StageState() for stage in PipelineStage}
        stages[PipelineStage.RAW] = self._done()

        state = self.get_or_create(reading.node_id)
        filtered = state.filters.apply(reading.magnitude)
        stages[PipelineStage.FILTER] = self._done()

        self._recent[reading.node_id] = RecentReading(filtered, reading.timestamp_ms)
        return _Filtered(reading, state, filtered, stages)

    def _correlate(self, now_ms: int) -> CorrelationResult:
        cc = self._config.correlation
        purge_stale(self._recent, now_ms, cc.max_age_ms)
        return check_correlation(self._recent, now_ms, cc.threshold_g, cc.window_ms)

    def _interpret(self, item: _Filtered, correlation: CorrelationResult) -> PipelineResult:
        reading = item.reading
        status = interpret_magnitude(item.filtered, self.status_table)

        frequency = self.frequency_estimator.estimate(reading.node_id, reading.magnitude)
        item.state.last_frequency_hz = frequency
        features = self.feature_extractor.extract(
            reading.node_id, item.filtered, frequency, item.state.baseline_hz, reading.timestamp_ms,
        )
        damage = self.damage_calculator.calculate(features)
        item.stages[PipelineStage.INTERPRET] = self._done()

        log.debug("reading_processed", node=reading.node_id,
                  filtered=round(item.filtered, 4), status=status.value, score=damage.score)

        return PipelineResult(
            reading=reading,
            raw_magnitude=reading.magnitude,
            filtered_magnitude=item.filtered,
            is_correlated=correlation.is_correlated,
            correlated_nodes=correlation.correlated_nodes,
            status=status,
            stages=item.stages,
            damage_score=damage,
            event_id=correlation.event_id,
        )

    def clear_old_readings(self, max_age_ms: int | None = None, now_ms: int | None = None) -> int:
        if max_age_ms is None:
            max_age_ms = self._config.correlation.max_age_ms
        if now_ms is None:
            now_ms = self._clock()
        return purge_stale(self._recent, now_ms, max_age_ms)

    def reset(self, node_id: str | None = None) -> None:
        if node_id is None:
            self._nodes.clear()
            self._recent.clear()
        else:
            self._nodes.pop(node_id, None)
            self._recent.pop(node_id, None)
        self.frequency_estimator.reset(node_id)
        self.feature_extractor.reset(node_id)
