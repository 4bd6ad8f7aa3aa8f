"""Seismos — core internal data models.

These are plain dataclasses with no framework dependencies.
The HTTP layer converts them to JSON at the boundary via ``to_dict``.

Timestamps are integer epoch milliseconds throughout.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum


class NodeStatus(str, Enum):
    """Colour-coded status of a building node."""
    STABLE = "stable"
    ANOMALY = "anomaly"
    WARNING = "warning"
    CRITICAL = "critical"
    COLLAPSE = "collapse"


class DamageCategory(str, Enum):
    SAFE = "safe"
    RISKY = "risky"
    HEAVILY_DAMAGED = "heavily_damaged"

    @property
    def label(self) -> str:
        """Turkish label shown on the dashboard."""
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    DamageCategory.SAFE: "Güvenli",
    DamageCategory.RISKY: "Riskli",
    DamageCategory.HEAVILY_DAMAGED: "Ağır Hasarlı",
}


class PipelineStage(str, Enum):
    RAW = "raw"
    FILTER = "filter"
    CORRELATE = "correlate"
    INTERPRET = "interpret"


class PipelineStageStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"  # reserved for hardware faults; never set by the pipeline


@dataclass(frozen=True)
class SensorReading:
    """One accelerometer sample. Precondition: ``node_id`` is non-empty."""
    node_id: str
    accel_x: float
    accel_y: float
    accel_z: float
    magnitude: float
    timestamp_ms: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_axes(cls, node_id: str, accel_x: float, accel_y: float,
                  accel_z: float, timestamp_ms: int) -> SensorReading:
        magnitude = math.sqrt(accel_x ** 2 + accel_y ** 2 + accel_z ** 2)
        return cls(
            node_id=node_id,
            accel_x=accel_x,
            accel_y=accel_y,
            accel_z=accel_z,
            magnitude=magnitude,
            timestamp_ms=timestamp_ms,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "accel_x": self.accel_x,
            "accel_y": self.accel_y,
            "accel_z": self.accel_z,
            "magnitude": self.magnitude,
            "timestamp_ms": self.timestamp_ms,
        }


@dataclass
class Node:
    id: str
    name: str
    lat: float
    lng: float
    status: NodeStatus = NodeStatus.STABLE
    is_physical: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "lat": self.lat,
            "lng": self.lng,
            "is_physical": self.is_physical,
        }


@dataclass(frozen=True)
class DamageFeatures:
    frequency_shift: float      # % drop from baseline, positive = stiffness loss
    peak_energy: float          # 0-1
    abnormal_duration: float    # seconds within the sliding window
    current_frequency: float    # Hz
    baseline_frequency: float   # Hz

    def to_dict(self) -> dict:
        return {
            "frequency_shift": round(self.frequency_shift, 3),
            "peak_energy": round(self.peak_energy, 4),
            "abnormal_duration": round(self.abnormal_duration, 3),
            "current_frequency": round(self.current_frequency, 3),
            "baseline_frequency": round(self.baseline_frequency, 3),
        }


@dataclass(frozen=True)
class ComponentScores:
    frequency_shift_score: int
    peak_energy_score: int
    duration_score: int


@dataclass(frozen=True)
class DamageScore:
    score: int
    category: DamageCategory
    components: ComponentScores
    features: DamageFeatures
    legacy_status: NodeStatus

    @property
    def category_label(self) -> str:
        return self.category.label

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "category": self.category.value,
            "category_label": self.category_label,
            "components": {
                "frequency_shift_score": self.components.frequency_shift_score,
                "peak_energy_score": self.components.peak_energy_score,
                "duration_score": self.components.duration_score,
            },
            "features": self.features.to_dict(),
            "legacy_status": self.legacy_status.value,
        }


@dataclass(frozen=True)
class RecentReading:
    """Latest filtered magnitude of a node, as seen by the correlation engine."""
    magnitude: float
    timestamp_ms: int


@dataclass(frozen=True)
class CorrelationResult:
    is_correlated: bool
    correlated_nodes: tuple[str, ...] = ()
    event_id: str | None = None


@dataclass(frozen=True)
class StageState:
    status: PipelineStageStatus = PipelineStageStatus.IDLE
    timestamp_ms: int = 0

    @property
    def complete(self) -> bool:
        return self.status is PipelineStageStatus.COMPLETE


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one reading through the pipeline.

    ``status`` is the raw magnitude-threshold status of the filtered signal.
    ``damage_score`` is the separate weighted assessment; the two are never
    merged.
    """
    reading: SensorReading
    raw_magnitude: float
    filtered_magnitude: float
    is_correlated: bool
    correlated_nodes: tuple[str, ...]
    status: NodeStatus
    stages: dict[PipelineStage, StageState]
    damage_score: DamageScore
    event_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "reading": self.reading.to_dict(),
            "raw_magnitude": self.raw_magnitude,
            "filtered_magnitude": self.filtered_magnitude,
            "is_correlated": self.is_correlated,
            "correlated_nodes": list(self.correlated_nodes),
            "event_id": self.event_id,
            "status": self.status.value,
            "stages": {
                stage.value: {"status": s.status.value, "timestamp_ms": s.timestamp_ms}
                for stage, s in self.stages.items()
            },
            "damage_score": self.damage_score.to_dict(),
        }
