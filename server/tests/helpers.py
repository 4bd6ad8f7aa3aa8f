"""Test helpers shared across modules."""

from __future__ import annotations

from seismos.core.models import Node, SensorReading


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> int:
        self.now_ms += ms
        return self.now_ms


def make_reading(node_id: str, magnitude: float, timestamp_ms: int) -> SensorReading:
    """Reading whose whole magnitude sits on the z axis."""
    return SensorReading.from_axes(node_id, 0.0, 0.0, magnitude, timestamp_ms)


def cluster_nodes(*ids: str) -> list[Node]:
    """Nodes roughly 33 m apart, all within each other's default neighbourhood."""
    return [
        Node(id=nid, name=f"Bina {i + 1}", lat=41.0290 + i * 0.0003, lng=28.9470)
        for i, nid in enumerate(ids)
    ]
