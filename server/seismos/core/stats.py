"""Pipeline statistics and active-node tracking.

Tracks in-memory counters and a sliding window of nodes that reported
recently. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class NodeActivity:
    """Tracks a single node's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    readings: int = 0
    peak_magnitude: float = 0.0


class PipelineStats:
    """Thread-safe pipeline counters.

    A node is "active" if it delivered a reading within
    ``active_window_seconds``.
    """

    def __init__(self, active_window_seconds: float = 10.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.ticks_processed: int = 0
        self.readings_processed: int = 0
        self.correlated_events: int = 0
        self.status_changes: int = 0
        self.insd_overrides: int = 0
        self.earthquakes_triggered: int = 0
        self.resets: int = 0

        # Node tracking: node_id → NodeActivity
        self._nodes: dict[str, NodeActivity] = {}
        self._last_event_id: str | None = None

    def record_reading(self, node_id: str, magnitude: float) -> None:
        now = time.monotonic()
        with self._lock:
            self.readings_processed += 1
            if node_id in self._nodes:
                node = self._nodes[node_id]
                node.last_seen = now
                node.readings += 1
                node.peak_magnitude = max(node.peak_magnitude, magnitude)
            else:
                self._nodes[node_id] = NodeActivity(
                    last_seen=now, readings=1, peak_magnitude=magnitude,
                )

    def record_tick(self, event_id: str | None = None) -> None:
        with self._lock:
            self.ticks_processed += 1
            # One correlated event spans many ticks; count distinct ids only.
            if event_id is not None and event_id != self._last_event_id:
                self.correlated_events += 1
                self._last_event_id = event_id

    def record_status_change(self, count: int = 1) -> None:
        with self._lock:
            self.status_changes += count

    def record_insd_override(self, count: int = 1) -> None:
        with self._lock:
            self.insd_overrides += count

    def record_earthquake(self) -> None:
        with self._lock:
            self.earthquakes_triggered += 1

    def record_reset(self) -> None:
        with self._lock:
            self.resets += 1
            self._nodes.clear()

    def _prune_stale_nodes(self, now: float) -> None:
        """Remove nodes not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [nid for nid, node in self._nodes.items() if node.last_seen < cutoff]
        for nid in stale:
            del self._nodes[nid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_nodes(now_mono)
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "ticks_processed": self.ticks_processed,
                "readings_processed": self.readings_processed,
                "correlated_events": self.correlated_events,
                "status_changes": self.status_changes,
                "insd_overrides": self.insd_overrides,
                "earthquakes_triggered": self.earthquakes_triggered,
                "resets": self.resets,
                "active_nodes": {
                    "total": len(self._nodes),
                    "window_seconds": self._active_window,
                },
            }
