"""Synthetic accelerometer traffic for the demo district.

Two independent timers feed the pipeline:

- background: near-zero noise on every node (idle building sway)
- earthquake: a finite event whose amplitude follows a sin(progress * pi)
  envelope, attenuated with distance from the epicentre

Nodes whose local intensity exceeds ``collapse_intensity_g`` go silent for
the rest of the session, which is what INSD is there to notice.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import structlog

from seismos.config import SimulatorConfig
from seismos.core.models import Node, SensorReading
from seismos.core.pipeline import wall_clock_ms

if TYPE_CHECKING:
    from seismos.core.pipeline import Clock
    from seismos.simulator.scheduler import Scheduler
    from seismos.simulator.sources import NoiseSource

log = structlog.get_logger()

BACKGROUND = "background"
EARTHQUAKE = "earthquake"

ReadingsCallback = Callable[[list[SensorReading]], None]


@dataclass(frozen=True)
class EarthquakeConfig:
    intensity: float        # g, 0.5 - 2.0
    duration_ms: int        # 5000 - 15000
    epicenter_lat: float
    epicenter_lng: float
    collapse_intensity_g: float | None = None

    def __post_init__(self) -> None:
        if not 0.5 <= self.intensity <= 2.0:
            raise ValueError(f"intensity must be within 0.5-2.0 g, got {self.intensity}")
        if not 5000 <= self.duration_ms <= 15000:
            raise ValueError(f"duration_ms must be within 5000-15000, got {self.duration_ms}")
        if self.collapse_intensity_g is not None and self.collapse_intensity_g <= 0:
            raise ValueError("collapse_intensity_g must be positive")


def generate_demo_nodes(config: SimulatorConfig, source: NoiseSource) -> list[Node]:
    """Scatter ``node_count`` simulated buildings over the bounding box."""
    nodes = []
    for i in range(1, config.node_count + 1):
        nodes.append(Node(
            id=f"node-{i}",
            name=f"Bina {i}",
            lat=config.min_lat + source.uniform() * (config.max_lat - config.min_lat),
            lng=config.min_lng + source.uniform() * (config.max_lng - config.min_lng),
            is_physical=False,
        ))
    return nodes


class EarthquakeSimulator:
    def __init__(
        self,
        nodes: list[Node],
        config: SimulatorConfig,
        scheduler: Scheduler,
        source: NoiseSource,
        clock: Clock = wall_clock_ms,
    ) -> None:
        self.nodes = nodes
        self.config = config
        self.scheduler = scheduler
        self.source = source
        self._clock = clock

        self._on_readings: ReadingsCallback | None = None
        self._quake: EarthquakeConfig | None = None
        self._tick_count = 0
        self._total_ticks = 0
        self._on_progress: Callable[[float], None] | None = None
        self._on_complete: Callable[[], None] | None = None
        self.silenced: set[str] = set()

    @property
    def running(self) -> bool:
        return self.scheduler.is_active(BACKGROUND)

    @property
    def earthquake_active(self) -> bool:
        return self._quake is not None

    # -- lifecycle ----------------------------------------------------------

    def start(self, on_readings: ReadingsCallback) -> bool:
        """Start the background cadence. Returns False if already running."""
        self._on_readings = on_readings
        started = self.scheduler.start(BACKGROUND, self.config.background_interval_ms,
                                       self.tick_background)
        if started:
            log.info("simulation_started", nodes=len(self.nodes),
                     interval_ms=self.config.background_interval_ms)
        return started

    def stop(self) -> None:
        """Cancel every simulator timer, including a running earthquake."""
        self.scheduler.stop(BACKGROUND)
        self.cancel_earthquake()
        log.info("simulation_stopped")

    def cancel_earthquake(self) -> bool:
        """Abort a running earthquake without firing its completion callback."""
        self.scheduler.stop(EARTHQUAKE)
        if self._quake is None:
            return False
        self._quake = None
        log.info("earthquake_cancelled", ticks=self._tick_count)
        return True

    def reset(self) -> None:
        """Bring silenced nodes back online."""
        self.silenced.clear()

    def trigger_earthquake(
        self,
        quake: EarthquakeConfig,
        on_progress: Callable[[float], None] | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> bool:
        """Start an earthquake. Returns False if one is already in progress."""
        if self.earthquake_active:
            log.warning("earthquake_already_active")
            return False

        self._quake = quake
        self._tick_count = 0
        self._total_ticks = max(1, quake.duration_ms // self.config.earthquake_tick_ms)
        self._on_progress = on_progress
        self._on_complete = on_complete

        started = self.scheduler.start(EARTHQUAKE, self.config.earthquake_tick_ms, self.tick_earthquake)
        if not started:
            self._quake = None
            return False
        log.info("earthquake_triggered", intensity=quake.intensity, duration_ms=quake.duration_ms,
                 epicenter=(quake.epicenter_lat, quake.epicenter_lng))
        return True

    # -- ticks --------------------------------------------------------------

    def _emit(self, readings: list[SensorReading]) -> None:
        if self._on_readings is not None and readings:
            self._on_readings(readings)

    def tick_background(self) -> list[SensorReading]:
        # The earthquake timer owns the cadence while an event is running.
        if self.earthquake_active:
            return []
        noise = self.config.background_noise_g
        now_ms = self._clock()
        readings = [
            SensorReading.from_axes(
                node.id,
                (self.source.uniform() - 0.5) * noise,
                (self.source.uniform() - 0.5) * noise,
                (self.source.uniform() - 0.5) * noise,
                now_ms,
            )
            for node in self.nodes
            if node.id not in self.silenced
        ]
        self._emit(readings)
        return readings

    def tick_earthquake(self) -> list[SensorReading]:
        quake = self._quake
        if quake is None:
            return []

        self._tick_count += 1
        progress = min(100.0, self._tick_count / self._total_ticks * 100)
        if self._on_progress is not None:
            self._on_progress(progress)

        readings = self.earthquake_readings(quake, self._tick_count / self._total_ticks, self._clock())
        self._emit(readings)

        if self._tick_count >= self._total_ticks:
            self.scheduler.stop(EARTHQUAKE)
            self._quake = None
            log.info("earthquake_complete", ticks=self._tick_count, silenced=len(self.silenced))
            if self._on_complete is not None:
                self._on_complete()
        return readings

    def local_intensity(self, node: Node, quake: EarthquakeConfig, progress: float) -> float:
        """Envelope x distance attenuation x random factor, before axis split."""
        envelope = math.sin(progress * math.pi)
        distance = math.hypot(node.lat - quake.epicenter_lat, node.lng - quake.epicenter_lng)
        distance_factor = max(0.3, 1 - distance * 50)
        random_factor = 0.5 + self.source.uniform()
        return quake.intensity * envelope * distance_factor * random_factor

    def earthquake_readings(self, quake: EarthquakeConfig, progress: float,
                            now_ms: int) -> list[SensorReading]:
        readings = []
        for node in self.nodes:
            if node.id in self.silenced:
                continue
            intensity = self.local_intensity(node, quake, progress)
            if quake.collapse_intensity_g is not None and intensity >= quake.collapse_intensity_g:
                self.silenced.add(node.id)
                log.info("node_silenced", node=node.id, intensity=round(intensity, 3))
                continue
            readings.append(SensorReading.from_axes(
                node.id,
                (self.source.uniform() - 0.5) * intensity,
                (self.source.uniform() - 0.5) * intensity,
                (self.source.uniform() - 0.5) * intensity + intensity * 0.3,
                now_ms,
            ))
        return readings
