"""Seismos server — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core pipeline, the simulator and the API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from seismos.api.monitoring import router as monitoring_router
from seismos.api.nodes import router as nodes_router
from seismos.api.simulation import router as simulation_router
from seismos.config import AppConfig, load_config
from seismos.core.insd import InsdThresholds, SilenceDetector
from seismos.core.monitor import MonitoringService
from seismos.core.pipeline import SignalProcessor
from seismos.core.stats import PipelineStats
from seismos.simulator.earthquake import EarthquakeSimulator, generate_demo_nodes
from seismos.simulator.scheduler import Scheduler
from seismos.simulator.sources import RandomNoiseSource

log = structlog.get_logger()

SIGNAL_CHECK = "signal_check"
SIGNAL_CHECK_INTERVAL_MS = 1000

# Module-level singletons (set during startup)
_monitor: MonitoringService | None = None
_simulator: EarthquakeSimulator | None = None
_config: AppConfig | None = None


def get_monitor() -> MonitoringService:
    assert _monitor is not None, "Server not initialized"
    return _monitor


def get_simulator() -> EarthquakeSimulator:
    assert _simulator is not None, "Server not initialized"
    return _simulator


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def build_services(
    config: AppConfig,
    scheduler: Scheduler | None = None,
) -> tuple[MonitoringService, EarthquakeSimulator]:
    """Create the monitoring service and simulator from config."""
    processor = SignalProcessor(config)
    stats = PipelineStats()

    detector = None
    thresholds = InsdThresholds.from_config(config.insd)
    if thresholds is not None:
        detector = SilenceDetector(
            thresholds,
            neighbor_radius_m=config.insd.neighbor_radius_m,
            silence_grace_ms=config.insd.silence_grace_ms,
            report_threshold_g=config.correlation.threshold_g,
            event_window_ms=config.correlation.window_ms,
        )
    else:
        log.warning("insd_disabled", reason="n_min, event_threshold_g, heartbeat_timeout_ms "
                                            "and anomaly_threshold must all be configured")

    monitor = MonitoringService(processor, stats, detector)
    source = RandomNoiseSource(config.simulator.seed)
    nodes = generate_demo_nodes(config.simulator, source)
    monitor.set_nodes(nodes)

    simulator = EarthquakeSimulator(nodes, config.simulator, scheduler or Scheduler(), source)
    return monitor, simulator


def start_simulation(monitor: MonitoringService, simulator: EarthquakeSimulator) -> bool:
    """Start the background cadence and the periodic signal-loss check."""
    started = simulator.start(monitor.ingest_tick)
    simulator.scheduler.start(SIGNAL_CHECK, SIGNAL_CHECK_INTERVAL_MS, monitor.update_signal_loss)
    return started


def stop_simulation(simulator: EarthquakeSimulator) -> None:
    simulator.stop()
    simulator.scheduler.stop(SIGNAL_CHECK)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _monitor, _simulator, _config

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             nodes=_config.simulator.node_count,
             insd_configured=_config.insd.is_configured)

    _monitor, _simulator = build_services(_config)
    start_simulation(_monitor, _simulator)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    # Shutdown
    _simulator.scheduler.stop_all()
    log.info("server_stopped")


app = FastAPI(
    title="Seismos",
    description="Structural health monitoring and damage inference",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(monitoring_router)
app.include_router(nodes_router)
app.include_router(simulation_router)
