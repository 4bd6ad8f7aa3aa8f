"""Health check and monitoring endpoints."""

from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1")


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from seismos.main import get_monitor, get_simulator

    monitor = get_monitor()
    simulator = get_simulator()
    snapshot = monitor.stats.snapshot()
    return {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "nodes": len(monitor.nodes),
        "simulation_running": simulator.running,
        "earthquake_active": simulator.earthquake_active,
        "insd_enabled": monitor.detector is not None,
    }


@router.get("/stats")
async def stats() -> dict:
    """Pipeline counters and active node count.

    ``active_nodes.total`` counts nodes that delivered a reading within the
    last ``active_nodes.window_seconds``.
    """
    from seismos.main import get_monitor

    return get_monitor().stats.snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Tunables the dashboard needs to colour-code and label results."""
    from seismos.main import get_config

    config = get_config()
    return {
        "status_cutoffs_g": {
            "stable": config.status.stable_below,
            "anomaly": config.status.anomaly_below,
            "warning": config.status.warning_below,
        },
        "damage_cutoffs": {
            "safe": config.damage.safe_below,
            "risky": config.damage.risky_below,
        },
        "correlation": {
            "threshold_g": config.correlation.threshold_g,
            "window_ms": config.correlation.window_ms,
        },
        "insd_configured": config.insd.is_configured,
        "background_interval_ms": config.simulator.background_interval_ms,
    }
