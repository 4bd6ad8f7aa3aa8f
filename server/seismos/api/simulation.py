"""Simulation control endpoints.

Start/stop the background cadence, trigger an earthquake, step a single
tick, recalibrate baselines and reset everything back to safe. Sensor
readings themselves never arrive over HTTP.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from seismos.simulator.earthquake import EarthquakeConfig

router = APIRouter(prefix="/api/v1/simulation")


def _parse_earthquake(body: dict, defaults) -> EarthquakeConfig:
    """Parse an earthquake request; missing epicentre means the district centre."""
    return EarthquakeConfig(
        intensity=float(body.get("intensity", 1.0)),
        duration_ms=int(body.get("duration_ms", 10_000)),
        epicenter_lat=float(body.get("epicenter_lat", (defaults.min_lat + defaults.max_lat) / 2)),
        epicenter_lng=float(body.get("epicenter_lng", (defaults.min_lng + defaults.max_lng) / 2)),
        collapse_intensity_g=(
            float(body["collapse_intensity_g"]) if body.get("collapse_intensity_g") is not None else None
        ),
    )


@router.post("/start")
async def start() -> dict:
    from seismos.main import get_monitor, get_simulator, start_simulation

    started = start_simulation(get_monitor(), get_simulator())
    return {"started": started}


@router.post("/stop")
async def stop() -> dict:
    from seismos.main import get_monitor, get_simulator, stop_simulation

    stop_simulation(get_simulator())
    get_monitor().set_earthquake_active(False)
    return {"stopped": True}


@router.post("/tick")
async def tick() -> dict:
    """Run one background tick synchronously."""
    from seismos.main import get_monitor, get_simulator

    readings = get_simulator().tick_background()
    results = get_monitor().ingest_tick(readings)
    return {"readings": len(readings), "correlated": any(r.is_correlated for r in results)}


@router.post("/earthquake")
async def earthquake(request: Request) -> JSONResponse:
    """Trigger an earthquake.

    Body (all optional): intensity (0.5-2.0 g), duration_ms (5000-15000),
    epicenter_lat, epicenter_lng, collapse_intensity_g.
    """
    from seismos.main import get_config, get_monitor, get_simulator

    body_bytes = await request.body()
    try:
        body = json.loads(body_bytes) if body_bytes else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse(content={"started": False, "error": "invalid JSON"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse(content={"started": False, "error": "expected a JSON object"},
                            status_code=400)

    try:
        quake = _parse_earthquake(body, get_config().simulator)
    except (TypeError, ValueError) as e:
        return JSONResponse(content={"started": False, "error": str(e)}, status_code=422)

    monitor = get_monitor()
    simulator = get_simulator()
    started = simulator.trigger_earthquake(
        quake,
        on_progress=monitor.set_earthquake_progress,
        on_complete=lambda: monitor.set_earthquake_active(False),
    )
    if started:
        monitor.set_earthquake_active(True)
        monitor.stats.record_earthquake()
    return JSONResponse(content={"started": started})


@router.post("/calibrate")
async def calibrate() -> dict:
    """Adopt every node's current frequency estimate as its baseline."""
    from seismos.main import get_monitor

    baselines = get_monitor().processor.calibrate_baselines()
    return {"calibrated": len(baselines)}


@router.post("/reset")
async def reset() -> dict:
    """Stop any earthquake, revive silenced nodes and reset all to stable."""
    from seismos.main import get_monitor, get_simulator

    simulator = get_simulator()
    simulator.cancel_earthquake()
    simulator.reset()
    get_monitor().reset_to_safe()
    return {"reset": True}
