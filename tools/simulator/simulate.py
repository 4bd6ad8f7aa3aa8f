#!/usr/bin/env python3
"""Seismos earthquake scenario driver.

Drives a running Seismos server through a scenario: make sure the background
simulation is running, let it settle, trigger an earthquake and poll the
building summary until the event completes.

Usage:
    # Default scenario: 1.2 g, 10 s, epicentre at the district centre
    python -m tools.simulator.simulate --server http://localhost:8000

    # Strong event that silences buildings near the epicentre
    python -m tools.simulator.simulate --intensity 2.0 --duration 15000 --collapse-intensity 1.8

    # Custom epicentre
    python -m tools.simulator.simulate --epicenter 41.0290,28.9470
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time

import httpx


def format_summary(summary: dict) -> str:
    b = summary["buildings"]
    return (f"progress {summary['earthquake_progress']:5.1f}%  "
            f"safe {b['safe']:3d}  damaged {b['damaged']:3d}  "
            f"critical {b['critical']:3d}  collapsed {b['collapsed']:3d}  "
            f"peak {summary['peak_magnitude']:.3f} g")


async def run_scenario(args: argparse.Namespace) -> int:
    """Run the full scenario. Returns a process exit code."""
    base = f"{args.server}/api/v1"
    quake = {
        "intensity": args.intensity,
        "duration_ms": args.duration,
    }
    if args.epicenter is not None:
        quake["epicenter_lat"], quake["epicenter_lng"] = args.epicenter
    if args.collapse_intensity is not None:
        quake["collapse_intensity_g"] = args.collapse_intensity

    print(f"Scenario: {args.intensity} g for {args.duration} ms")
    print(f"  Server: {args.server}")
    print(f"  Settle: {args.settle}s")
    print()

    async with httpx.AsyncClient(timeout=10.0) as client:
        try:
            if args.reset:
                await client.post(f"{base}/simulation/reset")
            await client.post(f"{base}/simulation/start")
        except httpx.RequestError as e:
            print(f"Cannot reach server: {e}", file=sys.stderr)
            return 1

        await asyncio.sleep(args.settle)
        if args.calibrate:
            resp = await client.post(f"{base}/simulation/calibrate")
            print(f"Calibrated baselines for {resp.json()['calibrated']} nodes")

        resp = await client.post(f"{base}/simulation/earthquake", json=quake)
        if resp.status_code != 200 or not resp.json().get("started"):
            print(f"Earthquake rejected ({resp.status_code}): {resp.text}", file=sys.stderr)
            return 1

        start = time.monotonic()
        summary = {}
        while True:
            await asyncio.sleep(args.poll)
            summary = (await client.get(f"{base}/summary")).json()
            print(format_summary(summary))
            if not summary["earthquake_active"]:
                break

        # Give INSD a few signal checks after the shaking stops.
        await asyncio.sleep(args.settle)
        summary = (await client.get(f"{base}/summary")).json()
        stats = (await client.get(f"{base}/stats")).json()

    elapsed = time.monotonic() - start
    print(f"\nEarthquake complete in {elapsed:.1f}s")
    print(f"  {format_summary(summary)}")
    print(f"  Correlated events: {stats['correlated_events']}")
    print(f"  INSD overrides: {stats['insd_overrides']}")
    print(f"  Readings processed: {stats['readings_processed']}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Seismos earthquake scenario driver")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--intensity", type=float, default=1.2, help="Peak intensity in g (0.5-2.0)")
    parser.add_argument("--duration", type=int, default=10_000, help="Duration in ms (5000-15000)")
    parser.add_argument("--epicenter", type=str, default=None,
                        help="Epicentre lat,lng (default: district centre)")
    parser.add_argument("--collapse-intensity", type=float, default=None,
                        help="Local intensity (g) above which a building goes silent")
    parser.add_argument("--settle", type=float, default=3.0,
                        help="Seconds of background before and after the event")
    parser.add_argument("--poll", type=float, default=1.0, help="Summary poll interval in seconds")
    parser.add_argument("--calibrate", action="store_true",
                        help="Calibrate baselines after settling")
    parser.add_argument("--reset", action="store_true", help="Reset the server to safe first")

    args = parser.parse_args()

    if args.epicenter is not None:
        lat, lng = args.epicenter.split(",")
        args.epicenter = (float(lat), float(lng))

    sys.exit(asyncio.run(run_scenario(args)))


if __name__ == "__main__":
    main()
