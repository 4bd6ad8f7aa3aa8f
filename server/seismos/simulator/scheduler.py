"""Cancelable interval timers on the running asyncio loop.

At most one timer of each kind is active at a time. Callbacks are plain
synchronous functions; a callback that raises is logged and the timer keeps
ticking.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import structlog

log = structlog.get_logger()


class IntervalTimer:
    def __init__(self, name: str, interval_ms: int, callback: Callable[[], None]) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self.name = name
        self.interval_ms = interval_ms
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"timer-{self.name}")

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        interval = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                self._callback()
            except Exception:
                log.error("timer_callback_failed", timer=self.name, exc_info=True)


class Scheduler:
    """Registry of named interval timers, one per kind."""

    def __init__(self) -> None:
        self._timers: dict[str, IntervalTimer] = {}

    def is_active(self, kind: str) -> bool:
        timer = self._timers.get(kind)
        return timer is not None and timer.active

    def start(self, kind: str, interval_ms: int, callback: Callable[[], None]) -> bool:
        """Start a timer. Returns False if one of this kind is already running."""
        if self.is_active(kind):
            log.warning("timer_already_active", timer=kind)
            return False
        timer = IntervalTimer(kind, interval_ms, callback)
        timer.start()
        self._timers[kind] = timer
        log.debug("timer_started", timer=kind, interval_ms=interval_ms)
        return True

    def stop(self, kind: str) -> bool:
        timer = self._timers.pop(kind, None)
        if timer is None:
            return False
        timer.cancel()
        log.debug("timer_stopped", timer=kind)
        return True

    def stop_all(self) -> None:
        for kind in list(self._timers):
            self.stop(kind)

    @property
    def active_kinds(self) -> list[str]:
        return [kind for kind in self._timers if self.is_active(kind)]
