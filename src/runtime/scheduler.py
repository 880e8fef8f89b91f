from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from runtime.lifecycle import Lifecycle

logger = logging.getLogger("runtime.scheduler")


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Scheduler:
    """Fixed-interval tick times; ticks already missed are skipped, not queued."""

    interval_ms: int
    last_tick_ms: int | None = None
    skipped_ticks: int = 0

    def __post_init__(self) -> None:
        if self.interval_ms <= 0:
            raise ValueError("scheduler interval must be > 0")

    def next_tick_ms(self, *, now_ms: int) -> int:
        if self.last_tick_ms is None:
            self.last_tick_ms = now_ms
            return self.last_tick_ms
        next_tick = self.last_tick_ms + self.interval_ms
        if next_tick < now_ms:
            missed = (now_ms - next_tick) // self.interval_ms + 1
            self.skipped_ticks += missed
            next_tick += missed * self.interval_ms
        self.last_tick_ms = next_tick
        return next_tick


class PeriodicTask:
    """Runs ``tick`` on a daemon thread at a fixed interval until stopped.

    One tick runs at a time. A tick in progress at shutdown is allowed to
    finish; ``stop`` waits for it up to ``timeout_ms``.
    """

    def __init__(
        self,
        *,
        name: str,
        interval_ms: int,
        tick: Callable[[], object],
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self.name = name
        self._tick = tick
        self._scheduler = Scheduler(interval_ms=interval_ms)
        self._clock_ms = clock_ms or _wall_clock_ms
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.lifecycle = Lifecycle()
        self.tick_count = 0
        self.failure_count = 0

    @property
    def skipped_ticks(self) -> int:
        return self._scheduler.skipped_ticks

    def start(self) -> None:
        self.lifecycle.start()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, *, timeout_ms: int = 5_000) -> bool:
        self._stop_event.set()
        finished = True
        if self._thread is not None:
            self._thread.join(timeout=timeout_ms / 1000)
            finished = not self._thread.is_alive()
        self.lifecycle.stop()
        return finished

    def run_once(self) -> bool:
        try:
            self._tick()
        except Exception:
            self.failure_count += 1
            logger.exception(
                "runtime.tick_failed",
                extra={"fields": {"task": self.name, "failure_count": self.failure_count}},
            )
            return False
        finally:
            self.tick_count += 1
        return True

    def _run(self) -> None:
        while not self._stop_event.is_set():
            due_ms = self._scheduler.next_tick_ms(now_ms=self._clock_ms())
            wait_ms = due_ms - self._clock_ms()
            if wait_ms > 0 and self._stop_event.wait(wait_ms / 1000):
                break
            self.run_once()
