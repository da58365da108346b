"""Fixed timestep session loop."""
from __future__ import annotations

import time
from typing import Callable, Optional


class FixedTimestepLoop:
    """Runs a deterministic fixed update loop with a variable idle step.

    ``update`` receives the fixed ``dt`` as many times as the elapsed wall
    time allows; ``idle`` runs once per outer iteration with the leftover
    fraction of a step and is where callers pace the loop.
    """

    def __init__(
        self,
        update: Callable[[float], None],
        idle: Callable[[float], None],
        process_events: Optional[Callable[[], None]] = None,
        fixed_hz: float = 30.0,
        max_frame_time: float = 0.25,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if fixed_hz <= 0:
            raise ValueError("fixed_hz must be positive")
        self.update = update
        self.idle = idle
        self.process_events = process_events
        self.fixed_dt = 1.0 / fixed_hz
        self.max_frame_time = max_frame_time
        self._clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def stop(self) -> None:
        self._running = False

    def run(self) -> None:
        self._running = True
        accumulator = 0.0
        last_time = self._clock()
        while self._running:
            now = self._clock()
            frame_time = now - last_time
            last_time = now
            if frame_time > self.max_frame_time:
                frame_time = self.max_frame_time
            accumulator += frame_time
            if self.process_events:
                self.process_events()
            while self._running and accumulator >= self.fixed_dt:
                self.update(self.fixed_dt)
                accumulator -= self.fixed_dt
            alpha = accumulator / self.fixed_dt
            self.idle(alpha)


__all__ = ["FixedTimestepLoop"]
