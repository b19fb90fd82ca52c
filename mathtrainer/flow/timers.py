"""Repeating timers for timed sessions and the simulated race opponent.

The countdown and opponent keep their own elapsed clock and advance it in
``tick``; the repeating timer only decides when ticks happen.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls ``callback`` every ``interval`` seconds on the running loop until cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.callback = callback
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.callback()
            except Exception:
                logger.exception("timer callback failed")

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class Countdown:
    """Time limit of a timed session. Expires once; later ticks are no-ops."""

    def __init__(
        self,
        limit_sec: float,
        on_expire: Callable[[], None] | None = None,
        interval: float = 1.0,
    ):
        self.limit_sec = limit_sec
        self.elapsed = 0.0
        self.expired = False
        self.on_expire = on_expire
        self._timer = RepeatingTimer(interval, lambda: self.tick(interval))

    @property
    def remaining(self) -> float:
        return max(0.0, self.limit_sec - self.elapsed)

    def tick(self, dt: float) -> None:
        if self.expired:
            return
        self.elapsed += dt
        if self.elapsed >= self.limit_sec:
            self.expired = True
            self._timer.cancel()
            if self.on_expire is not None:
                self.on_expire()

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def success(self, solved: int, total: int, time_sec: float | None = None) -> bool:
        """All problems solved before the limit."""
        if total <= 0 or solved < total:
            return False
        elapsed = self.elapsed if time_sec is None else time_sec
        return not self.expired and elapsed <= self.limit_sec


class OpponentSimulator:
    """Race opponent solving one problem every ``seconds_per_problem`` seconds."""

    def __init__(
        self,
        total_problems: int,
        seconds_per_problem: float,
        on_finish: Callable[[], None] | None = None,
        interval: float = 0.25,
    ):
        self.total_problems = total_problems
        self.seconds_per_problem = seconds_per_problem
        self.elapsed = 0.0
        self.on_finish = on_finish
        self._timer = RepeatingTimer(interval, lambda: self.tick(interval))

    @property
    def finish_time(self) -> float:
        return self.total_problems * self.seconds_per_problem

    @property
    def finished(self) -> bool:
        return self.elapsed >= self.finish_time

    @property
    def solved(self) -> int:
        return min(self.total_problems, int(self.elapsed // self.seconds_per_problem))

    @property
    def progress_pct(self) -> float:
        return self.progress_at(self.elapsed)

    def progress_at(self, elapsed: float) -> float:
        """Share of the race the opponent has covered after ``elapsed`` seconds."""
        if self.finish_time <= 0:
            return 100.0
        return min(100.0, max(0.0, elapsed) / self.finish_time * 100.0)

    def tick(self, dt: float) -> None:
        if self.finished:
            return
        self.elapsed += dt
        if self.finished:
            self._timer.cancel()
            logger.debug("opponent finished after %.2fs", self.elapsed)
            if self.on_finish is not None:
                self.on_finish()

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def player_wins(self, solved: int, time_sec: float | None = None) -> bool:
        """The learner wins iff they solved everything before the opponent finished."""
        if solved < self.total_problems:
            return False
        if time_sec is not None:
            return time_sec < self.finish_time
        return not self.finished
