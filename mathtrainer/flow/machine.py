"""Session flow for one trainer: entry -> select -> session -> (achievements) -> result.

All events run on the event loop. Every run gets a fresh attempt token and
only the result carrying the active token is accepted; anything else is a
leftover from an abandoned run and is dropped.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum

from mathtrainer.core.config import get_settings
from mathtrainer.core.errors import (
    FlowStateError,
    PresetLockedError,
    ProgressLoadError,
    TrainerError,
    UnknownPresetError,
)
from mathtrainer.flow.backend import TrainerBackend
from mathtrainer.flow.best_results import BestResults
from mathtrainer.flow.cache import ProgressCache
from mathtrainer.flow.runner import ExerciseRunner
from mathtrainer.flow.timers import Countdown, OpponentSimulator
from mathtrainer.services.achievements import NewlyUnlocked
from mathtrainer.trainers.base import Trainer
from mathtrainer.trainers.presets import Preset, PresetView
from mathtrainer.trainers.progress import Progress
from mathtrainer.trainers.session import ExerciseOutcome, SessionConfig, SessionResult

logger = logging.getLogger(__name__)

SYNC_WARNING = "Результат не сохранён. Проверь подключение, мы попробуем позже."


class FlowState(str, Enum):
    ENTRY = "entry"
    SELECT = "select"
    SESSION = "session"
    ACHIEVEMENTS = "achievements"
    RESULT = "result"
    CLOSED = "closed"


@dataclass(frozen=True)
class Reveal:
    """One celebratory step shown before the result: an achievement or the next preset."""

    achievement: NewlyUnlocked | None = None
    preset: Preset | None = None


class TrainerFlow:
    def __init__(
        self,
        trainer: Trainer,
        backend: TrainerBackend,
        *,
        cache: ProgressCache | None = None,
        best_results: BestResults | None = None,
        runner: ExerciseRunner | None = None,
        record_timeout_sec: float | None = None,
        timer_interval: float | None = None,
    ):
        settings = get_settings()
        self.trainer = trainer
        self.backend = backend
        self.cache = cache
        self.best_results = best_results if best_results is not None else BestResults()
        self.runner = runner
        self.record_timeout_sec = (
            settings.record_timeout_sec if record_timeout_sec is None else record_timeout_sec
        )
        self.timer_interval = timer_interval

        self.state = FlowState.ENTRY
        self.progress: Progress | None = None
        self.entry_error: str | None = None

        self.preset: Preset | None = None
        self.config: SessionConfig | None = None
        self.active_token: str | None = None

        self.result: SessionResult | None = None
        self.sync_warning: str | None = None
        self.duplicate = False
        self.next_unlocked: Preset | None = None
        self.reveals: deque[Reveal] = deque()

        self.countdown: Countdown | None = None
        self.opponent: OpponentSimulator | None = None
        self._running = False

    def _require(self, event: str, *states: FlowState) -> None:
        if self.state not in states:
            raise FlowStateError(event, self.state.value)

    # ---------- entry ----------

    async def load(self) -> bool:
        """Load progress; on failure stay in entry with ``entry_error`` set."""
        self._require("load", FlowState.ENTRY)
        cached = self.cache.get(self.trainer.id) if self.cache is not None else None
        if cached is not None:
            self.progress = cached
        else:
            try:
                progress = await self.backend.load_progress(self.trainer.id)
            except ProgressLoadError as exc:
                logger.warning("entry failed for %s: %s", self.trainer.id, exc)
                self.entry_error = str(exc)
                return False
            self.progress = progress
            if self.cache is not None:
                self.cache.put(self.trainer.id, progress)
        self.entry_error = None
        self.state = FlowState.SELECT
        return True

    async def retry_load(self) -> bool:
        self._require("retry_load", FlowState.ENTRY)
        if self.cache is not None:
            self.cache.invalidate(self.trainer.id)
        return await self.load()

    # ---------- select ----------

    def views(self) -> list[PresetView]:
        return self.trainer.graph.views(self.progress)

    def select(self, preset_id: str) -> SessionConfig:
        self._require("select", FlowState.SELECT)
        preset = self.trainer.preset(preset_id)
        if preset is None:
            raise UnknownPresetError(self.trainer.id, preset_id)
        self.preset = preset
        self.config = preset.default_config
        return self.config

    def set_config(self, **overrides) -> SessionConfig:
        """Advanced overrides on top of the selected preset's defaults."""
        self._require("set_config", FlowState.SELECT)
        if self.config is None:
            raise FlowStateError("set_config", self.state.value)
        config = self.config.with_overrides(**overrides)
        config.validate()
        self.config = config
        return config

    def start(self) -> SessionConfig:
        self._require("start", FlowState.SELECT)
        if self.preset is None:
            raise FlowStateError("start", self.state.value)
        lock = self.trainer.graph.is_locked(self.preset.id, self.progress)
        if lock.locked:
            raise PresetLockedError(self.preset.id, lock.reason)
        return self._begin()

    # ---------- session ----------

    def _begin(self) -> SessionConfig:
        self._stop_session()
        config = self.config.with_token()
        config.validate()
        self.config = config
        self.active_token = config.attempt_token
        self.result = None
        self.sync_warning = None
        self.duplicate = False
        self.next_unlocked = None
        self.reveals.clear()
        self.state = FlowState.SESSION
        self._start_timers(config)
        self._running = True
        if self.runner is not None:
            self.runner.begin(config, self.finish)
        logger.debug("session %s started for %s/%s", config.attempt_token, self.trainer.id, config.preset_id)
        return config

    def _start_timers(self, config: SessionConfig) -> None:
        kwargs = {"interval": self.timer_interval} if self.timer_interval else {}
        if config.is_race:
            self.opponent = OpponentSimulator(config.total_problems, config.npc_seconds_per_problem, **kwargs)
            self.opponent.start()
        elif config.time_limit_sec:
            self.countdown = Countdown(config.time_limit_sec, **kwargs)
            self.countdown.start()

    def _stop_session(self) -> None:
        for timer in (self.countdown, self.opponent):
            if timer is not None:
                timer.cancel()
        self.countdown = self.opponent = None
        if self._running and self.runner is not None:
            self.runner.stop()
        self._running = False

    def _apply_clock(self, outcome: ExerciseOutcome) -> ExerciseOutcome:
        time_sec = outcome.time_sec or None
        if self.opponent is not None:
            return replace(outcome, won=self.opponent.player_wins(outcome.solved, time_sec))
        if self.countdown is not None:
            return replace(outcome, won=self.countdown.success(outcome.solved, outcome.total, time_sec))
        return outcome

    def _opponent_pct(self, outcome: ExerciseOutcome) -> float | None:
        if self.opponent is None:
            return None
        if outcome.time_sec:
            return self.opponent.progress_at(outcome.time_sec)
        return self.opponent.progress_pct

    def _in_flight_run_is_current(self) -> bool:
        # finish() clears active_token; start, retry and next_level issue a new one
        return self.state is FlowState.SESSION and self.active_token is None

    async def finish(self, token: str | None, outcome: ExerciseOutcome) -> bool:
        """Accept the terminal outcome of the active run. Returns False when ignored."""
        if self.state is not FlowState.SESSION or token is None or token != self.active_token:
            logger.debug("ignoring result for inactive token %s", token)
            return False
        self.active_token = None
        preset, config = self.preset, self.config
        outcome = self._apply_clock(outcome)
        opponent_pct = self._opponent_pct(outcome)
        self._stop_session()

        adapter = self.trainer.adapter
        result = adapter.to_session_result(preset, config, outcome)
        if opponent_pct is not None:
            result = replace(result, metrics=replace(result.metrics, opponent_progress_pct=opponent_pct))
        self.result = result
        self.best_results.update(self.trainer.id, preset.id, result.metrics)

        payload = adapter.attempt_payload(self.trainer.id, config, result)
        before = self.progress
        try:
            recorded = await asyncio.wait_for(self.backend.record(payload), self.record_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("recording %s timed out after %ss", token, self.record_timeout_sec)
            return self._settle_unsynced()
        except TrainerError as exc:
            logger.warning("recording %s failed: %s", token, exc)
            return self._settle_unsynced()

        after = recorded.progress if recorded.progress is not None else before
        if after is not None and self.progress is not None:
            # a newer run may have recorded while this one was in flight
            after = self.progress.join(after)
        self.progress = after
        if self.cache is not None and after is not None:
            self.cache.put(self.trainer.id, after)
        if not self._in_flight_run_is_current():
            logger.debug("run %s was superseded while recording", token)
            return True

        self.duplicate = recorded.duplicate
        if result.success:
            self.next_unlocked = self.trainer.graph.newly_unlocked_next(preset.id, before, after)
        self.reveals.extend(Reveal(achievement=a) for a in recorded.newly_unlocked)
        if self.next_unlocked is not None:
            self.reveals.append(Reveal(preset=self.next_unlocked))
        self.state = FlowState.ACHIEVEMENTS if self.reveals else FlowState.RESULT
        return True

    def _settle_unsynced(self) -> bool:
        if self._in_flight_run_is_current():
            self.sync_warning = SYNC_WARNING
            self.state = FlowState.RESULT
        return True

    # ---------- achievements / result ----------

    @property
    def current_reveal(self) -> Reveal | None:
        return self.reveals[0] if self.reveals else None

    def dismiss_achievement(self) -> None:
        self._require("dismiss_achievement", FlowState.ACHIEVEMENTS)
        self.reveals.popleft()
        if not self.reveals:
            self.state = FlowState.RESULT

    def retry(self) -> SessionConfig:
        """Run the same preset and config again with a new token."""
        self._require("retry", FlowState.SESSION, FlowState.ACHIEVEMENTS, FlowState.RESULT)
        return self._begin()

    def next_level(self) -> SessionConfig | None:
        """Run the next open preset; after the last one, go back to select."""
        self._require("next_level", FlowState.ACHIEVEMENTS, FlowState.RESULT)
        target = self.next_unlocked or self.trainer.graph.next_preset(self.preset.id, self.progress)
        if target is None:
            self.back_to_select()
            return None
        self.preset = target
        self.config = target.default_config
        return self._begin()

    def back_to_select(self) -> None:
        self._require("back_to_select", FlowState.SESSION, FlowState.ACHIEVEMENTS, FlowState.RESULT)
        self._stop_session()
        self.active_token = None
        self.reveals.clear()
        self.state = FlowState.SELECT

    def close(self) -> None:
        self._stop_session()
        self.active_token = None
        self.reveals.clear()
        self.state = FlowState.CLOSED
