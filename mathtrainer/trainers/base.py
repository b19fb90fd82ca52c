"""Trainer adapter interface and the Trainer aggregate.

An adapter owns everything archetype-specific: its presets and unlock
policy, how a raw exercise outcome becomes a SessionResult, what the record
request looks like, how a stored attempt moves progress and what it
contributes to stats. The flow and the recording protocol only talk to
this interface.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Any, ClassVar, Mapping

from mathtrainer.trainers.policies import UnlockPolicy, evaluate_success
from mathtrainer.trainers.presets import Preset, PresetGraph
from mathtrainer.trainers.progress import (
    MAX_STARS,
    Archetype,
    Progress,
    as_int,
    clamp,
    clamp_stars,
    default_progress,
    normalize_progress,
)
from mathtrainer.trainers.session import Badge, ExerciseOutcome, SessionConfig, SessionMetrics, SessionResult

RACE_LEVEL = "race"
ACCURACY_THRESHOLD = 0.8

# Crystal rewards: every rewarded preset flag, plus 5/10/15 for race stars 1..3
FLAG_CRYSTALS = 10
RACE_STAR_CRYSTALS = (5, 10, 15)

OPPONENT_NAMES = {1: "Новичок", 2: "Знаток", 3: "Мастер"}


@dataclass(frozen=True)
class AttemptFacts:
    """Stats-relevant facts of one attempt."""

    trainer_id: str
    kind: str
    level: str
    total: int
    correct: int
    # None means the runner did not report mistakes
    mistakes: int | None
    time_sec: int
    won: bool


def payload_mistakes(payload: Mapping[str, Any]) -> int | None:
    raw = payload.get("mistakes")
    if raw is None:
        return None
    return max(0, as_int(raw, 0))


def payload_star_level(payload: Mapping[str, Any]) -> int:
    return clamp(as_int(payload.get("starLevel"), 1), 1, 3)


def meets_accuracy(payload: Mapping[str, Any], threshold: float = ACCURACY_THRESHOLD) -> bool:
    total = max(0, as_int(payload.get("total"), 0))
    correct = max(0, as_int(payload.get("correct"), 0))
    return total > 0 and correct >= total * threshold


def race_crystals(stars: Any) -> int:
    return sum(RACE_STAR_CRYSTALS[: clamp_stars(stars)])


def session_badges(config: SessionConfig, metrics: SessionMetrics) -> tuple[Badge, ...]:
    badges = [Badge("counter", "Решено", metrics.solved or 0, metrics.total)]
    if metrics.mistakes is not None:
        badges.append(Badge("mistakes", "Ошибки", metrics.mistakes))
    badges.append(Badge("time", "Время", metrics.time_sec or 0))
    if config.is_race:
        badges.append(Badge("stars", "Звёзды", metrics.stars_earned or 0, MAX_STARS))
    return tuple(badges)


class TrainerAdapter(ABC):
    kind: ClassVar[str]
    archetype: ClassVar[Archetype]
    # backend level names accepted in record requests
    levels: ClassVar[frozenset[str]]
    # progress flags worth crystals; all of them done means the races are next
    rewarded_flags: ClassVar[tuple[str, ...]]

    # ---------- configuration ----------

    @abstractmethod
    def build_presets(self) -> list[Preset]:
        ...

    @abstractmethod
    def unlock_policy(self) -> UnlockPolicy:
        ...

    def default_progress(self) -> Progress:
        return default_progress(self.archetype)

    def normalize(self, raw: Any) -> Progress:
        return normalize_progress(self.archetype, raw)

    def level_for(self, preset_id: str) -> str:
        """Backend level of a preset (all race presets share one level)."""
        return RACE_LEVEL if preset_id.startswith("race") else preset_id

    def progresses(self, level: str) -> bool:
        """False for levels that never touch stored progress."""
        return True

    # ---------- rewards ----------

    def crystals_for(self, progress: Progress | None) -> int:
        if progress is None:
            return 0
        flags = sum(FLAG_CRYSTALS for key in self.rewarded_flags if progress.value(key))
        return flags + race_crystals(progress.race_stars)

    def crystals_cap(self) -> int:
        return FLAG_CRYSTALS * len(self.rewarded_flags) + race_crystals(MAX_STARS)

    def pre_race_done(self, progress: Progress | None) -> bool:
        return progress is not None and all(progress.value(key) for key in self.rewarded_flags)

    # ---------- session result ----------

    def to_session_result(self, preset: Preset, config: SessionConfig, outcome: ExerciseOutcome) -> SessionResult:
        metrics = SessionMetrics(
            total=outcome.total,
            solved=outcome.solved,
            correct=outcome.correct,
            mistakes=outcome.mistakes,
            time_sec=outcome.time_sec,
            won=bool(outcome.won),
        )
        success = evaluate_success(preset.success_policy, metrics)
        stars = 0
        if config.is_race and metrics.won:
            stars = config.star_level or 1
        metrics = replace(
            metrics,
            stars_earned=stars,
            progress_pct=100.0 if outcome.total and outcome.solved >= outcome.total else None,
        )
        return SessionResult(success=success, metrics=replace(metrics, badges=session_badges(config, metrics)))

    @abstractmethod
    def attempt_payload(self, trainer_id: str, config: SessionConfig, result: SessionResult) -> dict[str, Any]:
        """Record request body (wire names) for one finished session."""

    def _payload_base(self, trainer_id: str, config: SessionConfig) -> dict[str, Any]:
        return {
            "trainerId": trainer_id,
            "attemptId": config.attempt_token,
            "kind": self.kind,
            "level": self.level_for(config.preset_id),
            "presetId": config.preset_id,
        }

    # ---------- recording ----------

    @abstractmethod
    def merge_progress(self, prev: Progress, level: str, payload: Mapping[str, Any]) -> Progress:
        """Monotonic update of ``prev`` for one recorded attempt."""

    @abstractmethod
    def is_success(self, level: str, payload: Mapping[str, Any]) -> bool:
        """Classify a stored attempt as a successful session."""

    def attempt_facts(self, trainer_id: str, level: str, payload: Mapping[str, Any]) -> AttemptFacts:
        return AttemptFacts(
            trainer_id=trainer_id,
            kind=self.kind,
            level=level,
            total=as_int(payload.get("total"), 0),
            correct=as_int(payload.get("correct"), 0),
            mistakes=payload_mistakes(payload),
            time_sec=as_int(payload.get("time"), 0),
            won=bool(payload.get("won")),
        )


@dataclass(frozen=True)
class Trainer:
    id: str
    title: str
    back_href: str
    adapter: TrainerAdapter

    @property
    def kind(self) -> str:
        return self.adapter.kind

    @property
    def archetype(self) -> Archetype:
        return self.adapter.archetype

    @cached_property
    def graph(self) -> PresetGraph:
        return PresetGraph(self.adapter.build_presets(), self.adapter.unlock_policy())

    @property
    def presets(self) -> tuple[Preset, ...]:
        return self.graph.presets

    def preset(self, preset_id: str) -> Preset | None:
        return self.graph.get(preset_id)
