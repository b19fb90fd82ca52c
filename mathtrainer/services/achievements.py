"""Stats deltas and the achievement catalog/evaluator.

Achievements are computed incrementally from the stats snapshot before and
after one attempt; nothing here touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from typing import Iterable, Literal, Mapping

from mathtrainer.trainers.base import RACE_LEVEL, AttemptFacts
from mathtrainer.trainers.progress import clamp


@dataclass(frozen=True)
class StatsSnapshot:
    total_problems: int = 0
    total_correct: int = 0
    total_mistakes: int = 0
    total_time_sec: int = 0
    sessions_count: int = 0
    perfect_sessions_count: int = 0
    race_wins_count: int = 0

    def __add__(self, delta: "StatsSnapshot") -> "StatsSnapshot":
        return apply_stats_delta(self, delta)

    @property
    def is_empty(self) -> bool:
        return self == StatsSnapshot()

    @classmethod
    def from_row(cls, row) -> "StatsSnapshot":
        if row is None:
            return cls()
        return cls(**{f.name: int(getattr(row, f.name) or 0) for f in fields(cls)})

    def to_dict(self) -> dict[str, int]:
        return {
            "totalProblems": self.total_problems,
            "totalCorrect": self.total_correct,
            "totalMistakes": self.total_mistakes,
            "totalTimeSec": self.total_time_sec,
            "sessionsCount": self.sessions_count,
            "perfectSessionsCount": self.perfect_sessions_count,
            "raceWinsCount": self.race_wins_count,
        }


def compute_stats_delta(facts: AttemptFacts) -> StatsSnapshot:
    """Non-negative stats contribution of one attempt."""
    total = max(0, facts.total)
    correct = clamp(facts.correct, 0, total)
    mistakes_known = facts.mistakes is not None
    mistakes = max(0, facts.mistakes) if mistakes_known else 0
    is_race = facts.level == RACE_LEVEL or facts.level.startswith("race")
    return StatsSnapshot(
        total_problems=total,
        total_correct=correct,
        total_mistakes=mistakes,
        total_time_sec=max(0, facts.time_sec),
        sessions_count=1,
        perfect_sessions_count=1 if total > 0 and mistakes_known and mistakes == 0 else 0,
        race_wins_count=1 if is_race and facts.won else 0,
    )


def apply_stats_delta(prev: StatsSnapshot, delta: StatsSnapshot) -> StatsSnapshot:
    return replace(
        prev,
        **{f.name: getattr(prev, f.name) + max(0, getattr(delta, f.name)) for f in fields(StatsSnapshot)},
    )


# ---------- catalog ----------


@dataclass(frozen=True)
class AchievementDef:
    id: str
    title: str
    description: str
    icon_key: str
    kind: Literal["counter", "boolean"]
    # StatsSnapshot attribute the achievement reads
    signal: str
    total: int = 1


# ids are a stable contract; titles and descriptions may change
ACHIEVEMENT_CATALOG: tuple[AchievementDef, ...] = (
    AchievementDef("first-10-problems", "Первые шаги", "Реши 10 примеров", "star", "counter", "total_problems", 10),
    AchievementDef("first-100-problems", "Разогрев", "Реши 100 примеров", "medal", "counter", "total_problems", 100),
    AchievementDef("perfect-session", "Безупречная сессия", "Пройди сессию без ошибок", "target", "boolean", "perfect_sessions_count"),
    AchievementDef("first-race-win", "Первая победа", "Выиграй гонку хотя бы один раз", "swords", "boolean", "race_wins_count"),
    AchievementDef("race-master", "Гроза соперников", "Выиграй 10 гонок", "crown", "counter", "race_wins_count", 10),
    AchievementDef("time-hero", "Скоростной герой", "Набери 10 минут тренировок суммарно", "zap", "counter", "total_time_sec", 600),
)


@dataclass(frozen=True)
class AchievementState:
    id: str
    progress: int = 0
    unlocked_at: datetime | None = None

    @property
    def unlocked(self) -> bool:
        return self.unlocked_at is not None


@dataclass(frozen=True)
class NewlyUnlocked:
    id: str
    title: str
    description: str
    icon_key: str
    unlocked_at: datetime

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "iconKey": self.icon_key,
            "unlockedAt": self.unlocked_at.isoformat(),
        }


def evaluate_achievements(
    catalog: Iterable[AchievementDef],
    prev_states: Mapping[str, AchievementState] | Iterable[AchievementState] | None,
    prev_stats: StatsSnapshot,
    next_stats: StatsSnapshot,
    now: datetime | None = None,
) -> tuple[dict[str, AchievementState], list[NewlyUnlocked]]:
    """Return (next states by id, newly unlocked) for one stats transition.

    Deterministic given ``now``. Unlocked states pass through untouched.
    """
    now = now or datetime.now(timezone.utc)
    if prev_states is None:
        prev = {}
    elif isinstance(prev_states, Mapping):
        prev = dict(prev_states)
    else:
        prev = {s.id: s for s in prev_states}

    out: dict[str, AchievementState] = dict(prev)
    newly: list[NewlyUnlocked] = []
    for definition in catalog:
        state = prev.get(definition.id) or AchievementState(definition.id)
        if state.unlocked:
            out[definition.id] = state
            continue

        if definition.kind == "counter":
            total = max(1, definition.total)
            progress = clamp(int(getattr(next_stats, definition.signal)), 0, total)
            unlocked = progress >= total
        else:
            unlocked = getattr(next_stats, definition.signal) > getattr(prev_stats, definition.signal)
            progress = 1 if unlocked else 0

        next_state = AchievementState(definition.id, progress, now if unlocked else None)
        out[definition.id] = next_state
        if unlocked:
            newly.append(
                NewlyUnlocked(definition.id, definition.title, definition.description, definition.icon_key, now)
            )
    return out, newly


def changed_states(
    prev: Mapping[str, AchievementState],
    nxt: Mapping[str, AchievementState],
) -> list[AchievementState]:
    """States whose progress or unlock time differ from ``prev``."""
    out = []
    for achievement_id, state in nxt.items():
        before = prev.get(achievement_id) or AchievementState(achievement_id)
        if (before.progress, before.unlocked_at) != (state.progress, state.unlocked_at):
            out.append(state)
    return out
