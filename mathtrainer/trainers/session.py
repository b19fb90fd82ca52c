"""Session configuration, exercise outcome and session result types."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from mathtrainer.core.errors import InvalidAttemptError
from mathtrainer.trainers.progress import MAX_STARS


def new_attempt_token() -> str:
    """Opaque, unique per run. Regenerated on every start, retry and next level."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class SessionConfig:
    """Frozen parameters for one run of a preset."""

    preset_id: str
    mode: str
    total_problems: int
    attempt_token: str | None = None
    time_limit_sec: int | None = None
    npc_seconds_per_problem: float | None = None
    star_level: int | None = None
    answer_input_mode: str | None = None  # choice | manual
    order: str | None = None  # ordered | mixed
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def is_race(self) -> bool:
        return self.mode == "race" or self.preset_id.startswith("race")

    def with_token(self, token: str | None = None) -> "SessionConfig":
        return replace(self, attempt_token=token or new_attempt_token())

    def with_overrides(self, **overrides: Any) -> "SessionConfig":
        """Advanced overrides. The token is always dropped; start() issues a new one."""
        overrides.pop("preset_id", None)
        overrides["attempt_token"] = None
        return replace(self, **overrides)

    def validate(self) -> None:
        if not self.preset_id:
            raise InvalidAttemptError("preset_id is required")
        if self.total_problems <= 0:
            raise InvalidAttemptError("total_problems must be positive")
        if self.time_limit_sec is not None and self.time_limit_sec <= 0:
            raise InvalidAttemptError("time_limit_sec must be positive")
        if self.npc_seconds_per_problem is not None and self.npc_seconds_per_problem <= 0:
            raise InvalidAttemptError("npc_seconds_per_problem must be positive")
        if self.star_level is not None and not 1 <= self.star_level <= MAX_STARS:
            raise InvalidAttemptError("star_level must be within 1..3")
        if self.is_race and (self.star_level is None or self.npc_seconds_per_problem is None):
            raise InvalidAttemptError("race presets need star_level and npc_seconds_per_problem")
        if self.mode == "speed" and self.time_limit_sec is None:
            raise InvalidAttemptError("speed presets need time_limit_sec")


@dataclass(frozen=True)
class Badge:
    """Header badge for the session frame. Free-form, UI only."""

    kind: Literal["counter", "time", "mistakes", "stars", "text"]
    label: str = ""
    value: Any = None
    total: int | None = None


@dataclass(frozen=True)
class SessionMetrics:
    total: int | None = None
    solved: int | None = None
    correct: int | None = None
    mistakes: int | None = None
    time_sec: int | None = None
    won: bool | None = None
    stars_earned: int | None = None
    progress_pct: float | None = None
    opponent_progress_pct: float | None = None
    badges: tuple[Badge, ...] = ()

    @property
    def good_answers(self) -> int:
        """Correct answers, falling back to the solved count."""
        if self.correct is not None:
            return self.correct
        return self.solved or 0

    @property
    def accuracy(self) -> float | None:
        if not self.total:
            return None
        return self.good_answers / self.total


@dataclass(frozen=True)
class SessionResult:
    success: bool
    metrics: SessionMetrics


@dataclass(frozen=True)
class ExerciseOutcome:
    """Terminal outcome emitted by an exercise runner."""

    total: int
    solved: int
    mistakes: int | None = 0
    time_sec: int = 0
    correct: int | None = None
    won: bool = False
    stars: int = 0
