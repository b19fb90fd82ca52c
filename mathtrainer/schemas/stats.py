"""Pydantic schemas for stats, achievements and the daily challenge."""
from datetime import datetime
from typing import Literal

from mathtrainer.schemas.progress import CamelSchema


class AchievementSchema(CamelSchema):
    id: str
    title: str
    description: str
    icon_key: str
    kind: Literal["counter", "boolean"]
    total: int
    progress: int
    unlocked_at: datetime | None = None


class AchievementsOutSchema(CamelSchema):
    achievements: list[AchievementSchema]


class WeekDaySchema(CamelSchema):
    date: str  # YYYY-MM-DD, UTC
    label: str  # Пн, Вт ...
    success_sessions: int


class StatsSummaryOutSchema(CamelSchema):
    total_problems: int
    total_correct: int
    total_mistakes: int
    total_time_sec: int
    sessions_count: int
    perfect_sessions_count: int
    race_wins_count: int
    accuracy_pct: float
    total_crystals: int = 0
    week: list[WeekDaySchema]


class ChallengeTaskSchema(CamelSchema):
    title: str
    description: str
    reward_crystals: int
    progress: int
    total: int
    time_limit_label: str
    difficulty_label: str
    start_href: str


class StreakSchema(CamelSchema):
    streak_days: int
    next_milestone_days: int
    milestone_reward_crystals: int


class ChallengeTodayOutSchema(CamelSchema):
    today: ChallengeTaskSchema
    streak: StreakSchema
