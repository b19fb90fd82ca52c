from mathtrainer.schemas.progress import (
    NewlyUnlockedAchievementSchema,
    PresetViewSchema,
    RecordAttemptOutSchema,
    RecordAttemptRequest,
    TrainerPresetsOutSchema,
    TrainerProgressOutSchema,
)
from mathtrainer.schemas.stats import (
    AchievementSchema,
    AchievementsOutSchema,
    ChallengeTodayOutSchema,
    StatsSummaryOutSchema,
    WeekDaySchema,
)

__all__ = [
    "AchievementSchema",
    "AchievementsOutSchema",
    "ChallengeTodayOutSchema",
    "NewlyUnlockedAchievementSchema",
    "PresetViewSchema",
    "RecordAttemptOutSchema",
    "RecordAttemptRequest",
    "StatsSummaryOutSchema",
    "TrainerPresetsOutSchema",
    "TrainerProgressOutSchema",
    "WeekDaySchema",
]
