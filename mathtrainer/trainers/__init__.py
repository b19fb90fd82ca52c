from mathtrainer.trainers.base import AttemptFacts, Trainer, TrainerAdapter
from mathtrainer.trainers.catalog import get_trainer, list_trainers
from mathtrainer.trainers.presets import LockState, Preset, PresetGraph, PresetView
from mathtrainer.trainers.progress import Archetype, ColumnProgress, DrillProgress, MentalProgress, Progress
from mathtrainer.trainers.session import ExerciseOutcome, SessionConfig, SessionMetrics, SessionResult

__all__ = [
    "Archetype",
    "AttemptFacts",
    "ColumnProgress",
    "DrillProgress",
    "ExerciseOutcome",
    "LockState",
    "MentalProgress",
    "Preset",
    "PresetGraph",
    "PresetView",
    "Progress",
    "SessionConfig",
    "SessionMetrics",
    "SessionResult",
    "Trainer",
    "TrainerAdapter",
    "get_trainer",
    "list_trainers",
]
