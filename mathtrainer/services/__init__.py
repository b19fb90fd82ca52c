from mathtrainer.services.achievements import ACHIEVEMENT_CATALOG, StatsSnapshot, evaluate_achievements
from mathtrainer.services.progress import load_progress, preset_graph_view
from mathtrainer.services.recording import RecordOutcome, record_attempt
from mathtrainer.services.summary import challenge_today, list_achievements, stats_summary

__all__ = [
    "ACHIEVEMENT_CATALOG",
    "RecordOutcome",
    "StatsSnapshot",
    "challenge_today",
    "evaluate_achievements",
    "list_achievements",
    "load_progress",
    "preset_graph_view",
    "record_attempt",
    "stats_summary",
]
