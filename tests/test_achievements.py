from datetime import datetime, timezone

from mathtrainer.services.achievements import (
    ACHIEVEMENT_CATALOG,
    AchievementState,
    StatsSnapshot,
    changed_states,
    compute_stats_delta,
    evaluate_achievements,
)
from mathtrainer.trainers.base import AttemptFacts

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
LATER = datetime(2026, 10, 20, 12, 0, tzinfo=timezone.utc)


def _facts(total, correct, mistakes, time_sec, level="accuracy", won=False):
    return AttemptFacts("column-addition", "column", level, total, correct, mistakes, time_sec, won)


def test_stats_accumulate_from_deltas():
    stats = StatsSnapshot()
    stats = stats + compute_stats_delta(_facts(10, 8, 2, 30))
    stats = stats + compute_stats_delta(_facts(5, 5, 0, 10))

    assert stats.total_problems == 15
    assert stats.total_correct == 13
    assert stats.total_mistakes == 2
    assert stats.total_time_sec == 40
    assert stats.sessions_count == 2
    assert stats.perfect_sessions_count == 1
    assert stats.race_wins_count == 0


def test_delta_is_non_negative_and_clamped():
    delta = compute_stats_delta(_facts(5, 9, -3, -10))
    assert delta.total_correct == 5
    assert delta.total_mistakes == 0
    assert delta.total_time_sec == 0


def test_unknown_mistakes_never_count_as_perfect():
    assert compute_stats_delta(_facts(10, 10, None, 20)).perfect_sessions_count == 0


def test_race_win_counts_only_for_race_level():
    assert compute_stats_delta(_facts(10, 10, 0, 20, level="race", won=True)).race_wins_count == 1
    assert compute_stats_delta(_facts(10, 10, 0, 20, level="speed", won=True)).race_wins_count == 0


def test_counter_unlocks_when_threshold_reached():
    prev = StatsSnapshot(total_problems=8)
    nxt = StatsSnapshot(total_problems=12)
    states, newly = evaluate_achievements(ACHIEVEMENT_CATALOG, {}, prev, nxt, now=NOW)

    assert [a.id for a in newly] == ["first-10-problems"]
    assert states["first-10-problems"].unlocked_at == NOW
    assert states["first-10-problems"].progress == 10
    assert states["first-100-problems"].progress == 12
    assert not states["first-100-problems"].unlocked


def test_boolean_unlocks_on_strict_increase_only():
    base = StatsSnapshot(perfect_sessions_count=0)
    _, newly = evaluate_achievements(ACHIEVEMENT_CATALOG, {}, base, base, now=NOW)
    assert newly == []

    _, newly = evaluate_achievements(
        ACHIEVEMENT_CATALOG, {}, base, StatsSnapshot(perfect_sessions_count=1), now=NOW
    )
    assert [a.id for a in newly] == ["perfect-session"]


def test_unlocked_states_are_stable():
    prev = StatsSnapshot(total_problems=5)
    nxt = StatsSnapshot(total_problems=10)
    states, _ = evaluate_achievements(ACHIEVEMENT_CATALOG, {}, prev, nxt, now=NOW)

    again, newly = evaluate_achievements(
        ACHIEVEMENT_CATALOG, states, nxt, StatsSnapshot(total_problems=50), now=LATER
    )
    assert newly == []
    assert again["first-10-problems"] == states["first-10-problems"]
    assert again["first-10-problems"].unlocked_at == NOW


def test_evaluation_is_deterministic_for_fixed_now():
    prev = StatsSnapshot()
    nxt = StatsSnapshot(total_problems=10, race_wins_count=1, total_time_sec=700)
    first = evaluate_achievements(ACHIEVEMENT_CATALOG, {}, prev, nxt, now=NOW)
    second = evaluate_achievements(ACHIEVEMENT_CATALOG, {}, prev, nxt, now=NOW)
    assert first == second
    assert {a.id for a in first[1]} == {"first-10-problems", "first-race-win", "time-hero"}


def test_changed_states_skips_untouched_entries():
    prev = {"first-10-problems": AchievementState("first-10-problems", 3)}
    nxt = {
        "first-10-problems": AchievementState("first-10-problems", 3),
        "time-hero": AchievementState("time-hero", 40),
    }
    assert [s.id for s in changed_states(prev, nxt)] == ["time-hero"]


def test_newly_unlocked_wire_shape():
    _, newly = evaluate_achievements(
        ACHIEVEMENT_CATALOG, {}, StatsSnapshot(), StatsSnapshot(race_wins_count=1), now=NOW
    )
    data = newly[0].to_dict()
    assert data["id"] == "first-race-win"
    assert data["iconKey"] == "swords"
    assert data["unlockedAt"] == NOW.isoformat()
