import asyncio
import json
from datetime import datetime, timedelta, timezone

from mathtrainer.models import TrainerAttempt, TrainerProgress, UserStats
from mathtrainer.services import recording
from mathtrainer.services.recording import record_attempt
from mathtrainer.services.summary import challenge_today, is_success_attempt, list_achievements, stats_summary

from conftest import LEARNER

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)  # Monday


def drill_body(token, correct, level="lvl1"):
    return {
        "trainerId": "arithmetic:mul-table-2",
        "attemptId": token,
        "kind": "drill",
        "level": level,
        "presetId": level,
        "total": 10,
        "correct": correct,
        "mistakes": 10 - correct,
        "time": 45,
        "won": False,
    }


def test_success_classification_per_kind():
    assert is_success_attempt("drill", "lvl1", {"total": 10, "correct": 8})
    assert not is_success_attempt("drill", "lvl1", {"total": 10, "correct": 7})
    assert not is_success_attempt("drill", "lvl3", {"total": 20, "correct": 20})
    assert is_success_attempt("column", "training", {"success": True})
    assert is_success_attempt("mental", "race", {"won": True})
    assert not is_success_attempt("abacus", "lvl1", {})


async def test_summary_totals_and_week(db):
    await record_attempt(db, LEARNER, drill_body("d1", 9), now=NOW)
    await record_attempt(db, LEARNER, drill_body("d2", 5), now=NOW)
    await record_attempt(db, LEARNER, drill_body("d3", 10), now=NOW - timedelta(days=2))

    summary = await stats_summary(db, LEARNER, now=NOW)

    assert summary["total_problems"] == 30
    assert summary["total_correct"] == 24
    assert summary["sessions_count"] == 3
    assert summary["accuracy_pct"] == 80.0
    week = summary["week"]
    assert len(week) == 7
    assert week[-1] == {"date": "2026-10-19", "label": "Пн", "success_sessions": 1}
    assert week[-3]["success_sessions"] == 1
    assert sum(day["success_sessions"] for day in week) == 2


async def test_summary_for_new_learner_is_empty(db):
    summary = await stats_summary(db, "nobody", now=NOW)
    assert summary["sessions_count"] == 0
    assert summary["accuracy_pct"] == 0.0
    assert all(day["success_sessions"] == 0 for day in summary["week"])


async def test_missing_snapshot_is_backfilled_from_ledger(db):
    payload = {"total": 10, "solved": 10, "mistakes": 2, "time": 50, "success": False}
    db.add(
        TrainerAttempt(
            learner_id=LEARNER,
            trainer_id="column-addition",
            attempt_token="old-1",
            kind="column",
            level="speed",
            result_json=json.dumps(payload),
            created_at=NOW - timedelta(days=40),
        )
    )
    await db.commit()

    summary = await stats_summary(db, LEARNER, now=NOW)

    assert summary["total_problems"] == 10
    assert summary["total_correct"] == 8
    assert summary["total_mistakes"] == 2
    assert summary["sessions_count"] == 1
    row = await db.get(UserStats, LEARNER)
    assert row.total_correct == 8


async def test_backfill_waits_for_the_learner_lock_and_rereads(db, session_factory):
    db.add(
        TrainerAttempt(
            learner_id=LEARNER,
            trainer_id="column-addition",
            attempt_token="old-2",
            kind="column",
            level="accuracy",
            result_json=json.dumps({"total": 10, "solved": 10, "mistakes": 0, "time": 40}),
            created_at=NOW - timedelta(days=40),
        )
    )
    await db.commit()

    async with recording.learner_locks(LEARNER):
        pending = asyncio.create_task(stats_summary(db, LEARNER, now=NOW))
        await asyncio.sleep(0.05)
        assert not pending.done()
        # a record lands while the summary waits
        async with session_factory() as other:
            other.add(UserStats(learner_id=LEARNER, sessions_count=5, total_problems=50, total_correct=45))
            await other.commit()

    summary = await pending
    assert summary["sessions_count"] == 5
    assert summary["total_problems"] == 50
    assert len(recording.learner_locks) == 0


async def test_summary_counts_crystals_across_trainers(db):
    db.add_all(
        [
            TrainerProgress(
                learner_id=LEARNER,
                trainer_id="column-addition",
                progress_json=json.dumps({"accuracy": True, "speed": True, "raceStars": 1}),
            ),
            TrainerProgress(
                learner_id=LEARNER,
                trainer_id="arithmetic:mul-table-4",
                progress_json=json.dumps({"lvl1": True, "lvl2": False, "lvl3": False, "raceStars": 0}),
            ),
            TrainerProgress(learner_id=LEARNER, trainer_id="column-cubes", progress_json="{}"),
        ]
    )
    await db.commit()

    summary = await stats_summary(db, LEARNER, now=NOW)
    assert summary["total_crystals"] == 35


async def test_achievement_list_covers_the_catalog(db):
    before = await list_achievements(db, LEARNER)
    assert [a["id"] for a in before] == [
        "first-10-problems",
        "first-100-problems",
        "perfect-session",
        "first-race-win",
        "race-master",
        "time-hero",
    ]
    assert all(a["progress"] == 0 and a["unlocked_at"] is None for a in before)

    await record_attempt(db, LEARNER, drill_body("d1", 10), now=NOW)
    after = {a["id"]: a for a in await list_achievements(db, LEARNER)}
    assert after["first-10-problems"]["progress"] == 10
    assert after["first-10-problems"]["unlocked_at"] == NOW
    assert after["perfect-session"]["total"] == 1
    assert after["perfect-session"]["progress"] == 1
    assert after["time-hero"]["progress"] == 45


async def test_streak_counts_consecutive_days_ending_today(db):
    for days_ago, token in ((0, "t0"), (1, "t1"), (3, "t3")):
        await record_attempt(db, LEARNER, drill_body(token, 10), now=NOW - timedelta(days=days_ago))
    await record_attempt(db, LEARNER, drill_body("t2-fail", 2), now=NOW - timedelta(days=2))

    challenge = await challenge_today(db, LEARNER, now=NOW)

    assert challenge["streak"]["streak_days"] == 2
    assert challenge["today"]["progress"] == 1
    assert challenge["today"]["total"] == 1


async def test_streak_is_zero_without_a_session_today(db):
    await record_attempt(db, LEARNER, drill_body("y", 10), now=NOW - timedelta(days=1))
    challenge = await challenge_today(db, LEARNER, now=NOW)
    assert challenge["streak"]["streak_days"] == 0
    assert challenge["today"]["progress"] == 0
