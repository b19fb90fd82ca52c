import asyncio
import json
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from mathtrainer.core.errors import InvalidAttemptError, SyncError, UnknownTrainerError
from mathtrainer.models import TrainerAttempt, TrainerProgress, UserAchievement, UserStats
from mathtrainer.services import recording
from mathtrainer.services.achievements import StatsSnapshot
from mathtrainer.services.progress import load_progress, load_progress_row
from mathtrainer.services.recording import record_attempt
from mathtrainer.trainers.progress import ColumnProgress

from conftest import LEARNER

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
MENTAL = "arithmetic:add-10"
COLUMN = "column-addition"


def mental_body(token, total, correct, mistakes, time_sec, level="accuracy-input"):
    return {
        "trainerId": MENTAL,
        "attemptId": token,
        "kind": "mental",
        "level": level,
        "presetId": level,
        "total": total,
        "correct": correct,
        "mistakes": mistakes,
        "time": time_sec,
        "won": False,
    }


def column_race_body(token, stars):
    return {
        "trainerId": COLUMN,
        "attemptId": token,
        "kind": "column",
        "level": "race",
        "presetId": f"race:{max(stars, 1)}",
        "total": 10,
        "solved": 10,
        "mistakes": 0,
        "time": 50,
        "stars": stars,
        "won": stars > 0,
        "starLevel": max(stars, 1),
    }


async def _count(db, model):
    return await db.scalar(select(func.count()).select_from(model))


async def _stats(db):
    row = await db.get(UserStats, LEARNER)
    await db.refresh(row)
    return StatsSnapshot.from_row(row)


async def _progress_json(db, trainer_id):
    row = await load_progress_row(db, LEARNER, trainer_id)
    await db.refresh(row)
    return row.progress_json


async def test_record_accumulates_stats(db):
    await record_attempt(db, LEARNER, mental_body("a1", 10, 8, 2, 30), now=NOW)
    await record_attempt(db, LEARNER, mental_body("a2", 5, 5, 0, 10), now=NOW)

    stats = await db.get(UserStats, LEARNER)
    await db.refresh(stats)
    assert (stats.total_problems, stats.total_correct, stats.total_mistakes, stats.total_time_sec) == (15, 13, 2, 40)
    assert stats.sessions_count == 2
    assert stats.perfect_sessions_count == 1


async def test_record_unlocks_achievements_once(db):
    first = await record_attempt(db, LEARNER, mental_body("a1", 10, 8, 2, 30), now=NOW)
    second = await record_attempt(db, LEARNER, mental_body("a2", 5, 5, 0, 10), now=NOW)

    assert [a.id for a in first.newly_unlocked] == ["first-10-problems"]
    assert [a.id for a in second.newly_unlocked] == ["perfect-session"]
    assert first.progress.accuracy_input is True

    rows = (await db.execute(select(UserAchievement).where(UserAchievement.learner_id == LEARNER))).scalars().all()
    by_id = {row.achievement_id: row for row in rows}
    assert by_id["first-10-problems"].unlocked_at is not None
    assert by_id["first-100-problems"].progress == 15
    assert by_id["first-100-problems"].unlocked_at is None


async def test_same_token_is_recorded_once(db):
    body = mental_body("same", 10, 10, 0, 20)
    first = await record_attempt(db, LEARNER, body, now=NOW)
    stats_before = await _stats(db)
    progress_before = await _progress_json(db, MENTAL)

    again = await record_attempt(db, LEARNER, body, now=NOW)

    assert first.duplicate is False
    assert again.duplicate is True
    assert again.newly_unlocked == []
    assert again.progress == first.progress
    assert await _count(db, TrainerAttempt) == 1
    assert await _stats(db) == stats_before
    assert await _progress_json(db, MENTAL) == progress_before


async def test_duplicate_ignores_a_changed_payload(db):
    await record_attempt(db, LEARNER, column_race_body("r1", 2), now=NOW)
    await record_attempt(db, LEARNER, column_race_body("r2", 1), now=NOW)
    stats_before = await _stats(db)
    progress_before = await _progress_json(db, COLUMN)

    again = await record_attempt(db, LEARNER, column_race_body("r2", 3), now=NOW)

    assert again.duplicate is True
    assert again.progress.race_stars == 2
    assert await _count(db, TrainerAttempt) == 2
    assert await _stats(db) == stats_before
    assert await _progress_json(db, COLUMN) == progress_before


async def test_concurrent_submits_with_one_token(session_factory):
    body = mental_body("race-cond", 10, 10, 0, 20)

    async def submit():
        async with session_factory() as session:
            return await record_attempt(session, LEARNER, body, now=NOW)

    outcomes = await asyncio.gather(submit(), submit())

    assert sorted(o.duplicate for o in outcomes) == [False, True]
    assert len(recording.trainer_locks) == 0
    assert len(recording.learner_locks) == 0
    async with session_factory() as session:
        assert await _count(session, TrainerAttempt) == 1


async def test_tokenless_records_are_not_deduplicated(db, caplog):
    body = mental_body(None, 5, 5, 0, 10)
    await record_attempt(db, LEARNER, body, now=NOW)
    await record_attempt(db, LEARNER, body, now=NOW)
    assert await _count(db, TrainerAttempt) == 2
    assert "without attempt token" in caplog.text


async def test_race_stars_never_decrease(db):
    await record_attempt(db, LEARNER, column_race_body("r1", 2), now=NOW)
    outcome = await record_attempt(db, LEARNER, column_race_body("r2", 1), now=NOW)

    assert outcome.progress.race_stars == 2
    stored = await load_progress(db, LEARNER, COLUMN)
    assert stored.race_stars == 2


async def test_training_leaves_progress_untouched(db):
    body = {
        "trainerId": COLUMN,
        "attemptId": "t1",
        "kind": "column",
        "level": "training",
        "presetId": "training",
        "total": 10,
        "solved": 10,
        "mistakes": 0,
        "time": 60,
        "success": True,
    }
    outcome = await record_attempt(db, LEARNER, body, now=NOW)

    assert outcome.progress == ColumnProgress()
    assert await load_progress(db, LEARNER, COLUMN) is None
    assert await _count(db, TrainerAttempt) == 1
    stats = await db.get(UserStats, LEARNER)
    assert stats.sessions_count == 1


async def test_training_keeps_an_existing_progress_row_byte_identical(db):
    stored = '{"raceStars":1,"accuracy":true,"speed":false}'
    db.add(TrainerProgress(learner_id=LEARNER, trainer_id=COLUMN, progress_json=stored))
    await db.commit()
    body = {
        "trainerId": COLUMN,
        "attemptId": "t2",
        "kind": "column",
        "level": "training",
        "presetId": "training",
        "total": 10,
        "solved": 10,
        "mistakes": 0,
        "time": 60,
        "success": True,
    }

    outcome = await record_attempt(db, LEARNER, body, now=NOW)

    assert outcome.progress == ColumnProgress(accuracy=True, race_stars=1)
    assert await _progress_json(db, COLUMN) == stored


async def test_locks_are_released_after_recording(db):
    await record_attempt(db, LEARNER, mental_body("l1", 10, 10, 0, 20), now=NOW)
    assert len(recording.trainer_locks) == 0
    assert len(recording.learner_locks) == 0


def _unique_conflict():
    return IntegrityError(
        "INSERT INTO user_stats", {}, Exception("UNIQUE constraint failed: user_stats.learner_id")
    )


async def test_unique_conflict_on_another_row_is_retried(db, monkeypatch):
    real = recording._record_locked
    calls = []

    async def conflict_once(*args):
        calls.append(1)
        if len(calls) == 1:
            raise _unique_conflict()
        return await real(*args)

    monkeypatch.setattr(recording, "_record_locked", conflict_once)
    outcome = await record_attempt(db, LEARNER, mental_body("u1", 10, 10, 0, 20), now=NOW)

    assert outcome.duplicate is False
    assert len(calls) == 2
    assert await _count(db, TrainerAttempt) == 1
    assert (await _stats(db)).sessions_count == 1


async def test_persistent_unique_conflict_is_a_sync_error(db, monkeypatch):
    async def always_conflict(*args):
        raise _unique_conflict()

    monkeypatch.setattr(recording, "_record_locked", always_conflict)
    with pytest.raises(SyncError):
        await record_attempt(db, LEARNER, mental_body("u2", 10, 10, 0, 20), now=NOW)

    assert await _count(db, TrainerAttempt) == 0
    assert len(recording.learner_locks) == 0


async def test_ledger_keeps_the_raw_payload(db):
    await record_attempt(db, LEARNER, mental_body("p1", 10, 9, 1, 25), now=NOW)
    attempt = (await db.execute(select(TrainerAttempt))).scalar_one()
    payload = json.loads(attempt.result_json)
    assert payload["attemptId"] == "p1"
    assert payload["correct"] == 9
    assert attempt.level == "accuracy-input"


@pytest.mark.parametrize(
    "patch",
    [
        {"kind": "column"},
        {"level": "lvl1"},
        {"presetId": "race:7"},
        {"total": -1},
        {"time": "fast"},
        {"won": "yes"},
        {"kind": "abacus"},
        {"trainerId": "   "},
    ],
)
async def test_invalid_requests_are_rejected_before_writing(db, patch):
    body = {**mental_body("bad", 10, 10, 0, 20), **patch}
    with pytest.raises(InvalidAttemptError):
        await record_attempt(db, LEARNER, body, now=NOW)
    assert await _count(db, TrainerAttempt) == 0


async def test_unknown_trainer_is_rejected(db):
    body = {**mental_body("x", 10, 10, 0, 20), "trainerId": "arithmetic:mul-table-12", "kind": "drill", "level": "lvl1"}
    with pytest.raises(UnknownTrainerError):
        await record_attempt(db, LEARNER, body, now=NOW)


async def test_failure_rolls_back_every_step(db, monkeypatch):
    def broken(*args, **kwargs):
        raise SQLAlchemyError("disk is gone")

    monkeypatch.setattr(recording, "evaluate_achievements", broken)
    with pytest.raises(SyncError):
        await record_attempt(db, LEARNER, mental_body("f1", 10, 10, 0, 20), now=NOW)

    assert await _count(db, TrainerAttempt) == 0
    assert await _count(db, TrainerProgress) == 0
    assert await _count(db, UserStats) == 0
