"""Read-side projections: stats summary, achievements list, daily challenge."""
from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict
from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathtrainer.core.config import get_settings
from mathtrainer.core.errors import UnknownTrainerError
from mathtrainer.models import TrainerAttempt, TrainerProgress, UserAchievement, UserStats
from mathtrainer.services import recording
from mathtrainer.services.achievements import ACHIEVEMENT_CATALOG, StatsSnapshot
from mathtrainer.services.clock import as_utc, day_window, utcnow, weekday_label
from mathtrainer.services.progress import progress_of
from mathtrainer.trainers.base import RACE_LEVEL
from mathtrainer.trainers.catalog import get_trainer, list_trainers
from mathtrainer.trainers.progress import as_int, clamp

logger = logging.getLogger(__name__)

# Daily challenge
CHALLENGE_TITLE = "Ежедневная тренировка"
CHALLENGE_DESCRIPTION = "Пройди одну успешную сессию в любом тренажёре"
CHALLENGE_REWARD_CRYSTALS = 50
CHALLENGE_START_HREF = "/addition/add-10"
STREAK_MILESTONE_DAYS = 7
CRYSTALS_PER_STREAK_DAY = 10


def _kind_classifiers() -> dict[str, Any]:
    """One adapter per kind, for attempts whose trainer id is no longer in the catalog."""
    out: dict[str, Any] = {}
    for trainer in list_trainers():
        out.setdefault(trainer.kind, trainer.adapter)
    return out


def _decode_result(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {}
    return value if isinstance(value, dict) else {}


def is_success_attempt(kind: str, level: str, result: Mapping[str, Any]) -> bool:
    """Whether a stored attempt counts as a successful session."""
    adapter = _kind_classifiers().get(kind)
    if adapter is None:
        return False
    return adapter.is_success(level, result)


def _attempt_success(attempt: TrainerAttempt) -> bool:
    result = _decode_result(attempt.result_json)
    try:
        adapter = get_trainer(attempt.trainer_id).adapter
    except UnknownTrainerError:
        return is_success_attempt(attempt.kind, attempt.level, result)
    return adapter.is_success(attempt.level, result)


# ---------- stats ----------


def stats_from_attempts(attempts: Iterable[TrainerAttempt]) -> StatsSnapshot:
    """Rebuild a stats snapshot from the ledger.

    Column rows count ``solved - mistakes`` as correct; other kinds use the
    reported correct count.
    """
    totals = Counter()
    for attempt in attempts:
        r = _decode_result(attempt.result_json)
        total = max(0, as_int(r.get("total"), 0))
        time_sec = max(0, as_int(r.get("time"), 0))
        mistakes_known = r.get("mistakes") is not None
        mistakes = max(0, as_int(r.get("mistakes"), 0))
        if attempt.kind == "column":
            correct = clamp(as_int(r.get("solved"), 0) - mistakes, 0, total)
            perfect = total > 0 and mistakes == 0
        else:
            correct = min(total, max(0, as_int(r.get("correct"), 0)))
            perfect = mistakes_known and total > 0 and mistakes == 0
        totals["sessions_count"] += 1
        totals["total_problems"] += total
        totals["total_correct"] += correct
        totals["total_mistakes"] += mistakes
        totals["total_time_sec"] += time_sec
        totals["perfect_sessions_count"] += int(perfect)
        totals["race_wins_count"] += int(attempt.level == RACE_LEVEL and bool(r.get("won")))
    return StatsSnapshot(**totals)


def _needs_backfill(row: UserStats | None) -> bool:
    snapshot = StatsSnapshot.from_row(row)
    return not (snapshot.sessions_count or snapshot.total_problems)


async def _maybe_backfill(db: AsyncSession, learner_id: str, row: UserStats | None) -> StatsSnapshot:
    if not _needs_backfill(row):
        return StatsSnapshot.from_row(row)

    count = await db.scalar(
        select(func.count(TrainerAttempt.id)).where(TrainerAttempt.learner_id == learner_id)
    )
    if not count:
        return StatsSnapshot.from_row(row)

    async with recording.learner_locks(learner_id):
        # a record may have written the snapshot while we waited
        row = await db.get(UserStats, learner_id, populate_existing=True)
        if not _needs_backfill(row):
            return StatsSnapshot.from_row(row)

        result = await db.execute(
            select(TrainerAttempt)
            .where(TrainerAttempt.learner_id == learner_id)
            .order_by(TrainerAttempt.created_at.asc())
        )
        attempts = result.scalars().all()
        snapshot = stats_from_attempts(attempts)
        if row is None:
            row = UserStats(learner_id=learner_id)
            db.add(row)
        for name, value in asdict(snapshot).items():
            setattr(row, name, value)
        try:
            await db.commit()
        except IntegrityError:
            # another process inserted the snapshot first
            await db.rollback()
            logger.info("stats for learner=%s were created concurrently, keeping them", learner_id)
            return StatsSnapshot.from_row(await db.get(UserStats, learner_id))
    logger.info("backfilled stats for learner=%s from %d attempts", learner_id, len(attempts))
    return snapshot


async def _attempts_between(db: AsyncSession, learner_id: str, start: datetime, end: datetime) -> list[TrainerAttempt]:
    result = await db.execute(
        select(TrainerAttempt)
        .where(
            TrainerAttempt.learner_id == learner_id,
            TrainerAttempt.created_at >= start,
            TrainerAttempt.created_at < end,
        )
        .order_by(TrainerAttempt.created_at.asc())
    )
    return list(result.scalars().all())


def _success_by_day(attempts: Iterable[TrainerAttempt]) -> Counter:
    by_day: Counter = Counter()
    for attempt in attempts:
        if _attempt_success(attempt):
            by_day[as_utc(attempt.created_at).date()] += 1
    return by_day


async def total_crystals(db: AsyncSession, learner_id: str) -> int:
    """Crystals earned across every trainer with stored progress."""
    result = await db.execute(select(TrainerProgress).where(TrainerProgress.learner_id == learner_id))
    total = 0
    for row in result.scalars().all():
        try:
            trainer = get_trainer(row.trainer_id)
        except UnknownTrainerError:
            logger.warning("progress row for unknown trainer %s skipped", row.trainer_id)
            continue
        total += trainer.adapter.crystals_for(progress_of(trainer, row))
    return total


async def stats_summary(db: AsyncSession, learner_id: str, now: datetime | None = None) -> dict[str, Any]:
    settings = get_settings()
    now = now or utcnow()
    row = await db.get(UserStats, learner_id)
    snapshot = await _maybe_backfill(db, learner_id, row)

    days, start, end = day_window(now, settings.stats_week_days)
    by_day = _success_by_day(await _attempts_between(db, learner_id, start, end))
    week = [
        {"date": day.isoformat(), "label": weekday_label(day), "success_sessions": by_day.get(day, 0)}
        for day in days
    ]

    total = snapshot.total_problems
    return {
        **asdict(snapshot),
        "accuracy_pct": (snapshot.total_correct / total) * 100 if total > 0 else 0.0,
        "total_crystals": await total_crystals(db, learner_id),
        "week": week,
    }


# ---------- achievements ----------


async def list_achievements(db: AsyncSession, learner_id: str) -> list[dict[str, Any]]:
    """Catalog x per-learner state."""
    result = await db.execute(select(UserAchievement).where(UserAchievement.learner_id == learner_id))
    rows = {row.achievement_id: row for row in result.scalars().all()}

    out = []
    for definition in ACHIEVEMENT_CATALOG:
        row = rows.get(definition.id)
        unlocked_at = as_utc(row.unlocked_at) if row is not None else None
        if definition.kind == "counter":
            total = max(0, definition.total)
            progress = clamp(row.progress or 0, 0, total) if row is not None else 0
        else:
            total = 1
            progress = 1 if unlocked_at else 0
        out.append(
            {
                "id": definition.id,
                "title": definition.title,
                "description": definition.description,
                "icon_key": definition.icon_key,
                "kind": definition.kind,
                "total": total,
                "progress": progress,
                "unlocked_at": unlocked_at,
            }
        )
    return out


# ---------- daily challenge ----------


async def challenge_today(db: AsyncSession, learner_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Today's challenge progress and the streak of days with a successful session."""
    settings = get_settings()
    now = now or utcnow()
    days, start, end = day_window(now, settings.streak_lookback_days)
    by_day = _success_by_day(await _attempts_between(db, learner_id, start, end))

    streak = 0
    for day in reversed(days):
        if by_day.get(day, 0) <= 0:
            break
        streak += 1

    return {
        "today": {
            "title": CHALLENGE_TITLE,
            "description": CHALLENGE_DESCRIPTION,
            "reward_crystals": CHALLENGE_REWARD_CRYSTALS,
            "progress": min(1, by_day.get(days[-1], 0)),
            "total": 1,
            "time_limit_label": "—",
            "difficulty_label": "Любая",
            "start_href": CHALLENGE_START_HREF,
        },
        "streak": {
            "streak_days": streak,
            "next_milestone_days": STREAK_MILESTONE_DAYS,
            "milestone_reward_crystals": STREAK_MILESTONE_DAYS * CRYSTALS_PER_STREAK_DAY,
        },
    }
