"""Recording protocol: ledger insert, progress merge, stats delta and
achievement evaluation as one transaction.

Each call runs under a per-(learner, trainer) lock and then a per-learner
lock; the stats snapshot and achievement states are read-modify-write per
learner. The unique (learner, trainer, token) constraint turns a submit and
its retry into a no-op duplicate even across processes. Any other unique
conflict at commit (another process created the progress or stats row
first) is retried once and then reported as a SyncError.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Mapping

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mathtrainer.core.errors import InvalidAttemptError, SyncError
from mathtrainer.models import TrainerAttempt, TrainerProgress, UserAchievement, UserStats
from mathtrainer.schemas.progress import RecordAttemptRequest
from mathtrainer.services.achievements import (
    ACHIEVEMENT_CATALOG,
    AchievementState,
    NewlyUnlocked,
    StatsSnapshot,
    changed_states,
    compute_stats_delta,
    evaluate_achievements,
)
from mathtrainer.services.clock import as_utc, utcnow
from mathtrainer.services.progress import load_progress_row, progress_of
from mathtrainer.trainers.base import Trainer
from mathtrainer.trainers.catalog import get_trainer
from mathtrainer.trainers.drill import parse_multiplier
from mathtrainer.trainers.progress import Progress

logger = logging.getLogger(__name__)

# metric name -> (min, max); None means unbounded
METRIC_BOUNDS: dict[str, tuple[int, int | None]] = {
    "total": (0, None),
    "solved": (0, None),
    "correct": (0, None),
    "mistakes": (0, None),
    "time": (0, None),
    "stars": (0, 3),
    "starLevel": (1, 3),
}

# a unique conflict that is not a duplicate token is retried once
COMMIT_ATTEMPTS = 2


class KeyedLocks:
    """asyncio.Lock per key. A key is dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[Any, asyncio.Lock] = {}
        self._users: Counter = Counter()

    @asynccontextmanager
    async def __call__(self, key: Any) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] <= 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


trainer_locks = KeyedLocks()
learner_locks = KeyedLocks()


@dataclass(frozen=True)
class RecordOutcome:
    trainer_id: str
    progress: Progress | None
    duplicate: bool = False
    newly_unlocked: list[NewlyUnlocked] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trainerId": self.trainer_id,
            "progress": self.progress.to_dict() if self.progress is not None else None,
            "duplicate": self.duplicate,
            "newlyUnlockedAchievements": [a.to_dict() for a in self.newly_unlocked],
        }


# ---------- validation ----------


def parse_record_request(raw: Any) -> RecordAttemptRequest:
    """Validate a raw record body; any schema error is ``invalid_input``."""
    try:
        return RecordAttemptRequest.model_validate(raw)
    except ValidationError as exc:
        raise InvalidAttemptError(f"invalid record request: {exc.error_count()} error(s)") from exc


def _check_metrics(payload: Mapping[str, Any]) -> None:
    for name, (low, high) in METRIC_BOUNDS.items():
        value = payload.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidAttemptError(f"{name} must be a number")
        if not math.isfinite(value) or value < low or (high is not None and value > high):
            raise InvalidAttemptError(f"{name} is out of range")
    for name in ("won", "success"):
        value = payload.get(name)
        if value is not None and not isinstance(value, bool):
            raise InvalidAttemptError(f"{name} must be a boolean")


def resolve_attempt(body: RecordAttemptRequest) -> tuple[Trainer, dict[str, Any]]:
    """Check the request against its trainer before anything touches the ledger."""
    if body.kind == "drill":
        parse_multiplier(body.trainer_id)
    trainer = get_trainer(body.trainer_id)
    if trainer.kind != body.kind:
        raise InvalidAttemptError(f"kind {body.kind!r} does not match trainer {trainer.id!r}")
    if body.level not in trainer.adapter.levels:
        raise InvalidAttemptError(f"unknown level {body.level!r} for {trainer.kind} trainers")
    if body.preset_id is not None and trainer.preset(body.preset_id) is None:
        raise InvalidAttemptError(f"unknown preset {body.preset_id!r}")
    payload = body.payload()
    _check_metrics(payload)
    return trainer, payload


# ---------- persistence helpers ----------


async def _find_attempt(db: AsyncSession, learner_id: str, trainer_id: str, token: str) -> TrainerAttempt | None:
    result = await db.execute(
        select(TrainerAttempt).where(
            TrainerAttempt.learner_id == learner_id,
            TrainerAttempt.trainer_id == trainer_id,
            TrainerAttempt.attempt_token == token,
        )
    )
    return result.scalar_one_or_none()


async def _duplicate_outcome(db: AsyncSession, learner_id: str, trainer: Trainer) -> RecordOutcome:
    row = await load_progress_row(db, learner_id, trainer.id)
    return RecordOutcome(trainer.id, progress_of(trainer, row), duplicate=True)


async def _load_achievement_rows(db: AsyncSession, learner_id: str) -> dict[str, UserAchievement]:
    result = await db.execute(select(UserAchievement).where(UserAchievement.learner_id == learner_id))
    return {row.achievement_id: row for row in result.scalars().all()}


# ---------- protocol ----------


async def _record_locked(
    db: AsyncSession,
    learner_id: str,
    trainer: Trainer,
    body: RecordAttemptRequest,
    payload: dict[str, Any],
    now: datetime,
) -> RecordOutcome:
    token = body.attempt_id
    if token is not None and await _find_attempt(db, learner_id, trainer.id, token) is not None:
        logger.info("duplicate attempt %s for learner=%s trainer=%s", token, learner_id, trainer.id)
        return await _duplicate_outcome(db, learner_id, trainer)

    # 1) ledger
    db.add(
        TrainerAttempt(
            learner_id=learner_id,
            trainer_id=trainer.id,
            attempt_token=token,
            kind=body.kind,
            level=body.level,
            preset_id=body.preset_id,
            result_json=json.dumps(payload, ensure_ascii=False),
            created_at=now,
        )
    )
    await db.flush()

    # 2) progress
    adapter = trainer.adapter
    row = await load_progress_row(db, learner_id, trainer.id)
    stored = progress_of(trainer, row)
    progress = stored if stored is not None else adapter.default_progress()
    if adapter.progresses(body.level):
        progress = progress.join(adapter.merge_progress(progress, body.level, payload))
        encoded = json.dumps(progress.to_dict())
        if row is None:
            db.add(TrainerProgress(learner_id=learner_id, trainer_id=trainer.id, progress_json=encoded))
        elif row.progress_json != encoded:
            row.progress_json = encoded

    # 3) stats
    stats_row = await db.get(UserStats, learner_id)
    prev_stats = StatsSnapshot.from_row(stats_row)
    next_stats = prev_stats + compute_stats_delta(adapter.attempt_facts(trainer.id, body.level, payload))
    if stats_row is None:
        stats_row = UserStats(learner_id=learner_id)
        db.add(stats_row)
    for name, value in asdict(next_stats).items():
        setattr(stats_row, name, value)

    # 4) achievements
    achievement_rows = await _load_achievement_rows(db, learner_id)
    prev_states = {
        aid: AchievementState(aid, row.progress or 0, as_utc(row.unlocked_at))
        for aid, row in achievement_rows.items()
    }
    next_states, newly = evaluate_achievements(ACHIEVEMENT_CATALOG, prev_states, prev_stats, next_stats, now=now)
    for state in changed_states(prev_states, next_states):
        ach_row = achievement_rows.get(state.id)
        if ach_row is None:
            db.add(
                UserAchievement(
                    learner_id=learner_id,
                    achievement_id=state.id,
                    progress=state.progress,
                    unlocked_at=state.unlocked_at,
                )
            )
        else:
            ach_row.progress = state.progress
            ach_row.unlocked_at = state.unlocked_at

    await db.commit()
    if newly:
        logger.info("learner=%s unlocked %s", learner_id, ", ".join(a.id for a in newly))
    return RecordOutcome(trainer.id, progress, duplicate=False, newly_unlocked=newly)


async def record_attempt(
    db: AsyncSession,
    learner_id: str,
    body: RecordAttemptRequest | Mapping[str, Any],
    now: datetime | None = None,
) -> RecordOutcome:
    """Record one finished session exactly once.

    Raises InvalidAttemptError / UnknownTrainerError before any write, and
    SyncError when the transaction fails; nothing is committed in that case.
    """
    if not isinstance(body, RecordAttemptRequest):
        body = parse_record_request(body)
    trainer, payload = resolve_attempt(body)
    now = now or utcnow()
    if body.attempt_id is None:
        logger.warning(
            "record without attempt token for learner=%s trainer=%s; retries will double count",
            learner_id,
            trainer.id,
        )

    async with trainer_locks((learner_id, trainer.id)):
        async with learner_locks(learner_id):
            for round_no in range(1, COMMIT_ATTEMPTS + 1):
                try:
                    return await _record_locked(db, learner_id, trainer, body, payload, now)
                except IntegrityError as exc:
                    await db.rollback()
                    if body.attempt_id is not None and (
                        await _find_attempt(db, learner_id, trainer.id, body.attempt_id) is not None
                    ):
                        # a concurrent submit with the same token won the insert
                        logger.info("duplicate attempt %s detected at commit", body.attempt_id)
                        return await _duplicate_outcome(db, learner_id, trainer)
                    # another process created this learner's progress or stats row first
                    logger.warning(
                        "unique conflict recording for learner=%s trainer=%s (try %d): %s",
                        learner_id,
                        trainer.id,
                        round_no,
                        exc.orig,
                    )
                    error = exc
                except SQLAlchemyError as exc:
                    await db.rollback()
                    logger.exception("recording failed for learner=%s trainer=%s", learner_id, trainer.id)
                    raise SyncError("attempt could not be stored") from exc
            raise SyncError("attempt could not be stored") from error
