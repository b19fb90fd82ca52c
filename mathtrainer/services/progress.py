"""Progress store access and read-only progress projections."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mathtrainer.models import TrainerProgress
from mathtrainer.trainers.base import Trainer
from mathtrainer.trainers.catalog import get_trainer
from mathtrainer.trainers.policies import describe
from mathtrainer.trainers.progress import Progress

logger = logging.getLogger(__name__)


async def load_progress_row(db: AsyncSession, learner_id: str, trainer_id: str) -> TrainerProgress | None:
    result = await db.execute(
        select(TrainerProgress).where(
            TrainerProgress.learner_id == learner_id,
            TrainerProgress.trainer_id == trainer_id,
        )
    )
    return result.scalar_one_or_none()


def progress_of(trainer: Trainer, row: TrainerProgress | None) -> Progress | None:
    """Decode a stored row; a broken or mismatched shape falls back to defaults."""
    if row is None:
        return None
    try:
        raw = json.loads(row.progress_json)
    except ValueError:
        logger.warning("stored progress for %s is not JSON, using defaults", trainer.id)
        raw = None
    return trainer.adapter.normalize(raw)


async def load_progress(db: AsyncSession, learner_id: str, trainer_id: str) -> Progress | None:
    """Stored progress for (learner, trainer); None when nothing was recorded yet."""
    trainer = get_trainer(trainer_id)
    row = await load_progress_row(db, learner_id, trainer.id)
    return progress_of(trainer, row)


async def preset_graph_view(db: AsyncSession, learner_id: str, trainer_id: str) -> dict:
    """Preset list with lock/completed state for the learner's stored progress."""
    trainer = get_trainer(trainer_id)
    stored = await load_progress(db, learner_id, trainer.id)
    adapter = trainer.adapter
    progress = stored if stored is not None else adapter.default_progress()
    return {
        "trainer_id": trainer.id,
        "title": trainer.title,
        "archetype": trainer.archetype.value,
        "unlock_policy": describe(trainer.graph.policy),
        "progress": stored.to_dict() if stored is not None else None,
        "presets": [asdict(view) for view in trainer.graph.views(progress)],
        "crystals": {
            "earned": adapter.crystals_for(stored),
            "cap": adapter.crystals_cap(),
            "pre_race_done": adapter.pre_race_done(stored),
        },
    }
