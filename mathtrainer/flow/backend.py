"""Backend seam of the session flow: load progress, record a finished session."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mathtrainer.core.errors import ProgressLoadError, SyncError
from mathtrainer.services.progress import load_progress
from mathtrainer.services.recording import RecordOutcome, record_attempt
from mathtrainer.trainers.catalog import get_trainer
from mathtrainer.trainers.progress import Progress

logger = logging.getLogger(__name__)


class TrainerBackend(Protocol):
    async def load_progress(self, trainer_id: str) -> Progress:
        """Stored progress, or the trainer's defaults when nothing is stored.

        Raises ProgressLoadError when the store cannot be reached.
        """
        ...

    async def record(self, payload: Mapping[str, Any]) -> RecordOutcome:
        """Record one finished session. Raises SyncError on transient failures."""
        ...


class ServiceBackend:
    """In-process backend calling the services directly for one learner."""

    def __init__(self, learner_id: str, session_factory: async_sessionmaker[AsyncSession]):
        self.learner_id = learner_id
        self.session_factory = session_factory

    async def load_progress(self, trainer_id: str) -> Progress:
        try:
            async with self.session_factory() as db:
                progress = await load_progress(db, self.learner_id, trainer_id)
        except SQLAlchemyError as exc:
            logger.warning("progress load failed for %s: %s", trainer_id, exc)
            raise ProgressLoadError(f"progress for {trainer_id!r} could not be loaded") from exc
        if progress is None:
            return get_trainer(trainer_id).adapter.default_progress()
        return progress

    async def record(self, payload: Mapping[str, Any]) -> RecordOutcome:
        try:
            async with self.session_factory() as db:
                return await record_attempt(db, self.learner_id, dict(payload))
        except SQLAlchemyError as exc:
            raise SyncError("attempt could not be stored") from exc
