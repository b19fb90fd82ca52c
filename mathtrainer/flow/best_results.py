"""Local best-result memory per (trainer, preset)."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from mathtrainer.services.clock import utcnow
from mathtrainer.trainers.session import SessionMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BestResult:
    accuracy: float
    time_sec: int | None
    recorded_at: datetime

    def beats(self, other: "BestResult") -> bool:
        """Higher accuracy first, then faster time (missing time is slowest), then newer."""
        if self.accuracy != other.accuracy:
            return self.accuracy > other.accuracy
        mine = math.inf if self.time_sec is None else self.time_sec
        theirs = math.inf if other.time_sec is None else other.time_sec
        if mine != theirs:
            return mine < theirs
        return self.recorded_at >= other.recorded_at


class BestResults:
    def __init__(self) -> None:
        self._best: dict[tuple[str, str], BestResult] = {}

    def get(self, trainer_id: str, preset_id: str) -> BestResult | None:
        return self._best.get((trainer_id, preset_id))

    def update(
        self,
        trainer_id: str,
        preset_id: str,
        metrics: SessionMetrics,
        now: datetime | None = None,
    ) -> bool:
        """Remember ``metrics`` if it beats the stored best. Returns True when replaced."""
        accuracy = metrics.accuracy
        if accuracy is None:
            return False
        candidate = BestResult(accuracy, metrics.time_sec, now or utcnow())
        key = (trainer_id, preset_id)
        current = self._best.get(key)
        if current is not None and not candidate.beats(current):
            return False
        self._best[key] = candidate
        logger.debug("new best for %s/%s: %.2f in %ss", trainer_id, preset_id, accuracy, metrics.time_sec)
        return True
