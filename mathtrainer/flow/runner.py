"""Exercise runner seam. Runners render problems and report one terminal outcome per token."""
from __future__ import annotations

from typing import Awaitable, Callable, Protocol

from mathtrainer.trainers.session import ExerciseOutcome, SessionConfig

FinishCallback = Callable[[str, ExerciseOutcome], Awaitable[bool]]


class ExerciseRunner(Protocol):
    def begin(self, config: SessionConfig, finish: FinishCallback) -> None:
        """Start a run; must eventually call ``finish(config.attempt_token, outcome)`` once."""
        ...

    def stop(self) -> None:
        """Tear down the current run. Results it reports afterwards are ignored."""
        ...
