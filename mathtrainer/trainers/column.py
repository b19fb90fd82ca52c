"""Column arithmetic trainers (addition, subtraction, ... written in a column)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from mathtrainer.trainers.base import OPPONENT_NAMES, RACE_LEVEL, AttemptFacts, TrainerAdapter, payload_mistakes
from mathtrainer.trainers.policies import CustomUnlock, FlagSet, NoMistakes, PresetUnlock, StarsAtLeast, Won
from mathtrainer.trainers.presets import Preset
from mathtrainer.trainers.progress import Archetype, ColumnProgress, as_int, clamp_stars
from mathtrainer.trainers.session import SessionConfig, SessionResult


@dataclass(frozen=True)
class ColumnTrainerConfig:
    id: str
    name: str
    accuracy_problems: int
    speed_problems: int
    race_problems: int
    speed_time_limit: int = 60
    # seconds per problem for opponent star levels 1..3
    npc_speeds: Mapping[int, float] = field(default_factory=lambda: {1: 12, 2: 9, 3: 6})


class ColumnAdapter(TrainerAdapter):
    kind = "column"
    archetype = Archetype.COLUMN
    levels = frozenset({"training", "accuracy", "speed", RACE_LEVEL})
    rewarded_flags = ("accuracy", "speed")

    def __init__(self, config: ColumnTrainerConfig):
        self.config = config

    def build_presets(self) -> list[Preset]:
        cfg = self.config
        race_win = Won(label="Обгони соперника")
        presets = [
            Preset(
                id="training",
                title="Тренировка",
                description=f"Потренируйся без ограничений • {cfg.accuracy_problems} примеров",
                default_config=SessionConfig("training", "training", cfg.accuracy_problems),
            ),
            Preset(
                id="accuracy",
                title="Точность",
                description=f"Реши все примеры без ошибок • {cfg.accuracy_problems} примеров",
                default_config=SessionConfig("accuracy", "accuracy", cfg.accuracy_problems),
                success_policy=NoMistakes(),
            ),
            Preset(
                id="speed",
                title="Скорость",
                description=f"Успей решить за {cfg.speed_time_limit} секунд • {cfg.speed_problems} примеров",
                default_config=SessionConfig(
                    "speed", "speed", cfg.speed_problems, time_limit_sec=cfg.speed_time_limit
                ),
                success_policy=Won(label="Успей за время"),
            ),
        ]
        for level in (1, 2, 3):
            name = OPPONENT_NAMES[level]
            presets.append(
                Preset(
                    id=f"race:{level}",
                    title=name,
                    description=f"Реши {cfg.race_problems} примеров быстрее соперника «{name}»",
                    default_config=SessionConfig(
                        f"race:{level}",
                        "race",
                        cfg.race_problems,
                        star_level=level,
                        npc_seconds_per_problem=cfg.npc_speeds[level],
                    ),
                    success_policy=race_win,
                )
            )
        return presets

    def unlock_policy(self) -> CustomUnlock:
        speed = FlagSet("speed")
        return CustomUnlock(
            rules={
                "speed": PresetUnlock((FlagSet("accuracy"),)),
                "race:1": PresetUnlock((speed,)),
                "race:2": PresetUnlock((speed, StarsAtLeast(1))),
                "race:3": PresetUnlock((speed, StarsAtLeast(2))),
            }
        )

    def progresses(self, level: str) -> bool:
        return level != "training"

    def attempt_payload(self, trainer_id: str, config: SessionConfig, result: SessionResult) -> dict[str, Any]:
        m = result.metrics
        payload = self._payload_base(trainer_id, config)
        payload.update(
            total=m.total or config.total_problems,
            solved=m.solved or 0,
            mistakes=m.mistakes or 0,
            time=m.time_sec or 0,
        )
        level = payload["level"]
        if level == "accuracy":
            # accuracy runs continue until every problem is solved
            payload["solved"] = payload["total"]
            payload["success"] = payload["mistakes"] == 0
        elif level == RACE_LEVEL:
            payload["stars"] = clamp_stars(m.stars_earned or 0)
            payload["won"] = bool(result.success)
            payload["starLevel"] = config.star_level
        else:
            payload["success"] = bool(result.success)
        return payload

    def merge_progress(self, prev: ColumnProgress, level: str, payload: Mapping[str, Any]) -> ColumnProgress:
        if level == "accuracy":
            if as_int(payload.get("mistakes"), 0) == 0:
                return prev.with_flag("accuracy")
        elif level == "speed":
            if payload.get("success"):
                return prev.with_flag("speed")
        elif level == RACE_LEVEL:
            return prev.with_stars(clamp_stars(payload.get("stars")))
        return prev

    def is_success(self, level: str, payload: Mapping[str, Any]) -> bool:
        success = payload.get("success")
        if isinstance(success, bool):
            return success
        if level == "accuracy":
            return as_int(payload.get("mistakes"), 0) == 0
        if level == RACE_LEVEL:
            return bool(payload.get("won"))
        return False

    def attempt_facts(self, trainer_id: str, level: str, payload: Mapping[str, Any]) -> AttemptFacts:
        # column runners report solved problems, not a separate correct count
        return AttemptFacts(
            trainer_id=trainer_id,
            kind=self.kind,
            level=level,
            total=as_int(payload.get("total"), 0),
            correct=as_int(payload.get("solved"), 0),
            mistakes=payload_mistakes(payload),
            time_sec=as_int(payload.get("time"), 0),
            won=bool(payload.get("won")),
        )
