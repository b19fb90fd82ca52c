"""Mental arithmetic trainers (arithmetic:<exercise>)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from mathtrainer.trainers.base import (
    ACCURACY_THRESHOLD,
    OPPONENT_NAMES,
    RACE_LEVEL,
    TrainerAdapter,
    meets_accuracy,
    payload_star_level,
)
from mathtrainer.trainers.policies import CustomUnlock, FlagSet, MinAccuracy, PresetUnlock, StarsAtLeast, Won
from mathtrainer.trainers.presets import Preset
from mathtrainer.trainers.progress import Archetype, MentalProgress
from mathtrainer.trainers.session import SessionConfig, SessionResult

ACCURACY_LEVELS = ("accuracy-choice", "accuracy-input")


@dataclass(frozen=True)
class MentalTrainerConfig:
    id: str
    name: str
    problems: int = 10
    speed_time_limit: int = 60
    npc_speeds: Mapping[int, float] = field(default_factory=lambda: {1: 6, 2: 4, 3: 3})


class MentalAdapter(TrainerAdapter):
    kind = "mental"
    archetype = Archetype.MENTAL
    levels = frozenset({*ACCURACY_LEVELS, "speed", RACE_LEVEL})
    # accuracy-choice is the training preset and earns nothing
    rewarded_flags = ("accuracy-input", "speed")

    def __init__(self, config: MentalTrainerConfig):
        self.config = config

    def build_presets(self) -> list[Preset]:
        cfg = self.config
        accuracy = MinAccuracy(ACCURACY_THRESHOLD)
        presets = [
            Preset(
                id="accuracy-choice",
                title="Тренировка",
                description=f"Выбери правильный ответ из вариантов • {cfg.problems} примеров",
                default_config=SessionConfig(
                    "accuracy-choice", "accuracy", cfg.problems, answer_input_mode="choice"
                ),
                success_policy=accuracy,
            ),
            Preset(
                id="accuracy-input",
                title="Точность",
                description=f"Введи ответ с клавиатуры • {cfg.problems} примеров",
                default_config=SessionConfig(
                    "accuracy-input", "accuracy", cfg.problems, answer_input_mode="manual"
                ),
                success_policy=accuracy,
            ),
            Preset(
                id="speed",
                title="Скорость",
                description=f"Успей решить за {cfg.speed_time_limit} секунд • {cfg.problems} примеров",
                default_config=SessionConfig(
                    "speed", "speed", cfg.problems, time_limit_sec=cfg.speed_time_limit, answer_input_mode="manual"
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
                    description=f"Реши {cfg.problems} примеров быстрее соперника «{name}»",
                    default_config=SessionConfig(
                        f"race:{level}",
                        "race",
                        cfg.problems,
                        star_level=level,
                        npc_seconds_per_problem=cfg.npc_speeds[level],
                        answer_input_mode="manual",
                    ),
                    success_policy=Won(label="Обгони противника"),
                )
            )
        return presets

    def unlock_policy(self) -> CustomUnlock:
        speed = FlagSet("speed")
        return CustomUnlock(
            rules={
                "speed": PresetUnlock((FlagSet("accuracy-input"),)),
                "race:1": PresetUnlock((speed,)),
                "race:2": PresetUnlock((speed, StarsAtLeast(1))),
                "race:3": PresetUnlock((speed, StarsAtLeast(2))),
            }
        )

    def attempt_payload(self, trainer_id: str, config: SessionConfig, result: SessionResult) -> dict[str, Any]:
        m = result.metrics
        payload = self._payload_base(trainer_id, config)
        payload.update(
            total=m.total or 0,
            correct=m.good_answers,
            time=m.time_sec or 0,
            won=bool(m.won),
        )
        if m.mistakes is not None:
            payload["mistakes"] = m.mistakes
        if config.is_race:
            payload["starLevel"] = config.star_level or 1
        return payload

    def merge_progress(self, prev: MentalProgress, level: str, payload: Mapping[str, Any]) -> MentalProgress:
        if level in ACCURACY_LEVELS:
            if meets_accuracy(payload):
                return prev.with_flag(level)
        elif level == "speed":
            if payload.get("won"):
                return prev.with_flag("speed")
        elif level == RACE_LEVEL:
            if payload.get("won"):
                return prev.with_stars(payload_star_level(payload))
        return prev

    def is_success(self, level: str, payload: Mapping[str, Any]) -> bool:
        if level in ACCURACY_LEVELS:
            return meets_accuracy(payload)
        if level in ("speed", RACE_LEVEL):
            return bool(payload.get("won"))
        return False
