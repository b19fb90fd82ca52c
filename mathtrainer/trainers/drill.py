"""Multiplication table drills (arithmetic:mul-table-<n>)."""
from __future__ import annotations

import re
from typing import Any, Mapping

from mathtrainer.core.errors import UnknownTrainerError
from mathtrainer.trainers.base import (
    OPPONENT_NAMES,
    RACE_LEVEL,
    TrainerAdapter,
    meets_accuracy,
    payload_mistakes,
    payload_star_level,
)
from mathtrainer.trainers.policies import FlagSet, LinearUnlock, MaxMistakes, MinAccuracy, PresetUnlock, StarsAtLeast, Won
from mathtrainer.trainers.presets import Preset
from mathtrainer.trainers.progress import Archetype, DrillProgress, as_int
from mathtrainer.trainers.session import SessionConfig, SessionResult

MUL_TABLE_RE = re.compile(r"^arithmetic:mul-table-(\d+)$")
MIN_MULTIPLIER = 1
MAX_MULTIPLIER = 10
LVL3_MAX_MISTAKES = 4

# (preset id, problems, input mode, order, opponent seconds per problem)
_LEVELS = [
    ("lvl1", 10, "choice", "ordered", None),
    ("lvl2", 10, "choice", "mixed", None),
    ("lvl3", 20, "manual", "mixed", None),
    ("race:1", 20, "manual", "mixed", 6),
    ("race:2", 36, "manual", "mixed", 4),
    ("race:3", 36, "manual", "mixed", 2),
]


def parse_multiplier(trainer_id: str) -> int:
    """Multiplier of a drill trainer id; anything outside 1..10 is unknown."""
    match = MUL_TABLE_RE.match(trainer_id.strip())
    if not match:
        raise UnknownTrainerError(trainer_id)
    multiplier = int(match.group(1))
    if not MIN_MULTIPLIER <= multiplier <= MAX_MULTIPLIER:
        raise UnknownTrainerError(trainer_id)
    return multiplier


class DrillAdapter(TrainerAdapter):
    kind = "drill"
    archetype = Archetype.DRILL
    levels = frozenset({"lvl1", "lvl2", "lvl3", RACE_LEVEL})
    rewarded_flags = ("lvl1", "lvl2", "lvl3")

    def __init__(self, multiplier: int):
        self.multiplier = multiplier

    def _config(self, preset_id, problems, input_mode, order, npc) -> SessionConfig:
        star_level = int(preset_id.split(":")[1]) if preset_id.startswith("race:") else None
        return SessionConfig(
            preset_id,
            "race" if star_level else preset_id,
            problems,
            answer_input_mode=input_mode,
            order=order,
            star_level=star_level,
            npc_seconds_per_problem=npc,
            options={"selectedMultipliers": [self.multiplier]},
        )

    def build_presets(self) -> list[Preset]:
        configs = {row[0]: self._config(*row) for row in _LEVELS}
        accuracy = MinAccuracy(0.8)
        race_win = Won(label="Обгони соперника")
        presets = [
            Preset(
                id="lvl1",
                title="Тренировка",
                description="На выбор • по порядку • 10 примеров",
                default_config=configs["lvl1"],
                success_policy=accuracy,
            ),
            Preset(
                id="lvl2",
                title="Точность",
                description="На выбор • вперемешку • 10 примеров",
                default_config=configs["lvl2"],
                success_policy=accuracy,
                unlock=PresetUnlock((FlagSet("lvl1"),), "Сначала пройди Уровень 1"),
            ),
            Preset(
                id="lvl3",
                title="Скорость",
                description="Ввод • вперемешку • 20 примеров",
                default_config=configs["lvl3"],
                success_policy=MaxMistakes(LVL3_MAX_MISTAKES, label="Не более 4 ошибок"),
                unlock=PresetUnlock((FlagSet("lvl2"),), "Сначала пройди Уровень 2"),
            ),
        ]
        race_unlocks = {
            1: PresetUnlock((FlagSet("lvl3"),), "Сначала пройди Уровень 3"),
            2: PresetUnlock((StarsAtLeast(1),)),
            3: PresetUnlock((StarsAtLeast(2),)),
        }
        for level in (1, 2, 3):
            config = configs[f"race:{level}"]
            name = OPPONENT_NAMES[level]
            presets.append(
                Preset(
                    id=config.preset_id,
                    title=name,
                    description=(
                        f"Реши {config.total_problems} примеров быстрее соперника «{name}» "
                        f"• {config.npc_seconds_per_problem:g}с/пример"
                    ),
                    default_config=config,
                    success_policy=race_win,
                    unlock=race_unlocks[level],
                )
            )
        return presets

    def unlock_policy(self) -> LinearUnlock:
        return LinearUnlock(order=tuple(row[0] for row in _LEVELS))

    def attempt_payload(self, trainer_id: str, config: SessionConfig, result: SessionResult) -> dict[str, Any]:
        m = result.metrics
        payload = self._payload_base(trainer_id, config)
        payload.update(
            total=max(0, m.total or 0),
            correct=max(0, m.good_answers),
            mistakes=max(0, m.mistakes or 0),
            time=max(0, m.time_sec or 0),
            won=bool(m.won),
        )
        if config.is_race:
            payload["starLevel"] = config.star_level or 1
        return payload

    def merge_progress(self, prev: DrillProgress, level: str, payload: Mapping[str, Any]) -> DrillProgress:
        if level in ("lvl1", "lvl2"):
            if meets_accuracy(payload):
                return prev.with_flag(level)
        elif level == "lvl3":
            if as_int(payload.get("mistakes"), 0) <= LVL3_MAX_MISTAKES:
                return prev.with_flag("lvl3")
        elif level == RACE_LEVEL:
            if payload.get("won"):
                return prev.with_stars(payload_star_level(payload))
        return prev

    def is_success(self, level: str, payload: Mapping[str, Any]) -> bool:
        if level in ("lvl1", "lvl2"):
            return meets_accuracy(payload)
        if level == "lvl3":
            mistakes = payload_mistakes(payload)
            return mistakes is not None and mistakes <= LVL3_MAX_MISTAKES
        if level == RACE_LEVEL:
            return bool(payload.get("won"))
        return False
