"""Static trainer catalog. Trainers are built from configuration and never change at runtime."""
from __future__ import annotations

from functools import lru_cache

from mathtrainer.core.errors import UnknownTrainerError
from mathtrainer.trainers.base import Trainer
from mathtrainer.trainers.column import ColumnAdapter, ColumnTrainerConfig
from mathtrainer.trainers.drill import MAX_MULTIPLIER, MIN_MULTIPLIER, DrillAdapter
from mathtrainer.trainers.mental import MentalAdapter, MentalTrainerConfig

COLUMN_BACK_HREF = "/class-2/addition"
ARITHMETIC_BACK_HREF = "/class-1"
DRILL_BACK_HREF = "/class-2/multiplication"

COLUMN_TRAINERS = [
    ColumnTrainerConfig("column-addition", "Сложение в столбик", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-add-2d-1d-no-carry", "Двухзначное и однозначное — без перехода", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-add-2d-1d-carry", "Двухзначное и однозначное — с переходом", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-add-2d-2d-no-carry", "Двухзначное и двухзначное — без перехода", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-add-2d-2d-carry", "Двухзначное и двухзначное — с переходом", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-add-3d-2d", "Трёхзначное и двузначное — до 1000", 10, 6, 10, 90, {1: 16, 2: 12, 3: 9}),
    ColumnTrainerConfig("column-add-3d-3d", "Сумма трёхзначных — до 1000", 10, 6, 10, 90, {1: 18, 2: 14, 3: 10}),
    ColumnTrainerConfig("column-subtraction", "Вычитание в столбик", 10, 5, 10, 60, {1: 12, 2: 9, 3: 6}),
    ColumnTrainerConfig("column-multiplication", "Умножение в столбик", 8, 4, 8, 90, {1: 18, 2: 14, 3: 10}),
    ColumnTrainerConfig("column-division", "Деление в столбик", 8, 4, 8, 120, {1: 20, 2: 16, 3: 12}),
]

MENTAL_TRAINERS = [
    MentalTrainerConfig("add-10", "Сложение до 10", speed_time_limit=60, npc_speeds={1: 6, 2: 4, 3: 3}),
    MentalTrainerConfig("add-20", "Сложение до 20 (с переходом)", speed_time_limit=60, npc_speeds={1: 8, 2: 5, 3: 4}),
    MentalTrainerConfig("add-20-no-carry", "Сложение до 20 (без перехода)", speed_time_limit=60, npc_speeds={1: 7, 2: 5, 3: 4}),
    MentalTrainerConfig("add-to-round-ten", "Сложение с круглым", speed_time_limit=60, npc_speeds={1: 7, 2: 5, 3: 4}),
    MentalTrainerConfig("add-2d-1d-no-carry", "Двухзначное и однозначное (без перехода)", speed_time_limit=75, npc_speeds={1: 9, 2: 7, 3: 5}),
    MentalTrainerConfig("add-2d-1d-carry", "Двухзначное и однозначное (с переходом)", speed_time_limit=75, npc_speeds={1: 10, 2: 8, 3: 6}),
    MentalTrainerConfig("add-2d-2d-no-carry", "Двухзначные (без перехода)", speed_time_limit=90, npc_speeds={1: 12, 2: 9, 3: 7}),
    MentalTrainerConfig("add-2d-2d-carry", "Двухзначные (с переходом)", speed_time_limit=90, npc_speeds={1: 13, 2: 10, 3: 8}),
    MentalTrainerConfig("add-zero", "Сложение с нулем", speed_time_limit=60, npc_speeds={1: 7, 2: 5, 3: 4}),
    MentalTrainerConfig("add-50", "Сложение в пределах 50", speed_time_limit=90, npc_speeds={1: 10, 2: 7, 3: 5}),
    MentalTrainerConfig("sub-10", "Вычитание до 10", speed_time_limit=60, npc_speeds={1: 6, 2: 4, 3: 3}),
    MentalTrainerConfig("sub-20", "Вычитание до 20 (с переходом)", speed_time_limit=60, npc_speeds={1: 8, 2: 5, 3: 4}),
    MentalTrainerConfig("sub-to-round-ten", "Вычитание до круглого", speed_time_limit=75, npc_speeds={1: 9, 2: 7, 3: 5}),
    MentalTrainerConfig("sub-2d-2d-round", "Двухзначные круглые", speed_time_limit=90, npc_speeds={1: 12, 2: 9, 3: 7}),
    MentalTrainerConfig("sub-2d-2d-borrow", "Двухзначные (с заёмом)", speed_time_limit=90, npc_speeds={1: 14, 2: 11, 3: 9}),
    MentalTrainerConfig("sub-50", "Вычитание в пределах 50", speed_time_limit=90, npc_speeds={1: 10, 2: 7, 3: 5}),
]

ARITHMETIC_PREFIX = "arithmetic:"


def arithmetic_trainer_id(exercise_id: str) -> str:
    return f"{ARITHMETIC_PREFIX}{exercise_id}"


def _build_catalog() -> dict[str, Trainer]:
    trainers: dict[str, Trainer] = {}
    for cfg in COLUMN_TRAINERS:
        trainers[cfg.id] = Trainer(cfg.id, cfg.name, COLUMN_BACK_HREF, ColumnAdapter(cfg))
    for cfg in MENTAL_TRAINERS:
        trainer_id = arithmetic_trainer_id(cfg.id)
        trainers[trainer_id] = Trainer(trainer_id, cfg.name, ARITHMETIC_BACK_HREF, MentalAdapter(cfg))
    for n in range(MIN_MULTIPLIER, MAX_MULTIPLIER + 1):
        trainer_id = arithmetic_trainer_id(f"mul-table-{n}")
        trainers[trainer_id] = Trainer(trainer_id, f"Таблица умножения на {n}", DRILL_BACK_HREF, DrillAdapter(n))
    return trainers


@lru_cache
def trainer_catalog() -> dict[str, Trainer]:
    return _build_catalog()


def get_trainer(trainer_id: str) -> Trainer:
    """Resolve a trainer id; unknown ids raise UnknownTrainerError."""
    trainer_id = (trainer_id or "").strip()
    trainer = trainer_catalog().get(trainer_id)
    if trainer is None:
        raise UnknownTrainerError(trainer_id)
    return trainer


def list_trainers() -> list[Trainer]:
    return list(trainer_catalog().values())
