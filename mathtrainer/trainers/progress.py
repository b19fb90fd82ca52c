"""Per-trainer progress records, one shape per trainer archetype.

Each record is an immutable dataclass with a fixed set of wire fields
(booleans plus ``raceStars``). All records only ever move toward "more
unlocked": ``join`` takes the field-wise maximum, and the recording
protocol joins every merged record into the stored one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, ClassVar, Mapping, Union

logger = logging.getLogger(__name__)

MAX_STARS = 3


class Archetype(str, Enum):
    COLUMN = "column"
    MENTAL = "mental"
    DRILL = "drill"


def as_int(value: Any, default: int = 0) -> int:
    """Coerce numbers and numeric strings to int (floored); anything else -> default."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        if value != value or value in (float("inf"), float("-inf")):  # NaN / inf
            return default
        return int(value // 1)
    if isinstance(value, str):
        try:
            return int(float(value) // 1)
        except ValueError:
            return default
    return default


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def clamp_stars(value: Any) -> int:
    return clamp(as_int(value, 0), 0, MAX_STARS)


@dataclass(frozen=True)
class _ProgressRecord:
    """Common behaviour; subclasses declare fields and their wire names."""

    archetype: ClassVar[Archetype]
    # attribute name -> key in the stored JSON object
    WIRE_NAMES: ClassVar[Mapping[str, str]]

    race_stars: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {self.WIRE_NAMES[f.name]: getattr(self, f.name) for f in fields(self)}

    def value(self, key: str) -> Any:
        """Read a field by its wire name (``"accuracy-input"``, ``"raceStars"`` ...)."""
        for attr, wire in self.WIRE_NAMES.items():
            if wire == key:
                return getattr(self, attr)
        return None

    def has_flag(self, key: str) -> bool:
        return key in self.WIRE_NAMES.values() and key != "raceStars"

    def with_flag(self, key: str):
        for attr, wire in self.WIRE_NAMES.items():
            if wire == key and attr != "race_stars":
                return replace(self, **{attr: True})
        raise KeyError(key)

    def with_stars(self, stars: int):
        return replace(self, race_stars=max(self.race_stars, clamp_stars(stars)))

    def join(self, other: "_ProgressRecord"):
        """Field-wise maximum of two records of the same archetype."""
        if type(other) is not type(self):
            raise TypeError(f"cannot join {type(self).__name__} with {type(other).__name__}")
        values = {}
        for f in fields(self):
            mine, theirs = getattr(self, f.name), getattr(other, f.name)
            values[f.name] = max(mine, theirs) if f.name == "race_stars" else (mine or theirs)
        return type(self)(**values)

    @classmethod
    def matches_shape(cls, raw: Any) -> bool:
        if not isinstance(raw, Mapping):
            return False
        for attr, wire in cls.WIRE_NAMES.items():
            if wire not in raw:
                return False
            if attr == "race_stars":
                if isinstance(raw[wire], bool) or not isinstance(raw[wire], (int, float)):
                    return False
            elif not isinstance(raw[wire], bool):
                return False
        return True

    @classmethod
    def from_dict(cls, raw: Any):
        """Normalize a stored/raw object; a mismatched shape falls back to defaults."""
        if raw is None:
            return cls()
        if not cls.matches_shape(raw):
            logger.warning("progress shape mismatch for %s, using defaults: %r", cls.archetype.value, raw)
            return cls()
        values = {}
        for attr, wire in cls.WIRE_NAMES.items():
            values[attr] = clamp_stars(raw[wire]) if attr == "race_stars" else bool(raw[wire])
        return cls(**values)


@dataclass(frozen=True)
class ColumnProgress(_ProgressRecord):
    archetype: ClassVar[Archetype] = Archetype.COLUMN
    WIRE_NAMES: ClassVar[Mapping[str, str]] = {
        "accuracy": "accuracy",
        "speed": "speed",
        "race_stars": "raceStars",
    }

    accuracy: bool = False
    speed: bool = False


@dataclass(frozen=True)
class MentalProgress(_ProgressRecord):
    archetype: ClassVar[Archetype] = Archetype.MENTAL
    WIRE_NAMES: ClassVar[Mapping[str, str]] = {
        "accuracy_choice": "accuracy-choice",
        "accuracy_input": "accuracy-input",
        "speed": "speed",
        "race_stars": "raceStars",
    }

    accuracy_choice: bool = False
    accuracy_input: bool = False
    speed: bool = False


@dataclass(frozen=True)
class DrillProgress(_ProgressRecord):
    archetype: ClassVar[Archetype] = Archetype.DRILL
    WIRE_NAMES: ClassVar[Mapping[str, str]] = {
        "lvl1": "lvl1",
        "lvl2": "lvl2",
        "lvl3": "lvl3",
        "race_stars": "raceStars",
    }

    lvl1: bool = False
    lvl2: bool = False
    lvl3: bool = False


Progress = Union[ColumnProgress, MentalProgress, DrillProgress]

PROGRESS_TYPES: dict[Archetype, type] = {
    Archetype.COLUMN: ColumnProgress,
    Archetype.MENTAL: MentalProgress,
    Archetype.DRILL: DrillProgress,
}


def default_progress(archetype: Archetype) -> Progress:
    return PROGRESS_TYPES[Archetype(archetype)]()


def normalize_progress(archetype: Archetype, raw: Any) -> Progress:
    return PROGRESS_TYPES[Archetype(archetype)].from_dict(raw)
