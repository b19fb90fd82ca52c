"""Declarative unlock and success policies.

Everything here is plain data (frozen dataclasses with a ``type`` tag) so
policies can be serialized, compared in tests and swapped between linear and
custom gating without touching the flow.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Union

from mathtrainer.trainers.session import SessionMetrics

# ---------- progress conditions ----------


@dataclass(frozen=True)
class FlagSet:
    """Holds when the boolean progress field ``flag`` is true."""

    flag: str
    type: Literal["flag"] = "flag"

    def holds(self, progress) -> bool:
        return bool(progress.value(self.flag))

    @property
    def prerequisite(self) -> str:
        # flags are named after the preset that sets them
        return self.flag


@dataclass(frozen=True)
class StarsAtLeast:
    """Holds when ``raceStars >= stars``."""

    stars: int
    type: Literal["stars"] = "stars"

    def holds(self, progress) -> bool:
        return int(progress.value("raceStars") or 0) >= self.stars

    @property
    def prerequisite(self) -> str:
        return f"race:{self.stars}"


Condition = Union[FlagSet, StarsAtLeast]


def completion_condition(preset_id: str) -> Condition:
    """Conventional completion rule derived from the preset id.

    ``race:<n>`` is completed once ``n`` stars are earned, any other preset
    once the progress flag with the same name is set.
    """
    if preset_id.startswith("race:"):
        _, _, level = preset_id.partition(":")
        return StarsAtLeast(int(level or 0))
    return FlagSet(preset_id)


@dataclass(frozen=True)
class PresetUnlock:
    """Extra lock conditions of one preset. Locked while any condition fails."""

    requires: tuple[Condition, ...] = ()
    reason: str | None = None

    def first_unmet(self, progress) -> Condition | None:
        for condition in self.requires:
            if not condition.holds(progress):
                return condition
        return None


# ---------- unlock policies ----------


@dataclass(frozen=True)
class OpenUnlock:
    """Every preset is open."""

    type: Literal["none"] = "none"


@dataclass(frozen=True)
class LinearUnlock:
    """Preset N is locked until every preset before it in ``order`` is completed.

    ``order`` defaults to the trainer's preset list. ``completion`` overrides
    the conventional completion rule for individual presets.
    """

    order: tuple[str, ...] = ()
    completion: Mapping[str, Condition] = field(default_factory=dict)
    type: Literal["linear"] = "linear"

    def is_completed(self, preset_id: str, progress) -> bool:
        condition = self.completion.get(preset_id) or completion_condition(preset_id)
        return condition.holds(progress)


@dataclass(frozen=True)
class CustomUnlock:
    """Per-preset rules; presets without a rule are open."""

    rules: Mapping[str, PresetUnlock] = field(default_factory=dict)
    type: Literal["custom"] = "custom"


UnlockPolicy = Union[OpenUnlock, LinearUnlock, CustomUnlock]


# ---------- success policies ----------


@dataclass(frozen=True)
class NoMistakes:
    label: str = "Без ошибок"
    type: Literal["noMistakes"] = "noMistakes"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        return (metrics.mistakes or 0) == 0


@dataclass(frozen=True)
class MinAccuracy:
    min: float = 0.8
    label: str = "Точность"
    type: Literal["minAccuracy"] = "minAccuracy"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        total = metrics.total or 0
        return total > 0 and metrics.good_answers >= total * self.min


@dataclass(frozen=True)
class MaxMistakes:
    limit: int = 0
    label: str = "Ограничение ошибок"
    type: Literal["maxMistakes"] = "maxMistakes"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        return (metrics.mistakes or 0) <= self.limit


@dataclass(frozen=True)
class Won:
    label: str = "Победа"
    type: Literal["won"] = "won"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        return bool(metrics.won)


@dataclass(frozen=True)
class AllOf:
    policies: tuple["SuccessPolicy", ...] = ()
    type: Literal["allOf"] = "allOf"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        return all(p.evaluate(metrics) for p in self.policies)


@dataclass(frozen=True)
class AnyOf:
    policies: tuple["SuccessPolicy", ...] = ()
    type: Literal["anyOf"] = "anyOf"

    def evaluate(self, metrics: SessionMetrics) -> bool:
        return any(p.evaluate(metrics) for p in self.policies)


SuccessPolicy = Union[NoMistakes, MinAccuracy, MaxMistakes, Won, AllOf, AnyOf]


def evaluate_success(policy: SuccessPolicy | None, metrics: SessionMetrics, default: bool = True) -> bool:
    """Apply a preset's success policy; presets without one use ``default``."""
    if policy is None:
        return default
    return policy.evaluate(metrics)


def describe(policy: Any) -> dict[str, Any]:
    """Serialize a policy or condition into a JSON-friendly dict."""
    if isinstance(policy, (AllOf, AnyOf)):
        return {"type": policy.type, "policies": [describe(p) for p in policy.policies]}
    if isinstance(policy, CustomUnlock):
        return {
            "type": policy.type,
            "rules": {pid: {"requires": [describe(c) for c in rule.requires], "reason": rule.reason}
                      for pid, rule in policy.rules.items()},
        }
    if isinstance(policy, LinearUnlock):
        return {
            "type": policy.type,
            "order": list(policy.order),
            "completion": {pid: describe(c) for pid, c in policy.completion.items()},
        }
    return dict(vars(policy))
