"""Preset graph: lock, completion and next-level resolution for one trainer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from mathtrainer.trainers.policies import (
    Condition,
    CustomUnlock,
    LinearUnlock,
    OpenUnlock,
    PresetUnlock,
    StarsAtLeast,
    SuccessPolicy,
    UnlockPolicy,
    completion_condition,
)
from mathtrainer.trainers.progress import Progress
from mathtrainer.trainers.session import SessionConfig

UNKNOWN_PRESET_REASON = "Неизвестный уровень"
PREVIOUS_LEVEL_REASON = "Сначала пройди предыдущий уровень"


@dataclass(frozen=True)
class Preset:
    id: str
    title: str
    description: str
    default_config: SessionConfig
    success_policy: SuccessPolicy | None = None
    unlock: PresetUnlock | None = None


@dataclass(frozen=True)
class LockState:
    locked: bool
    reason: str | None = None
    # id of the first unmet prerequisite, when known
    missing: str | None = None


OPEN = LockState(False)


@dataclass(frozen=True)
class PresetView:
    id: str
    title: str
    description: str
    locked: bool
    completed: bool
    reason: str | None = None


class PresetGraph:
    def __init__(self, presets: Iterable[Preset], policy: UnlockPolicy | None = None):
        self.presets: tuple[Preset, ...] = tuple(presets)
        self.policy: UnlockPolicy = policy or OpenUnlock()
        self._by_id = {p.id: p for p in self.presets}

    def __contains__(self, preset_id: str) -> bool:
        return preset_id in self._by_id

    def get(self, preset_id: str) -> Preset | None:
        return self._by_id.get(preset_id)

    @property
    def effective_order(self) -> tuple[str, ...]:
        if isinstance(self.policy, LinearUnlock) and self.policy.order:
            return tuple(self.policy.order)
        return tuple(p.id for p in self.presets)

    # ---------- locking ----------

    def _condition_lock(self, condition: Condition, reason: str | None) -> LockState:
        missing = condition.prerequisite
        if reason is None:
            if isinstance(condition, StarsAtLeast) and missing not in self._by_id:
                reason = f"Сначала победи ⭐{condition.stars}"
            else:
                reason = self._complete_first(missing)
        return LockState(True, reason, missing)

    def _complete_first(self, preset_id: str) -> str:
        required = self._by_id.get(preset_id)
        if required is None:
            return PREVIOUS_LEVEL_REASON
        return f"Сначала пройди “{required.title}”"

    def is_locked(self, preset_id: str, progress: Progress | None) -> LockState:
        """Resolve whether ``preset_id`` can be started with ``progress``.

        ``progress is None`` means "not loaded yet" and never locks; callers
        suppress gating while loading instead of treating it as empty.
        """
        preset = self._by_id.get(preset_id)
        if preset is None:
            return LockState(True, UNKNOWN_PRESET_REASON)
        if progress is None:
            return OPEN

        policy = self.policy
        if isinstance(policy, CustomUnlock):
            rule = policy.rules.get(preset_id)
            if rule is not None:
                unmet = rule.first_unmet(progress)
                if unmet is not None:
                    return self._condition_lock(unmet, rule.reason)
        elif isinstance(policy, LinearUnlock):
            order = self.effective_order
            if preset_id in order:
                for required in order[: order.index(preset_id)]:
                    if not policy.is_completed(required, progress):
                        return LockState(True, self._complete_first(required), required)

        if preset.unlock is not None:
            unmet = preset.unlock.first_unmet(progress)
            if unmet is not None:
                return self._condition_lock(unmet, preset.unlock.reason)
        return OPEN

    def is_completed(self, preset_id: str, progress: Progress | None) -> bool:
        if progress is None or preset_id not in self._by_id:
            return False
        if isinstance(self.policy, LinearUnlock):
            return self.policy.is_completed(preset_id, progress)
        # shape heuristic: flag named after the preset, or race:n stars
        if preset_id.startswith("race:") or progress.has_flag(preset_id):
            return completion_condition(preset_id).holds(progress)
        return False

    # ---------- navigation ----------

    def next_preset(self, current: str, progress: Progress | None) -> Preset | None:
        """First preset after ``current`` in the effective order that is not locked."""
        order = self.effective_order
        if current not in order:
            return None
        for preset_id in order[order.index(current) + 1:]:
            if not self.is_locked(preset_id, progress).locked:
                return self._by_id.get(preset_id)
        return None

    def newly_unlocked_next(
        self,
        current: str,
        before: Progress | None,
        after: Progress | None,
    ) -> Preset | None:
        """The immediately-next preset if recording just unlocked it."""
        order = self.effective_order
        if current not in order:
            return None
        idx = order.index(current)
        if idx + 1 >= len(order):
            return None
        candidate = order[idx + 1]
        if self.is_locked(candidate, before).locked and not self.is_locked(candidate, after).locked:
            return self._by_id.get(candidate)
        return None

    def views(self, progress: Progress | None) -> list[PresetView]:
        out = []
        for preset in self.presets:
            lock = self.is_locked(preset.id, progress)
            out.append(
                PresetView(
                    id=preset.id,
                    title=preset.title,
                    description=preset.description,
                    locked=lock.locked,
                    completed=self.is_completed(preset.id, progress),
                    reason=lock.reason,
                )
            )
        return out
