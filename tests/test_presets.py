from itertools import product

from mathtrainer.trainers import get_trainer
from mathtrainer.trainers.policies import LinearUnlock
from mathtrainer.trainers.presets import UNKNOWN_PRESET_REASON
from mathtrainer.trainers.progress import ColumnProgress, DrillProgress

COLUMN = "column-addition"
DRILL = "arithmetic:mul-table-7"


def test_race_2_locked_until_speed_is_done():
    graph = get_trainer(COLUMN).graph
    progress = ColumnProgress(accuracy=True, speed=False, race_stars=1)

    lock = graph.is_locked("race:2", progress)

    assert lock.locked
    assert lock.reason == "Сначала пройди “Скорость”"
    assert lock.missing == "speed"


def test_race_3_names_the_missing_star_preset():
    graph = get_trainer(COLUMN).graph
    lock = graph.is_locked("race:3", ColumnProgress(accuracy=True, speed=True, race_stars=1))
    assert lock.locked
    assert lock.missing == "race:2"
    assert lock.reason == "Сначала пройди “Знаток”"


def test_column_gates_open_in_order():
    graph = get_trainer(COLUMN).graph
    fresh = ColumnProgress()
    assert not graph.is_locked("training", fresh).locked
    assert not graph.is_locked("accuracy", fresh).locked
    assert graph.is_locked("speed", fresh).locked
    assert not graph.is_locked("speed", ColumnProgress(accuracy=True)).locked
    assert not graph.is_locked("race:1", ColumnProgress(accuracy=True, speed=True)).locked


def test_unknown_preset_is_locked():
    lock = get_trainer(COLUMN).graph.is_locked("race:9", ColumnProgress())
    assert lock.locked
    assert lock.reason == UNKNOWN_PRESET_REASON


def test_unloaded_progress_never_locks():
    graph = get_trainer(DRILL).graph
    assert all(not view.locked for view in graph.views(None))


def test_drill_linear_reason_names_first_incomplete_level():
    graph = get_trainer(DRILL).graph
    lock = graph.is_locked("lvl3", DrillProgress(lvl1=True))
    assert lock.locked
    assert lock.missing == "lvl2"
    assert lock.reason == "Сначала пройди “Точность”"


def test_linear_unlock_is_consistent_with_completion():
    graph = get_trainer(DRILL).graph
    policy = graph.policy
    assert isinstance(policy, LinearUnlock)
    order = graph.effective_order

    for lvl1, lvl2, lvl3, stars in product((False, True), (False, True), (False, True), range(4)):
        progress = DrillProgress(lvl1=lvl1, lvl2=lvl2, lvl3=lvl3, race_stars=stars)
        for idx, preset_id in enumerate(order):
            if not graph.is_locked(preset_id, progress).locked:
                assert all(policy.is_completed(prev, progress) for prev in order[:idx]), (preset_id, progress)


def test_completion_heuristic_for_custom_policy():
    graph = get_trainer(COLUMN).graph
    progress = ColumnProgress(accuracy=True, race_stars=1)
    assert graph.is_completed("accuracy", progress)
    assert not graph.is_completed("speed", progress)
    assert graph.is_completed("race:1", progress)
    assert not graph.is_completed("race:2", progress)
    assert not graph.is_completed("training", progress)
    assert not graph.is_completed("accuracy", None)


def test_next_preset_skips_locked_levels():
    graph = get_trainer(COLUMN).graph
    progress = ColumnProgress(accuracy=True)
    assert graph.next_preset("training", progress).id == "accuracy"
    assert graph.next_preset("accuracy", progress).id == "speed"
    assert graph.next_preset("speed", progress) is None
    assert graph.next_preset("race:3", ColumnProgress(accuracy=True, speed=True, race_stars=3)) is None


def test_newly_unlocked_next_compares_before_and_after():
    graph = get_trainer(DRILL).graph
    before = DrillProgress()
    after = DrillProgress(lvl1=True)
    assert graph.newly_unlocked_next("lvl1", before, after).id == "lvl2"
    assert graph.newly_unlocked_next("lvl1", after, after) is None
    assert graph.newly_unlocked_next("lvl2", before, after) is None


def test_views_report_lock_and_completion():
    views = {v.id: v for v in get_trainer(COLUMN).graph.views(ColumnProgress(accuracy=True))}
    assert views["accuracy"].completed and not views["accuracy"].locked
    assert not views["speed"].locked and not views["speed"].completed
    assert views["race:1"].locked
    assert views["race:1"].reason == "Сначала пройди “Скорость”"
