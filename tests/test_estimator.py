"""
Tests for scopemate/estimator.py

Covers:
1. flatten() - depth multiplication, breadth summation, errors
2. compute_stats() - totals, percents, sorting
3. estimate_project() - the game example end to end
"""

import logging
import time
from collections import Counter

import pytest

from scopemate.config import Config, max_safe_depth
from scopemate.errors import EmptyRequirementError, RequirementDepthError
from scopemate.estimator import (
    compute_stats,
    estimate_project,
    flatten,
    merge_flat_tasks,
    percentages,
)
from scopemate.schema import FlatTask, Requirement, Task


def counts(flat_tasks):
    return {flat.name: flat.nb for flat in flat_tasks}


# ---------------------------------------------------------------------------
# flatten
# ---------------------------------------------------------------------------

class TestFlatten:
    def test_single_task_has_count_one(self):
        task = Task("Write", "Docs", 30)
        assert flatten(task) == [FlatTask("Write", "Docs", 30, 1)]

    def test_game_example_counts(self, game_project):
        assert counts(flatten(game_project)) == {
            "Portrait": 4,
            "Sprite": 2,
            "BGMTrack": 3,
            "GameBackground": 2,
            "EndGameScreen": 2,
        }

    def test_first_encountered_order(self, game_project):
        names = [flat.name for flat in flatten(game_project)]
        assert names == ["Portrait", "Sprite", "BGMTrack", "GameBackground", "EndGameScreen"]

    @pytest.mark.parametrize("path_counts", [[1], [3], [2, 5], [3, 1, 4], [2, 2, 2, 2, 2]])
    def test_depth_multiplies_counts(self, path_counts):
        node = Task("Leaf", "X", 1)
        for count in reversed(path_counts):
            node = Requirement().add(node, count)

        expected = 1
        for count in path_counts:
            expected *= count
        assert counts(flatten(node)) == {"Leaf": expected}

    def test_breadth_sums_across_disjoint_subtrees(self):
        leaf = Task("Leaf", "X", 1)
        left = Requirement().add(Requirement().add(leaf, 3), 2)  # 6
        right = Requirement().add(leaf, 5)  # 5
        root = Requirement().add(left, 1).add(right, 1)
        assert counts(flatten(root)) == {"Leaf": 11}

    def test_siblings_with_same_task_are_merged(self):
        leaf = Task("Leaf", "X", 1)
        root = Requirement().add(leaf, 2).add(leaf, 3)
        result = flatten(root)
        assert len(result) == 1
        assert result[0].nb == 5

    def test_shared_subrequirement_counts_for_each_parent(self):
        leaf = Task("Leaf", "X", 1)
        shared = Requirement().add(leaf, 2)
        root = Requirement().add(Requirement().add(shared, 3), 1).add(shared, 1)
        assert counts(flatten(root)) == {"Leaf": 8}

    def test_empty_root_raises(self):
        with pytest.raises(EmptyRequirementError):
            flatten(Requirement())

    def test_nested_empty_requirement_aborts_everything(self):
        root = Requirement().add(Task("A", "X", 1), 1).add(Requirement("broken"), 2)
        with pytest.raises(EmptyRequirementError, match="broken"):
            flatten(root)

    def test_depth_limit(self):
        node = Task("Leaf", "X", 1)
        for _ in range(3):
            node = Requirement().add(node, 1)

        assert counts(flatten(node, max_depth=3)) == {"Leaf": 1}
        with pytest.raises(RequirementDepthError):
            flatten(Requirement().add(node, 1), max_depth=3)

    def test_cycle_is_reported_as_depth_error(self):
        loop = Requirement("loop")
        loop.add(Task("A", "X", 1), 1)
        loop.add(loop, 1)
        with pytest.raises(RequirementDepthError):
            flatten(loop, max_depth=20)

    def test_rejects_unknown_node(self):
        with pytest.raises(TypeError):
            flatten("not a node")

    def test_input_tree_is_not_mutated(self, game_project):
        before = [(e.child, e.count) for e in game_project.entries]
        first = flatten(game_project)
        second = flatten(game_project)
        assert first == second
        assert [(e.child, e.count) for e in game_project.entries] == before


class TestDivergentDuplicates:
    def test_first_seen_fields_win(self):
        root = (
            Requirement()
            .add(Task("Logo", "Art", 30), 1)
            .add(Task("Logo", "Design", 90), 2)
        )
        result = flatten(root, warn_on_divergent=False)
        assert result == [FlatTask("Logo", "Art", 30, 3)]

    def test_warning_is_logged_once(self, caplog):
        root = (
            Requirement()
            .add(Task("Logo", "Art", 30), 1)
            .add(Task("Logo", "Design", 90), 1)
            .add(Task("Logo", "Design", 90), 1)
        )
        with caplog.at_level(logging.WARNING, logger="scopemate.estimator"):
            flatten(root, warn_on_divergent=True)

        messages = [r.getMessage() for r in caplog.records if "Logo" in r.getMessage()]
        assert len(messages) == 1

    def test_no_warning_for_identical_duplicates(self, caplog, game_project):
        with caplog.at_level(logging.WARNING, logger="scopemate.estimator"):
            flatten(game_project, warn_on_divergent=True)
        assert caplog.records == []

    def test_no_warning_when_disabled(self, caplog):
        root = Requirement().add(Task("Logo", "Art", 30), 1).add(Task("Logo", "Code", 30), 1)
        with caplog.at_level(logging.WARNING, logger="scopemate.estimator"):
            flatten(root, warn_on_divergent=False)
        assert caplog.records == []


def test_merge_flat_tasks_returns_new_records():
    a = FlatTask("A", "X", 10, 2)
    b = FlatTask("A", "X", 10, 3)
    merged = merge_flat_tasks([a, b])
    assert merged == [FlatTask("A", "X", 10, 5)]
    assert a.nb == 2 and b.nb == 3


# ---------------------------------------------------------------------------
# compute_stats
# ---------------------------------------------------------------------------

class TestPercentages:
    def test_half_up_rounding(self):
        assert percentages([1, 7], 8) == [13, 88]

    def test_zero_total(self):
        assert percentages([0, 0], 0) == [0, 0]

    def test_empty(self):
        assert percentages([], 0) == []


class TestComputeStats:
    def test_empty_input(self):
        stats = compute_stats([])
        assert stats.total_minutes == 0
        assert stats.total_time == "00m"
        assert stats.task_stats == ()
        assert stats.type_stats == ()

    def test_zero_durations_give_zero_percents(self):
        stats = compute_stats([FlatTask("A", "X", 0, 3), FlatTask("B", "Y", 0, 1)])
        assert stats.total_minutes == 0
        assert [s.percent for s in stats.task_stats] == [0, 0]
        assert [s.percent for s in stats.type_stats] == [0, 0]

    def test_sorted_ascending_by_percent(self):
        stats = compute_stats(
            [FlatTask("Big", "X", 80, 1), FlatTask("Small", "Y", 5, 1), FlatTask("Mid", "Z", 15, 1)]
        )
        assert [s.name for s in stats.task_stats] == ["Small", "Mid", "Big"]
        assert [s.type for s in stats.type_stats] == ["Y", "Z", "X"]

    def test_ties_keep_first_encountered_order(self):
        stats = compute_stats(
            [FlatTask("B", "T2", 10, 1), FlatTask("A", "T1", 10, 1), FlatTask("C", "T2", 20, 1)]
        )
        assert [s.name for s in stats.task_stats] == ["B", "A", "C"]
        assert [(s.type, s.percent) for s in stats.type_stats] == [("T1", 25), ("T2", 75)]

    def test_totals_are_conserved(self, game_project):
        flat_tasks = flatten(game_project)
        stats = compute_stats(flat_tasks)
        expected = sum(f.time * f.nb for f in flat_tasks)
        assert stats.total_minutes == expected
        assert sum(s.minutes for s in stats.type_stats) == expected
        assert sum(s.total_minutes for s in stats.task_stats) == expected

    def test_percent_bounds(self, game_project):
        stats = compute_stats(flatten(game_project))
        percents = [s.percent for s in stats.task_stats]
        assert all(isinstance(p, int) and 0 <= p <= 100 for p in percents)
        assert abs(sum(percents) - 100) <= len(percents)


# ---------------------------------------------------------------------------
# estimate_project
# ---------------------------------------------------------------------------

class TestEstimateProject:
    def test_game_example(self, game_project):
        stats = estimate_project(game_project)

        assert stats.total_minutes == 770
        assert stats.total_time == "12h50m"
        assert [(s.type, s.minutes, s.percent) for s in stats.type_stats] == [
            ("Code", 30, 4),
            ("Music", 360, 47),
            ("Art", 380, 49),
        ]
        assert [(s.name, s.nb, s.percent) for s in stats.task_stats] == [
            ("GameBackground", 2, 3),
            ("EndGameScreen", 2, 4),
            ("Sprite", 2, 16),
            ("Portrait", 4, 31),
            ("BGMTrack", 3, 47),
        ]

    def test_report_dict(self, game_project):
        report = estimate_project(game_project).to_dict()

        assert report["totalTime"] == "12h50m"
        assert report["typeStats"][-1] == {"type": "Art", "time": "6h20m", "percent": 49}
        assert report["taskStats"][-1] == {
            "name": "BGMTrack",
            "type": "Music",
            "time": 120,
            "nb": 3,
            "totalTime": "6h00m",
            "percent": 47,
        }

    def test_idempotent(self, game_project):
        first = estimate_project(game_project)
        second = estimate_project(game_project)
        assert first.total_time == second.total_time
        assert Counter((s.name, s.total_minutes) for s in first.task_stats) == Counter(
            (s.name, s.total_minutes) for s in second.task_stats
        )
        assert Counter((s.type, s.minutes) for s in first.type_stats) == Counter(
            (s.type, s.minutes) for s in second.type_stats
        )

    def test_empty_requirement_never_returns(self):
        with pytest.raises(EmptyRequirementError):
            estimate_project(Requirement())

    def test_root_must_be_requirement(self):
        with pytest.raises(TypeError):
            estimate_project(Task("A", "X", 1))

    def test_uses_config_depth_limit(self):
        node = Requirement().add(Requirement().add(Task("A", "X", 1), 1), 1)
        with pytest.raises(RequirementDepthError):
            estimate_project(node, config=Config(max_depth=1))
        assert estimate_project(node, config=Config(max_depth=2)).total_time == "01m"

    def test_fractional_durations(self):
        root = Requirement().add(Task("Quick", "X", 1.5), 3)
        stats = estimate_project(root)
        assert stats.total_minutes == 4.5
        assert stats.total_time == "04m"
        assert stats.task_stats[0].percent == 100


# ---------------------------------------------------------------------------
# Shared sub-requirements
# ---------------------------------------------------------------------------

class TestSharedRequirements:
    def test_deep_diamond_is_flattened_quickly(self):
        node = Requirement("level0").add(Task("Leaf", "X", 1), 1)
        for level in range(1, 41):
            node = Requirement(f"level{level}").add(node, 1).add(node, 1)

        started = time.perf_counter()
        result = flatten(node)
        elapsed = time.perf_counter() - started

        assert counts(result) == {"Leaf": 2 ** 40}
        assert elapsed < 2.0

    def test_depth_limit_applies_to_every_path_through_a_shared_node(self):
        shared = Requirement("shared").add(Requirement("inner").add(Task("A", "X", 1), 1), 1)
        deep_path = Requirement().add(Requirement().add(shared, 1), 1)
        root = Requirement().add(shared, 1).add(deep_path, 1)

        # shared is reached at depth 1 first, then at depth 3 where its inner
        # requirement sits at depth 4
        assert counts(flatten(root, max_depth=5)) == {"A": 2}
        with pytest.raises(RequirementDepthError):
            flatten(root, max_depth=4)

    def test_depth_limit_is_capped_below_recursion_limit(self):
        node = Task("Leaf", "X", 1)
        for _ in range(max_safe_depth() + 1):
            node = Requirement().add(node, 1)
        with pytest.raises(RequirementDepthError):
            flatten(node, max_depth=10 ** 6)
