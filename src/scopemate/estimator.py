"""
Pure estimation logic for scopemate.

No I/O. Just:
- Flattening a requirement tree into tasks with effective counts
- Per-task and per-type time shares
- The estimate_project entry point
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .config import Config, get_config, max_safe_depth
from .errors import EmptyRequirementError, RequirementDepthError
from .schema import (
    FlatTask,
    Node,
    ProjectStats,
    Requirement,
    Task,
    TaskStat,
    TypeStat,
    format_duration,
)

logger = logging.getLogger(__name__)

__all__ = [
    "compute_stats",
    "estimate_project",
    "flatten",
    "format_duration",
    "merge_flat_tasks",
    "percentages",
]


# --- Flattening -------------------------------------------------------------


def merge_flat_tasks(
    flat_tasks: Iterable[FlatTask],
    *,
    warned: Optional[Set[str]] = None,
) -> List[FlatTask]:
    """
    Merge records sharing a name by summing their counts.

    The first record seen for a name keeps its type and time, and the output
    is in first-encountered order. When `warned` is a set, a warning is
    logged (once per name) for duplicates whose type or time differ.
    """
    merged: Dict[str, FlatTask] = {}
    for flat in flat_tasks:
        first = merged.get(flat.name)
        if first is None:
            merged[flat.name] = flat
            continue
        if (
            warned is not None
            and flat.name not in warned
            and (first.type, first.time) != (flat.type, flat.time)
        ):
            warned.add(flat.name)
            logger.warning(
                "Task %r appears with different fields (%s, %s) and (%s, %s); "
                "keeping the first one",
                flat.name,
                first.type,
                first.time,
                flat.type,
                flat.time,
            )
        merged[flat.name] = replace(first, nb=first.nb + flat.nb)
    return list(merged.values())


def _too_deep(max_depth: int) -> RequirementDepthError:
    return RequirementDepthError(
        f"Requirement tree is nested deeper than {max_depth} levels (is it cyclic?)"
    )


def _flatten(
    node: Node,
    depth: int,
    max_depth: int,
    warned: Optional[Set[str]],
    memo: Dict[int, Tuple[List[FlatTask], int]],
) -> Tuple[List[FlatTask], int]:
    """Flat tasks of `node` and its height in requirement levels."""
    match node:
        case Task():
            return [FlatTask.from_task(node)], 0
        case Requirement():
            if depth >= max_depth:
                raise _too_deep(max_depth)

            # shared sub-requirements are flattened once per call
            cached = memo.get(id(node))
            if cached is not None:
                if depth + cached[1] > max_depth:
                    raise _too_deep(max_depth)
                return cached

            entries = node.entries
            if not entries:
                name = f" {node.name!r}" if node.name else ""
                raise EmptyRequirementError(f"Requirement{name} is empty.")

            # depth: a child's counts are multiplied by the entry count
            collected: List[FlatTask] = []
            height = 0
            for entry in entries:
                child_tasks, child_height = _flatten(
                    entry.child, depth + 1, max_depth, warned, memo
                )
                height = max(height, child_height)
                for flat in child_tasks:
                    collected.append(replace(flat, nb=flat.nb * entry.count))

            # breadth: siblings and cousins with the same name are summed
            result = (merge_flat_tasks(collected, warned=warned), height + 1)
            memo[id(node)] = result
            return result
        case _:
            raise TypeError(
                f"Expected Task or Requirement, got {type(node).__name__}"
            )


def flatten(
    node: Node,
    *,
    max_depth: Optional[int] = None,
    warn_on_divergent: Optional[bool] = None,
) -> List[FlatTask]:
    """
    Flatten a nested tree of requirements into a list of tasks.

    Each distinct task name appears once, with `nb` equal to the sum over
    every path reaching it of the product of the counts along that path.

    Raises EmptyRequirementError if any requirement in the tree is empty,
    and RequirementDepthError if the nesting exceeds `max_depth` (never more
    than config.max_safe_depth()).
    """
    if max_depth is None or warn_on_divergent is None:
        cfg = get_config()
        if max_depth is None:
            max_depth = cfg.max_depth
        if warn_on_divergent is None:
            warn_on_divergent = cfg.warn_on_divergent_duplicates

    max_depth = min(max_depth, max_safe_depth())
    warned: Optional[Set[str]] = set() if warn_on_divergent else None
    flat_tasks, _ = _flatten(node, 0, max_depth, warned, {})
    return list(flat_tasks)


# --- Stats --------------------------------------------------------------------


def percentages(parts: Sequence[float], total: float) -> List[int]:
    """
    Share of `total` taken by each part, as integer percents.

    Rounds half up. When total is zero every share is 0.
    """
    if total <= 0:
        return [0] * len(parts)
    values = np.asarray(parts, dtype=float)
    return np.floor(values / total * 100.0 + 0.5).astype(int).tolist()


def compute_stats(flat_tasks: Sequence[FlatTask]) -> ProjectStats:
    """
    Compute total, per-task and per-type time from a flattened task list.

    Both stat lists are sorted ascending by percent. The sort is stable, so
    equal percents keep their first-encountered order.
    """
    task_minutes = [flat.total_minutes for flat in flat_tasks]
    total = sum(task_minutes)

    task_stats = [
        TaskStat(
            name=flat.name,
            type=flat.type,
            time=flat.time,
            nb=flat.nb,
            total_minutes=minutes,
            percent=percent,
        )
        for flat, minutes, percent in zip(
            flat_tasks, task_minutes, percentages(task_minutes, total)
        )
    ]

    type_minutes: Dict[str, float] = {}
    for flat, minutes in zip(flat_tasks, task_minutes):
        type_minutes[flat.type] = type_minutes.get(flat.type, 0) + minutes

    type_stats = [
        TypeStat(type=type_, minutes=minutes, percent=percent)
        for (type_, minutes), percent in zip(
            type_minutes.items(),
            percentages(list(type_minutes.values()), total),
        )
    ]

    return ProjectStats(
        total_minutes=total,
        task_stats=tuple(sorted(task_stats, key=lambda s: s.percent)),
        type_stats=tuple(sorted(type_stats, key=lambda s: s.percent)),
    )


# --- Entry point -------------------------------------------------------------


def estimate_project(
    root: Requirement,
    *,
    config: Optional[Config] = None,
) -> ProjectStats:
    """
    Compute stats from a nested tree of requirements.

    The computation aborts with EmptyRequirementError if any requirement in
    the tree is empty; no partial result is returned.
    """
    if not isinstance(root, Requirement):
        raise TypeError(
            f"estimate_project expects a Requirement, got {type(root).__name__}"
        )
    cfg = config or get_config()

    flat_tasks = flatten(
        root,
        max_depth=cfg.max_depth,
        warn_on_divergent=cfg.warn_on_divergent_duplicates,
    )
    stats = compute_stats(flat_tasks)

    logger.debug(
        "Estimated %d distinct tasks across %d types: %s",
        len(stats.task_stats),
        len(stats.type_stats),
        stats.total_time,
    )
    return stats
