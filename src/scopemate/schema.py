"""
Data schemas for scopemate.

Defines:
- Task: an atomic unit of work (name, type, duration in minutes)
- Requirement: an ordered list of (child, count) entries
- FlatTask: a task with its effective count after flattening
- TaskStat / TypeStat / ProjectStats: the estimation report
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from numbers import Real
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import EmptyRequirementError


def format_duration(minutes: float) -> str:
    """
    Format an amount of minutes as "{H}h{MM}m" (or "{MM}m" under an hour).

    Fractional minutes are truncated toward zero.
    """
    if minutes < 0:
        raise ValueError(f"Duration must be non-negative, got {minutes!r}")
    hours, rest = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours}h{rest:02d}m"
    return f"{rest:02d}m"


@dataclass(frozen=True)
class Task:
    """
    A named unit of work.

    `type` is a caller-defined category (Art, Code, Music, ...).
    `time` is the estimated duration in minutes.
    Task names are expected to be unique within a project.
    """

    name: str
    type: str
    time: Union[int, float] = 0

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Task name must be a non-empty string")
        if isinstance(self.time, bool) or not isinstance(self.time, Real):
            raise ValueError(f"Task {self.name!r}: time must be a number, got {self.time!r}")
        if not math.isfinite(self.time):
            raise ValueError(f"Task {self.name!r}: time must be finite, got {self.time!r}")
        if self.time < 0:
            raise ValueError(f"Task {self.name!r}: time must be non-negative, got {self.time!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "time": self.time}


@dataclass(frozen=True)
class RequirementEntry:
    """One (child, count) pair of a Requirement."""

    child: "Node"
    count: int


class Requirement:
    """
    A composite node: children (tasks or requirements) with repeat counts.

    Requirements can be nested but every leaf must be a Task. An empty
    requirement can be built, but it is rejected when the tree is flattened.
    """

    def __init__(self, name: Optional[str] = None) -> None:
        self.name = name
        self._entries: List[RequirementEntry] = []

    def add(self, child: "Node", count: int) -> "Requirement":
        """
        Add a requirement or a task to this requirement.

        `count` is the number of times `child` needs to be done.
        Returns self so calls can be chained.
        """
        if not isinstance(child, (Task, Requirement)):
            raise TypeError(
                f"Requirement children must be Task or Requirement, got {type(child).__name__}"
            )
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ValueError(f"Requirement count must be a positive integer, got {count!r}")
        self._entries.append(RequirementEntry(child=child, count=count))
        return self

    @property
    def entries(self) -> Tuple[RequirementEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<Requirement{self._label()} with {len(self._entries)} entries>"

    def to_dict(self) -> List[Dict[str, Any]]:
        """Nested plain form: [{"req": <child>, "nb": count}, ...]."""
        if not self._entries:
            raise EmptyRequirementError(f"Requirement{self._label()} is empty.")
        return [{"req": e.child.to_dict(), "nb": e.count} for e in self._entries]

    def _label(self) -> str:
        return f" {self.name!r}" if self.name else ""


# The two cases of a requirement tree node.
Node = Union[Task, Requirement]


@dataclass(frozen=True)
class FlatTask:
    """A task together with its effective count across the whole tree."""

    name: str
    type: str
    time: Union[int, float]
    nb: int = 1

    @classmethod
    def from_task(cls, task: Task, nb: int = 1) -> "FlatTask":
        return cls(name=task.name, type=task.type, time=task.time, nb=nb)

    @property
    def total_minutes(self) -> Union[int, float]:
        return self.time * self.nb

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "time": self.time, "nb": self.nb}


@dataclass(frozen=True)
class TaskStat:
    name: str
    type: str
    time: Union[int, float]
    nb: int
    total_minutes: Union[int, float]
    percent: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "time": self.time,
            "nb": self.nb,
            "totalTime": format_duration(self.total_minutes),
            "percent": self.percent,
        }


@dataclass(frozen=True)
class TypeStat:
    type: str
    minutes: Union[int, float]
    percent: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "time": format_duration(self.minutes),
            "percent": self.percent,
        }


@dataclass(frozen=True)
class ProjectStats:
    """
    Estimation report for a project.

    task_stats and type_stats are sorted ascending by percent.
    """

    total_minutes: Union[int, float]
    task_stats: Tuple[TaskStat, ...] = field(default_factory=tuple)
    type_stats: Tuple[TypeStat, ...] = field(default_factory=tuple)

    @property
    def total_time(self) -> str:
        return format_duration(self.total_minutes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTime": self.total_time,
            "taskStats": [s.to_dict() for s in self.task_stats],
            "typeStats": [s.to_dict() for s in self.type_stats],
        }
