"""
scopemate: estimate the time cost of a project from a tree of requirements.

    from scopemate import Requirement, Task, estimate_project

    portrait = Task("Portrait", "Art", 60)
    character = Requirement().add(portrait, 2)
    stats = estimate_project(Requirement().add(character, 2))
    stats.to_dict()["totalTime"]  # "4h00m"
"""

from .errors import (
    EmptyRequirementError,
    ProjectDefinitionError,
    RequirementDepthError,
    ScopemateError,
)
from .estimator import compute_stats, estimate_project, flatten, format_duration
from .schema import (
    FlatTask,
    Node,
    ProjectStats,
    Requirement,
    RequirementEntry,
    Task,
    TaskStat,
    TypeStat,
)

__all__ = [
    "EmptyRequirementError",
    "FlatTask",
    "Node",
    "ProjectDefinitionError",
    "ProjectStats",
    "Requirement",
    "RequirementDepthError",
    "RequirementEntry",
    "ScopemateError",
    "Task",
    "TaskStat",
    "TypeStat",
    "compute_stats",
    "estimate_project",
    "flatten",
    "format_duration",
]

__version__ = "0.1.0"
