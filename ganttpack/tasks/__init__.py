"""
Ganttpack 任务图模型

提供任务、依赖边、任务图索引和祖先收集。
"""

from .model import Task, TaskType, DateExtremity, Dependency, TaskKey, empty_task
from .graph import TaskGraph, GraphError, DependentEdge
from .ancestors import collect_parents, collect_all_parents

__all__ = [
    "Task",
    "TaskType",
    "DateExtremity",
    "Dependency",
    "TaskKey",
    "empty_task",
    "TaskGraph",
    "GraphError",
    "DependentEdge",
    "collect_parents",
    "collect_all_parents",
]
