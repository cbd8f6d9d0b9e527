"""
Ganttpack 增量重排引擎

提供实时状态解析、提交元数据计算和日期协作者。
"""

from .actions import (
    DragAction,
    ChangeActionType,
    ChangeInProgress,
    ChangeAction,
    ChangeTask,
    ChangeStartAndEnd,
    AddChilds,
    DeleteTasks,
    MoveBefore,
    MoveAfter,
    MoveInside,
    UnknownChangeActionError,
    get_ts_diff,
    primary_tasks,
)
from .calendar import DateRounder, WorkingCalendar, round_task_dates
from .state import TaskStateResolver
from .descendants import Suggestion, change_start_and_end_descendants
from .metadata import (
    ChangeMetadata,
    ChangeMetadataComputer,
    TaskIndex,
    collect_suggested_parents,
    get_dependent_tasks,
    get_task_indexes,
)

__all__ = [
    "DragAction",
    "ChangeActionType",
    "ChangeInProgress",
    "ChangeAction",
    "ChangeTask",
    "ChangeStartAndEnd",
    "AddChilds",
    "DeleteTasks",
    "MoveBefore",
    "MoveAfter",
    "MoveInside",
    "UnknownChangeActionError",
    "get_ts_diff",
    "primary_tasks",
    "DateRounder",
    "WorkingCalendar",
    "round_task_dates",
    "TaskStateResolver",
    "Suggestion",
    "change_start_and_end_descendants",
    "ChangeMetadata",
    "ChangeMetadataComputer",
    "TaskIndex",
    "collect_suggested_parents",
    "get_dependent_tasks",
    "get_task_indexes",
]
