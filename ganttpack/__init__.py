"""Delta GanttPack - incremental rescheduling engine for Gantt charts."""
__version__ = "1.0.0"

from .tasks import Task, TaskType, DateExtremity, Dependency, TaskGraph, GraphError
from .models import (
    GanttpackConfig,
    SchedulingPolicies,
    DragSettings,
    CalendarSettings,
    ScheduleFile,
)
from .scheduling import (
    DragAction,
    ChangeInProgress,
    TaskStateResolver,
    ChangeMetadataComputer,
    ChangeMetadata,
    UnknownChangeActionError,
)
from .drag import DragController, DragError
from .core import GanttSession, load_config, load_schedule, save_schedule
from .cli import main
from .logging import log, configure_logging, GanttpackLogger

__all__ = [
    "Task",
    "TaskType",
    "DateExtremity",
    "Dependency",
    "TaskGraph",
    "GraphError",
    "GanttpackConfig",
    "SchedulingPolicies",
    "DragSettings",
    "CalendarSettings",
    "ScheduleFile",
    "DragAction",
    "ChangeInProgress",
    "TaskStateResolver",
    "ChangeMetadataComputer",
    "ChangeMetadata",
    "UnknownChangeActionError",
    "DragController",
    "DragError",
    "GanttSession",
    "load_config",
    "load_schedule",
    "save_schedule",
    "main",
    "log",
    "configure_logging",
    "GanttpackLogger",
]
