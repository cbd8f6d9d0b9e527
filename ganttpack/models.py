"""Type-safe configuration and schedule-file models with validation."""
from __future__ import annotations
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .tasks.model import DateExtremity, Dependency, Task, TaskType


class SchedulingPolicies(BaseModel):
    """Switches that decide how one edit propagates through the schedule."""
    move_children_with_parent: bool = True
    update_disabled_parents_on_change: bool = True
    adjust_to_working_dates: bool = False
    rtl: bool = False


class DragSettings(BaseModel):
    scroll_step: int = Field(default=100, ge=1)
    scroll_delay_ms: int = Field(default=25, ge=1)
    side_scroll_area_width: int = Field(default=70, ge=0)
    x_step: float = Field(default=60.0, gt=0)  # pixels per time step
    time_step_minutes: int = Field(default=1440, ge=1)


class CalendarSettings(BaseModel):
    weekend_days: list[int] = Field(default_factory=lambda: [5, 6])
    holidays: list[date] = []
    round_step_minutes: int = Field(default=1440, ge=1)

    @field_validator("weekend_days")
    @classmethod
    def check_weekdays(cls, v: list[int]) -> list[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday must be 0-6, got {day}")
        return v


class GanttpackConfig(BaseModel):
    """Global/repo-level configuration (.ganttpackrc)."""
    policies: SchedulingPolicies = Field(default_factory=SchedulingPolicies)
    drag: DragSettings = Field(default_factory=DragSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    output_format: Literal["rich", "json", "plain"] = "rich"


class DependencyRecord(BaseModel):
    source_id: str
    source_target: DateExtremity = DateExtremity.END_OF_TASK


class TaskRecord(BaseModel):
    """One task row as stored in a schedule file."""
    id: str
    name: str = ""
    start: datetime | None = None
    end: datetime | None = None
    progress: float = Field(default=0.0, ge=0, le=100)
    parent: str | None = None
    comparison_level: int = Field(default=1, ge=1)
    dependencies: list[DependencyRecord] = []
    is_disabled: bool = False
    type: TaskType = TaskType.TASK

    @model_validator(mode="after")
    def check_dates(self) -> "TaskRecord":
        if self.start and self.end and self.end < self.start:
            raise ValueError(f"task {self.id}: end is before start")
        return self

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            start=self.start,
            end=self.end,
            progress=self.progress,
            parent=self.parent,
            comparison_level=self.comparison_level,
            dependencies=tuple(
                Dependency(
                    source_id=dep.source_id,
                    source_target=dep.source_target,
                )
                for dep in self.dependencies
            ),
            is_disabled=self.is_disabled,
            type=self.type,
        )

    @classmethod
    def from_task(cls, task: Task) -> "TaskRecord":
        return cls(
            id=task.id,
            name=task.name,
            start=task.start,
            end=task.end,
            progress=task.progress,
            parent=task.parent,
            comparison_level=task.comparison_level,
            dependencies=[
                DependencyRecord(
                    source_id=dep.source_id,
                    source_target=dep.source_target,
                )
                for dep in task.dependencies
            ],
            is_disabled=task.is_disabled,
            type=task.type,
        )


class ScheduleFile(BaseModel):
    """Validated schedule file: tasks in display order."""
    tasks: list[TaskRecord] = []

    def to_tasks(self) -> list[Task]:
        return [record.to_task() for record in self.tasks]

    @classmethod
    def from_tasks(cls, tasks: list[Task]) -> "ScheduleFile":
        return cls(tasks=[TaskRecord.from_task(task) for task in tasks])
