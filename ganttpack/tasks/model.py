"""
任务模型

甘特图任务及依赖边的不可变数据结构。
所有更新都通过 with_* 方法返回新实例，不会原地修改。
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple


class TaskType(str, Enum):
    """任务类型"""
    TASK = "task"
    MILESTONE = "milestone"
    PROJECT = "project"
    EMPTY = "empty"             # 占位行，没有日期


class DateExtremity(str, Enum):
    """任务的端点"""
    START_OF_TASK = "startOfTask"
    END_OF_TASK = "endOfTask"


@dataclass(frozen=True)
class Dependency:
    """依赖边：本任务跟随 source_id 的某个端点"""
    source_id: str
    source_target: DateExtremity = DateExtremity.END_OF_TASK


TaskKey = Tuple[int, str]


@dataclass(frozen=True)
class Task:
    """甘特图任务"""
    id: str                                         # 任务 ID（同一比较层内唯一）
    name: str = ""                                  # 显示名称
    start: Optional[datetime] = None                # 开始时间
    end: Optional[datetime] = None                  # 结束时间
    progress: float = 0.0                           # 进度 0-100
    parent: Optional[str] = None                    # 父任务 ID
    comparison_level: int = 1                       # 比较层（基线/当前）
    dependencies: Tuple[Dependency, ...] = field(default_factory=tuple)
    is_disabled: bool = False                       # 日期由子任务自动推导
    type: TaskType = TaskType.TASK

    @property
    def key(self) -> TaskKey:
        return (self.comparison_level, self.id)

    @property
    def has_dates(self) -> bool:
        """非占位且有起止日期"""
        return (
            self.type != TaskType.EMPTY
            and self.start is not None
            and self.end is not None
        )

    @property
    def duration(self) -> timedelta:
        if not self.has_dates:
            return timedelta(0)
        return self.end - self.start

    def with_dates(self, start: datetime, end: datetime) -> "Task":
        """返回替换起止日期后的副本"""
        return replace(self, start=start, end=end)

    def with_progress(self, progress: float) -> "Task":
        """返回替换进度后的副本"""
        return replace(self, progress=progress)

    def shifted(self, delta: timedelta) -> "Task":
        """整体平移，时长不变"""
        if not self.has_dates:
            return self
        return replace(self, start=self.start + delta, end=self.end + delta)

    def same_dates(self, other: "Task") -> bool:
        return self.start == other.start and self.end == other.end


def empty_task(task_id: str, parent: Optional[str] = None, comparison_level: int = 1) -> Task:
    """创建一个占位行"""
    return Task(
        id=task_id,
        parent=parent,
        comparison_level=comparison_level,
        type=TaskType.EMPTY,
    )
