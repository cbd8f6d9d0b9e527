"""
坐标换算

任务 <-> 像素坐标的线性换算，以及依赖连接点的命中检测。
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence, Tuple

from ..scheduling.actions import DragAction
from ..tasks.model import DateExtremity, Task


@dataclass(frozen=True)
class TaskCoordinates:
    """任务条的几何信息"""
    x1: float
    x2: float
    y: float = 0.0
    width: float = 0.0
    progress_x: float = 0.0
    progress_width: float = 0.0
    inner_x1: float = 0.0
    inner_x2: float = 0.0
    container_x: float = 0.0
    container_width: float = 0.0

    def with_changes(self, **changes) -> "TaskCoordinates":
        return replace(self, **changes)


class LinearTimeline:
    """
    线性时间轴

    每 time_step 对应 x_step 像素，起点为 start_date。
    RTL 布局下时间轴从 svg_width 向左增长。
    """

    def __init__(
        self,
        start_date: datetime,
        time_step: timedelta = timedelta(days=1),
        x_step: float = 60.0,
        svg_width: float = 0.0,
        row_height: float = 40.0,
        rtl: bool = False,
    ):
        if time_step <= timedelta(0) or x_step <= 0:
            raise ValueError("time_step and x_step must be positive")
        self.start_date = start_date
        self.time_step = time_step
        self.x_step = x_step
        self.svg_width = svg_width
        self.row_height = row_height
        self.rtl = rtl

    def date_to_x(self, value: datetime) -> float:
        x = (value - self.start_date) / self.time_step * self.x_step
        return self.svg_width - x if self.rtl else x

    def dx_to_delta(self, dx: float, rtl: bool = False) -> timedelta:
        """像素位移换算为时间差"""
        delta = self.time_step * (dx / self.x_step)
        return -delta if rtl else delta

    def task_to_coordinates(self, task: Task, row_index: int = 0) -> TaskCoordinates:
        """任务换算为坐标"""
        if not task.has_dates:
            return TaskCoordinates(x1=0.0, x2=0.0, y=row_index * self.row_height)

        a = self.date_to_x(task.start)
        b = self.date_to_x(task.end)
        x1, x2 = min(a, b), max(a, b)
        width = x2 - x1
        progress_width = width * task.progress * 0.01
        progress_x = x2 - progress_width if self.rtl else x1

        return TaskCoordinates(
            x1=x1,
            x2=x2,
            y=row_index * self.row_height,
            width=width,
            progress_x=progress_x,
            progress_width=progress_width,
            inner_x1=x1,
            inner_x2=x2,
            container_x=0.0,
            container_width=self.svg_width,
        )

    def coordinates_to_task(
        self,
        action: DragAction,
        task: Task,
        initial: TaskCoordinates,
        current: TaskCoordinates,
        rtl: bool = False,
    ) -> Tuple[bool, Task]:
        """
        坐标换算回任务

        Args:
            action: 拖拽动作
            task: 编辑前的任务
            initial: 拖拽开始时的坐标
            current: 当前坐标
            rtl: 是否从右到左布局

        Returns:
            (是否有变化, 换算后的任务)
        """
        if action == DragAction.PROGRESS:
            if current.width <= 0:
                return False, task
            progress = round(min(max(current.progress_width / current.width * 100, 0.0), 100.0))
            return progress != task.progress, task.with_progress(progress)

        if not task.has_dates:
            return False, task

        if action == DragAction.MOVE:
            changed = task.shifted(self.dx_to_delta(current.x1 - initial.x1, rtl))

        elif action == DragAction.START:
            delta = self.dx_to_delta(current.x1 - initial.x1, rtl)
            if rtl:
                changed = task.with_dates(task.start, max(task.end + delta, task.start))
            else:
                changed = task.with_dates(min(task.start + delta, task.end), task.end)

        elif action == DragAction.END:
            delta = self.dx_to_delta(current.x2 - initial.x2, rtl)
            if rtl:
                changed = task.with_dates(min(task.start + delta, task.end), task.end)
            else:
                changed = task.with_dates(task.start, max(task.end + delta, task.start))

        else:
            return False, task

        return not changed.same_dates(task), changed


def get_relation_circle_by_coordinates(
    x: float,
    y: float,
    tasks: Sequence[Task],
    coordinates: Dict[str, TaskCoordinates],
    task_half_height: float,
    relation_circle_offset: float,
    relation_circle_radius: float,
    rtl: bool = False,
) -> Optional[Tuple[Task, DateExtremity]]:
    """
    命中检测依赖连接点

    连接点位于任务条两端外侧 relation_circle_offset 处。

    Returns:
        (任务, 端点)，未命中时为 None
    """
    for task in tasks:
        if not task.has_dates or task.id not in coordinates:
            continue

        coords = coordinates[task.id]
        center_y = coords.y + task_half_height
        if not center_y - relation_circle_radius <= y <= center_y + relation_circle_radius:
            continue

        left = coords.x1 - relation_circle_offset
        if left - relation_circle_radius <= x <= left + relation_circle_radius:
            return task, DateExtremity.END_OF_TASK if rtl else DateExtremity.START_OF_TASK

        right = coords.x2 + relation_circle_offset
        if right - relation_circle_radius <= x <= right + relation_circle_radius:
            return task, DateExtremity.START_OF_TASK if rtl else DateExtremity.END_OF_TASK

    return None
