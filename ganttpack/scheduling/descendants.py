"""
后代级联

任务整体移动时，计算其所有后代平移后的日期。
"""

from datetime import datetime
from typing import Callable, List, NamedTuple, Optional, Sequence

from ..tasks.model import Task
from .actions import DragAction
from .calendar import RoundDate, WorkingCalendar


class Suggestion(NamedTuple):
    """写集中的一条指令"""
    start: Optional[datetime]
    end: Optional[datetime]
    task: Task
    index: int


def change_start_and_end_descendants(
    changed_task: Task,
    original_task: Task,
    descendants: Sequence[Task],
    global_index: Callable[[Task], int],
    calendar: Optional[WorkingCalendar] = None,
    round_date: Optional[RoundDate] = None,
) -> List[Suggestion]:
    """
    按父任务的开始时间差平移每个后代

    Args:
        changed_task: 移动后的父任务
        original_task: 移动前的父任务
        descendants: 后代列表（不含占位行）
        global_index: 显示顺序索引查询
        calendar: 工作日历，None 时不做工作日调整
        round_date: 取整函数

    Returns:
        每个后代的建议
    """
    if not (changed_task.has_dates and original_task.has_dates):
        return []

    delta = changed_task.start - original_task.start
    suggestions: List[Suggestion] = []

    for descendant in descendants:
        if not descendant.has_dates:
            continue

        moved = descendant.shifted(delta)
        if calendar is not None:
            moved = calendar.adjust_task_to_working_dates(
                DragAction.MOVE,
                moved,
                descendant,
                round_date,
            )

        suggestions.append(Suggestion(moved.start, moved.end, moved, global_index(descendant)))

    return suggestions
