"""
日期协作者

- DateRounder:      把时间点吸附到允许的刻度
- WorkingCalendar:  把任务调整到工作日
- round_task_dates: 按编辑动作对任务端点取整
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Callable, FrozenSet, Iterable, Optional

from ..tasks.model import DateExtremity, Task
from .actions import DragAction

RoundDate = Callable[[datetime, DragAction, DateExtremity], datetime]


class DateRounder:
    """
    按固定步长取整

    步长从当天零点开始计数，取最近的刻度（恰好在中点时向后取）。
    """

    def __init__(self, step: timedelta = timedelta(days=1)):
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        self.step = step

    def round_date(self, value: datetime, action: DragAction, extremity: DateExtremity) -> datetime:
        day_start = datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)
        offset = value - day_start
        steps, remainder = divmod(offset, self.step)
        if remainder * 2 >= self.step:
            steps += 1
        return day_start + self.step * steps

    __call__ = round_date


def round_task_dates(
    task: Task,
    round_date: RoundDate,
    action: DragAction,
) -> Task:
    """
    对任务端点取整

    - move:     两端都取整，保持时长
    - start:    只取整开始
    - end:      只取整结束
    - progress: 不变
    """
    if not task.has_dates:
        return task

    if action == DragAction.START:
        start = round_date(task.start, action, DateExtremity.START_OF_TASK)
        return task.with_dates(min(start, task.end), task.end)

    if action == DragAction.END:
        end = round_date(task.end, action, DateExtremity.END_OF_TASK)
        return task.with_dates(task.start, max(end, task.start))

    if action == DragAction.MOVE:
        start = round_date(task.start, action, DateExtremity.START_OF_TASK)
        return task.with_dates(start, start + task.duration)

    return task


@dataclass
class WorkingCalendar:
    """工作日历：周末与节假日不可作为任务的端点"""
    weekend_days: FrozenSet[int] = frozenset({5, 6})
    holidays: FrozenSet[date] = field(default_factory=frozenset)

    @classmethod
    def create(cls, weekend_days: Iterable[int] = (5, 6), holidays: Iterable[date] = ()) -> "WorkingCalendar":
        return cls(weekend_days=frozenset(weekend_days), holidays=frozenset(holidays))

    def is_working_day(self, day: date) -> bool:
        return day.weekday() not in self.weekend_days and day not in self.holidays

    def is_holiday(self, value: datetime, extremity: DateExtremity) -> bool:
        """
        时间点所在日是否非工作日

        结束端恰好在零点时属于前一天。
        """
        return not self.is_working_day(self._day_of(value, extremity))

    def adjust_task_to_working_dates(
        self,
        action: DragAction,
        changed_task: Task,
        original_task: Task,
        round_date: Optional[RoundDate] = None,
    ) -> Task:
        """
        调整任务到工作日，对同样输入重复调用结果不变

        - move:  开始落在非工作日时整体顺延到下一个工作日
        - start: 开始顺延到下一个工作日，但不越过结束
        - end:   结束提前到上一个工作日末，但不越过开始
        """
        if not changed_task.has_dates or not self.weekend_days and not self.holidays:
            return changed_task

        if action == DragAction.MOVE:
            if not self.is_holiday(changed_task.start, DateExtremity.START_OF_TASK):
                return changed_task
            start = self._next_working_start(changed_task.start)
            return changed_task.shifted(start - changed_task.start)

        if action == DragAction.START:
            if not self.is_holiday(changed_task.start, DateExtremity.START_OF_TASK):
                return changed_task
            start = self._next_working_start(changed_task.start)
            if round_date is not None:
                start = round_date(start, action, DateExtremity.START_OF_TASK)
            if start > changed_task.end:
                return changed_task
            return changed_task.with_dates(start, changed_task.end)

        if action == DragAction.END:
            if not self.is_holiday(changed_task.end, DateExtremity.END_OF_TASK):
                return changed_task
            end = self._previous_working_end(changed_task.end)
            if round_date is not None:
                end = round_date(end, action, DateExtremity.END_OF_TASK)
            if end < changed_task.start:
                return changed_task
            return changed_task.with_dates(changed_task.start, end)

        return changed_task

    __call__ = adjust_task_to_working_dates

    @staticmethod
    def _day_of(value: datetime, extremity: DateExtremity) -> date:
        if extremity == DateExtremity.END_OF_TASK and value.time() == time.min:
            return (value - timedelta(days=1)).date()
        return value.date()

    def _next_working_start(self, value: datetime) -> datetime:
        day = value.date() + timedelta(days=1)
        # 一年内必有工作日，否则日历配置有误
        for _ in range(366):
            if self.is_working_day(day):
                return datetime.combine(day, time.min, tzinfo=value.tzinfo)
            day += timedelta(days=1)
        return value

    def _previous_working_end(self, value: datetime) -> datetime:
        day = self._day_of(value, DateExtremity.END_OF_TASK) - timedelta(days=1)
        for _ in range(366):
            if self.is_working_day(day):
                return datetime.combine(day + timedelta(days=1), time.min, tzinfo=value.tzinfo)
            day -= timedelta(days=1)
        return value
