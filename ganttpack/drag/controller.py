"""
拖拽控制器

持有唯一的进行中编辑，把指针/触摸事件和视口边缘自动滚动
换算成坐标差，并在释放时生成提交通知。

状态: IDLE -> DRAGGING -> IDLE
"""

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from ..logging import log
from ..models import DragSettings, SchedulingPolicies
from ..scheduling.actions import ChangeInProgress, DragAction, get_ts_diff
from ..scheduling.calendar import RoundDate, WorkingCalendar, round_task_dates
from ..scheduling.state import TaskStateResolver
from ..tasks.graph import TaskGraph
from ..tasks.model import Task
from .coordinates import LinearTimeline, TaskCoordinates

OnDateChange = Callable[[DragAction, Task, Task], None]
OnProgressChange = Callable[[Task], None]


class DragState(Enum):
    """控制器状态"""
    IDLE = "idle"
    DRAGGING = "dragging"


class DragError(Exception):
    """控制器使用错误"""
    pass


@dataclass
class Viewport:
    """可滚动视口"""
    scroll_x: float = 0.0
    client_width: Optional[float] = None
    svg_width: float = 0.0
    on_scroll: Optional[Callable[[float], None]] = None

    def scroll_by(self, dx: float) -> None:
        self.set_scroll_x_programmatically(max(self.scroll_x + dx, 0.0))

    def set_scroll_x_programmatically(self, scroll_x: float) -> None:
        self.scroll_x = scroll_x
        if self.on_scroll is not None:
            self.on_scroll(scroll_x)


def get_next_coordinates(
    task: Task,
    prev: ChangeInProgress,
    next_x: float,
    rtl: bool,
) -> Tuple[TaskCoordinates, float]:
    """
    根据指针位置计算新的几何信息

    Returns:
        (新坐标, 坐标差)
    """
    initial = prev.initial_coordinates
    coords = prev.coordinates
    extra_left = prev.additional_left_space

    if prev.action == DragAction.END:
        next_x2 = max(next_x, initial.x1)
        x2_diff = next_x2 - initial.x2
        changes = dict(
            inner_x2=next_x2 + extra_left,
            progress_width=(next_x2 - initial.x1) * task.progress * 0.01,
            width=initial.width + x2_diff,
            x2=next_x2 - extra_left,
        )
        if rtl:
            changes["progress_x"] = initial.progress_x + x2_diff
        return coords.with_changes(**changes), x2_diff

    if prev.action == DragAction.START:
        next_x1 = min(next_x, initial.x2)
        x1_diff = next_x1 - initial.x1
        changes = dict(
            inner_x1=next_x1 + extra_left,
            progress_width=(initial.x2 - next_x1) * task.progress * 0.01,
            width=initial.width - x1_diff,
            x1=next_x1,
        )
        changes["progress_x"] = initial.progress_x - x1_diff if rtl else next_x1
        return coords.with_changes(**changes), x1_diff

    if prev.action == DragAction.PROGRESS:
        progress_end = min(max(next_x, initial.x1), initial.x2)
        if rtl:
            return coords.with_changes(
                progress_x=progress_end,
                progress_width=initial.x2 - progress_end,
            ), 0.0
        return coords.with_changes(progress_width=progress_end - initial.x1), 0.0

    if prev.action == DragAction.MOVE:
        diff = next_x - prev.start_x
        next_x1 = initial.x1 + diff
        next_x2 = initial.x2 + diff
        return coords.with_changes(
            inner_x1=next_x1 + extra_left,
            inner_x2=next_x2 + extra_left,
            progress_x=initial.progress_x + diff,
            x1=next_x1,
            x2=next_x2,
        ), diff

    return coords, prev.coordinates_diff


class AutoScrollTimer:
    """
    自动滚动定时器

    在当前 asyncio 事件循环上周期性调用回调，
    与指针事件处理共用同一个单线程队列。
    """

    def __init__(self, callback: Callable[[], None], delay_ms: int = 25):
        self._callback = callback
        self._delay = delay_ms / 1000
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """启动；没有运行中的事件循环时返回 False，由宿主手动调用 tick"""
        if self.running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._task = loop.create_task(self._run())
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._delay)
            try:
                self._callback()
            except Exception:
                # 异常会终止定时任务，记录后停止滚动，拖拽本身继续
                log.error("auto-scroll tick failed, auto-scroll stopped", exc_info=True)
                return

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None


class DragController:
    """
    拖拽控制器

    同一时刻最多一个进行中的编辑；拖拽中再次开始会被忽略。
    释放、取消、关闭都会无条件停止自动滚动。
    """

    def __init__(
        self,
        graph: TaskGraph,
        mapper: LinearTimeline,
        viewport: Optional[Viewport] = None,
        on_date_change: Optional[OnDateChange] = None,
        on_progress_change: Optional[OnProgressChange] = None,
        policies: Optional[SchedulingPolicies] = None,
        settings: Optional[DragSettings] = None,
        round_date: Optional[RoundDate] = None,
        calendar: Optional[WorkingCalendar] = None,
        to_svg_x: Optional[Callable[[float], float]] = None,
    ):
        """
        初始化控制器

        Args:
            graph: 任务图
            mapper: 坐标换算协作者
            viewport: 视口状态
            on_date_change: 日期变更通知 (action, 取整后的任务, 原任务)
            on_progress_change: 进度变更通知
            policies: 调度策略
            settings: 拖拽参数
            round_date: 取整函数
            calendar: 工作日历
            to_svg_x: 客户区坐标到 SVG 坐标的换算
        """
        self._graph = graph
        self._mapper = mapper
        self._viewport = viewport or Viewport()
        self._on_date_change = on_date_change
        self._on_progress_change = on_progress_change
        self._policies = policies or SchedulingPolicies()
        self._settings = settings or DragSettings()
        self._round_date = round_date
        self._calendar = calendar
        self._to_svg_x = to_svg_x or (lambda x: x)

        self._change: Optional[ChangeInProgress] = None
        self._resolver: Optional[TaskStateResolver] = None
        self._timer = AutoScrollTimer(self.tick, self._settings.scroll_delay_ms)
        self._closed = False

    # ------------------------------------------------------------------
    # 状态

    @property
    def state(self) -> DragState:
        return DragState.IDLE if self._change is None else DragState.DRAGGING

    @property
    def change_in_progress(self) -> Optional[ChangeInProgress]:
        return self._change

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def auto_scroll_running(self) -> bool:
        return self._timer.running

    @property
    def rtl(self) -> bool:
        return self._policies.rtl

    def resolver(self) -> TaskStateResolver:
        """当前帧的实时状态解析器"""
        if self._resolver is None or self._resolver.change_in_progress is not self._change:
            self._resolver = TaskStateResolver(
                self._graph,
                self._change,
                self._policies,
                calendar=self._calendar,
                round_date=self._round_date,
            )
        return self._resolver

    def get_current_state(self, task: Task) -> Task:
        return self.resolver().get_current_state(task)

    # ------------------------------------------------------------------
    # 事件

    def start_drag(
        self,
        action: DragAction,
        task: Task,
        client_x: float,
        task_bar_node: object = None,
    ) -> bool:
        """
        开始拖拽

        Args:
            action: 拖拽动作
            task: 被拖拽的任务
            client_x: 指针客户区横坐标
            task_bar_node: 宿主的任务条句柄（仅透传）

        Returns:
            是否进入拖拽状态

        Raises:
            DragError: 控制器已关闭
        """
        if self._closed:
            raise DragError("drag controller is closed")

        if self._change is not None:
            log.debug(f"drag already in progress for {self._change.original_task.id}, ignored")
            return False

        action = DragAction(action)
        x = self._to_svg_x(client_x)
        coordinates = self._mapper.task_to_coordinates(task, max(self._graph.global_index(task), 0))

        self._set_change(ChangeInProgress(
            action=action,
            original_task=task,
            changed_task=task,
            ts_diff=get_ts_diff(action, task, task),
            coordinates=coordinates,
            initial_coordinates=coordinates,
            coordinates_diff=0.0,
            start_x=x,
            last_client_x=x,
            task_bar_node=task_bar_node,
        ))
        self._timer.start()
        log.task_log(f"drag started ({action.value})", task_id=task.id, action=action.value)
        return True

    def handle_mouse_move(self, client_x: float) -> None:
        if self._change is None:
            return
        self.recount_on_move(self._to_svg_x(client_x))

    def handle_touch_move(self, touches: Sequence[float]) -> None:
        """触摸移动，只跟随第一个触点"""
        if touches:
            self.handle_mouse_move(touches[0])

    def recount_on_move(self, next_x: float) -> None:
        """按新的指针位置重算几何与候选任务"""
        change = self._change
        if change is None:
            return

        task = change.original_task
        coordinates, diff = get_next_coordinates(
            task,
            change,
            next_x - change.additional_left_space,
            self.rtl,
        )
        _, changed = self._mapper.coordinates_to_task(
            change.action,
            task,
            change.initial_coordinates,
            coordinates,
            self.rtl,
        )

        self._set_change(replace(
            change,
            changed_task=changed,
            coordinates=coordinates,
            coordinates_diff=diff,
            last_client_x=next_x,
            ts_diff=get_ts_diff(change.action, task, changed, self.rtl),
        ))

    def tick(self) -> None:
        """自动滚动定时器的一次回调"""
        change = self._change
        if change is None:
            return

        viewport = self._viewport
        step = self._settings.scroll_step
        margin = self._settings.side_scroll_area_width
        action = change.action
        last_x = change.last_client_x

        if viewport.scroll_x > last_x - margin:
            if action in (DragAction.START, DragAction.MOVE):
                if viewport.scroll_x > 0:
                    self.recount_on_move(last_x - step)
                    viewport.scroll_by(-step)
                else:
                    self._extend_left(change, step)
            elif action == DragAction.END and viewport.scroll_x > 0:
                self.recount_on_move(last_x - step)
                viewport.scroll_by(-step)
            return

        if viewport.client_width is None:
            return

        if viewport.scroll_x + viewport.client_width < last_x + margin:
            has_room = viewport.svg_width > viewport.scroll_x + viewport.client_width
            if action in (DragAction.END, DragAction.MOVE):
                if has_room:
                    self.recount_on_move(last_x + step)
                    viewport.scroll_by(step)
                else:
                    self._extend_right(change, step)
                    viewport.set_scroll_x_programmatically(viewport.scroll_x + viewport.client_width)
            elif action == DragAction.START and has_room:
                self.recount_on_move(last_x + step)
                viewport.scroll_by(step)

    def _extend_left(self, change: ChangeInProgress, step: float) -> None:
        coords = change.coordinates
        action = change.action
        next_coords = coords.with_changes(
            container_x=coords.container_x - step,
            container_width=coords.container_width + step,
            inner_x2=coords.inner_x2 + step if action == DragAction.START else coords.inner_x2,
            progress_x=coords.progress_x - step,
            width=coords.width + step if action == DragAction.START else coords.width,
            x1=coords.x1 - step,
            x2=coords.x2 - step if action == DragAction.MOVE else coords.x2,
        )
        _, changed = self._mapper.coordinates_to_task(
            action, change.original_task, change.initial_coordinates, next_coords, self.rtl,
        )
        self._set_change(replace(
            change,
            additional_left_space=change.additional_left_space + step,
            changed_task=changed,
            coordinates=next_coords,
            coordinates_diff=change.coordinates_diff - step,
            ts_diff=get_ts_diff(action, change.original_task, changed, self.rtl),
        ))

    def _extend_right(self, change: ChangeInProgress, step: float) -> None:
        coords = change.coordinates
        action = change.action
        next_coords = coords.with_changes(
            container_width=coords.container_width + step,
            inner_x1=coords.inner_x1 + step if action == DragAction.MOVE else coords.inner_x1,
            inner_x2=coords.inner_x2 + step,
            progress_x=coords.progress_x + step,
            width=coords.width + step if action == DragAction.END else coords.width,
            x1=coords.x1 + step if action == DragAction.MOVE else coords.x1,
            x2=coords.x2 + step,
        )
        _, changed = self._mapper.coordinates_to_task(
            action, change.original_task, change.initial_coordinates, next_coords, self.rtl,
        )
        self._set_change(replace(
            change,
            additional_right_space=change.additional_right_space + step,
            changed_task=changed,
            coordinates=next_coords,
            coordinates_diff=change.coordinates_diff + step,
            last_client_x=change.last_client_x + step,
            ts_diff=get_ts_diff(action, change.original_task, changed, self.rtl),
        ))

    def handle_up(self) -> None:
        """
        释放指针，结束拖拽

        - 没有变化: 静默丢弃
        - progress: 发出进度变更通知
        - 其他: 取整、调整工作日后发出日期变更通知
        """
        change = self._change
        if change is None:
            return

        try:
            is_changed, changed = self._mapper.coordinates_to_task(
                change.action,
                change.original_task,
                change.initial_coordinates,
                change.coordinates,
                self.rtl,
            )
        finally:
            self._teardown()

        task = change.original_task
        if not is_changed:
            log.task_log("drag released without change", task_id=task.id, action=change.action.value)
            return

        if change.action == DragAction.PROGRESS:
            if self._on_progress_change is not None:
                self._on_progress_change(changed)
            return

        rounded = changed
        if self._round_date is not None:
            rounded = round_task_dates(changed, self._round_date, change.action)
        if self._policies.adjust_to_working_dates and self._calendar is not None:
            rounded = self._calendar.adjust_task_to_working_dates(
                change.action, rounded, task, self._round_date,
            )

        log.task_log(f"drag committed ({change.action.value})", task_id=task.id, action=change.action.value)
        if self._on_date_change is not None:
            self._on_date_change(change.action, rounded, task)

    handle_touch_end = handle_up

    def cancel(self) -> bool:
        """放弃进行中的编辑（例如按下 Escape），不发出通知"""
        if self._change is None:
            return False
        log.task_log("drag cancelled", task_id=self._change.original_task.id, action=self._change.action.value)
        self._teardown()
        return True

    def close(self) -> None:
        """宿主视图卸载：无条件清理"""
        self._teardown()
        self._closed = True

    def __enter__(self) -> "DragController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _set_change(self, change: Optional[ChangeInProgress]) -> None:
        self._change = change

    def _teardown(self) -> None:
        self._timer.stop()
        self._set_change(None)
