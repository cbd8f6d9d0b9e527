"""
编辑动作

- DragAction:        拖拽过程中的动作种类
- ChangeInProgress:  进行中的编辑记录（每帧整体替换）
- ChangeAction:      提交时的变更请求（封闭的和类型）
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from ..tasks.model import Task

if TYPE_CHECKING:
    from ..drag.coordinates import TaskCoordinates


class DragAction(str, Enum):
    """拖拽动作"""
    MOVE = "move"               # 整体移动
    START = "start"             # 拖动开始端
    END = "end"                 # 拖动结束端
    PROGRESS = "progress"       # 拖动进度条


class ChangeActionType(str, Enum):
    """提交变更种类"""
    CHANGE = "change"
    CHANGE_START_AND_END = "change_start_and_end"
    ADD_CHILDS = "add-childs"
    DELETE = "delete"
    MOVE_BEFORE = "move-before"
    MOVE_AFTER = "move-after"
    MOVE_INSIDE = "move-inside"


class UnknownChangeActionError(Exception):
    """无法识别的变更种类"""

    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"Unknown change action: {kind!r}")


@dataclass(frozen=True)
class ChangeInProgress:
    """
    进行中的编辑

    拖拽开始时创建，每次指针移动时整体替换，释放或取消时丢弃。
    action / original_task / changed_task / ts_diff 决定调度语义，
    其余字段只是指针与坐标的簿记。
    """
    action: DragAction
    original_task: Task                            # 编辑前快照
    changed_task: Task                             # 当前坐标换算出的任务
    ts_diff: timedelta = timedelta(0)              # 含义取决于 action

    coordinates: Optional["TaskCoordinates"] = None
    initial_coordinates: Optional["TaskCoordinates"] = None
    coordinates_diff: float = 0.0
    start_x: float = 0.0
    last_client_x: float = 0.0
    additional_left_space: float = 0.0
    additional_right_space: float = 0.0
    task_bar_node: object = field(default=None, compare=False)

    @classmethod
    def from_change(cls, action: DragAction, original_task: Task, changed_task: Task) -> "ChangeInProgress":
        """由已完成的修改还原一个编辑上下文（无坐标信息）"""
        return cls(
            action=action,
            original_task=original_task,
            changed_task=changed_task,
            ts_diff=get_ts_diff(action, original_task, changed_task),
        )


def get_ts_diff(action: DragAction, original_task: Task, changed_task: Task, rtl: bool = False) -> timedelta:
    """
    计算编辑的时间差

    - end:      结束时间差（RTL 下为开始时间差）
    - start:    开始时间差（RTL 下为结束时间差）
    - move:     开始时间差
    - progress: 0
    """
    if action == DragAction.PROGRESS or not (original_task.has_dates and changed_task.has_dates):
        return timedelta(0)

    if action == DragAction.END:
        if rtl:
            return changed_task.start - original_task.start
        return changed_task.end - original_task.end

    if action == DragAction.START:
        if rtl:
            return changed_task.end - original_task.end
        return changed_task.start - original_task.start

    return changed_task.start - original_task.start


# ----------------------------------------------------------------------
# 提交变更请求


@dataclass(frozen=True)
class ChangeTask:
    """单个任务的日期或元数据修改"""
    task: Task
    original_task: Optional[Task] = None
    type: ChangeActionType = field(default=ChangeActionType.CHANGE, init=False)


@dataclass(frozen=True)
class ChangeStartAndEnd:
    """任务整体移动，子任务可能跟随"""
    task: Task
    original_task: Task
    type: ChangeActionType = field(default=ChangeActionType.CHANGE_START_AND_END, init=False)

    @property
    def changed_task(self) -> Task:
        return self.task


@dataclass(frozen=True)
class AddChilds:
    parent: Task
    descendants: Tuple[Task, ...] = ()
    type: ChangeActionType = field(default=ChangeActionType.ADD_CHILDS, init=False)


@dataclass(frozen=True)
class DeleteTasks:
    tasks: Tuple[Task, ...]
    type: ChangeActionType = field(default=ChangeActionType.DELETE, init=False)


@dataclass(frozen=True)
class MoveBefore:
    target: Task
    task_for_move: Task
    type: ChangeActionType = field(default=ChangeActionType.MOVE_BEFORE, init=False)


@dataclass(frozen=True)
class MoveAfter:
    target: Task
    task_for_move: Task
    type: ChangeActionType = field(default=ChangeActionType.MOVE_AFTER, init=False)


@dataclass(frozen=True)
class MoveInside:
    parent: Task
    childs: Tuple[Task, ...]
    type: ChangeActionType = field(default=ChangeActionType.MOVE_INSIDE, init=False)


ChangeAction = Union[
    ChangeTask,
    ChangeStartAndEnd,
    AddChilds,
    DeleteTasks,
    MoveBefore,
    MoveAfter,
    MoveInside,
]


def primary_tasks(change_action: ChangeAction) -> List[Task]:
    """
    直接被修改的任务

    Raises:
        UnknownChangeActionError: 不是已知的变更种类
    """
    if isinstance(change_action, (ChangeTask, ChangeStartAndEnd)):
        return [change_action.task]
    if isinstance(change_action, AddChilds):
        return [change_action.parent]
    if isinstance(change_action, DeleteTasks):
        return list(change_action.tasks)
    if isinstance(change_action, (MoveBefore, MoveAfter)):
        return [change_action.task_for_move]
    if isinstance(change_action, MoveInside):
        return list(change_action.childs)

    raise UnknownChangeActionError(getattr(change_action, "type", change_action))
