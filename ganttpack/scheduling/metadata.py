"""
提交元数据计算

给定一次已提交的变更，计算完整的写集:
- 需要重算的自动管理祖先
- 跟随移动的后代
- 被依赖链带动的任务
- 供界面使用的索引与依赖任务
"""

from typing import Dict, List, NamedTuple, Optional

from ..logging import log
from ..models import SchedulingPolicies
from ..tasks.ancestors import collect_all_parents, collect_parents
from ..tasks.graph import TaskGraph
from ..tasks.model import Task, TaskKey
from .actions import (
    AddChilds,
    ChangeAction,
    ChangeInProgress,
    ChangeStartAndEnd,
    ChangeTask,
    DeleteTasks,
    DragAction,
    MoveAfter,
    MoveBefore,
    MoveInside,
    UnknownChangeActionError,
    primary_tasks,
)
from .calendar import RoundDate, WorkingCalendar
from .descendants import Suggestion, change_start_and_end_descendants
from .state import TaskStateResolver


class TaskIndex(NamedTuple):
    task: Task
    index: int


class ChangeMetadata(NamedTuple):
    """提交输出"""
    dependent_tasks: List[Task]        # 依赖边涉及变更的任务（用于高亮）
    task_indexes: List[TaskIndex]      # 直接变更任务的显示位置
    suggested_tasks: List[Task]        # 重算后的任务快照（按 ID 去重）
    suggestions: List[Suggestion]      # 交给宿主执行的写入指令


def _unique(tasks: List[Task]) -> List[Task]:
    seen: Dict[TaskKey, Task] = {}
    for task in tasks:
        seen.setdefault(task.key, task)
    return list(seen.values())


def collect_suggested_parents(change_action: ChangeAction, graph: TaskGraph) -> List[Task]:
    """
    按变更种类收集需要重算的祖先

    Raises:
        UnknownChangeActionError: 不是已知的变更种类
    """
    if isinstance(change_action, AddChilds):
        return _unique([change_action.parent] + collect_parents(change_action.parent, graph))

    if isinstance(change_action, (ChangeTask, ChangeStartAndEnd)):
        return collect_parents(change_action.task, graph)

    if isinstance(change_action, DeleteTasks):
        parents: List[Task] = []
        for task in change_action.tasks:
            parents.extend(collect_parents(task, graph))
        return _unique(parents)

    if isinstance(change_action, (MoveBefore, MoveAfter)):
        return _unique(
            collect_parents(change_action.target, graph)
            + collect_parents(change_action.task_for_move, graph)
        )

    if isinstance(change_action, MoveInside):
        parents = [change_action.parent] + collect_parents(change_action.parent, graph)
        for child in change_action.childs:
            parents.extend(collect_parents(child, graph))
        return _unique(parents)

    raise UnknownChangeActionError(getattr(change_action, "type", change_action))


def get_task_indexes(change_action: ChangeAction, graph: TaskGraph) -> List[TaskIndex]:
    """直接变更任务在其比较层内的显示位置"""
    return [
        TaskIndex(task, graph.global_index(task))
        for task in _unique(primary_tasks(change_action))
    ]


def get_dependent_tasks(change_action: ChangeAction, graph: TaskGraph) -> List[Task]:
    """声明依赖于直接变更任务的任务"""
    dependents: List[Task] = []
    for task in primary_tasks(change_action):
        dependents.extend(edge.dependent for edge in graph.dependents_of(task))
    return _unique(dependents)


def infer_drag_action(original_task: Task, changed_task: Task) -> DragAction:
    """根据两端的变化推断编辑动作"""
    if not (original_task.has_dates and changed_task.has_dates):
        return DragAction.PROGRESS

    start_changed = changed_task.start != original_task.start
    end_changed = changed_task.end != original_task.end

    if start_changed and not end_changed:
        return DragAction.START
    if end_changed and not start_changed:
        return DragAction.END
    if not start_changed and not end_changed:
        return DragAction.PROGRESS
    return DragAction.MOVE


class ChangeMetadataComputer:
    """
    提交元数据计算器

    所有步骤都是纯计算，不修改任务图。
    """

    def __init__(
        self,
        graph: TaskGraph,
        policies: Optional[SchedulingPolicies] = None,
        calendar: Optional[WorkingCalendar] = None,
        round_date: Optional[RoundDate] = None,
    ):
        self._graph = graph
        self._policies = policies or SchedulingPolicies()
        self._calendar = calendar
        self._round_date = round_date

    def compute(
        self,
        change_action: ChangeAction,
        change_in_progress: Optional[ChangeInProgress] = None,
    ) -> ChangeMetadata:
        """
        计算写集

        Args:
            change_action: 已提交的变更
            change_in_progress: 与预览一致的编辑上下文；
                为 None 时由 change / change_start_and_end 还原

        Returns:
            ChangeMetadata 四元组

        Raises:
            UnknownChangeActionError: 不是已知的变更种类
        """
        primary_tasks(change_action)  # 未知种类在这里抛出
        graph = self._graph

        suggested: Dict[TaskKey, Task] = {}
        suggestions: Dict[TaskKey, Suggestion] = {}

        def put(task: Task, index: int):
            suggested[task.key] = task
            suggestions[task.key] = Suggestion(task.start, task.end, task, index)

        # 1. 自动管理的祖先
        parents: List[Task] = []
        if self._policies.update_disabled_parents_on_change:
            parents = collect_suggested_parents(change_action, graph)
            for parent in self._recompute_parents(parents, change_action, {}):
                put(parent, graph.global_index(parent))

        # 2. 跟随移动的后代
        if self._policies.move_children_with_parent and isinstance(change_action, ChangeStartAndEnd):
            stored = graph.get_task(change_action.original_task.id, change_action.original_task.comparison_level)
            descendants = graph.get_all_descendants(stored or change_action.original_task)
            cascaded = change_start_and_end_descendants(
                changed_task=change_action.changed_task,
                original_task=change_action.original_task,
                descendants=descendants,
                global_index=graph.global_index,
                calendar=self._calendar if self._policies.adjust_to_working_dates else None,
                round_date=self._round_date,
            )
            for suggestion in cascaded:
                put(suggestion.task, suggestion.index)

        # 3. 与预览相同的上下文扫一遍全部任务，捕获依赖链带动的任务
        context = change_in_progress or self._context_for(change_action)
        if context is not None:
            resolver = TaskStateResolver(
                graph,
                context,
                self._policies,
                calendar=self._calendar,
                round_date=self._round_date,
            )
            for task in graph.sorted_tasks:
                current = resolver.get_current_state(task)
                if current.start != task.start or current.end != task.end:
                    put(current, graph.global_index(task))

            # 扫描改变了子任务时，让祖先边界与写集保持一致
            if parents:
                for parent in self._recompute_parents(parents, change_action, suggested):
                    put(parent, graph.global_index(parent))

        log.debug(f"change {change_action.type.value}: {len(suggestions)} suggestion(s)")

        return ChangeMetadata(
            dependent_tasks=get_dependent_tasks(change_action, graph),
            task_indexes=get_task_indexes(change_action, graph),
            suggested_tasks=list(suggested.values()),
            suggestions=list(suggestions.values()),
        )

    def _context_for(self, change_action: ChangeAction) -> Optional[ChangeInProgress]:
        if isinstance(change_action, ChangeStartAndEnd):
            return ChangeInProgress.from_change(
                DragAction.MOVE,
                change_action.original_task,
                change_action.task,
            )

        if isinstance(change_action, ChangeTask):
            original = change_action.original_task or self._graph.get_task(
                change_action.task.id,
                change_action.task.comparison_level,
            )
            if original is None:
                return None
            return ChangeInProgress.from_change(
                infer_drag_action(original, change_action.task),
                original,
                change_action.task,
            )

        return None

    def _recompute_parents(
        self,
        parents: List[Task],
        change_action: ChangeAction,
        overrides: Dict[TaskKey, Task],
    ) -> List[Task]:
        """
        按子任务重算祖先的起止时间

        由深到浅处理，已重算的祖先会代替其存储版本参与上一层计算。
        没有合格子任务的祖先保持原日期。
        """
        substitutions: Dict[TaskKey, Task] = dict(overrides)
        if isinstance(change_action, (ChangeTask, ChangeStartAndEnd)) and change_action.task.has_dates:
            substitutions.setdefault(change_action.task.key, change_action.task)

        depth = {parent.key: len(collect_all_parents(parent, self._graph)) for parent in parents}
        results: Dict[TaskKey, Task] = {}

        for parent in sorted(parents, key=lambda p: depth[p.key], reverse=True):
            children = [
                substitutions.get(child.key, child)
                for child in self._direct_children(parent, change_action)
            ]
            children = [child for child in children if child.has_dates]

            result = parent
            if children:
                start = min(child.start for child in children)
                end = max(child.end for child in children)
                result = parent.with_dates(start, end)

            results[parent.key] = result
            substitutions[parent.key] = result

        return [results[parent.key] for parent in parents]

    def _direct_children(self, parent: Task, change_action: ChangeAction) -> List[Task]:
        """变更生效后 parent 的直接子任务"""
        children = self._graph.dated_children_of(parent)

        if isinstance(change_action, DeleteTasks):
            deleted = {task.key for task in change_action.tasks}
            return [child for child in children if child.key not in deleted]

        if isinstance(change_action, (MoveBefore, MoveAfter)):
            moved = change_action.task_for_move
            children = [child for child in children if child.key != moved.key]
            new_parent = change_action.target.parent
            if new_parent == parent.id and moved.comparison_level == parent.comparison_level:
                children.append(moved)
            return children

        if isinstance(change_action, MoveInside):
            moved_keys = {child.key for child in change_action.childs}
            children = [child for child in children if child.key not in moved_keys]
            if parent.key == change_action.parent.key:
                children.extend(change_action.childs)
            return children

        if isinstance(change_action, AddChilds) and parent.key == change_action.parent.key:
            known = {child.key for child in children}
            children.extend(
                child for child in change_action.descendants
                if child.parent == parent.id and child.key not in known
            )

        return children
