"""
实时状态解析

在拖拽进行中计算任意任务的“有效”位置（尚未提交），
每帧对每个可见任务调用一次。

解析顺序（首个命中的规则生效）:
1. 正在编辑的任务本身
2. 依赖源发生了位移的任务
3. 祖先整体平移（未缩放）的任务
4. 正在移动的任务的后代
5. 正在编辑任务的自动管理直接父任务
6. 仅进度变化
7. 无变化
"""

from typing import Dict, Optional, Set

from ..logging import log
from ..models import SchedulingPolicies
from ..tasks.ancestors import collect_all_parents
from ..tasks.graph import TaskGraph
from ..tasks.model import DateExtremity, Task, TaskKey
from .actions import ChangeInProgress, DragAction
from .calendar import RoundDate, WorkingCalendar


class TaskStateResolver:
    """
    实时状态解析器

    绑定到某一帧的编辑快照，纯函数语义：不修改任何输入。
    递归时沿当前路径记录已访问任务，遇到回访直接返回存储值，
    因此即使依赖图意外成环也能终止。

    递归过程中未碰到回访的结果与路径无关，会被缓存；
    无环的任务图因此每个任务只解析一次。
    """

    def __init__(
        self,
        graph: TaskGraph,
        change_in_progress: Optional[ChangeInProgress],
        policies: Optional[SchedulingPolicies] = None,
        calendar: Optional[WorkingCalendar] = None,
        round_date: Optional[RoundDate] = None,
    ):
        """
        初始化解析器

        Args:
            graph: 任务图
            change_in_progress: 进行中的编辑，None 表示没有编辑
            policies: 调度策略
            calendar: 工作日历（仅在 adjust_to_working_dates 开启时使用）
            round_date: 取整函数，传给工作日历
        """
        self._graph = graph
        self._change = change_in_progress
        self._policies = policies or SchedulingPolicies()
        self._calendar = calendar
        self._round_date = round_date
        self._cache: Dict[TaskKey, Task] = {}
        self._revisits = 0

        self._edited_ancestor_ids: Set[str] = set()
        if change_in_progress is not None:
            self._edited_ancestor_ids = {
                parent.id
                for parent in collect_all_parents(change_in_progress.original_task, graph)
            }

    @property
    def change_in_progress(self) -> Optional[ChangeInProgress]:
        return self._change

    def get_current_state(self, task: Task) -> Task:
        """
        获取任务当前帧的有效状态

        Args:
            task: 存储中的任务

        Returns:
            有效状态（无变化时返回原对象）
        """
        if self._change is None:
            return task

        result = self._resolve(task, set())
        self._cache[task.key] = result
        return result

    __call__ = get_current_state

    def _resolve(self, task: Task, visiting: Set[TaskKey]) -> Task:
        change = self._change
        if change is None:
            return task

        cached = self._cache.get(task.key)
        if cached is not None:
            return cached

        if task.key in visiting:
            self._revisits += 1
            log.debug(f"cyclic reference at task {task.id}, keeping stored state")
            return task

        revisits = self._revisits
        visiting.add(task.key)
        try:
            result = self._apply_rules(task, change, visiting)
        finally:
            visiting.discard(task.key)

        # 碰到回访的结果依赖当前路径，不能复用
        if self._revisits == revisits:
            self._cache[task.key] = result
        return result

    def _apply_rules(self, task: Task, change: ChangeInProgress, visiting: Set[TaskKey]) -> Task:
        is_edited = task.key == change.original_task.key

        # 1. 正在编辑的任务
        if is_edited and change.action != DragAction.PROGRESS:
            return self._adjust(change.changed_task, task)

        if task.has_dates:
            # 2. 依赖源位移
            moved = self._by_dependencies(task, visiting)
            if moved is not None:
                return moved

            # 3. 祖先整体平移
            if self._policies.move_children_with_parent:
                moved = self._by_rigid_ancestor(task, visiting)
                if moved is not None:
                    return moved

            # 4. 正在移动的任务的后代
            if (
                self._policies.move_children_with_parent
                and change.action == DragAction.MOVE
                and self._graph.is_descendant(change.original_task, task)
            ):
                return self._adjust(task.shifted(change.ts_diff), task)

        # 5. 自动管理的直接父任务
        if (
            self._policies.update_disabled_parents_on_change
            and task.is_disabled
            and task.id == change.original_task.parent
            and self._graph.is_descendant(task, change.original_task)
        ):
            recomputed = self._from_children(task, visiting)
            if recomputed is not None:
                return recomputed

        # 6. 仅进度变化
        if is_edited and change.changed_task.progress != task.progress:
            return task.with_progress(change.changed_task.progress)

        # 7. 无变化
        return task

    def _adjust(self, changed: Task, original: Task) -> Task:
        if not self._policies.adjust_to_working_dates or self._calendar is None:
            return changed
        return self._calendar.adjust_task_to_working_dates(
            self._change.action,
            changed,
            original,
            self._round_date,
        )

    def _by_dependencies(self, task: Task, visiting: Set[TaskKey]) -> Optional[Task]:
        for dep in task.dependencies:
            source = self._graph.get_task(dep.source_id, task.comparison_level)
            if source is None or not source.has_dates:
                continue

            current = self._resolve(source, visiting)
            if dep.source_target == DateExtremity.END_OF_TASK:
                delta = current.end - source.end
            else:
                delta = current.start - source.start

            # 只应用第一条产生非零位移的依赖
            if delta:
                log.debug(f"task {task.id} follows {source.id} by {delta}")
                return self._adjust(task.shifted(delta), task)

        return None

    def _by_rigid_ancestor(self, task: Task, visiting: Set[TaskKey]) -> Optional[Task]:
        for parent in collect_all_parents(task, self._graph):
            if not parent.has_dates or parent.id in self._edited_ancestor_ids:
                continue

            current = self._resolve(parent, visiting)
            start_diff = current.start - parent.start
            end_diff = current.end - parent.end

            if start_diff and start_diff == end_diff:
                return self._adjust(task.shifted(start_diff), task)

        return None

    def _from_children(self, parent: Task, visiting: Set[TaskKey]) -> Optional[Task]:
        children = self._graph.dated_children_of(parent)
        if not children:
            return None

        states = [self._resolve(child, visiting) for child in children]
        start = min(state.start for state in states)
        end = max(state.end for state in states)
        if start == parent.start and end == parent.end:
            return parent
        return parent.with_dates(start, end)

