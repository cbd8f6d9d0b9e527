"""
任务图

在任务森林（父子层级）之上叠加依赖有向图，提供所有算法共用的索引:
- TaskMapByLevel:   比较层 -> 任务 ID -> 任务
- ChildByLevelMap:  比较层 -> 父任务 ID -> 直接子任务 ID（有序）
- DependentMap:     比较层 -> 源任务 ID -> 依赖它的任务
- 全局显示顺序索引
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set

from ..logging import log
from .model import DateExtremity, Task, TaskKey


TaskMapByLevel = Dict[int, Dict[str, Task]]
ChildByLevelMap = Dict[int, Dict[str, List[str]]]


class GraphError(Exception):
    """任务图结构错误"""
    pass


@dataclass(frozen=True)
class DependentEdge:
    """反向依赖边"""
    dependent: Task                  # 声明依赖的任务
    source_id: str                   # 被依赖的任务
    source_target: DateExtremity


DependentMap = Dict[int, Dict[str, List[DependentEdge]]]


class TaskGraph:
    """
    任务图

    支持功能:
    - 按比较层的任务索引
    - 父子关系与后代遍历（带环保护）
    - 反向依赖索引
    - 显示顺序索引
    """

    def __init__(self):
        self._sorted: List[Task] = []
        self._tasks: TaskMapByLevel = {}
        self._children: ChildByLevelMap = {}
        self._dependents: DependentMap = {}
        self._global_index: Dict[TaskKey, int] = {}

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskGraph":
        """
        按显示顺序构建任务图

        Args:
            tasks: 任务列表（显示顺序）

        Returns:
            构建好的任务图

        Raises:
            GraphError: 同一比较层内任务 ID 重复
        """
        graph = cls()
        for task in tasks:
            graph._add(task)
        graph._index_relations()
        return graph

    def _add(self, task: Task):
        by_level = self._tasks.setdefault(task.comparison_level, {})
        if task.id in by_level:
            raise GraphError(
                f"任务 {task.id} 在比较层 {task.comparison_level} 中重复"
            )

        by_level[task.id] = task
        self._global_index[task.key] = len(by_level) - 1
        self._sorted.append(task)

    def _index_relations(self):
        for task in self._sorted:
            level = task.comparison_level

            if task.parent:
                self._children.setdefault(level, {}).setdefault(task.parent, []).append(task.id)

            for dep in task.dependencies:
                if dep.source_id not in self._tasks.get(level, {}):
                    # 悬空依赖保留在任务上，但不进入索引
                    log.debug(f"dependency source {dep.source_id} of {task.id} not found")
                    continue
                edge = DependentEdge(
                    dependent=task,
                    source_id=dep.source_id,
                    source_target=dep.source_target,
                )
                self._dependents.setdefault(level, {}).setdefault(dep.source_id, []).append(edge)

    # ------------------------------------------------------------------
    # 查询

    @property
    def sorted_tasks(self) -> List[Task]:
        """显示顺序的全部任务"""
        return list(self._sorted)

    @property
    def tasks_map(self) -> TaskMapByLevel:
        return self._tasks

    @property
    def child_map(self) -> ChildByLevelMap:
        return self._children

    @property
    def dependent_map(self) -> DependentMap:
        return self._dependents

    @property
    def levels(self) -> List[int]:
        return sorted(self._tasks)

    def get_task(self, task_id: str, comparison_level: int = 1) -> Optional[Task]:
        """获取任务"""
        return self._tasks.get(comparison_level, {}).get(task_id)

    def level_tasks(self, comparison_level: int) -> Dict[str, Task]:
        return self._tasks.get(comparison_level, {})

    def global_index(self, task: Task) -> int:
        """任务在其比较层内的显示位置，不存在时为 -1"""
        return self._global_index.get(task.key, -1)

    def parent_of(self, task: Task) -> Optional[Task]:
        if not task.parent:
            return None
        return self.get_task(task.parent, task.comparison_level)

    def children_of(self, task: Task) -> List[Task]:
        """直接子任务（含占位行）"""
        child_ids = self._children.get(task.comparison_level, {}).get(task.id, [])
        by_level = self._tasks.get(task.comparison_level, {})
        return [by_level[cid] for cid in child_ids if cid in by_level]

    def dated_children_of(self, task: Task) -> List[Task]:
        """直接子任务中有日期的非占位任务"""
        return [child for child in self.children_of(task) if child.has_dates]

    def dependents_of(self, task: Task) -> List[DependentEdge]:
        return list(self._dependents.get(task.comparison_level, {}).get(task.id, []))

    def get_all_descendants(self, task: Task, include_self: bool = False) -> List[Task]:
        """
        收集全部后代（先序，占位行除外）

        Args:
            task: 起点任务
            include_self: 是否包含起点本身

        Returns:
            后代任务列表
        """
        result: List[Task] = [task] if include_self else []
        visited: Set[str] = {task.id}
        stack = list(reversed(self.children_of(task)))

        while stack:
            current = stack.pop()
            if current.id in visited:
                log.warning(f"circle of parents detected at task {current.id}")
                continue
            visited.add(current.id)

            if current.has_dates:
                result.append(current)
            stack.extend(reversed(self.children_of(current)))

        return result

    def is_descendant(self, ancestor: Task, task: Task) -> bool:
        """task 是否是 ancestor 的严格后代"""
        if ancestor.comparison_level != task.comparison_level:
            return False

        visited: Set[str] = set()
        current = self.parent_of(task)
        while current is not None:
            if current.id == ancestor.id:
                return True
            if current.id in visited:
                return False
            visited.add(current.id)
            current = self.parent_of(current)

        return False

    def __len__(self) -> int:
        return len(self._sorted)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._sorted)

    def __contains__(self, task: Task) -> bool:
        return self.get_task(task.id, task.comparison_level) is not None
