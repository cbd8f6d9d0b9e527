"""
祖先收集

沿 parent 链向上收集祖先（近者在前），检测父子环。
"""

from typing import List, Set

from ..logging import log
from .graph import TaskGraph
from .model import Task


def _walk_parents(task: Task, graph: TaskGraph, only_disabled: bool) -> List[Task]:
    checked: Set[str] = {task.id}
    result: List[Task] = []

    current = task
    while True:
        if not current.parent:
            return result

        parent = graph.get_task(current.parent, current.comparison_level)
        if parent is None:
            return result

        # 可编辑的祖先不会被自动重算
        if only_disabled and not parent.is_disabled:
            return result

        if parent.id in checked:
            log.warning(f"circle of parents detected at task {parent.id}")
            return result
        checked.add(parent.id)

        result.append(parent)
        current = parent


def collect_parents(task: Task, graph: TaskGraph) -> List[Task]:
    """
    收集自动管理（is_disabled）的祖先链

    遇到以下情况停止并返回已收集部分:
    - 没有 parent
    - parent 不在任务表中
    - parent 可编辑
    - 检测到环（记录警告，不抛异常）

    Args:
        task: 起点任务
        graph: 任务图

    Returns:
        祖先列表，最近的在前
    """
    return _walk_parents(task, graph, only_disabled=True)


def collect_all_parents(task: Task, graph: TaskGraph) -> List[Task]:
    """收集全部祖先（不论是否自动管理），最近的在前"""
    return _walk_parents(task, graph, only_disabled=False)
