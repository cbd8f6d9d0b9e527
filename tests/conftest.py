"""
Ganttpack 测试共享 fixtures

为所有测试提供统一的 fixtures 和测试工具。
"""

import json
import pytest
from datetime import datetime
from pathlib import Path
from typing import Optional

from click.testing import CliRunner

from ganttpack.tasks import Task, TaskGraph, Dependency, DateExtremity
from ganttpack.models import SchedulingPolicies, ScheduleFile


# =============================================================================
# CLI Fixtures
# =============================================================================

@pytest.fixture
def runner():
    """Click CLI 测试运行器"""
    return CliRunner()


@pytest.fixture
def isolated_filesystem(runner):
    """隔离的文件系统"""
    with runner.isolated_filesystem() as fs:
        yield Path(fs) if isinstance(fs, str) else Path.cwd()


# =============================================================================
# Factory Fixtures
# =============================================================================

def d(day: str, hour: int = 0) -> datetime:
    """'2024-01-05' -> datetime"""
    return datetime.fromisoformat(day).replace(hour=hour)


def make_task(
    task_id: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    parent: Optional[str] = None,
    depends_on: Optional[list] = None,
    disabled: bool = False,
    progress: float = 0.0,
    level: int = 1,
) -> Task:
    """
    创建任务。

    Args:
        depends_on: [(source_id, source_target)] 或 source_id 列表，默认跟随源任务结束
    """
    deps = []
    for dep in depends_on or []:
        if isinstance(dep, tuple):
            deps.append(Dependency(source_id=dep[0], source_target=dep[1]))
        else:
            deps.append(Dependency(source_id=dep, source_target=DateExtremity.END_OF_TASK))
    return Task(
        id=task_id,
        name=task_id,
        start=d(start) if start else None,
        end=d(end) if end else None,
        progress=progress,
        parent=parent,
        comparison_level=level,
        dependencies=tuple(deps),
        is_disabled=disabled,
    )


@pytest.fixture
def task_factory():
    """任务工厂"""
    return make_task


@pytest.fixture
def graph_factory():
    """任务图工厂"""
    def _factory(*tasks: Task) -> TaskGraph:
        return TaskGraph.from_tasks(tasks)
    return _factory


@pytest.fixture
def policies():
    """默认调度策略"""
    return SchedulingPolicies()


# =============================================================================
# Scenario Fixtures
# =============================================================================

@pytest.fixture
def family_tasks():
    """
    自动管理的父任务及两个子任务

    Root(disabled) -> Child1 [01-01, 01-05], Child2 [01-03, 01-10]
    """
    return [
        make_task("Root", "2024-01-01", "2024-01-10", disabled=True),
        make_task("Child1", "2024-01-01", "2024-01-05", parent="Root"),
        make_task("Child2", "2024-01-03", "2024-01-10", parent="Root"),
    ]


@pytest.fixture
def chain_tasks():
    """
    依赖链

    TaskA [01-28, 02-01] -> TaskB [02-03, 02-06] 跟随 A 的结束
    """
    return [
        make_task("TaskA", "2024-01-28", "2024-02-01"),
        make_task("TaskB", "2024-02-03", "2024-02-06", depends_on=["TaskA"]),
    ]


@pytest.fixture
def schedule_file(isolated_filesystem, chain_tasks):
    """写入依赖链的排期文件"""
    path = isolated_filesystem / "plan.json"
    path.write_text(ScheduleFile.from_tasks(chain_tasks).model_dump_json(indent=2), encoding="utf-8")
    return path


@pytest.fixture
def write_json(isolated_filesystem):
    """写 JSON 文件到隔离目录"""
    def _write(name: str, data) -> Path:
        path = isolated_filesystem / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write
