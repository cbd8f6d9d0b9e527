"""
提交元数据计算测试
"""

import time
from datetime import date, timedelta

import pytest

from ganttpack.models import SchedulingPolicies
from ganttpack.scheduling import (
    AddChilds,
    ChangeMetadataComputer,
    ChangeStartAndEnd,
    ChangeTask,
    DeleteTasks,
    MoveAfter,
    MoveBefore,
    MoveInside,
    UnknownChangeActionError,
    WorkingCalendar,
    collect_suggested_parents,
)
from ganttpack.tasks import TaskGraph

from conftest import d, make_task


def compute(tasks, action_factory, policies=None, **kwargs):
    graph = TaskGraph.from_tasks(tasks)
    computer = ChangeMetadataComputer(graph, policies, **kwargs)
    return graph, computer.compute(action_factory(graph))


def suggested(metadata):
    return {task.id: task for task in metadata.suggested_tasks}


def assert_bounds(graph, metadata, parent_id):
    """父任务边界等于写集中直接子任务的边界"""
    snapshot = suggested(metadata)
    parent = snapshot[parent_id]
    children = [
        snapshot.get(child.id, child)
        for child in graph.dated_children_of(graph.get_task(parent_id))
    ]
    assert parent.start == min(c.start for c in children)
    assert parent.end == max(c.end for c in children)


class TestChange:
    """change 动作"""

    def test_disabled_root_scenario(self):
        """自动管理的无日期父任务随子任务结束延后"""
        tasks = [
            make_task("Root", disabled=True),
            make_task("Child1", "2024-01-01", "2024-01-05", parent="Root"),
            make_task("Child2", "2024-01-03", "2024-01-10", parent="Root"),
        ]

        def action(graph):
            child2 = graph.get_task("Child2")
            return ChangeTask(task=child2.with_dates(child2.start, d("2024-01-15")), original_task=child2)

        graph, metadata = compute(tasks, action)
        root = suggested(metadata)["Root"]
        assert root.start == d("2024-01-01")
        assert root.end == d("2024-01-15")
        assert_bounds(graph, metadata, "Root")

    def test_dependency_scenario(self, chain_tasks):
        """A 的结束延后 4 天，B 的开始跟随"""
        def action(graph):
            a = graph.get_task("TaskA")
            return ChangeTask(task=a.with_dates(a.start, d("2024-02-05")), original_task=a)

        _, metadata = compute(chain_tasks, action)
        assert suggested(metadata)["TaskB"].start == d("2024-02-07")
        assert [t.id for t in metadata.dependent_tasks] == ["TaskB"]
        assert [(ti.task.id, ti.index) for ti in metadata.task_indexes] == [("TaskA", 0)]

    def test_original_looked_up_when_missing(self, chain_tasks):
        """未提供原任务时从任务图中取"""
        def action(graph):
            a = graph.get_task("TaskA")
            return ChangeTask(task=a.with_dates(a.start, d("2024-02-05")))

        _, metadata = compute(chain_tasks, action)
        assert suggested(metadata)["TaskB"].start == d("2024-02-07")

    def test_suggestion_indexes(self, family_tasks):
        """建议携带显示位置"""
        def action(graph):
            child2 = graph.get_task("Child2")
            return ChangeTask(task=child2.with_dates(child2.start, d("2024-01-15")), original_task=child2)

        _, metadata = compute(family_tasks, action)
        indexes = {s.task.id: s.index for s in metadata.suggestions}
        assert indexes["Root"] == 0
        assert indexes["Child2"] == 2

    def test_unique_suggestions(self, family_tasks):
        """写集按任务去重"""
        def action(graph):
            child2 = graph.get_task("Child2")
            return ChangeTask(task=child2.with_dates(child2.start, d("2024-01-15")), original_task=child2)

        _, metadata = compute(family_tasks, action)
        ids = [s.task.id for s in metadata.suggestions]
        assert len(ids) == len(set(ids))

    def test_policy_off(self, family_tasks):
        """关闭父任务更新策略"""
        def action(graph):
            child2 = graph.get_task("Child2")
            return ChangeTask(task=child2.with_dates(child2.start, d("2024-01-15")), original_task=child2)

        policies = SchedulingPolicies(update_disabled_parents_on_change=False)
        _, metadata = compute(family_tasks, action, policies)
        assert "Root" not in suggested(metadata)

    def test_nested_parents(self):
        """多层自动管理父任务由深到浅重算"""
        tasks = [
            make_task("G", "2024-01-01", "2024-01-10", disabled=True),
            make_task("P", "2024-01-01", "2024-01-10", parent="G", disabled=True),
            make_task("Other", "2024-01-02", "2024-01-03", parent="G"),
            make_task("C1", "2024-01-01", "2024-01-05", parent="P"),
            make_task("C2", "2024-01-03", "2024-01-10", parent="P"),
        ]

        def action(graph):
            c2 = graph.get_task("C2")
            return ChangeTask(task=c2.with_dates(c2.start, d("2024-01-20")), original_task=c2)

        graph, metadata = compute(tasks, action)
        snapshot = suggested(metadata)
        assert snapshot["P"].end == d("2024-01-20")
        assert snapshot["G"].end == d("2024-01-20")
        assert_bounds(graph, metadata, "P")
        assert_bounds(graph, metadata, "G")

    def test_bounds_include_dependency_moves(self):
        """依赖带动的子任务也计入父任务边界"""
        tasks = [
            make_task("Root", "2024-01-01", "2024-01-10", disabled=True),
            make_task("A", "2024-01-01", "2024-01-05", parent="Root"),
            make_task("B", "2024-01-06", "2024-01-10", parent="Root", depends_on=["A"]),
        ]

        def action(graph):
            a = graph.get_task("A")
            return ChangeTask(task=a.with_dates(a.start, d("2024-01-07")), original_task=a)

        graph, metadata = compute(tasks, action)
        snapshot = suggested(metadata)
        assert snapshot["B"].end == d("2024-01-12")
        assert snapshot["Root"].end == d("2024-01-12")
        assert_bounds(graph, metadata, "Root")

    def test_cyclic_parents_terminate(self):
        """父子环不阻塞提交"""
        tasks = [
            make_task("A", "2024-01-01", "2024-01-10", parent="B", disabled=True),
            make_task("B", "2024-01-01", "2024-01-10", parent="A", disabled=True),
            make_task("C", "2024-01-01", "2024-01-05", parent="A"),
        ]

        def action(graph):
            c = graph.get_task("C")
            return ChangeTask(task=c.with_dates(c.start, d("2024-01-06")), original_task=c)

        _, metadata = compute(tasks, action)
        assert suggested(metadata)["C"].end == d("2024-01-06")

    def test_dependency_lattice_commit_is_fast(self):
        """依赖网格中编辑无关任务，写集只含该任务"""
        first = date(2024, 1, 1)
        tasks = []
        for i in range(40):
            start = (first + timedelta(days=i)).isoformat()
            end = (first + timedelta(days=i + 1)).isoformat()
            depends_on = [f"T{j}" for j in (i - 1, i - 2) if j >= 0]
            tasks.append(make_task(f"T{i}", start, end, depends_on=depends_on))
        tasks.reverse()
        tasks.append(make_task("X", "2024-03-01", "2024-03-02"))

        def action(graph):
            x = graph.get_task("X")
            return ChangeTask(task=x.with_dates(x.start, d("2024-03-04")), original_task=x)

        started = time.perf_counter()
        _, metadata = compute(tasks, action)
        assert time.perf_counter() - started < 1.0
        assert list(suggested(metadata)) == ["X"]


class TestChangeStartAndEnd:
    """change_start_and_end 动作"""

    @pytest.fixture
    def tree(self):
        return [
            make_task("P", "2024-01-01", "2024-01-10"),
            make_task("C1", "2024-01-02", "2024-01-04", parent="P"),
            make_task("G1", "2024-01-02", "2024-01-03", parent="C1"),
        ]

    def test_descendants_move(self, tree):
        """后代按开始差平移"""
        def action(graph):
            p = graph.get_task("P")
            return ChangeStartAndEnd(task=p.shifted(timedelta(days=2)), original_task=p)

        _, metadata = compute(tree, action)
        snapshot = suggested(metadata)
        assert snapshot["P"].start == d("2024-01-03")
        assert snapshot["C1"].start == d("2024-01-04")
        assert snapshot["G1"].start == d("2024-01-04")

    def test_descendants_stay_when_policy_off(self, tree):
        """关闭跟随策略"""
        def action(graph):
            p = graph.get_task("P")
            return ChangeStartAndEnd(task=p.shifted(timedelta(days=2)), original_task=p)

        _, metadata = compute(tree, action, SchedulingPolicies(move_children_with_parent=False))
        assert set(suggested(metadata)) == {"P"}

    def test_descendants_snap_to_working_days(self, tree):
        """开启工作日策略时后代也落在工作日"""
        def action(graph):
            p = graph.get_task("P")
            return ChangeStartAndEnd(task=p.shifted(timedelta(days=2)), original_task=p)

        policies = SchedulingPolicies(adjust_to_working_dates=True)
        _, metadata = compute(
            [t.shifted(timedelta(days=2)) for t in tree],   # C1 落到 01-06 周六
            action,
            policies,
            calendar=WorkingCalendar(),
        )
        assert suggested(metadata)["C1"].start == d("2024-01-08")


class TestStructuralActions:
    """增删与移动动作"""

    def test_delete(self, family_tasks):
        """删除子任务后父任务收缩"""
        def action(graph):
            return DeleteTasks(tasks=(graph.get_task("Child2"),))

        _, metadata = compute(family_tasks, action)
        root = suggested(metadata)["Root"]
        assert (root.start, root.end) == (d("2024-01-01"), d("2024-01-05"))

    def test_delete_all_children_keeps_dates(self, family_tasks):
        """删除全部子任务时父任务保持原日期"""
        def action(graph):
            return DeleteTasks(tasks=(graph.get_task("Child1"), graph.get_task("Child2")))

        _, metadata = compute(family_tasks, action)
        root = suggested(metadata)["Root"]
        assert (root.start, root.end) == (d("2024-01-01"), d("2024-01-10"))

    def test_add_childs(self):
        """新增子任务扩展父任务"""
        tasks = [
            make_task("P", "2024-01-01", "2024-01-03", disabled=True),
            make_task("A", "2024-01-01", "2024-01-03", parent="P"),
        ]
        new = make_task("N", "2024-01-02", "2024-01-09", parent="P")

        _, metadata = compute(tasks, lambda graph: AddChilds(parent=graph.get_task("P"), descendants=(new,)))
        assert suggested(metadata)["P"].end == d("2024-01-09")
        assert metadata.task_indexes[0].task.id == "P"

    def test_move_inside(self):
        """移入父任务"""
        tasks = [
            make_task("Q", "2024-01-01", "2024-01-02", disabled=True),
            make_task("Q1", "2024-01-01", "2024-01-02", parent="Q"),
            make_task("X", "2024-01-05", "2024-01-08"),
        ]

        def action(graph):
            return MoveInside(parent=graph.get_task("Q"), childs=(graph.get_task("X"),))

        _, metadata = compute(tasks, action)
        assert suggested(metadata)["Q"].end == d("2024-01-08")

    @pytest.mark.parametrize("move_cls", [MoveBefore, MoveAfter])
    def test_move_between_parents(self, move_cls):
        """跨父任务移动时两边都重算"""
        tasks = [
            make_task("R1", "2024-01-01", "2024-01-10", disabled=True),
            make_task("K", "2024-01-01", "2024-01-03", parent="R1"),
            make_task("M", "2024-01-05", "2024-01-10", parent="R1"),
            make_task("R2", "2024-02-01", "2024-02-05", disabled=True),
            make_task("T", "2024-02-01", "2024-02-05", parent="R2"),
        ]

        def action(graph):
            return move_cls(target=graph.get_task("T"), task_for_move=graph.get_task("M"))

        graph, metadata = compute(tasks, action)
        snapshot = suggested(metadata)
        assert (snapshot["R1"].start, snapshot["R1"].end) == (d("2024-01-01"), d("2024-01-03"))
        assert (snapshot["R2"].start, snapshot["R2"].end) == (d("2024-01-05"), d("2024-02-05"))
        assert [ti.task.id for ti in metadata.task_indexes] == ["M"]


class TestErrors:
    """错误处理"""

    def test_unknown_action(self, family_tasks):
        """未知变更种类抛出错误并携带种类"""
        graph = TaskGraph.from_tasks(family_tasks)
        with pytest.raises(UnknownChangeActionError) as exc_info:
            ChangeMetadataComputer(graph).compute("rename")
        assert exc_info.value.kind == "rename"

    def test_unknown_action_in_parent_collector(self, family_tasks):
        """祖先收集同样拒绝未知种类"""
        graph = TaskGraph.from_tasks(family_tasks)
        with pytest.raises(UnknownChangeActionError):
            collect_suggested_parents(object(), graph)

    def test_missing_task_is_best_effort(self, family_tasks):
        """不在任务图中的任务不报错"""
        ghost = make_task("ghost", "2024-01-01", "2024-01-02", parent="nobody")
        _, metadata = compute(family_tasks, lambda graph: ChangeTask(task=ghost.shifted(timedelta(days=1))))
        assert metadata.task_indexes[0].index == -1
        assert metadata.suggestions == []
