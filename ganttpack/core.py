"""Core session logic: config, schedule files and the host-facing façade."""
from __future__ import annotations
import json
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from pathlib import Path
from typing import Callable, Optional

from .drag import DragController, LinearTimeline, Viewport
from .logging import log
from .models import GanttpackConfig, ScheduleFile
from .scheduling import (
    ChangeAction,
    ChangeInProgress,
    ChangeMetadata,
    ChangeMetadataComputer,
    ChangeStartAndEnd,
    ChangeTask,
    DateRounder,
    DeleteTasks,
    DragAction,
    TaskStateResolver,
    WorkingCalendar,
)
from .tasks import Task, TaskGraph, TaskKey

RC_FILE = ".ganttpackrc"


def load_config(path: Path) -> GanttpackConfig:
    """Load config from a .ganttpackrc file (or a directory holding one), or defaults."""
    rc_file = path / RC_FILE if path.is_dir() else path
    if rc_file.exists():
        data = json.loads(rc_file.read_text(encoding="utf-8"))
        return GanttpackConfig(**data)
    return GanttpackConfig()


def load_schedule(path: Path) -> list[Task]:
    """Load and validate a schedule file."""
    if not path.exists():
        raise FileNotFoundError(f"Schedule not found: {path}")
    schedule = ScheduleFile.model_validate_json(path.read_text(encoding="utf-8"))
    return schedule.to_tasks()


def save_schedule(path: Path, tasks: list[Task]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    schedule = ScheduleFile.from_tasks(tasks)
    path.write_text(schedule.model_dump_json(indent=2), encoding="utf-8")


def drag_task(
    task: Task,
    action: DragAction,
    delta: Optional[timedelta] = None,
    progress: Optional[float] = None,
) -> Task:
    """Apply a finished drag of `delta` (or a new progress value) to a task."""
    action = DragAction(action)
    if action == DragAction.PROGRESS:
        if progress is None:
            raise ValueError("progress drag needs a progress value")
        return task.with_progress(min(max(progress, 0.0), 100.0))

    if delta is None:
        raise ValueError(f"{action.value} drag needs a duration")
    if not task.has_dates:
        raise ValueError(f"task {task.id} has no dates to {action.value}")

    if action == DragAction.MOVE:
        return task.shifted(delta)
    if action == DragAction.START:
        return task.with_dates(min(task.start + delta, task.end), task.end)
    return task.with_dates(task.start, max(task.end + delta, task.start))


@dataclass
class ScheduleIssue:
    task_id: str
    comparison_level: int
    message: str


def find_schedule_issues(graph: TaskGraph) -> list[ScheduleIssue]:
    """Structural problems that the engine tolerates but a user should fix."""
    issues: list[ScheduleIssue] = []

    for task in graph.sorted_tasks:
        level = task.comparison_level
        level_tasks = graph.level_tasks(level)

        if task.parent and task.parent not in level_tasks:
            issues.append(ScheduleIssue(task.id, level, f"parent {task.parent} not found"))

        seen = {task.id}
        parent_id = task.parent
        while parent_id and parent_id in level_tasks:
            if parent_id in seen:
                issues.append(ScheduleIssue(task.id, level, f"parent chain loops at {parent_id}"))
                break
            seen.add(parent_id)
            parent_id = level_tasks[parent_id].parent

        for dep in task.dependencies:
            if dep.source_id not in level_tasks:
                issues.append(ScheduleIssue(task.id, level, f"dependency source {dep.source_id} not found"))

        if task.is_disabled and task.has_dates:
            children = graph.dated_children_of(task)
            if children:
                start = min(child.start for child in children)
                end = max(child.end for child in children)
                if task.start != start or task.end != end:
                    issues.append(ScheduleIssue(
                        task.id, level,
                        f"dates {task.start:%Y-%m-%d %H:%M} - {task.end:%Y-%m-%d %H:%M} "
                        f"do not match children {start:%Y-%m-%d %H:%M} - {end:%Y-%m-%d %H:%M}",
                    ))

    return issues


class GanttSession:
    """
    Host façade over one schedule.

    Owns the task graph and at most one drag controller. Everything is
    computed against the graph it was built with; call `apply_suggestions`
    and build a new session to move on to the next revision.
    """

    def __init__(self, tasks: list[Task], config: Optional[GanttpackConfig] = None):
        self.config = config or GanttpackConfig()
        self.graph = TaskGraph.from_tasks(tasks)

        calendar_settings = self.config.calendar
        self.round_date = DateRounder(timedelta(minutes=calendar_settings.round_step_minutes))
        self.calendar = WorkingCalendar.create(calendar_settings.weekend_days, calendar_settings.holidays)

        drag = self.config.drag
        self.timeline = LinearTimeline(
            start_date=self._timeline_start(),
            time_step=timedelta(minutes=drag.time_step_minutes),
            x_step=drag.x_step,
            rtl=self.config.policies.rtl,
        )

        self._controller: Optional[DragController] = None
        self.last_metadata: Optional[ChangeMetadata] = None

    def _timeline_start(self) -> datetime:
        starts = [task.start for task in self.graph.sorted_tasks if task.has_dates]
        if not starts:
            return datetime.combine(datetime.now().date(), time.min)
        first = min(starts)
        return datetime.combine(first.date(), time.min, tzinfo=first.tzinfo)

    @property
    def policies(self):
        return self.config.policies

    @property
    def controller(self) -> Optional[DragController]:
        return self._controller

    def get_current_state(self, task: Task) -> Task:
        """Effective state of a task under the drag in progress, if any."""
        if self._controller is None:
            return task
        return self._controller.get_current_state(task)

    def start_drag(
        self,
        action: DragAction,
        task: Task,
        client_x: float,
        viewport: Optional[Viewport] = None,
        on_commit: Optional[Callable[[ChangeMetadata], None]] = None,
        on_progress_change: Optional[Callable[[Task], None]] = None,
    ) -> DragController:
        """Begin a drag; on release the commit metadata is computed and handed to `on_commit`."""
        if self._controller is None:
            def on_date_change(drag_action: DragAction, changed: Task, original: Task) -> None:
                metadata = self.commit_date_change(drag_action, changed, original)
                if on_commit is not None:
                    on_commit(metadata)

            self._controller = DragController(
                self.graph,
                self.timeline,
                viewport=viewport,
                on_date_change=on_date_change,
                on_progress_change=on_progress_change,
                policies=self.policies,
                settings=self.config.drag,
                round_date=self.round_date,
                calendar=self.calendar,
            )

        self._controller.start_drag(action, task, client_x)
        return self._controller

    def close(self) -> None:
        if self._controller is not None:
            self._controller.close()
            self._controller = None

    def preview_change(self, action: DragAction, original: Task, changed: Task) -> list[tuple[Task, Task]]:
        """Every (stored, effective) pair whose dates differ while the edit is in flight."""
        resolver = TaskStateResolver(
            self.graph,
            ChangeInProgress.from_change(DragAction(action), original, changed),
            self.policies,
            calendar=self.calendar,
            round_date=self.round_date,
        )
        pairs = []
        for task in self.graph.sorted_tasks:
            current = resolver.get_current_state(task)
            if not current.same_dates(task) or current.progress != task.progress:
                pairs.append((task, current))
        return pairs

    def finalize_change(self, action: DragAction, original: Task, changed: Task) -> Task:
        """Snap a released edit to working dates when the policy asks for it."""
        if action == DragAction.PROGRESS or not self.policies.adjust_to_working_dates:
            return changed
        return self.calendar.adjust_task_to_working_dates(action, changed, original, self.round_date)

    def compute_change_metadata(
        self,
        change_action: ChangeAction,
        change_in_progress: Optional[ChangeInProgress] = None,
    ) -> ChangeMetadata:
        computer = ChangeMetadataComputer(
            self.graph,
            self.policies,
            calendar=self.calendar,
            round_date=self.round_date,
        )
        metadata = computer.compute(change_action, change_in_progress)
        self.last_metadata = metadata
        return metadata

    def commit_date_change(self, action: DragAction, changed_task: Task, original_task: Task) -> ChangeMetadata:
        """Turn a released drag into a change action and compute its write-set."""
        action = DragAction(action)
        if action == DragAction.MOVE:
            change_action: ChangeAction = ChangeStartAndEnd(task=changed_task, original_task=original_task)
        else:
            change_action = ChangeTask(task=changed_task, original_task=original_task)

        log.task_log(
            f"commit {change_action.type.value}",
            task_id=changed_task.id,
            action=action.value,
            comparison_level=changed_task.comparison_level,
        )
        return self.compute_change_metadata(
            change_action,
            ChangeInProgress.from_change(action, original_task, changed_task),
        )

    def apply_suggestions(
        self,
        metadata: ChangeMetadata,
        change_action: Optional[ChangeAction] = None,
    ) -> list[Task]:
        """
        Return the task list with the write-set applied, in display order.

        `change_action` carries the primary edit itself (progress, deletion)
        which the write-set does not repeat.
        """
        updates: dict[TaskKey, Task] = {}
        removed: set[TaskKey] = set()

        if isinstance(change_action, (ChangeTask, ChangeStartAndEnd)):
            updates[change_action.task.key] = change_action.task
        elif isinstance(change_action, DeleteTasks):
            for task in change_action.tasks:
                removed.add(task.key)
                removed.update(child.key for child in self.graph.get_all_descendants(task))

        for suggestion in metadata.suggestions:
            task = suggestion.task
            base = updates.get(task.key) or self.graph.get_task(task.id, task.comparison_level) or task
            updates[task.key] = base.with_dates(suggestion.start, suggestion.end)

        return [
            updates.get(task.key, task)
            for task in self.graph.sorted_tasks
            if task.key not in removed
        ]
