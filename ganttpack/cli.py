#!/usr/bin/env python3
"""Delta GanttPack CLI - preview and commit schedule edits from the terminal."""
from __future__ import annotations
import json
import re
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError as PydanticValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from . import __version__
from .core import GanttSession, drag_task, find_schedule_issues, load_config, load_schedule, save_schedule
from .logging import configure_logging, get_console
from .scheduling import ChangeMetadata, ChangeTask, DeleteTasks, DragAction
from .schema import format_validation_errors, validate_config_file
from .tasks import GraphError, Task

console = get_console()

DURATION_TOKEN = re.compile(r"(\d+)([wdhm])")
DURATION_UNITS = {"w": "weeks", "d": "days", "h": "hours", "m": "minutes"}


class AliasedGroup(click.Group):
    """Support command aliases."""

    def get_command(self, ctx, cmd_name):
        aliases = {
            "v": "validate",
            "p": "preview",
            "c": "commit",
            "rm": "delete",
        }
        cmd_name = aliases.get(cmd_name, cmd_name)
        return super().get_command(ctx, cmd_name)


class DurationType(click.ParamType):
    """`[-]N{w,d,h,m}...`, e.g. 2d, -4h, 1d12h."""
    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, timedelta):
            return value
        text = value.strip()
        sign = -1 if text.startswith("-") else 1
        body = text.lstrip("+-")
        if not body or DURATION_TOKEN.sub("", body):
            self.fail(f"{value!r} is not a duration like 2d, -4h or 1d12h", param, ctx)
        total = timedelta()
        for amount, unit in DURATION_TOKEN.findall(body):
            total += timedelta(**{DURATION_UNITS[unit]: int(amount)})
        return total * sign


DURATION = DurationType()


def _fmt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _open_session(ctx, schedule: str) -> GanttSession:
    try:
        return GanttSession(load_schedule(Path(schedule)), ctx.obj["config"])
    except (FileNotFoundError, GraphError) as e:
        raise click.ClickException(str(e))
    except PydanticValidationError as e:
        raise click.ClickException(f"invalid schedule {schedule}:\n{e}")


def _find_task(session: GanttSession, task_id: str, level: int) -> Task:
    task = session.graph.get_task(task_id, level)
    if task is None:
        raise click.ClickException(f"task {task_id} not found in comparison level {level}")
    return task


def _dragged(task: Task, action: str, by: Optional[timedelta], progress: Optional[float]) -> Task:
    try:
        return drag_task(task, DragAction(action), by, progress)
    except ValueError as e:
        raise click.UsageError(str(e))


def _console(ctx) -> Console:
    return get_console(plain=ctx.obj["plain"])


def _table(ctx, title: str) -> Table:
    return Table(title=title, box=box.ASCII if ctx.obj["plain"] else box.ROUNDED)


def _print_metadata(ctx, metadata: ChangeMetadata, title: str) -> None:
    if ctx.obj["json"]:
        click.echo(json.dumps({
            "suggestions": [
                {
                    "id": s.task.id,
                    "comparison_level": s.task.comparison_level,
                    "index": s.index,
                    "start": _iso(s.start),
                    "end": _iso(s.end),
                }
                for s in metadata.suggestions
            ],
            "dependent_tasks": [t.id for t in metadata.dependent_tasks],
            "task_indexes": [{"id": ti.task.id, "index": ti.index} for ti in metadata.task_indexes],
        }, indent=2))
        return

    if not metadata.suggestions:
        _console(ctx).print("[yellow]No other task changes")
    else:
        table = _table(ctx, title)
        table.add_column("Task", style="cyan", no_wrap=True)
        table.add_column("Level")
        table.add_column("Row")
        table.add_column("Start")
        table.add_column("End")
        for s in metadata.suggestions:
            table.add_row(s.task.id, str(s.task.comparison_level), str(s.index), _fmt(s.start), _fmt(s.end))
        _console(ctx).print(table)

    if metadata.dependent_tasks:
        _console(ctx).print("[bold]Dependent tasks:[/bold] " + ", ".join(t.id for t in metadata.dependent_tasks))


def edit_options(f):
    """Decorator to add the drag simulation options."""
    f = click.option("--level", "-l", type=int, default=1, show_default=True, help="Comparison level")(f)
    f = click.option("--progress", type=click.FloatRange(0, 100), help="New progress (progress action)")(f)
    f = click.option("--by", "by", type=DURATION, help="Drag distance, e.g. 2d, -4h, 1d12h")(f)
    f = click.option(
        "--action", "-a",
        type=click.Choice([a.value for a in DragAction]),
        default=DragAction.MOVE.value,
        show_default=True,
        help="Drag action",
    )(f)
    return f


@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option("--config", "-c", "config_path", default=".", type=click.Path(), help="Config file or directory holding .ganttpackrc")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None, help="Log level (overrides config)")
@click.option("--log-file", type=click.Path(), default=None, help="Log file path")
@click.version_option(version=__version__, prog_name="gantt")
@click.pass_context
def cli(ctx, config_path: str, output_json: bool, log_level: Optional[str], log_file: Optional[str]):
    """Delta GanttPack - incremental rescheduling for Gantt schedules.

    \b
    Quick start:
      gantt validate plan.json                  # Check a schedule
      gantt preview plan.json t1 --by 2d        # What moves if t1 moves 2 days
      gantt commit plan.json t1 -a end --by -4h --apply out.json

    \b
    Aliases:
      v → validate, p → preview, c → commit, rm → delete
    """
    try:
        config = load_config(Path(config_path))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"invalid JSON in config: {e}")
    except PydanticValidationError as e:
        raise click.ClickException(f"invalid config:\n{e}")

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path)
    ctx.obj["config"] = config
    ctx.obj["json"] = output_json or config.output_format == "json"
    ctx.obj["plain"] = config.output_format == "plain"

    configure_logging(
        level=log_level or config.log_level,
        file=log_file is not None,
        file_path=log_file or ".ganttpack/ganttpack.log",
        json_format=ctx.obj["json"],
    )

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("schedule", type=click.Path())
@click.pass_context
def validate(ctx, schedule: str):
    """Check a schedule (and the config file, if any) for structural problems."""
    config_errors = []
    rc_path = ctx.obj["config_path"]
    if rc_path.is_dir():
        rc_path = rc_path / ".ganttpackrc"
    if rc_path.exists():
        _, config_errors = validate_config_file(rc_path)

    session = _open_session(ctx, schedule)
    issues = find_schedule_issues(session.graph)
    valid = not issues and not config_errors

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "valid": valid,
            "tasks": len(session.graph),
            "issues": [
                {"id": i.task_id, "comparison_level": i.comparison_level, "message": i.message}
                for i in issues
            ],
            "config_errors": [str(e) for e in config_errors],
        }, indent=2))
    else:
        if rc_path.exists():
            _console(ctx).print(format_validation_errors(config_errors))
        if issues:
            table = _table(ctx, "Schedule Issues")
            table.add_column("Task", style="cyan", no_wrap=True)
            table.add_column("Level")
            table.add_column("Problem", style="red")
            for issue in issues:
                table.add_row(issue.task_id, str(issue.comparison_level), issue.message)
            _console(ctx).print(table)
        else:
            _console(ctx).print(f"[green]✓ {len(session.graph)} tasks, no issues")

    if not valid:
        ctx.exit(1)


@cli.command()
@click.argument("schedule", type=click.Path())
@click.argument("task_id")
@edit_options
@click.pass_context
def preview(ctx, schedule: str, task_id: str, action: str, by: Optional[timedelta], progress: Optional[float], level: int):
    """Show every task whose effective state changes while TASK_ID is dragged."""
    session = _open_session(ctx, schedule)
    task = _find_task(session, task_id, level)
    changed = _dragged(task, action, by, progress)
    pairs = session.preview_change(DragAction(action), task, changed)

    if ctx.obj["json"]:
        click.echo(json.dumps({
            "task": task_id,
            "action": action,
            "changes": [
                {
                    "id": current.id,
                    "comparison_level": current.comparison_level,
                    "start": _iso(current.start),
                    "end": _iso(current.end),
                    "progress": current.progress,
                    "was_start": _iso(stored.start),
                    "was_end": _iso(stored.end),
                }
                for stored, current in pairs
            ],
        }, indent=2))
        return

    if not pairs:
        _console(ctx).print("[yellow]Nothing changes")
        return

    table = _table(ctx, f"Preview: {action} {task_id}")
    table.add_column("Task", style="cyan", no_wrap=True)
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Progress")
    for stored, current in pairs:
        table.add_row(
            current.id,
            f"{_fmt(stored.start)} → {_fmt(current.start)}",
            f"{_fmt(stored.end)} → {_fmt(current.end)}",
            f"{current.progress:g}%",
        )
    _console(ctx).print(table)


@cli.command()
@click.argument("schedule", type=click.Path())
@click.argument("task_id")
@edit_options
@click.option("--apply", "apply_to", type=click.Path(), help="Write the updated schedule here")
@click.pass_context
def commit(ctx, schedule: str, task_id: str, action: str, by: Optional[timedelta], progress: Optional[float], level: int, apply_to: Optional[str]):
    """Compute the write-set of dragging TASK_ID and optionally apply it."""
    session = _open_session(ctx, schedule)
    task = _find_task(session, task_id, level)
    drag_action = DragAction(action)
    changed = session.finalize_change(drag_action, task, _dragged(task, action, by, progress))

    metadata = session.commit_date_change(drag_action, changed, task)
    _print_metadata(ctx, metadata, f"Commit: {action} {task_id}")

    if apply_to:
        tasks = session.apply_suggestions(metadata, ChangeTask(task=changed, original_task=task))
        save_schedule(Path(apply_to), tasks)
        if not ctx.obj["json"]:
            _console(ctx).print(f"[green]✓ Wrote {apply_to}")


@cli.command()
@click.argument("schedule", type=click.Path())
@click.argument("task_ids", nargs=-1, required=True)
@click.option("--level", "-l", type=int, default=1, show_default=True, help="Comparison level")
@click.option("--apply", "apply_to", type=click.Path(), help="Write the updated schedule here")
@click.pass_context
def delete(ctx, schedule: str, task_ids: tuple, level: int, apply_to: Optional[str]):
    """Compute the write-set of deleting TASK_IDS."""
    session = _open_session(ctx, schedule)
    change_action = DeleteTasks(tasks=tuple(_find_task(session, task_id, level) for task_id in task_ids))

    metadata = session.compute_change_metadata(change_action)
    _print_metadata(ctx, metadata, f"Delete: {', '.join(task_ids)}")

    if apply_to:
        save_schedule(Path(apply_to), session.apply_suggestions(metadata, change_action))
        if not ctx.obj["json"]:
            _console(ctx).print(f"[green]✓ Wrote {apply_to}")


def main():
    """Entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
