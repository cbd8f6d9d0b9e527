"""Integration tests for ganttpack.cli module."""
from __future__ import annotations

import json
from datetime import timedelta

import click
import pytest
from click.testing import CliRunner

import ganttpack.cli as cli_module
from ganttpack.cli import DURATION, AliasedGroup, cli
from ganttpack.core import load_schedule
from ganttpack.logging import LoggingConfig, get_logger

from conftest import d


@pytest.fixture(autouse=True)
def reset_logger():
    """CLI 会把日志处理器绑到 CliRunner 的临时 stderr 上，测试后移除"""
    yield
    get_logger().configure(LoggingConfig(console_enabled=False))


def invoke_json(runner: CliRunner, *args: str):
    result = runner.invoke(cli, ["--json", *args])
    return result, (json.loads(result.output) if result.output.strip().startswith("{") else None)


class TestAliasedGroup:
    """Tests for command aliasing."""

    @pytest.mark.parametrize("alias,command", [
        ("v", "validate"),
        ("p", "preview"),
        ("c", "commit"),
        ("rm", "delete"),
    ])
    def test_alias(self, runner: CliRunner, alias: str, command: str):
        """Aliases resolve to their commands."""
        group = cli
        assert isinstance(group, AliasedGroup)
        ctx = click.Context(group)
        assert group.get_command(ctx, alias).name == command

    def test_help(self, runner: CliRunner):
        """Group help lists the commands."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("validate", "preview", "commit", "delete"):
            assert command in result.output

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "gantt" in result.output


class TestDuration:
    """Tests for the duration parameter type."""

    @pytest.mark.parametrize("text,expected", [
        ("2d", timedelta(days=2)),
        ("-4h", timedelta(hours=-4)),
        ("1d12h", timedelta(days=1, hours=12)),
        ("1w30m", timedelta(weeks=1, minutes=30)),
    ])
    def test_parse(self, text, expected):
        assert DURATION.convert(text, None, None) == expected

    @pytest.mark.parametrize("text", ["", "-", "2x", "d2", "2 d"])
    def test_reject(self, text):
        with pytest.raises(click.BadParameter):
            DURATION.convert(text, None, None)


class TestValidate:
    """Tests for 'validate' command."""

    def test_clean_schedule(self, runner: CliRunner, schedule_file):
        result, data = invoke_json(runner, "validate", str(schedule_file))
        assert result.exit_code == 0
        assert data["valid"] is True
        assert data["tasks"] == 2

    def test_clean_schedule_rich(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["validate", str(schedule_file)])
        assert result.exit_code == 0
        assert "no issues" in result.output

    def test_reports_issues(self, runner: CliRunner, write_json):
        path = write_json("bad.json", {"tasks": [
            {"id": "a", "parent": "ghost"},
            {"id": "b", "dependencies": [{"source_id": "nope"}]},
        ]})
        result, data = invoke_json(runner, "validate", str(path))
        assert result.exit_code == 1
        assert data["valid"] is False
        assert {i["id"] for i in data["issues"]} == {"a", "b"}

    def test_reports_config_errors(self, runner: CliRunner, schedule_file, write_json):
        write_json(".ganttpackrc", {"policies": {"rtl": True}, "colour": "red"})
        result, data = invoke_json(runner, "validate", str(schedule_file))
        assert data["valid"] is False
        assert data["config_errors"] == ["colour: unknown property"]
        assert result.exit_code == 1

    def test_duplicate_ids(self, runner: CliRunner, write_json):
        path = write_json("dup.json", {"tasks": [{"id": "a"}, {"id": "a"}]})
        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_missing_schedule(self, runner: CliRunner, isolated_filesystem):
        result = runner.invoke(cli, ["validate", "nope.json"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestPreview:
    """Tests for 'preview' command."""

    def test_end_drag_moves_dependent(self, runner: CliRunner, schedule_file):
        result, data = invoke_json(runner, "preview", str(schedule_file), "TaskA", "-a", "end", "--by", "4d")
        assert result.exit_code == 0
        changes = {c["id"]: c for c in data["changes"]}
        assert changes["TaskA"]["end"] == "2024-02-05T00:00:00"
        assert changes["TaskB"]["start"] == "2024-02-07T00:00:00"
        assert changes["TaskB"]["was_start"] == "2024-02-03T00:00:00"

    def test_alias_and_rich_output(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["p", str(schedule_file), "TaskA", "--by", "1d"])
        assert result.exit_code == 0
        assert "TaskB" in result.output

    def test_missing_duration(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["preview", str(schedule_file), "TaskA", "-a", "start"])
        assert result.exit_code == 2

    def test_bad_duration(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["preview", str(schedule_file), "TaskA", "--by", "soon"])
        assert result.exit_code == 2

    def test_unknown_action(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["preview", str(schedule_file), "TaskA", "-a", "stretch", "--by", "1d"])
        assert result.exit_code == 2

    def test_unknown_task(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["preview", str(schedule_file), "Nope", "--by", "1d"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_progress(self, runner: CliRunner, schedule_file):
        result, data = invoke_json(runner, "preview", str(schedule_file), "TaskA", "-a", "progress", "--progress", "40")
        assert result.exit_code == 0
        assert [(c["id"], c["progress"]) for c in data["changes"]] == [("TaskA", 40.0)]


class TestCommit:
    """Tests for 'commit' command."""

    def test_write_set(self, runner: CliRunner, schedule_file):
        result, data = invoke_json(runner, "commit", str(schedule_file), "TaskA", "-a", "end", "--by", "4d")
        assert result.exit_code == 0
        suggestions = {s["id"]: s for s in data["suggestions"]}
        assert suggestions["TaskB"]["start"] == "2024-02-07T00:00:00"
        assert suggestions["TaskB"]["index"] == 1
        assert data["dependent_tasks"] == ["TaskB"]
        assert data["task_indexes"] == [{"id": "TaskA", "index": 0}]

    def test_apply(self, runner: CliRunner, schedule_file, isolated_filesystem):
        out = isolated_filesystem / "out.json"
        result = runner.invoke(cli, ["c", str(schedule_file), "TaskA", "--by", "-1d", "--apply", str(out)])
        assert result.exit_code == 0
        tasks = {t.id: t for t in load_schedule(out)}
        assert tasks["TaskA"].start == d("2024-01-27")
        assert tasks["TaskB"].start == d("2024-02-02")

    def test_working_dates_from_config(self, runner: CliRunner, isolated_filesystem, write_json):
        write_json(".ganttpackrc", {"policies": {"adjust_to_working_dates": True}})
        path = write_json("plan.json", {"tasks": [
            {"id": "a", "start": "2024-01-01T00:00:00", "end": "2024-01-03T00:00:00"},
        ]})
        result, data = invoke_json(runner, "commit", str(path), "a", "--by", "5d")
        assert result.exit_code == 0
        assert data["suggestions"][0]["start"] == "2024-01-08T00:00:00"


class TestDelete:
    """Tests for 'delete' command."""

    def test_parent_shrinks(self, runner: CliRunner, isolated_filesystem, write_json):
        path = write_json("plan.json", {"tasks": [
            {"id": "Root", "start": "2024-01-01T00:00:00", "end": "2024-01-10T00:00:00", "is_disabled": True},
            {"id": "Child1", "start": "2024-01-01T00:00:00", "end": "2024-01-05T00:00:00", "parent": "Root"},
            {"id": "Child2", "start": "2024-01-03T00:00:00", "end": "2024-01-10T00:00:00", "parent": "Root"},
        ]})
        out = isolated_filesystem / "out.json"
        result, data = invoke_json(runner, "delete", str(path), "Child2", "--apply", str(out))
        assert result.exit_code == 0
        assert data["suggestions"][0]["id"] == "Root"
        assert data["suggestions"][0]["end"] == "2024-01-05T00:00:00"
        assert [t.id for t in load_schedule(out)] == ["Root", "Child1"]


class TestOutputModes:
    """Tests for output_format and structured logs."""

    def test_json_flag_switches_logs_to_json(self, runner: CliRunner, schedule_file):
        result = runner.invoke(cli, ["--json", "validate", str(schedule_file)])
        assert result.exit_code == 0
        assert get_logger().config.json_format is True

    def test_json_output_format_switches_logs_to_json(self, runner: CliRunner, schedule_file, write_json):
        write_json(".ganttpackrc", {"output_format": "json"})
        result = runner.invoke(cli, ["validate", str(schedule_file)])
        assert json.loads(result.output)["valid"] is True
        assert get_logger().config.json_format is True

    def test_text_logs_by_default(self, runner: CliRunner, schedule_file):
        runner.invoke(cli, ["validate", str(schedule_file)])
        assert get_logger().config.json_format is False

    def test_plain_output(self, runner: CliRunner, schedule_file, write_json):
        write_json(".ganttpackrc", {"output_format": "plain"})
        result = runner.invoke(cli, ["preview", str(schedule_file), "TaskA", "--by", "1d"])
        assert result.exit_code == 0
        assert "TaskB" in result.output
        assert "╭" not in result.output
        assert "\033[" not in result.output
        assert "+-" in result.output


class TestMain:
    """Tests for the entry point."""

    def test_keyboard_interrupt(self, monkeypatch):
        def interrupted(**kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli_module, "cli", interrupted)
        with pytest.raises(SystemExit) as exc_info:
            cli_module.main()
        assert exc_info.value.code == 130

    def test_unexpected_error(self, monkeypatch):
        def broken(**kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(cli_module, "cli", broken)
        with pytest.raises(SystemExit) as exc_info:
            cli_module.main()
        assert exc_info.value.code == 1
