"""Tests for the context-codex CLI."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
from click.testing import CliRunner

from context_codex import __version__
from context_codex.cli import main


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch, tmp_path):
    """Keep CLI runs out of the user's log directory and terminal mode."""
    monkeypatch.setenv("CONTEXT_CODEX_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CONTEXT_CODEX_RICH", "0")
    monkeypatch.setenv("CONTEXT_CODEX_SAMPLE_RESOURCES", "false")
    root_logger = logging.getLogger()
    root_handlers = list(root_logger.handlers)
    yield
    # Plain-mode runs call logging.basicConfig against the runner's streams
    for handler in root_logger.handlers[:]:
        if handler not in root_handlers:
            root_logger.removeHandler(handler)
    package_logger = logging.getLogger("context_codex")
    for handler in package_logger.handlers[:]:
        if isinstance(handler, RotatingFileHandler):
            package_logger.removeHandler(handler)
            handler.close()


class TestMainGroup:
    """Tests for the top-level group."""

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_learn_registered(self):
        assert "learn" in main.commands

    def test_help_without_command(self):
        result = CliRunner().invoke(main, [])

        assert result.exit_code == 0
        assert "learn" in result.output


class TestLearnCommand:
    """Tests for `context-codex learn`."""

    def test_json_summary(self, three_folder_project):
        result = CliRunner().invoke(
            main,
            ["learn", str(three_folder_project), "--json", "--no-output", "-w", "2"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["folders_analyzed"] == 3
        assert data["files_processed"] == 10
        assert data["output_file_path"] is None
        assert data["workers_failed"] == 0

    def test_writes_output_file(self, three_folder_project):
        result = CliRunner().invoke(
            main,
            [
                "learn",
                str(three_folder_project),
                "--json",
                "--output",
                "out/context.md",
            ],
        )

        assert result.exit_code == 0, result.output
        target = three_folder_project / "out" / "context.md"
        assert target.exists()
        assert json.loads(result.output)["output_file_size_bytes"] == (
            target.stat().st_size
        )

    def test_log_file_written(self, three_folder_project, tmp_path):
        CliRunner().invoke(
            main, ["learn", str(three_folder_project), "--json", "--no-output"]
        )

        assert (tmp_path / "logs" / "learn.log").exists()

    def test_missing_path_json_error(self, tmp_path):
        result = CliRunner().invoke(
            main, ["learn", str(tmp_path / "missing"), "--json"]
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error"] is True
        assert "does not exist" in data["message"]

    def test_empty_directory_is_error(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = CliRunner().invoke(main, ["learn", str(empty), "--no-output"])

        assert result.exit_code == 1
        assert "No folders to analyze" in result.output

    def test_invalid_retries_is_error(self, three_folder_project):
        result = CliRunner().invoke(
            main,
            ["learn", str(three_folder_project), "--json", "--max-retries", "-1"],
        )

        assert result.exit_code == 1
        assert json.loads(result.output)["error"] is True

    def test_plain_output(self, three_folder_project):
        result = CliRunner().invoke(
            main, ["learn", str(three_folder_project), "--no-output"]
        )

        assert result.exit_code == 0, result.output


class TestShouldUseRich:
    """Tests for rich vs plain output detection."""

    def test_json_output_disables_rich_even_when_forced(self, monkeypatch):
        from context_codex.cli.rich_output import should_use_rich

        monkeypatch.setenv("CONTEXT_CODEX_RICH", "1")

        assert should_use_rich() is True
        assert should_use_rich(json_output=True) is False

    def test_env_override_disables(self, monkeypatch):
        from context_codex.cli.rich_output import should_use_rich

        monkeypatch.setenv("CONTEXT_CODEX_RICH", "no")

        assert should_use_rich() is False

    def test_no_color_disables(self, monkeypatch):
        from context_codex.cli.rich_output import should_use_rich

        monkeypatch.delenv("CONTEXT_CODEX_RICH", raising=False)
        monkeypatch.setenv("NO_COLOR", "1")

        assert should_use_rich() is False

    def test_json_run_with_rich_forced_prints_only_json(
        self, monkeypatch, three_folder_project
    ):
        monkeypatch.setenv("CONTEXT_CODEX_RICH", "1")

        result = CliRunner().invoke(
            main, ["learn", str(three_folder_project), "--json", "--no-output"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["folders_analyzed"] == 3
