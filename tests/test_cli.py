"""
Tests for the command line interface.
"""
import json
import logging

import pytest
from click.testing import CliRunner

from streamline_mcp import __version__
from streamline_mcp.cli import cli
from streamline_mcp.config import ENV_URL, ENV_API_KEY, ENV_USER_ID, ENV_CONFIG_PATH
from streamline_mcp.dependencies.services import set_services

WEEKLY_MWF = '{"frequency": "weekly", "weekdays": [2, 4, 6]}'


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    set_services(None)


def json_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestPreview:
    def test_text_output(self, runner):
        result = runner.invoke(cli, ["preview", WEEKLY_MWF, "--from", "2025-02-03", "--count", "4"])

        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "Every Mon, Wed, Fri",
            "  Feb 3, 2025",
            "  Feb 5, 2025",
            "  Feb 7, 2025",
            "  Feb 10, 2025",
        ]

    def test_json_output(self, runner):
        result = runner.invoke(cli, [
            "preview", '{"frequency": "monthly"}', "--from", "2025-01-31", "--count", "3", "--json",
        ])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["summary"] == "Every month on the 31st"
        assert data["rule"]["dayOfMonth"] == 31
        assert data["dates"] == ["2025-01-31", "2025-02-28", "2025-03-31"]

    def test_end_condition_limits_dates(self, runner):
        rule = '{"frequency": "daily", "endCondition": {"type": "afterOccurrences", "count": 2}}'

        result = runner.invoke(cli, ["preview", rule, "--from", "2025-02-03", "--count", "5", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["dates"] == ["2025-02-03", "2025-02-04"]

    def test_invalid_rule(self, runner):
        result = runner.invoke(cli, ["preview", '{"frequency": "hourly"}'])

        assert result.exit_code == 2
        assert "RULE_JSON" in result.output

    def test_invalid_start(self, runner):
        result = runner.invoke(cli, ["preview", WEEKLY_MWF, "--from", "someday"])

        assert result.exit_code == 2
        assert "--from" in result.output


class TestServe:
    def test_missing_configuration_exits(self, runner, tmp_path, monkeypatch):
        # Setup
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        for name in (ENV_URL, ENV_API_KEY, ENV_USER_ID, ENV_CONFIG_PATH):
            monkeypatch.delenv(name, raising=False)

        # Execute
        result = runner.invoke(cli, ["--log-level", "ERROR", "serve", "--store", "rest"])

        # Verify
        assert result.exit_code == 1
        assert "Config not found" in result.output

    def test_stdio_with_memory_store(self, runner):
        requests = "\n".join([
            '{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}',
            '{"jsonrpc": "2.0", "id": 2, "method": "tools/list"}',
        ]) + "\n"

        result = runner.invoke(cli, ["--log-level", "ERROR", "serve", "--store", "memory"], input=requests)

        assert result.exit_code == 0
        responses = json_lines(result.output)
        assert [r["id"] for r in responses] == [1, 2]
        assert len(responses[1]["result"]["tools"]) == 24
