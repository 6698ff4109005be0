"""Unit tests for the run, capabilities and config commands."""

from collections.abc import Callable, Iterator
import json
from pathlib import Path
import re

import pytest
from typer.testing import CliRunner
import yaml

from taskloom.cli.commands import run as run_command
from taskloom.cli.main import app
from taskloom.core.errors import ProviderError
from taskloom.observability.logging import reset_logging

runner = CliRunner()


def clean(output: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*m", "", output)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    yield home
    reset_logging()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "planning": {"max_depth": 1},
                "execution": {"retry_count": 0, "retry_delay_seconds": 0.0},
                "executors": [
                    {
                        "id": "writer",
                        "model": "gpt-4o-mini",
                        "capabilities": [{"name": "writing", "description": "write text"}],
                    }
                ],
            }
        )
    )
    return path


@pytest.fixture
def install_adapter(monkeypatch: pytest.MonkeyPatch, fake_adapter: Callable) -> Callable:
    """Replace the LiteLLM adapter used by `taskloom run` with a fake."""

    def _install(**kwargs: object) -> object:
        adapter = fake_adapter(**kwargs)
        monkeypatch.setattr(run_command, "LiteLLMAdapter", lambda: adapter)
        return adapter

    return _install


class TestRun:
    """taskloom run."""

    def test_plan_only(self, config_file: Path, install_adapter: Callable) -> None:
        subtasks = [
            {"name": "outline", "description": "Outline the report"},
            {"name": "draft", "description": "Draft it", "dependencies": ["outline"]},
        ]
        adapter = install_adapter(replies=[json.dumps(subtasks)])

        result = runner.invoke(
            app, ["run", "Write a report", "--plan-only", "--config", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        output = clean(result.output)
        assert "outline" in output
        assert "after: outline" in output
        assert len(adapter.calls) == 1

    def test_executes_plan(self, config_file: Path, install_adapter: Callable) -> None:
        adapter = install_adapter(default="All done")

        result = runner.invoke(
            app, ["run", "Write a report", "--max-depth", "0", "--config", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        output = clean(result.output)
        assert "Plan Completed" in output
        assert "1/1 tasks completed" in output
        assert len(adapter.calls) == 1

    def test_failed_plan_exits_non_zero(
        self, config_file: Path, install_adapter: Callable
    ) -> None:
        install_adapter(replies=[ProviderError("rate limited", provider="openai")])

        result = runner.invoke(
            app, ["run", "Write a report", "--max-depth", "0", "--config", str(config_file)]
        )

        assert result.exit_code == 1
        assert "failed" in clean(result.output)

    def test_empty_goal(self, config_file: Path, install_adapter: Callable) -> None:
        install_adapter()

        result = runner.invoke(app, ["run", "   ", "--plan-only", "--config", str(config_file)])

        assert result.exit_code == 1
        assert "Invalid Goal" in clean(result.output)

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["run", "Write a report", "--config", str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code == 1
        assert "Configuration Error" in clean(result.output)


class TestCapabilities:
    def test_lists_configured_capabilities(self, config_file: Path) -> None:
        result = runner.invoke(app, ["capabilities", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        output = clean(result.output)
        assert "writing" in output
        assert "writer" in output


class TestConfigCommands:
    """taskloom config init / show."""

    def test_init_writes_default_config(self, tmp_path: Path) -> None:
        target = tmp_path / "cfg"

        result = runner.invoke(app, ["config", "init", "--dir", str(target)])

        assert result.exit_code == 0, result.output
        data = yaml.safe_load((target / "config.yaml").read_text())
        assert [e["id"] for e in data["executors"]] == ["researcher", "writer", "coder"]

    def test_init_refuses_to_overwrite(self, tmp_path: Path) -> None:
        runner.invoke(app, ["config", "init", "--dir", str(tmp_path)])

        refused = runner.invoke(app, ["config", "init", "--dir", str(tmp_path)])
        forced = runner.invoke(app, ["config", "init", "--dir", str(tmp_path), "--force"])

        assert refused.exit_code == 1
        assert "--force" in clean(refused.output)
        assert forced.exit_code == 0

    def test_show_section(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "show", "execution", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        output = clean(result.output)
        assert "retry_count" in output
        assert "parallel_limit" in output

    def test_show_all_flattens_executors(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "show", "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        output = clean(result.output)
        assert "executor: writer" in output
        assert "max_depth" in output

    def test_show_unknown_section(self, config_file: Path) -> None:
        result = runner.invoke(app, ["config", "show", "bogus", "--config", str(config_file)])

        assert result.exit_code == 1
        assert "Unknown section" in clean(result.output)
