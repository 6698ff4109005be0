"""Unit tests for taskloom.config.loader."""

from pathlib import Path

import pytest
import yaml

from taskloom.config.loader import (
    config_exists,
    create_default_config,
    ensure_config_dir,
    load_config,
    load_config_or_default,
)
from taskloom.core.errors import ConfigError


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point Path.home() at a temporary directory."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


class TestCreateDefaultConfig:
    def test_writes_loadable_yaml(self, tmp_path: Path) -> None:
        path = create_default_config(tmp_path)

        assert path == tmp_path / "config.yaml"
        config = load_config(path)
        assert [e.id for e in config.executors] == ["researcher", "writer", "coder"]

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        create_default_config(tmp_path)
        with pytest.raises(ConfigError, match="already exists"):
            create_default_config(tmp_path)

    def test_overwrite_flag(self, tmp_path: Path) -> None:
        path = create_default_config(tmp_path)
        path.write_text("planning:\n  max_depth: 1\n")

        create_default_config(tmp_path, overwrite=True)

        assert load_config(path).planning.max_depth == 3


class TestLoadConfig:
    def test_partial_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"execution": {"parallel_limit": 1}}))

        config = load_config(path)

        assert config.execution.parallel_limit == 1
        assert config.execution.retry_count == 2
        assert config.executors == []

    def test_empty_file_is_default(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).planning.max_depth == 3

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found") as exc_info:
            load_config(tmp_path / "nope.yaml")
        assert exc_info.value.config_file == str(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("planning: [unclosed")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_validation_errors_are_listed(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"execution": {"parallel_limit": 0}}))
        with pytest.raises(ConfigError, match="execution.parallel_limit"):
            load_config(path)


class TestHomeDirectory:
    def test_ensure_config_dir_creates_logs(self, fake_home: Path) -> None:
        config_dir = ensure_config_dir()
        assert config_dir == fake_home / ".taskloom"
        assert (config_dir / "logs").is_dir()

    def test_config_exists_and_default_fallback(self, fake_home: Path) -> None:
        assert not config_exists()
        assert load_config_or_default().executors  # defaults include executors

        create_default_config()

        assert config_exists()
