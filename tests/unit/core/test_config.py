"""Tests for settings loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from botflow.core.config import BotflowSettings, CompilerSettings, load_settings


class TestDefaults:
    def test_compiler_ceilings(self) -> None:
        settings = CompilerSettings()

        assert (settings.max_nodes, settings.max_edges, settings.max_depth) == (100, 200, 20)
        assert settings.max_indent_depth == 50
        assert settings.default_max_iterations == 1000
        assert settings.max_json_path_length == 1000

    def test_runtime_timeout(self) -> None:
        assert BotflowSettings().runtime.timeout_seconds == 5.0

    def test_settings_are_frozen(self) -> None:
        settings = CompilerSettings()
        with pytest.raises(ValidationError):
            settings.max_nodes = 5  # type: ignore[misc]


class TestLoadSettings:
    def test_no_file_gives_defaults(self) -> None:
        assert load_settings() == BotflowSettings()

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("compiler:\n  max_nodes: 10\nruntime:\n  timeout_seconds: 2.5\n")

        settings = load_settings(path)

        assert settings.compiler.max_nodes == 10
        assert settings.compiler.max_edges == 200
        assert settings.runtime.timeout_seconds == 2.5

    def test_env_var_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOTFLOW_TEST_DB", "sqlite:///state.db")
        path = tmp_path / "settings.yaml"
        path.write_text("runtime:\n  state_database_url: ${BOTFLOW_TEST_DB}\n")

        assert load_settings(path).runtime.state_database_url == "sqlite:///state.db"

    def test_env_var_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("BOTFLOW_UNSET_VALUE", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("logging:\n  level: ${BOTFLOW_UNSET_VALUE:-WARNING}\n")

        assert load_settings(path).logging.level == "WARNING"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("compiler:\n  max_nodes: 0\n")

        with pytest.raises(ValidationError):
            load_settings(path)
