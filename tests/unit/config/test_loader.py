"""Tests for ipcrawler.config.loader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ipcrawler.config.loader import (
    ConfigError,
    dict_to_config,
    expand_env_vars,
    find_config,
    load_config,
    load_yaml_file,
)


class TestExpandEnvVars:
    """Tests for expand_env_vars function."""

    def test_expands_simple_env_var(self) -> None:
        with patch.dict(os.environ, {"MY_VAR": "test_value"}):
            assert expand_env_vars("${MY_VAR}") == "test_value"

    def test_expands_env_var_with_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("${UNSET_VAR:-default}") == "default"

    def test_uses_value_when_set_ignoring_default(self) -> None:
        with patch.dict(os.environ, {"SET_VAR": "actual"}):
            assert expand_env_vars("${SET_VAR:-default}") == "actual"

    def test_returns_empty_for_unset_without_default(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            assert expand_env_vars("${UNSET_VAR}") == ""

    def test_expands_in_nested_structures(self) -> None:
        with patch.dict(os.environ, {"BASE": "/srv/reports"}):
            data = {"reporting": {"base_dir": "${BASE}"}, "templates": ["${BASE}"]}
            result = expand_env_vars(data)
            assert result["reporting"]["base_dir"] == "/srv/reports"
            assert result["templates"] == ["/srv/reports"]

    def test_preserves_non_string_values(self) -> None:
        data = {"number": 42, "boolean": True, "none": None}
        assert expand_env_vars(data) == data


class TestLoadYamlFile:
    """Tests for load_yaml_file function."""

    def test_empty_file_is_empty_dict(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_yaml_file(path)


class TestFindConfig:
    """Tests for find_config function."""

    def test_explicit_path_wins(self, tmp_path: Path) -> None:
        explicit = tmp_path / "custom.yaml"
        explicit.write_text("default_template: default\n")
        (tmp_path / "config.yaml").write_text("default_template: default\n")

        assert find_config(explicit, cwd=tmp_path) == explicit

    def test_missing_explicit_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            find_config(tmp_path / "nope.yaml", cwd=tmp_path)

    def test_working_directory_config(self, tmp_path: Path) -> None:
        local = tmp_path / "config.yaml"
        local.write_text("default_template: default\n")
        assert find_config(None, cwd=tmp_path) == local

    def test_user_config_fallback(self, tmp_path: Path) -> None:
        home = tmp_path / "home"
        home.mkdir()
        (home / "config.yaml").write_text("default_template: default\n")
        cwd = tmp_path / "work"
        cwd.mkdir()

        with patch.dict(os.environ, {"IPCRAWLER_HOME": str(home)}):
            assert find_config(None, cwd=cwd) == home / "config.yaml"

    def test_nothing_found(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"IPCRAWLER_HOME": str(tmp_path / "home")}):
            assert find_config(None, cwd=tmp_path) is None


class TestDictToConfig:
    """Tests for dict_to_config function."""

    def test_empty_dict_gives_defaults(self) -> None:
        config = dict_to_config({})
        assert config.default_template == "default"
        assert config.templates == ["default"]
        assert config.workflows_dir == "workflows"
        assert config.reporting.enabled is True
        assert config.reporting.pipeline.timeout == "30s"

    def test_reporting_section(self) -> None:
        config = dict_to_config({
            "reporting": {
                "enabled": False,
                "base_dir": "/tmp/out",
                "pipeline": {"timeout": "90s"},
            },
        })
        assert config.reporting.enabled is False
        assert config.report_base_dir == "/tmp/out"
        assert config.reporting.pipeline.timeout == "90s"
        assert config.reporting.pipeline.timeout_seconds == 90.0

    def test_numeric_timeout_is_seconds(self) -> None:
        config = dict_to_config({"reporting": {"pipeline": {"timeout": 45}}})
        assert config.reporting.pipeline.timeout_seconds == 45.0

    def test_invalid_timeout_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            dict_to_config({"reporting": {"pipeline": {"timeout": "soon"}}})


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"IPCRAWLER_HOME": str(tmp_path / "home")}):
            config = load_config(cwd=tmp_path)
        assert config.default_template == "default"
        assert config.config_sources == ["defaults"]

    def test_loads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "default_template: quick\n"
            "templates: [default, quick]\n"
            "workflows_dir: flows\n"
        )
        config = load_config(path)
        assert config.default_template == "quick"
        assert config.templates == ["default", "quick"]
        assert config.workflows_dir == "flows"
        assert config.config_sources == [str(path)]

    def test_expands_environment(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("reporting:\n  base_dir: ${REPORTS_DIR:-fallback}\n")
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)
        assert config.report_base_dir == "fallback"

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("templates: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_default_template_must_be_listed(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("default_template: full\ntemplates: [default]\n")
        with pytest.raises(ConfigError, match="not found in templates"):
            load_config(path)

    def test_empty_default_template_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("default_template: ''\n")
        with pytest.raises(ConfigError, match="required"):
            load_config(path)

    def test_bad_value_becomes_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("reporting:\n  pipeline:\n    timeout: lots\n")
        with pytest.raises(ConfigError, match="invalid config value"):
            load_config(path)
