"""Tests for ipcrawler.config.validation."""

from __future__ import annotations

from ipcrawler.config.validation import check_required, validate_config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_has_no_warnings(self) -> None:
        data = {
            "default_template": "default",
            "templates": ["default"],
            "workflows_dir": "workflows",
            "reporting": {"enabled": True, "pipeline": {"timeout": "10s"}},
        }
        assert validate_config(data, source="config.yaml") == []

    def test_unknown_top_level_key_with_suggestion(self) -> None:
        warnings = validate_config({"templats": ["default"]}, source="config.yaml")
        assert len(warnings) == 1
        assert warnings[0].key == "templats"
        assert warnings[0].suggestion == "templates"
        assert warnings[0].source == "config.yaml"

    def test_unknown_nested_keys(self) -> None:
        data = {"reporting": {"colour": "red", "pipeline": {"max_retries": 1}}}
        keys = [w.key for w in validate_config(data, source="c.yaml")]
        assert "reporting.colour" in keys
        assert "reporting.pipeline.max_retries" in keys

    def test_templates_must_be_list(self) -> None:
        warnings = validate_config({"templates": "default"}, source="c.yaml")
        assert [w.key for w in warnings] == ["templates"]

    def test_reporting_enabled_must_be_bool(self) -> None:
        warnings = validate_config({"reporting": {"enabled": "yes"}}, source="c.yaml")
        assert [w.key for w in warnings] == ["reporting.enabled"]

    def test_non_mapping(self) -> None:
        warnings = validate_config(["a"], source="c.yaml")  # type: ignore[arg-type]
        assert len(warnings) == 1
        assert "mapping" in warnings[0].message


class TestCheckRequired:
    """Tests for check_required function."""

    def test_consistent(self) -> None:
        assert check_required("default", ["default", "quick"]) is None

    def test_missing_default(self) -> None:
        assert "required" in check_required("", ["default"])

    def test_default_not_listed(self) -> None:
        error = check_required("full", ["default"])
        assert error is not None
        assert "full" in error
