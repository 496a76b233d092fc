"""Configuration validation for ipcrawler.

Unknown keys only produce warnings. Missing or inconsistent template
settings are errors, raised by ``check_required``.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, Dict, List, Optional, Set

from ipcrawler.core.logging import get_logger

LOGGER = get_logger(__name__)

VALID_TOP_LEVEL_KEYS: Set[str] = {
    "default_template",
    "templates",
    "workflows_dir",
    "reporting",
}

VALID_REPORTING_KEYS: Set[str] = {
    "enabled",
    "base_dir",
    "pipeline",
}

VALID_PIPELINE_KEYS: Set[str] = {
    "timeout",
}


@dataclass
class ConfigValidationWarning:
    """A validation warning for configuration."""

    message: str
    source: str
    key: Optional[str] = None
    suggestion: Optional[str] = None


def validate_config(
    data: Dict[str, Any],
    source: str,
) -> List[ConfigValidationWarning]:
    """Validate a configuration dictionary.

    Does not raise exceptions, returns warnings instead.

    Args:
        data: Config dictionary to validate.
        source: Source file path for warning messages.

    Returns:
        List of validation warnings.
    """
    warnings: List[ConfigValidationWarning] = []

    if not isinstance(data, dict):
        warnings.append(ConfigValidationWarning(
            message=f"Config must be a mapping, got {type(data).__name__}",
            source=source,
        ))
        return warnings

    _check_keys(data, VALID_TOP_LEVEL_KEYS, "", source, warnings)

    templates = data.get("templates")
    if templates is not None and not isinstance(templates, list):
        warnings.append(_warn(ConfigValidationWarning(
            message=f"'templates' must be a list, got {type(templates).__name__}",
            source=source,
            key="templates",
        )))

    reporting = data.get("reporting")
    if reporting is not None:
        if not isinstance(reporting, dict):
            warnings.append(_warn(ConfigValidationWarning(
                message=f"'reporting' must be a mapping, got {type(reporting).__name__}",
                source=source,
                key="reporting",
            )))
        else:
            _check_keys(reporting, VALID_REPORTING_KEYS, "reporting.", source, warnings)

            enabled = reporting.get("enabled")
            if enabled is not None and not isinstance(enabled, bool):
                warnings.append(_warn(ConfigValidationWarning(
                    message="'reporting.enabled' must be a boolean",
                    source=source,
                    key="reporting.enabled",
                )))

            pipeline = reporting.get("pipeline")
            if isinstance(pipeline, dict):
                _check_keys(pipeline, VALID_PIPELINE_KEYS, "reporting.pipeline.", source, warnings)
            elif pipeline is not None:
                warnings.append(_warn(ConfigValidationWarning(
                    message="'reporting.pipeline' must be a mapping",
                    source=source,
                    key="reporting.pipeline",
                )))

    return warnings


def check_required(default_template: str, templates: List[str]) -> Optional[str]:
    """Check the template settings every run depends on.

    Returns:
        An error message, or None when the settings are consistent.
    """
    if not default_template:
        return "default_template is required in config"
    if default_template not in templates:
        return f"default_template '{default_template}' not found in templates list"
    return None


def _check_keys(
    data: Dict[str, Any],
    valid_keys: Set[str],
    prefix: str,
    source: str,
    warnings: List[ConfigValidationWarning],
) -> None:
    for key in data.keys():
        if key not in valid_keys:
            warnings.append(_warn(ConfigValidationWarning(
                message=f"Unknown key '{prefix}{key}'",
                source=source,
                key=f"{prefix}{key}",
                suggestion=_suggest_key(str(key), valid_keys),
            )))


def _suggest_key(invalid_key: str, valid_keys: Set[str]) -> Optional[str]:
    """Suggest a valid key for a potential typo."""
    matches = get_close_matches(invalid_key, sorted(valid_keys), n=1, cutoff=0.6)
    return matches[0] if matches else None


def _warn(warning: ConfigValidationWarning) -> ConfigValidationWarning:
    msg = f"{warning.message} in {warning.source}"
    if warning.suggestion:
        msg += f" (did you mean '{warning.suggestion}'?)"
    LOGGER.warning(msg)
    return warning
