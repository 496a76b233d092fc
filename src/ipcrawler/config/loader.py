"""Configuration file loading.

Handles loading configuration from YAML files with:
- Explicit config file (--config)
- Working directory config (./config.yaml)
- User config (~/.ipcrawler/config.yaml)
- Environment variable expansion (${VAR} and ${VAR:-default})
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ipcrawler.config.models import (
    DEFAULT_REPORT_BASE_DIR,
    DEFAULT_TEMPLATE,
    DEFAULT_OUTPUT_TIMEOUT,
    DEFAULT_WORKFLOWS_DIR,
    IPCrawlerConfig,
    ReportingConfig,
    ReportingPipelineConfig,
    parse_duration,
)
from ipcrawler.config.validation import check_required, validate_config
from ipcrawler.core.errors import IPCrawlerError
from ipcrawler.core.logging import get_logger

LOGGER = get_logger(__name__)

CONFIG_FILE_NAME = "config.yaml"
USER_CONFIG_DIR = ".ipcrawler"

# Environment variable pattern: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


class ConfigError(IPCrawlerError):
    """Configuration loading or parsing error."""

    pass


def get_ipcrawler_home() -> Path:
    """Per-user ipcrawler directory, overridable with IPCRAWLER_HOME."""
    override = os.environ.get("IPCRAWLER_HOME")
    if override:
        return Path(override)
    return Path.home() / USER_CONFIG_DIR


def find_config(
    cli_config_path: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> Optional[Path]:
    """Locate the config file to use.

    Search order: the --config path, ./config.yaml, then the user config.

    Raises:
        ConfigError: If an explicit --config path does not exist.
    """
    if cli_config_path is not None:
        if not cli_config_path.exists():
            raise ConfigError(f"Config file not found: {cli_config_path}")
        return cli_config_path

    local_path = (cwd or Path.cwd()) / CONFIG_FILE_NAME
    if local_path.exists():
        return local_path

    user_path = get_ipcrawler_home() / CONFIG_FILE_NAME
    if user_path.exists():
        return user_path

    return None


def load_config(
    cli_config_path: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> IPCrawlerConfig:
    """Load configuration, falling back to built-in defaults.

    Args:
        cli_config_path: Optional path to a config file (--config flag).
        cwd: Directory searched for config.yaml, defaults to the cwd.

    Returns:
        Typed IPCrawlerConfig instance.

    Raises:
        ConfigError: If the config file is missing, unparsable or fails
            validation.
    """
    path = find_config(cli_config_path, cwd)
    sources: List[str] = []

    if path is None:
        LOGGER.debug("No config file found, using built-in defaults")
        data: Dict[str, Any] = {}
        sources.append("defaults")
    else:
        try:
            data = load_yaml_file(path)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        validate_config(data, source=str(path))
        sources.append(str(path))
        LOGGER.debug(f"Loaded config from {path}")

    try:
        config = dict_to_config(data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid config value: {e}") from e
    config._config_sources = sources

    error = check_required(config.default_template, config.templates)
    if error:
        raise ConfigError(f"invalid config: {error}")

    return config


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML config file.

    Performs environment variable expansion on string values.

    Raises:
        yaml.YAMLError: If YAML parsing fails.
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    data = yaml.safe_load(content)

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    return expand_env_vars(data)


def expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in config values.

    Supports ${VAR} and ${VAR:-default} syntax.
    """
    if isinstance(data, dict):
        return {k: expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        return ENV_VAR_PATTERN.sub(_env_var_replacer, data)
    else:
        return data


def _env_var_replacer(match: re.Match[str]) -> str:
    """Replace environment variable reference with its value."""
    var_name = match.group(1)
    default_value = match.group(2)

    value = os.environ.get(var_name)
    if value is not None:
        return value
    if default_value is not None:
        return default_value

    LOGGER.warning(f"Environment variable ${var_name} is not set and has no default")
    return ""


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def dict_to_config(data: Dict[str, Any]) -> IPCrawlerConfig:
    """Convert a config dict to a typed IPCrawlerConfig.

    Missing keys take their defaults.

    Raises:
        ValueError: If reporting.pipeline.timeout is not a valid duration.
    """
    reporting_data = _as_dict(data.get("reporting"))
    pipeline_data = _as_dict(reporting_data.get("pipeline"))

    timeout = str(pipeline_data.get("timeout", DEFAULT_OUTPUT_TIMEOUT))
    parse_duration(timeout)
    pipeline = ReportingPipelineConfig(timeout=timeout)

    reporting = ReportingConfig(
        enabled=bool(reporting_data.get("enabled", True)),
        base_dir=str(reporting_data.get("base_dir") or DEFAULT_REPORT_BASE_DIR),
        pipeline=pipeline,
    )

    templates = data.get("templates")
    default_template = data.get("default_template", DEFAULT_TEMPLATE)

    return IPCrawlerConfig(
        default_template=str(default_template) if default_template else "",
        templates=[str(t) for t in templates] if isinstance(templates, list) else [DEFAULT_TEMPLATE],
        workflows_dir=str(data.get("workflows_dir") or DEFAULT_WORKFLOWS_DIR),
        reporting=reporting,
    )


def get_default_config() -> IPCrawlerConfig:
    """Built-in configuration used when no config file exists."""
    return IPCrawlerConfig()
