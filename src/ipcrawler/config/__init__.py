"""Configuration module for ipcrawler.

Provides configuration file loading, parsing, and validation with support for:
- Explicit, working directory and per-user config files
- Environment variable expansion
"""

from ipcrawler.config.models import (
    IPCrawlerConfig,
    ReportingConfig,
    ReportingPipelineConfig,
)
from ipcrawler.config.loader import ConfigError, find_config, get_default_config, load_config
from ipcrawler.config.validation import validate_config, ConfigValidationWarning

__all__ = [
    "IPCrawlerConfig",
    "ReportingConfig",
    "ReportingPipelineConfig",
    "ConfigError",
    "find_config",
    "get_default_config",
    "load_config",
    "validate_config",
    "ConfigValidationWarning",
]
