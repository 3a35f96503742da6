"""
specguard config package public API.

File: src/specguard/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.
"""

from specguard.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    env_var_name,
    load_config,
)
from specguard.config.schema import (
    DEFAULT_CONFIG,
    FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    SpecguardConfig,
    default_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "FIELDS",
    "SpecguardConfig",
    "default_config",
    "dump_effective_config",
    "env_var_name",
    "load_config",
    "validate_config",
]
