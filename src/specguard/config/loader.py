"""
specguard — runtime config loader.

File: src/specguard/config/loader.py

Purpose
- Load effective runtime config from defaults, TOML file, env vars, and CLI overrides.

Functional requirements
- Precedence: CLI > env (``SPECGUARD_<SECTION>_<KEY>``) > file > defaults.
- Each field in ``schema.FIELDS`` has exactly one env variable, coerced by the field's kind.
- Path fields resolve relative to the config file's directory.
- A missing default config file is not an error; a missing explicit one is.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from specguard.config.schema import (
    FIELDS,
    PATH_FIELDS,
    FieldRule,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "specguard.toml"
ENV_PREFIX: Final[str] = "SPECGUARD_"

_BOOLEAN_WORDS: Final[Mapping[str, bool]] = {
    **dict.fromkeys(("1", "true", "t", "yes", "y", "on"), True),
    **dict.fromkeys(("0", "false", "f", "no", "n", "off"), False),
}


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def env_var_name(field_path: str) -> str:
    """``git.timeout_seconds`` -> ``SPECGUARD_GIT_TIMEOUT_SECONDS``."""

    return ENV_PREFIX + field_path.replace(".", "_").upper()


def load_config(
    config_path: str | Path | None = None,
    *,
    base_dir: str | Path | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
    require_secret_env_values: bool = False,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults.

    Without ``config_path`` the loader looks for ``specguard.toml`` in ``base_dir``
    (default: the working directory) and silently falls back to defaults.
    """

    if config_path is not None:
        resolved_path = Path(config_path).expanduser().resolve()
    else:
        root = Path.cwd() if base_dir is None else Path(base_dir).expanduser()
        resolved_path = (root / DEFAULT_CONFIG_FILE).resolve()
    env_map = os.environ if environ is None else environ

    merged = merge_config(default_config(), _read_toml(resolved_path, config_path is not None))
    merged = merge_config(merged, _env_overrides(env_map))
    merged = merge_config(merged, _cli_overrides(cli_overrides or {}))
    config = assert_valid_config(merged)

    for field_path in PATH_FIELDS:
        section, key = field_path.split(".")
        value = config[section].get(key)
        if value is not None:
            config[section][key] = _resolve_path(value, resolved_path.parent)

    if require_secret_env_values:
        _require_provider_key(config, env_map)
    return config


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Sorted, compact JSON of the redacted config, for logs."""

    return json.dumps(redact_config(config), sort_keys=True, separators=(",", ":"))


def _read_toml(path: Path, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field_path, rule in FIELDS.items():
        name = env_var_name(field_path)
        raw = environ.get(name)
        if raw is not None:
            _set_dotted(overrides, field_path, _coerce(raw.strip(), rule, name, field_path))
    return overrides


def _coerce(value: str, rule: FieldRule, env_name: str, field_path: str) -> object:
    try:
        if rule.kind == "int":
            return int(value)
        if rule.kind == "float":
            return float(value)
    except ValueError as exc:
        expected = "an integer" if rule.kind == "int" else "a number"
        raise ConfigLoadError(f"{env_name} -> {field_path} must be {expected}") from exc
    if rule.kind == "bool":
        parsed = _BOOLEAN_WORDS.get(value.lower())
        if parsed is None:
            raise ConfigLoadError(
                f"{env_name} -> {field_path} must be a boolean (true/false/1/0/yes/no/on/off)"
            )
        return parsed
    return value


def _cli_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    """Accept dotted keys (``git.timeout_seconds``) or nested section mappings."""

    payload: dict[str, Any] = {}
    for key in sorted(overrides):
        value = overrides[key]
        if not key.strip(". "):
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        if "." in key:
            _set_dotted(payload, key, value)
        elif isinstance(value, Mapping):
            payload = merge_config(payload, {key: value})
        else:
            payload[key] = value
    return payload


def _set_dotted(target: dict[str, Any], dotted: str, value: object) -> None:
    *parents, leaf = [part for part in dotted.split(".") if part]
    cursor = target
    for part in parents:
        if not isinstance(cursor.get(part), dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[leaf] = value


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


def _require_provider_key(config: Mapping[str, Any], environ: Mapping[str, str]) -> None:
    selected = config["providers"]["default"]
    if selected == "none":
        return
    env_name = config["providers"][selected]["api_key_env"]
    if not environ.get(env_name, "").strip():
        raise ConfigLoadError(
            "missing required secret environment variable value: "
            f"providers.{selected}.api_key_env -> {env_name}"
        )


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "env_var_name",
    "load_config",
]
