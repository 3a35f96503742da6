"""
specguard — configuration schema and validation.

File: src/specguard/config/schema.py

Purpose
- Define the defaults and the field table every ``specguard.toml`` value is checked against.

Functional requirements
- ``FIELDS`` lists each setting ``Engine.from_config`` reads, keyed by dotted path; validation,
  ``SPECGUARD_*`` env bindings and path normalization are all derived from it.
- Validation reports every issue at once as (dotted path, message).
- Providers reference API keys only by env var name; embedded secrets are rejected.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Final, Literal, NotRequired, TypedDict

from specguard.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS,
    DEFAULT_GIT_TIMEOUT_SECONDS,
    DEFAULT_LARGE_DELETION_THRESHOLD,
    DEFAULT_MAX_PATCH_CHARS,
    DEFAULT_MAX_UNTRACKED_BYTES,
    SPEC_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
PROVIDER_NAMES: Final[tuple[str, ...]] = ("anthropic", "openai")
REDACTED: Final[str] = "<redacted>"

FieldKind = Literal["str", "int", "float", "bool", "choice", "env", "url", "path", "relpath"]

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SECRET_KEY_PARTS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passwd",
    "apikey",
    "api_key",
    "credential",
    "private_key",
)
# Switches and counters that only look like secrets.
_NON_SECRET_KEYS: Final[frozenset[str]] = frozenset({"redact_secrets", "max_tokens"})


class MetaConfig(TypedDict):
    schema_version: int


class StorageConfig(TypedDict):
    spec_dir: str


class GitConfig(TypedDict):
    binary: str
    timeout_seconds: float
    max_patch_chars: int
    max_untracked_bytes: int


class RiskConfig(TypedDict):
    large_deletion_threshold: int
    flag_missing_tests: bool
    pattern_library: NotRequired[str]


class VerificationConfig(TypedDict):
    require_in_scope: bool


class ProviderSettings(TypedDict):
    api_key_env: str
    model: str
    base_url: NotRequired[str]


class ProvidersConfig(TypedDict):
    default: Literal["anthropic", "openai", "none"]
    max_attempts: int
    timeout_seconds: float
    max_tokens: int
    anthropic: ProviderSettings
    openai: ProviderSettings


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "text"]
    log_dir: str
    log_to_stdout: bool
    redact_secrets: bool


class SpecguardConfig(TypedDict):
    meta: MetaConfig
    storage: StorageConfig
    git: GitConfig
    risk: RiskConfig
    verification: VerificationConfig
    providers: ProvidersConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[SpecguardConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "storage": {"spec_dir": SPEC_DIR.as_posix()},
    "git": {
        "binary": "git",
        "timeout_seconds": DEFAULT_GIT_TIMEOUT_SECONDS,
        "max_patch_chars": DEFAULT_MAX_PATCH_CHARS,
        "max_untracked_bytes": DEFAULT_MAX_UNTRACKED_BYTES,
    },
    "risk": {
        "large_deletion_threshold": DEFAULT_LARGE_DELETION_THRESHOLD,
        "flag_missing_tests": False,
    },
    "verification": {"require_in_scope": False},
    "providers": {
        "default": "none",
        "max_attempts": DEFAULT_DEEP_VERIFY_MAX_ATTEMPTS,
        "timeout_seconds": 60.0,
        "max_tokens": 2048,
        "anthropic": {"api_key_env": "ANTHROPIC_API_KEY", "model": "claude-sonnet-4-5"},
        "openai": {"api_key_env": "OPENAI_API_KEY", "model": "gpt-5"},
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "json",
        "log_dir": ".agentic-plan/logs",
        "log_to_stdout": False,
        "redact_secrets": True,
    },
}


@dataclass(frozen=True, slots=True)
class FieldRule:
    """Type and constraint of one config value."""

    kind: FieldKind
    required: bool = True
    minimum: float | None = None
    choices: tuple[str, ...] = ()


def _provider_fields(name: str) -> dict[str, FieldRule]:
    return {
        f"providers.{name}.api_key_env": FieldRule("env"),
        f"providers.{name}.model": FieldRule("str"),
        f"providers.{name}.base_url": FieldRule("url", required=False),
    }


FIELDS: Final[Mapping[str, FieldRule]] = {
    "meta.schema_version": FieldRule("int", minimum=1),
    "storage.spec_dir": FieldRule("relpath"),
    "git.binary": FieldRule("str"),
    "git.timeout_seconds": FieldRule("float", minimum=0.001),
    "git.max_patch_chars": FieldRule("int", minimum=0),
    "git.max_untracked_bytes": FieldRule("int", minimum=0),
    "risk.large_deletion_threshold": FieldRule("int", minimum=1),
    "risk.flag_missing_tests": FieldRule("bool"),
    "risk.pattern_library": FieldRule("path", required=False),
    "verification.require_in_scope": FieldRule("bool"),
    "providers.default": FieldRule("choice", choices=(*PROVIDER_NAMES, "none")),
    "providers.max_attempts": FieldRule("int", minimum=1),
    "providers.timeout_seconds": FieldRule("float", minimum=0.001),
    "providers.max_tokens": FieldRule("int", minimum=1),
    **_provider_fields("anthropic"),
    **_provider_fields("openai"),
    "observability.log_level": FieldRule(
        "choice", choices=("DEBUG", "INFO", "WARNING", "ERROR")
    ),
    "observability.log_format": FieldRule("choice", choices=("json", "text")),
    "observability.log_dir": FieldRule("path"),
    "observability.log_to_stdout": FieldRule("bool"),
    "observability.redact_secrets": FieldRule("bool"),
}

# Path-valued fields the loader resolves against the config file's directory.
PATH_FIELDS: Final[tuple[str, ...]] = tuple(
    path for path, rule in FIELDS.items() if rule.kind == "path"
)

# Every dotted prefix of a field is a section (table) that must be present.
_SECTIONS: Final[frozenset[str]] = frozenset(
    ".".join(path.split(".")[:depth])
    for path in FIELDS
    for depth in range(1, path.count(".") + 1)
)


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Normalized config, or ``None`` plus the issues that prevented it."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered or 'unknown validation failure'}")


def default_config() -> SpecguardConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; neither input is modified."""

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in overlay.items():
        existing = merged.get(key)
        if isinstance(value, Mapping):
            merged[key] = merge_config(existing if isinstance(existing, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    issues: list[ConfigValidationIssue] = []
    if not isinstance(config, Mapping):
        issues.append(
            ConfigValidationIssue("<root>", f"expected object, got {type(config).__name__}")
        )
        return ConfigValidationResult(config=None, issues=tuple(issues))

    normalized = _validate_table(config, "", issues)
    version = normalized.get("meta", {}).get("schema_version")
    if version is not None and version != ConfigSchemaVersion:
        issues.append(ConfigValidationIssue("meta.schema_version", _version_guidance(version)))
    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Copy of ``config`` with ``*_env`` references and secret-looking keys replaced."""

    out: dict[str, Any] = {}
    for key in sorted(config):
        out[key] = REDACTED if _redacted_key(key) else _redact_item(config[key])
    return out


def _redact_item(value: object) -> object:
    if isinstance(value, Mapping):
        return redact_config(value)
    if isinstance(value, (list, tuple)):
        return [_redact_item(item) for item in value]
    return value


def _validate_table(
    payload: Mapping[object, object], prefix: str, issues: list[ConfigValidationIssue]
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in sorted(payload, key=str):
        path = f"{prefix}{key}"
        if not isinstance(key, str):
            issues.append(ConfigValidationIssue(prefix.rstrip(".") or "<root>", "non-string key"))
            continue
        value = payload[key]
        rule = FIELDS.get(path)
        if rule is not None:
            parsed, problem = _check(rule, value)
            if problem is None:
                out[key] = parsed
            else:
                issues.append(ConfigValidationIssue(path, problem))
        elif path in _SECTIONS:
            if isinstance(value, Mapping):
                out[key] = _validate_table(value, f"{path}.", issues)
            else:
                message = f"expected object, got {type(value).__name__}"
                issues.append(ConfigValidationIssue(path, message))
        elif _looks_secret(key):
            issues.append(
                ConfigValidationIssue(
                    path,
                    "embedded secret values are forbidden; use an *_env key with an env var name",
                )
            )
        else:
            issues.append(ConfigValidationIssue(path, "unknown field"))

    for path in _children(prefix):
        name = path[len(prefix) :]
        rule = FIELDS.get(path)
        if name not in payload and (rule is None or rule.required):
            issues.append(ConfigValidationIssue(path, "missing required field"))
    return out


def _children(prefix: str) -> list[str]:
    depth = prefix.count(".")
    candidates = {*FIELDS, *_SECTIONS}
    return sorted(
        path for path in candidates if path.startswith(prefix) and path.count(".") == depth
    )


def _check(rule: FieldRule, value: object) -> tuple[Any, str | None]:
    """Return ``(normalized, None)`` or ``(None, message)``."""

    if rule.kind == "bool":
        if isinstance(value, bool):
            return value, None
        return None, f"expected boolean, got {type(value).__name__}"

    if rule.kind in ("int", "float"):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            expected = "integer" if rule.kind == "int" else "number"
            return None, f"expected {expected}, got {type(value).__name__}"
        if rule.kind == "int" and not isinstance(value, int):
            return None, f"expected integer, got {type(value).__name__}"
        number = value if rule.kind == "int" else float(value)
        if not math.isfinite(number):
            return None, "must be finite"
        if rule.minimum is not None and number < rule.minimum:
            return None, f"must be >= {rule.minimum:g}"
        return number, None

    if not isinstance(value, str):
        return None, f"expected string, got {type(value).__name__}"
    text = value.strip()
    if not text:
        return None, "must not be empty"

    if rule.kind == "choice" and text not in rule.choices:
        expected = ", ".join(sorted(rule.choices))
        return None, f"invalid value {text!r}; expected one of: {expected}"
    if rule.kind == "env" and not _ENV_NAME_PATTERN.fullmatch(text):
        return None, "must be an env var name (example: ANTHROPIC_API_KEY)"
    if rule.kind == "url" and not text.startswith(("http://", "https://")):
        return None, "must start with http:// or https://"
    if rule.kind in ("path", "relpath") and "\x00" in text:
        return None, "must not contain NUL bytes"
    if rule.kind == "relpath":
        relative = PurePosixPath(text.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            return None, "must be a relative path without '..'"
        return relative.as_posix(), None
    return text, None


def _version_guidance(found: int) -> str:
    if found < ConfigSchemaVersion:
        return (
            f"schema version {found} is older than supported {ConfigSchemaVersion}; "
            "upgrade specguard.toml to the current schema"
        )
    return (
        f"schema version {found} is newer than supported {ConfigSchemaVersion}; "
        "upgrade the specguard runtime"
    )


def _normalize_key(key: str) -> str:
    return _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip()).lower().replace("-", "_")


def _looks_secret(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env") or normalized in _NON_SECRET_KEYS:
        return False
    return any(part in normalized for part in _SECRET_KEY_PARTS)


def _redacted_key(key: str) -> bool:
    return _normalize_key(key).endswith("_env") or _looks_secret(key)


__all__ = [
    "FIELDS",
    "PATH_FIELDS",
    "PROVIDER_NAMES",
    "REDACTED",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "FieldRule",
    "SpecguardConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "redact_config",
    "validate_config",
]
