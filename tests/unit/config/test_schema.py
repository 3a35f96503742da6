"""
specguard — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior, structured errors, and redaction.

What this test file should cover
- Validates the repository's live specguard.toml successfully.
- Rejects unknown keys and invalid types with actionable paths.
- Rejects embedded secrets while accepting env-var references.
- Ensures redaction is recursive and non-destructive.

Functional requirements
- No network usage.

Non-functional requirements
- Deterministic and fast.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path

import pytest

from specguard.config.schema import (
    FIELDS,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

pytestmark = pytest.mark.unit

REPO_ROOT = Path(__file__).resolve().parents[3]


def _load_toml(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    assert isinstance(data, dict)
    return data


def _as_object_dict(value: object) -> dict[str, object]:
    assert isinstance(value, Mapping)
    normalized: dict[str, object] = {}
    for key, item in value.items():
        assert isinstance(key, str)
        normalized[key] = item
    return normalized


def _issue_map(config: Mapping[str, object]) -> dict[str, str]:
    result = validate_config(config)
    assert not result.is_valid
    return {issue.path: issue.message for issue in result.issues}


def test_specguard_toml_validates_successfully() -> None:
    config = _load_toml(REPO_ROOT / "specguard.toml")

    result = validate_config(config)

    assert result.is_valid
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion
    assert result.config == validate_config(default_config()).config


def test_defaults_are_valid_and_copied() -> None:
    first = default_config()
    first["git"]["timeout_seconds"] = 99.0
    assert default_config()["git"]["timeout_seconds"] == 10.0
    assert validate_config(default_config()).is_valid


def test_unknown_key_rejection_is_explicit() -> None:
    config = _as_object_dict(default_config())
    providers = _as_object_dict(config["providers"])
    providers["mistral"] = {"api_key_env": "MISTRAL_KEY", "model": "m"}
    config["providers"] = providers
    config["extras"] = {}

    issues = _issue_map(config)

    assert issues["providers.mistral"] == "unknown field"
    assert issues["extras"] == "unknown field"


def test_type_validation_reports_structured_paths() -> None:
    config = _as_object_dict(default_config())
    git = _as_object_dict(config["git"])
    git["max_patch_chars"] = "lots"
    git["timeout_seconds"] = True
    config["git"] = git
    risk = _as_object_dict(config["risk"])
    risk["flag_missing_tests"] = "yes"
    config["risk"] = risk

    issues = _issue_map(config)

    assert issues["git.max_patch_chars"] == "expected integer, got str"
    assert issues["git.timeout_seconds"] == "expected number, got bool"
    assert issues["risk.flag_missing_tests"] == "expected boolean, got str"


def test_range_violation_reports_exact_path() -> None:
    config = _as_object_dict(default_config())
    risk = _as_object_dict(config["risk"])
    risk["large_deletion_threshold"] = 0
    config["risk"] = risk
    providers = _as_object_dict(config["providers"])
    providers["max_attempts"] = 0
    config["providers"] = providers

    issues = _issue_map(config)

    assert issues == {
        "risk.large_deletion_threshold": "must be >= 1",
        "providers.max_attempts": "must be >= 1",
    }


def test_missing_sections_and_fields_are_reported() -> None:
    config = _as_object_dict(default_config())
    del config["observability"]
    git = _as_object_dict(config["git"])
    del git["binary"]
    config["git"] = git

    issues = _issue_map(config)

    assert issues["observability"] == "missing required field"
    assert issues["git.binary"] == "missing required field"


@pytest.mark.parametrize(
    ("section", "key", "value", "message"),
    [
        ("storage", "spec_dir", "../outside", "must be a relative path without '..'"),
        ("storage", "spec_dir", "/abs/specs", "must be a relative path without '..'"),
        ("storage", "spec_dir", "  ", "must not be empty"),
        ("providers", "default", "cohere", "invalid value 'cohere'"),
        ("observability", "log_format", "xml", "invalid value 'xml'"),
        ("observability", "log_level", "TRACE", "invalid value 'TRACE'"),
    ],
)
def test_value_constraints(section: str, key: str, value: object, message: str) -> None:
    config = _as_object_dict(default_config())
    section_payload = _as_object_dict(config[section])
    section_payload[key] = value
    config[section] = section_payload

    issues = _issue_map(config)

    assert message in issues[f"{section}.{key}"]


def test_schema_version_mismatch_carries_migration_guidance() -> None:
    config = _as_object_dict(default_config())
    config["meta"] = {"schema_version": ConfigSchemaVersion + 1}

    issues = _issue_map(config)

    assert "is newer than supported" in issues["meta.schema_version"]
    assert "upgrade the specguard runtime" in issues["meta.schema_version"]

    config["meta"] = {"schema_version": 0}
    assert _issue_map(config)["meta.schema_version"] == "must be >= 1"


def test_embedded_secret_is_rejected_but_api_key_env_is_allowed() -> None:
    config = _as_object_dict(default_config())
    providers = _as_object_dict(config["providers"])
    anthropic = _as_object_dict(providers["anthropic"])
    anthropic["api_key"] = "sk-ant-should-not-be-here"
    providers["anthropic"] = anthropic
    config["providers"] = providers

    issues = _issue_map(config)

    assert "embedded secret values are forbidden" in issues["providers.anthropic.api_key"]
    assert "providers.anthropic.api_key_env" not in issues


def test_api_key_env_must_be_an_env_var_name() -> None:
    config = _as_object_dict(default_config())
    providers = _as_object_dict(config["providers"])
    openai = _as_object_dict(providers["openai"])
    openai["api_key_env"] = "sk-live-value"
    openai["base_url"] = "ftp://example.com"
    providers["openai"] = openai
    config["providers"] = providers

    issues = _issue_map(config)

    assert issues["providers.openai.api_key_env"].startswith("must be an env var name")
    assert issues["providers.openai.base_url"] == "must start with http:// or https://"


def test_assert_valid_config_raises_with_rendered_issues() -> None:
    config = _as_object_dict(default_config())
    config["verification"] = {"require_in_scope": "sometimes"}

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    assert str(excinfo.value) == (
        "invalid config:\n- verification.require_in_scope: expected boolean, got str"
    )
    assert excinfo.value.issues[0].path == "verification.require_in_scope"


def test_merge_config_is_deep_and_non_destructive() -> None:
    base = default_config()
    overlay = {"git": {"timeout_seconds": 3.5}, "risk": {"pattern_library": "p"}}
    merged = merge_config(base, overlay)

    assert merged["git"]["timeout_seconds"] == 3.5
    assert merged["git"]["binary"] == "git"
    assert merged["risk"]["pattern_library"] == "p"
    assert base["git"]["timeout_seconds"] == 10.0
    assert "pattern_library" not in base["risk"]


def test_redaction_is_recursive_and_preserves_shape() -> None:
    config = default_config()
    redacted = redact_config(config)

    assert redacted["providers"]["anthropic"]["api_key_env"] == "<redacted>"
    assert redacted["providers"]["openai"]["api_key_env"] == "<redacted>"
    assert redacted["providers"]["anthropic"]["model"] == "claude-sonnet-4-5"
    assert redacted["providers"]["max_tokens"] == 2048
    assert redacted["observability"]["redact_secrets"] is True
    assert set(redacted) == set(config)
    assert config["providers"]["anthropic"]["api_key_env"] == "ANTHROPIC_API_KEY"
    nested = redact_config({"nested": [{"password": "x"}]})
    assert nested == {"nested": [{"password": "<redacted>"}]}


def test_optional_fields_may_be_omitted_but_not_malformed() -> None:
    config = _as_object_dict(default_config())
    assert "base_url" not in config["providers"]["anthropic"]  # type: ignore[index]
    assert validate_config(config).is_valid

    risk = _as_object_dict(config["risk"])
    risk["pattern_library"] = "  "
    config["risk"] = risk

    assert _issue_map(config) == {"risk.pattern_library": "must not be empty"}


def test_non_object_section_is_reported_once() -> None:
    config = _as_object_dict(default_config())
    config["git"] = "fast"

    assert _issue_map(config) == {"git": "expected object, got str"}


def test_field_table_covers_every_default_and_path_field() -> None:
    def leaves(payload: Mapping[str, object], prefix: str = "") -> set[str]:
        out: set[str] = set()
        for key, value in payload.items():
            if isinstance(value, Mapping):
                out |= leaves(value, f"{prefix}{key}.")
            else:
                out.add(f"{prefix}{key}")
        return out

    assert leaves(default_config()) <= set(FIELDS)
    assert set(FIELDS) - leaves(default_config()) == {
        "risk.pattern_library",
        "providers.anthropic.base_url",
        "providers.openai.base_url",
    }
    assert PATH_FIELDS == ("risk.pattern_library", "observability.log_dir")
