"""
terraspec — engine configuration schema and validation.

File: src/terraspec/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative engine configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and path lists.
- Profile overlay validation and the deep-merge used by the loader.
- Redaction rules for sensitive keys.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support profile overlays including strict/lenient/verbose.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from terraspec.constants import CONFIG_SCHEMA_VERSION, DEFAULT_ENVIRONMENT, ENVIRONMENT_TIERS
from terraspec.synthesis.environment import deep_merge

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "console")
REDACTED_VALUE: Final[str] = "***REDACTED***"

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
# Words of a snake, kebab or camel case key.
_KEY_WORDS = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")
_SENSITIVE_WORDS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "credential", "credentials", "auth"}
)
_SENSITIVE_PAIRS: Final[frozenset[str]] = frozenset(
    {"apikey", "accesskey", "privatekey", "secretkey"}
)


class MetaConfig(TypedDict):
    schema_version: int


class EngineConfig(TypedDict):
    environment: str
    strict_schemas: bool
    catalog_paths: list[str]


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "console"]
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    engine: dict[str, object]
    observability: dict[str, object]


class TerraspecConfig(TypedDict):
    meta: MetaConfig
    engine: EngineConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[TerraspecConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "engine": {
        "environment": DEFAULT_ENVIRONMENT,
        "strict_schemas": True,
        "catalog_paths": [],
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "console",
        "redact_secrets": True,
    },
    "profiles": {
        "strict": {"engine": {"strict_schemas": True}},
        "lenient": {"engine": {"strict_schemas": False}},
        "verbose": {"observability": {"log_level": "DEBUG"}},
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> TerraspecConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade terraspec.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the terraspec package"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; lists and scalars are replaced wholesale."""

    return deep_merge(base, overlay)


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the resulting config."""

    materialized = merge_config({}, config)
    selected = profile.strip() if profile is not None else ""
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )
    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay_raw))


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def is_sensitive_key(key: str) -> bool:
    """True for keys such as ``api_key``, ``dbPassword`` or ``client_secret``."""
    words = [word.lower() for word in _KEY_WORDS.findall(key)]
    pairs = {first + second for first, second in zip(words, words[1:])}
    return bool(_SENSITIVE_WORDS.intersection(words) or _SENSITIVE_PAIRS & pairs)


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted copy for logs and `terraspec config` output."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact(config)
    return redacted if isinstance(redacted, dict) else {}


def _redact(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            key: REDACTED_VALUE if is_sensitive_key(str(key)) else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"meta", "engine", "observability", "profiles"}, "", issues)
    _require_keys(payload, {"meta", "engine", "observability"}, "", issues)

    out: dict[str, Any] = {}
    meta = _as_section(payload, "meta", issues)
    if meta is not None:
        out["meta"] = _validate_meta(meta, "meta", issues)
    engine = _as_section(payload, "engine", issues)
    if engine is not None:
        out["engine"] = _validate_engine(engine, "engine", issues, partial=False)
    observability = _as_section(payload, "observability", issues)
    if observability is not None:
        out["observability"] = _validate_observability(
            observability, "observability", issues, partial=False
        )
    profiles = _as_section(payload, "profiles", issues)
    if profiles is not None:
        out["profiles"] = _validate_profiles(profiles, "profiles", issues)
    return out


def _as_section(
    payload: Mapping[str, object], key: str, issues: _IssueCollector
) -> dict[str, object] | None:
    raw = payload.get(key)
    if raw is None:
        return None
    return _as_object(raw, key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(payload["schema_version"], _join(path, "schema_version"), issues)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_engine(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"environment", "strict_schemas", "catalog_paths"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "environment" in payload:
        environment = _as_enum(
            payload["environment"],
            _join(path, "environment"),
            issues,
            allowed_values=ENVIRONMENT_TIERS,
        )
        if environment is not None:
            out["environment"] = environment

    if "strict_schemas" in payload:
        strict = _as_bool(payload["strict_schemas"], _join(path, "strict_schemas"), issues)
        if strict is not None:
            out["strict_schemas"] = strict

    if "catalog_paths" in payload:
        paths = _as_path_list(payload["catalog_paths"], _join(path, "catalog_paths"), issues)
        if paths is not None:
            out["catalog_paths"] = paths
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = payload["log_level"]
        level = level.upper() if isinstance(level, str) else level
        parsed_level = _as_enum(
            level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS
        )
        if parsed_level is not None:
            out["log_level"] = parsed_level

    if "log_format" in payload:
        parsed_format = _as_enum(
            payload["log_format"], _join(path, "log_format"), issues, allowed_values=LOG_FORMATS
        )
        if parsed_format is not None:
            out["log_format"] = parsed_format

    if "redact_secrets" in payload:
        parsed_redact = _as_bool(payload["redact_secrets"], _join(path, "redact_secrets"), issues)
        if parsed_redact is not None:
            out["redact_secrets"] = parsed_redact
    return out


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        overlay = _as_object(payload[profile_name], profile_path, issues)
        if overlay is None:
            continue
        _reject_unknown_keys(overlay, {"engine", "observability"}, profile_path, issues)
        validated: dict[str, Any] = {}
        engine = _as_section(overlay, "engine", issues)
        if engine is not None:
            validated["engine"] = _validate_engine(
                engine, _join(profile_path, "engine"), issues, partial=True
            )
        observability = _as_section(overlay, "observability", issues)
        if observability is not None:
            validated["observability"] = _validate_observability(
                observability, _join(profile_path, "observability"), issues, partial=True
            )
        out[profile_name] = validated
    return out


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of paths, got {type(value).__name__}")
        return None
    parsed: list[str] = []
    for index, item in enumerate(value):
        text = _as_str(item, f"{path}[{index}]", issues)
        if text is None:
            continue
        if "\x00" in text:
            issues.add(f"{path}[{index}]", "must not contain NUL bytes")
            continue
        parsed.append(text)
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(value: object, path: str, issues: _IssueCollector) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if value < 1:
        issues.add(path, "must be >= 1")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(allowed_values)
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if is_sensitive_key(key):
            issues.add(key_path, "embedded secret values are forbidden in terraspec.toml")
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "REDACTED_VALUE",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "EngineConfig",
    "ObservabilityConfig",
    "ProfileOverlay",
    "TerraspecConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "is_sensitive_key",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
