"""
terraspec — engine config loader.

File: src/terraspec/config/loader.py
Last updated: 2026-10-19

Purpose
- Build the effective engine config from defaults, ``terraspec.toml``, ``TERRASPEC_*``
  environment variables and command-line overrides, in that order of precedence.

Functional requirements
- An explicit config path must exist; the implicit ``./terraspec.toml`` is optional.
- The profile comes from the argument, the ``profile`` override or ``TERRASPEC_PROFILE``
  and overlays the file before environment and command-line values apply.
- Relative ``engine.catalog_paths`` entries resolve against the config file's directory.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

from terraspec.config.schema import (
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "terraspec.toml"
ENV_PREFIX: Final[str] = "TERRASPEC_"
PROFILE_ENV: Final[str] = f"{ENV_PREFIX}PROFILE"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


class ConfigLoadError(ValueError):
    """Config file unreadable, or an override that cannot be coerced."""


def _text(raw: str, name: str) -> str:
    return raw.strip()


def _flag(raw: str, name: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigLoadError(f"{name} must be a boolean (true/false/1/0/yes/no/on/off)")


def _number(raw: str, name: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigLoadError(f"{name} must be an integer") from exc


def _path_list(raw: str, name: str) -> list[str]:
    return [part.strip() for part in raw.split(os.pathsep) if part.strip()]


# Every config leaf an environment variable may set.
ENV_BINDINGS: Final[dict[str, tuple[str, str, Callable[[str, str], object]]]] = {
    f"{ENV_PREFIX}META_SCHEMA_VERSION": ("meta", "schema_version", _number),
    f"{ENV_PREFIX}ENGINE_ENVIRONMENT": ("engine", "environment", _text),
    f"{ENV_PREFIX}ENGINE_STRICT_SCHEMAS": ("engine", "strict_schemas", _flag),
    f"{ENV_PREFIX}ENGINE_CATALOG_PATHS": ("engine", "catalog_paths", _path_list),
    f"{ENV_PREFIX}OBSERVABILITY_LOG_LEVEL": ("observability", "log_level", _text),
    f"{ENV_PREFIX}OBSERVABILITY_LOG_FORMAT": ("observability", "log_format", _text),
    f"{ENV_PREFIX}OBSERVABILITY_REDACT_SECRETS": ("observability", "redact_secrets", _flag),
}


def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Effective config; ``cli_overrides`` keys are dotted paths like ``engine.environment``."""
    path = (
        (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
        if config_path is None
        else Path(config_path).expanduser().resolve()
    )
    env = os.environ if environ is None else environ
    overrides = dict(cli_overrides or {})

    config = assert_valid_config(
        merge_config(default_config(), _read_toml(path, required=config_path is not None))
    )
    selected = _selected_profile(profile, overrides.pop("profile", None), env)
    if selected is not None:
        config = apply_profile_overlay(config, selected)

    config = merge_config(config, _env_overrides(env))
    config = merge_config(config, _dotted_overrides(overrides))
    config = assert_valid_config(config)
    config["engine"]["catalog_paths"] = [
        _resolve_path(entry, path.parent) for entry in config["engine"]["catalog_paths"]
    ]
    return config


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Redacted config without the profile table, as `terraspec config` shows it."""
    return redact_config({key: value for key, value in config.items() if key != "profiles"})


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
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


def _selected_profile(
    profile: str | None, override: object, environ: Mapping[str, str]
) -> str | None:
    for candidate in (profile, override, environ.get(PROFILE_ENV)):
        if candidate is None:
            continue
        if not isinstance(candidate, str):
            raise ConfigLoadError("profile override must be a string")
        return candidate.strip() or None
    return None


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name, (section, key, coerce) in ENV_BINDINGS.items():
        raw = environ.get(name)
        if raw is not None:
            overrides.setdefault(section, {})[key] = coerce(raw, f"{name} -> {section}.{key}")
    return overrides


def _dotted_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for dotted, value in overrides.items():
        section, _, key = dotted.partition(".")
        if not section or not key:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        payload.setdefault(section, {})[key] = value
    return payload


def _resolve_path(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_BINDINGS",
    "ENV_PREFIX",
    "PROFILE_ENV",
    "ConfigLoadError",
    "effective_config",
    "load_config",
]
