"""
terraspec — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-19

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
- Redacted effective config.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from terraspec.config.loader import (
    ENV_BINDINGS,
    ConfigLoadError,
    effective_config,
    load_config,
)
from terraspec.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    default_path = _write_config(tmp_path / "default.toml", "")
    config_path = _write_config(
        tmp_path / "terraspec.toml",
        """
[engine]
environment = "staging"
""".strip(),
    )

    default_loaded = load_config(default_path, environ={})
    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ={"TERRASPEC_ENGINE_ENVIRONMENT": "production"})
    cli_loaded = load_config(
        config_path,
        environ={"TERRASPEC_ENGINE_ENVIRONMENT": "production"},
        cli_overrides={"engine.environment": "development"},
    )

    assert default_loaded["engine"]["environment"] == "development"
    assert file_loaded["engine"]["environment"] == "staging"
    assert env_loaded["engine"]["environment"] == "production"
    assert cli_loaded["engine"]["environment"] == "development"


def test_env_values_are_coerced_by_default_type(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "terraspec.toml", "")

    loaded = load_config(
        config_path,
        environ={
            "TERRASPEC_ENGINE_STRICT_SCHEMAS": "off",
            "TERRASPEC_OBSERVABILITY_LOG_LEVEL": "debug",
            "TERRASPEC_ENGINE_CATALOG_PATHS": os.pathsep.join(["schemas", "/opt/shared"]),
        },
    )

    assert loaded["engine"]["strict_schemas"] is False
    assert loaded["observability"]["log_level"] == "DEBUG"
    assert loaded["engine"]["catalog_paths"] == [
        (tmp_path / "schemas").resolve().as_posix(),
        "/opt/shared",
    ]


@pytest.mark.parametrize(
    ("env_name", "value", "message"),
    [
        ("TERRASPEC_ENGINE_STRICT_SCHEMAS", "maybe", "must be a boolean"),
        ("TERRASPEC_META_SCHEMA_VERSION", "one", "must be an integer"),
    ],
)
def test_uncoercible_env_values_fail(
    tmp_path: Path, env_name: str, value: str, message: str
) -> None:
    config_path = _write_config(tmp_path / "terraspec.toml", "")

    with pytest.raises(ConfigLoadError, match=message):
        load_config(config_path, environ={env_name: value})


def test_catalog_paths_resolve_relative_to_the_config_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "conf" / "terraspec.toml",
        """
[engine]
catalog_paths = ["../schemas", "extra"]
""".strip(),
    )

    loaded = load_config(config_path, environ={})

    assert loaded["engine"]["catalog_paths"] == [
        (tmp_path / "schemas").resolve().as_posix(),
        (tmp_path / "conf" / "extra").resolve().as_posix(),
    ]


def test_profiles_overlay_before_env_and_cli(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "terraspec.toml", "")

    lenient = load_config(config_path, profile="lenient", environ={})
    from_env = load_config(config_path, environ={"TERRASPEC_PROFILE": "verbose"})
    overridden = load_config(
        config_path,
        profile="lenient",
        environ={"TERRASPEC_ENGINE_STRICT_SCHEMAS": "true"},
    )

    assert lenient["engine"]["strict_schemas"] is False
    assert from_env["observability"]["log_level"] == "DEBUG"
    assert overridden["engine"]["strict_schemas"] is True


def test_custom_profiles_from_the_file(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "terraspec.toml",
        """
[profiles.prod]
engine = { environment = "production" }
""".strip(),
    )

    loaded = load_config(config_path, profile="prod", environ={})

    assert loaded["engine"]["environment"] == "production"
    with pytest.raises(ConfigValidationError, match="profile 'missing' is not defined"):
        load_config(config_path, profile="missing", environ={})


def test_missing_explicit_file_and_bad_toml_fail(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "absent.toml", environ={})

    broken = _write_config(tmp_path / "broken.toml", "[engine\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(broken, environ={})


def test_implicit_config_file_is_optional(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    loaded = load_config(environ={})

    assert loaded["engine"]["environment"] == "development"


def test_invalid_values_fail_validation(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "terraspec.toml",
        """
[engine]
environment = "qa"
api_token = "abc"
""".strip(),
    )

    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ={})

    messages = {issue.path: issue.message for issue in excinfo.value.issues}
    assert messages["engine.environment"].startswith("invalid value 'qa'")
    assert messages["engine.api_token"] == "embedded secret values are forbidden in terraspec.toml"


def test_effective_config_drops_profiles_and_redacts(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "terraspec.toml", "")
    loaded = load_config(config_path, environ={})

    visible = effective_config({**loaded, "provider": {"api_token": "abc"}})

    assert "profiles" not in visible
    assert visible["observability"]["redact_secrets"] is True
    assert visible["provider"] == {"api_token": "***REDACTED***"}
    assert loaded["profiles"]["lenient"] == {"engine": {"strict_schemas": False}}


def test_every_config_leaf_has_an_environment_binding() -> None:
    bound = {f"{section}.{key}" for section, key, _ in ENV_BINDINGS.values()}

    assert bound == {
        "meta.schema_version",
        "engine.environment",
        "engine.strict_schemas",
        "engine.catalog_paths",
        "observability.log_level",
        "observability.log_format",
        "observability.redact_secrets",
    }
    assert all(name.startswith("TERRASPEC_") for name in ENV_BINDINGS)


def test_cli_overrides_need_a_section_and_a_key(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "terraspec.toml", "")

    with pytest.raises(ConfigLoadError, match="invalid CLI override key 'verbose'"):
        load_config(config_path, cli_overrides={"verbose": True}, environ={})
    with_profile = load_config(
        config_path, cli_overrides={"profile": "lenient"}, environ={"TERRASPEC_PROFILE": "verbose"}
    )
    assert with_profile["engine"]["strict_schemas"] is False
    assert with_profile["observability"]["log_level"] == "INFO"
