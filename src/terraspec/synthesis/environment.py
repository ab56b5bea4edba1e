"""
terraspec — environment-tiered defaults.

File: src/terraspec/synthesis/environment.py
Last updated: 2026-10-19

Purpose
- Merge raw attributes over per-tier defaults before validation.

Functional requirements
- Raw input always wins. Nested mappings merge recursively; scalars and lists are replaced
  wholesale. An explicit `None` in the raw input clears the default.
- Engine value objects (tokens, references, validated attributes) are carried by identity.
- The validator never sees tier logic; this module never validates.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from terraspec.constants import ENVIRONMENT_TIERS
from terraspec.domain.errors import UnknownEnvironmentTier
from terraspec.domain.values import OutputToken
from terraspec.schema.attributes import ValidatedAttributes, freeze
from terraspec.synthesis.references import ResourceReference


def deep_merge(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge `overlay` onto a copy of `base`; neither input is mutated."""

    merged = _copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key, value in overlay.items():
        if isinstance(value, Mapping) and not _is_engine_value(value):
            existing = target.get(key)
            nested = existing if isinstance(existing, dict) else {}
            if isinstance(existing, Mapping) and not isinstance(existing, dict):
                nested = _copy_mapping(existing)
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = _copy_value(value)


def _copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _copy_value(item) for key, item in value.items()}


def _copy_value(value: object) -> Any:
    if _is_engine_value(value):
        return value
    if isinstance(value, Mapping):
        return _copy_mapping(value)
    if isinstance(value, (list, tuple)):
        return [_copy_value(item) for item in value]
    return copy.deepcopy(value)


def _is_engine_value(value: object) -> bool:
    return isinstance(value, (OutputToken, ResourceReference, ValidatedAttributes))


@dataclass(frozen=True, slots=True)
class EnvironmentDefaults:
    """Static table of tier -> partial attribute map."""

    tiers: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen: dict[str, Mapping[str, Any]] = {}
        for tier, defaults in self.tiers.items():
            _check_tier(tier)
            if not isinstance(defaults, Mapping):
                raise ValueError(f"defaults for tier {tier!r} must be a mapping")
            frozen[tier] = freeze(_copy_mapping(defaults))  # type: ignore[assignment]
        object.__setattr__(self, "tiers", MappingProxyType(frozen))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> EnvironmentDefaults:
        tiers: dict[str, Mapping[str, Any]] = {}
        for tier, defaults in payload.items():
            if not isinstance(tier, str):
                raise ValueError("tier names must be strings")
            if not isinstance(defaults, Mapping):
                raise ValueError(f"defaults for tier {tier!r} must be a mapping")
            tiers[tier] = defaults
        return cls(tiers)

    def for_tier(self, tier: str | None) -> dict[str, Any]:
        """Fresh, mutable copy of the tier's defaults; empty when the tier has none."""
        if tier is None:
            return {}
        _check_tier(tier)
        defaults = self.tiers.get(tier)
        return _copy_mapping(defaults) if defaults is not None else {}

    def layered(self, overlay: EnvironmentDefaults | None) -> EnvironmentDefaults:
        """Return a table where `overlay` tier values win over this table's."""
        if overlay is None:
            return self
        tiers = {tier: dict(values) for tier, values in self.tiers.items()}
        for tier, values in overlay.tiers.items():
            tiers[tier] = deep_merge(tiers.get(tier, {}), values)
        return EnvironmentDefaults(tiers)


def _check_tier(tier: str) -> None:
    if tier not in ENVIRONMENT_TIERS:
        raise UnknownEnvironmentTier(tier, ENVIRONMENT_TIERS)


def resolve_defaults(
    tier: str | None,
    raw: Mapping[str, object] | None,
    defaults: EnvironmentDefaults | None = None,
) -> dict[str, Any]:
    """Merge `raw` over the `tier` defaults; raw values always win."""

    base = defaults.for_tier(tier) if defaults is not None else {}
    return deep_merge(base, raw or {})


def resolve_tier(raw: Mapping[str, object] | None, fallback: str | None) -> str | None:
    """The raw map's `environment` value when it names a known tier, else `fallback`.

    An unknown declared tier is left for the schema's enum check to report.
    """
    if raw is not None:
        declared = raw.get("environment")
        if isinstance(declared, str) and declared in ENVIRONMENT_TIERS:
            return declared
    return fallback


BUILTIN_ENVIRONMENT_DEFAULTS = EnvironmentDefaults(
    {
        "development": {
            "high_availability": False,
            "auto_scaling": {"min": 1, "max": 2, "desired": 1},
            "monitoring": {"detailed_monitoring": False, "enable_alerting": False},
            "backup": {"retention_days": 1},
        },
        "staging": {
            "high_availability": False,
            "auto_scaling": {"min": 1, "max": 3, "desired": 1},
            "monitoring": {"detailed_monitoring": True, "enable_alerting": False},
            "backup": {"retention_days": 3},
        },
        "production": {
            "high_availability": True,
            "auto_scaling": {"min": 2, "max": 10, "desired": 2},
            "monitoring": {"detailed_monitoring": True, "enable_alerting": True},
            "backup": {"retention_days": 30},
        },
    }
)


__all__ = [
    "BUILTIN_ENVIRONMENT_DEFAULTS",
    "EnvironmentDefaults",
    "deep_merge",
    "resolve_defaults",
    "resolve_tier",
]
