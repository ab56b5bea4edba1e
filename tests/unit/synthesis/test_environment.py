"""Unit tests for environment-tiered defaults."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from terraspec.domain.errors import UnknownEnvironmentTier
from terraspec.domain.values import OutputToken
from terraspec.synthesis.environment import (
    BUILTIN_ENVIRONMENT_DEFAULTS,
    EnvironmentDefaults,
    deep_merge,
    resolve_defaults,
    resolve_tier,
)

_DEFAULTS = EnvironmentDefaults(
    {
        "development": {"instance_type": "t3.micro", "autoScaling": {"minSize": 1, "maxSize": 2}},
        "production": {"instance_type": "t3.medium", "zones": ["a", "b", "c"]},
    }
)


def test_raw_values_win_and_nested_maps_merge() -> None:
    merged = resolve_defaults("development", {"autoScaling": {"minSize": 3}}, _DEFAULTS)

    assert merged == {"instance_type": "t3.micro", "autoScaling": {"minSize": 3, "maxSize": 2}}


def test_lists_are_replaced_wholesale() -> None:
    merged = resolve_defaults("production", {"zones": ["x"]}, _DEFAULTS)

    assert merged["zones"] == ["x"]


def test_explicit_none_clears_the_default() -> None:
    merged = resolve_defaults("development", {"instance_type": None}, _DEFAULTS)

    assert merged["instance_type"] is None


def test_tier_without_defaults_and_no_table_pass_raw_through() -> None:
    assert resolve_defaults("staging", {"a": 1}, _DEFAULTS) == {"a": 1}
    assert resolve_defaults("production", {"a": 1}) == {"a": 1}
    assert resolve_defaults(None, None, _DEFAULTS) == {}


def test_unknown_tier_is_rejected() -> None:
    with pytest.raises(UnknownEnvironmentTier, match="'qa'"):
        resolve_defaults("qa", {}, _DEFAULTS)
    with pytest.raises(UnknownEnvironmentTier):
        EnvironmentDefaults({"qa": {}})


def test_merging_never_mutates_inputs() -> None:
    raw = {"autoScaling": {"minSize": 3}}

    merged = resolve_defaults("development", raw, _DEFAULTS)
    merged["autoScaling"]["maxSize"] = 99

    assert raw == {"autoScaling": {"minSize": 3}}
    assert _DEFAULTS.for_tier("development")["autoScaling"]["maxSize"] == 2


def test_engine_values_are_carried_by_identity() -> None:
    token = OutputToken("aws_vpc", "main", "id")

    merged = deep_merge({"vpc_id": "vpc-1"}, {"vpc_id": token})

    assert merged["vpc_id"] is token


def test_layered_tables_let_the_overlay_win() -> None:
    overlay = EnvironmentDefaults({"production": {"auto_scaling": {"desired": 3}}})

    layered = BUILTIN_ENVIRONMENT_DEFAULTS.layered(overlay)

    assert layered.for_tier("production")["auto_scaling"] == {"min": 2, "max": 10, "desired": 3}
    assert layered.for_tier("staging") == BUILTIN_ENVIRONMENT_DEFAULTS.for_tier("staging")
    assert BUILTIN_ENVIRONMENT_DEFAULTS.layered(None) is BUILTIN_ENVIRONMENT_DEFAULTS


def test_resolve_tier_prefers_the_declared_environment() -> None:
    assert resolve_tier({"environment": "production"}, "development") == "production"
    assert resolve_tier({"environment": 3}, "staging") == "staging"
    assert resolve_tier(None, None) is None


def test_resolve_tier_ignores_unknown_declared_tiers() -> None:
    assert resolve_tier({"environment": "prod"}, "staging") == "staging"
    assert resolve_tier({"environment": "prod"}, None) is None


def test_from_mapping_rejects_non_mapping_tiers() -> None:
    with pytest.raises(ValueError, match="must be a mapping"):
        EnvironmentDefaults.from_mapping({"production": ["t3.medium"]})


_KEYS = st.sampled_from(["a", "b", "c"])
_TREES = st.recursive(
    st.integers(min_value=0, max_value=9),
    lambda children: st.dictionaries(_KEYS, children, max_size=3),
    max_leaves=8,
)


@settings(derandomize=True, deadline=None)
@given(st.dictionaries(_KEYS, _TREES, max_size=3), st.dictionaries(_KEYS, _TREES, max_size=3))
def test_every_overlay_leaf_survives_the_merge(
    base: dict[str, object], overlay: dict[str, object]
) -> None:
    merged = deep_merge(base, overlay)

    def assert_contains(expected: dict[str, object], actual: dict[str, object]) -> None:
        for key, value in expected.items():
            if isinstance(value, dict):
                assert isinstance(actual[key], dict)
                assert_contains(value, actual[key])
            else:
                assert actual[key] == value

    assert_contains(overlay, merged)
    assert set(base) <= set(merged)
