"""Unit tests for schema validation: leaf checks, defaults, paths and invariants."""

from __future__ import annotations

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from terraspec.domain.errors import CrossFieldInvariantViolation, SchemaViolation
from terraspec.domain.values import NOT_PROVIDED, OutputToken
from terraspec.schema.definition import define_schema
from terraspec.schema.fields import AttributeSchema
from terraspec.schema.invariants import ordered
from terraspec.schema.validator import assert_valid, check_value, validate
from terraspec.synthesis.references import make_reference

_PROTOCOLS = ("tcp", "udp", "icmp")


def _listener_schema(*, strict: bool = True) -> AttributeSchema:
    return define_schema(
        {
            "name": "listener",
            "strict": strict,
            "fields": {
                "port": {"type": "integer", "required": True, "minimum": 1, "maximum": 65535},
                "protocol": {"type": "string", "enum": list(_PROTOCOLS), "default": "tcp"},
                "weight": {"type": "number", "minimum": 0},
                "description": "string",
                "enabled": {"type": "boolean", "default": True},
            },
        }
    )


def _group_schema() -> AttributeSchema:
    return define_schema(
        {
            "name": "group",
            "fields": {
                "name": {"type": "string", "required": True, "pattern": "^[a-z][a-z0-9-]*$"},
                "ingress": {
                    "type": "list",
                    "items": {
                        "type": "object",
                        "fields": {
                            "from_port": {"type": "integer", "required": True, "minimum": 0},
                            "to_port": {"type": "integer", "required": True, "maximum": 65535},
                        },
                        "invariants": [
                            {
                                "rule": "ordered",
                                "name": "port_range",
                                "fields": ["from_port", "to_port"],
                            }
                        ],
                    },
                },
                "tags": {"type": "map", "values": "string", "default": {}},
                "zones": {"type": "list", "items": "string", "min_length": 1},
                "scaling": {
                    "type": "object",
                    "fields": {
                        "min": {"type": "integer", "default": 1},
                        "max": {"type": "integer", "default": 2},
                        "desired": {"type": "integer", "default": 1},
                    },
                },
            },
            "invariants": [
                ordered("scaling_bounds", "scaling.min", "scaling.desired", "scaling.max")
            ],
        }
    )


def test_port_out_of_range_is_reported_with_bounds() -> None:
    result = validate(_listener_schema(), {"port": 99999})

    assert not result.is_valid
    assert result.attributes is None
    [violation] = result.violations
    assert violation.path == "port"
    assert violation.constraint == "range"
    assert violation.message == "out of range 1-65535"


def test_valid_port_passes_with_defaults_filled() -> None:
    attrs = validate(_listener_schema(), {"port": 443}).unwrap()

    assert attrs.port == 443
    assert attrs.protocol == "tcp"
    assert attrs.enabled is True
    assert attrs.description is NOT_PROVIDED
    assert attrs.weight is NOT_PROVIDED


def test_explicit_none_counts_as_absent() -> None:
    attrs = assert_valid(_listener_schema(), {"port": 80, "protocol": None})

    assert attrs.protocol == "tcp"


def test_missing_required_field_raises_schema_violation() -> None:
    with pytest.raises(SchemaViolation) as excinfo:
        assert_valid(_listener_schema(), {})

    assert excinfo.value.paths == ("port",)
    assert excinfo.value.violations[0].message == "missing required field"


@settings(derandomize=True, deadline=None)
@given(st.sampled_from(_PROTOCOLS))
def test_enum_members_pass(protocol: str) -> None:
    assert validate(_listener_schema(), {"port": 80, "protocol": protocol}).is_valid


@settings(derandomize=True, deadline=None)
@given(st.text(max_size=8).filter(lambda value: value not in _PROTOCOLS))
def test_non_members_fail_with_expected_options(protocol: str) -> None:
    result = validate(_listener_schema(), {"port": 80, "protocol": protocol})

    [violation] = result.violations
    assert violation.constraint == "enum"
    assert violation.message.endswith("expected one of: tcp, udp, icmp")


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"port": "80"}, "expected integer, got string"),
        ({"port": True}, "expected integer, got boolean"),
        ({"port": 80, "weight": math.inf}, "must be finite"),
        ({"port": 80, "weight": -1}, "must be >= 0"),
        ({"port": 80, "enabled": "yes"}, "expected boolean, got string"),
    ],
)
def test_leaf_type_and_bound_messages(raw: dict[str, object], message: str) -> None:
    result = validate(_listener_schema(), raw)

    assert [item.message for item in result.violations] == [message]


def test_every_leaf_violation_is_reported_with_indexed_paths() -> None:
    result = validate(
        _group_schema(),
        {
            "name": "Web",
            "ingress": [{"from_port": 80, "to_port": 80}, {"from_port": -1, "to_port": 70000}],
            "tags": {"team": 7},
            "zones": [],
        },
    )

    error = result.error()
    assert isinstance(error, SchemaViolation)
    assert set(error.paths) == {
        "name",
        "ingress[1].from_port",
        "ingress[1].to_port",
        "tags.team",
        "zones",
    }
    assert error.for_path("zones")[0].message == "must contain at least 1 item(s)"
    assert error.for_path("ingress[1].to_port")[0].message == "must be <= 65535"


def test_unknown_fields_fail_in_strict_mode_and_are_ignored_otherwise() -> None:
    raw = {"port": 80, "portt": 81}

    strict = validate(_listener_schema(), raw)
    assert strict.violations[0].path == "portt"
    assert strict.violations[0].message == "unknown field"

    lenient = validate(_listener_schema(strict=False), raw)
    assert lenient.is_valid
    assert lenient.ignored == ("portt",)
    assert "portt" not in lenient.unwrap()

    overridden = validate(_listener_schema(), raw, strict=False)
    assert overridden.ignored == ("portt",)


def test_output_tokens_skip_value_constraints() -> None:
    token = OutputToken("aws_lb", "web", "port")

    attrs = assert_valid(_listener_schema(), {"port": token})

    assert attrs.port is token


def test_resource_reference_in_string_field_becomes_its_id_token() -> None:
    vpc = make_reference("aws_vpc", "main", assert_valid(_listener_schema(), {"port": 1}), ["id"])

    attrs = assert_valid(_listener_schema(), {"port": 80, "description": vpc})
    assert attrs.description == vpc.id

    result = validate(_listener_schema(), {"port": vpc})
    assert result.violations[0].message == "expected integer, got resource reference"


def test_invariants_run_after_leaves_and_nested_scopes_first() -> None:
    result = validate(
        _group_schema(),
        {
            "name": "web",
            "ingress": [{"from_port": 443, "to_port": 80}],
            "scaling": {"min": 3, "max": 2},
        },
    )

    violation = result.invariant_violation
    assert violation is not None
    assert violation.rule == "port_range"
    assert violation.scope == "ingress[0]"


def test_root_invariant_reports_capacity_bounds() -> None:
    schema = _group_schema()

    with pytest.raises(CrossFieldInvariantViolation) as excinfo:
        assert_valid(schema, {"name": "web", "scaling": {"min": 2, "max": 5, "desired": 9}})
    assert excinfo.value.rule == "scaling_bounds"

    attrs = assert_valid(schema, {"name": "web", "scaling": {"min": 2, "max": 5, "desired": 3}})
    assert attrs.get_path("scaling.desired") == 3


def test_leaf_failures_suppress_invariants() -> None:
    result = validate(_group_schema(), {"name": "web", "scaling": {"min": "2", "max": 1}})

    assert result.invariant_violation is None
    assert [item.path for item in result.violations] == ["scaling.min"]


def test_validated_collections_are_frozen() -> None:
    attrs = assert_valid(
        _group_schema(), {"name": "web", "zones": ["us-east-1a"], "scaling": {}}
    )

    assert attrs.zones == ("us-east-1a",)
    assert dict(attrs.tags) == {}
    assert attrs.get_path("scaling.max") == 2


def test_non_mapping_input_is_rejected() -> None:
    result = validate(_listener_schema(), ["port"])  # type: ignore[arg-type]

    assert result.violations[0].message == "expected mapping, got list"


def test_check_value_reports_a_single_value() -> None:
    spec = _listener_schema().get_field("port")

    assert check_value(spec, 443, "port") == ()
    assert check_value(spec, 0, "port")[0].message == "out of range 1-65535"


def test_omitted_optional_object_takes_its_nested_defaults() -> None:
    attrs = assert_valid(_group_schema(), {"name": "web"})

    assert attrs.get_path("scaling.min") == 1
    assert attrs.get_path("scaling.max") == 2
    assert attrs.to_dict()["scaling"] == {"min": 1, "max": 2, "desired": 1}


def test_omitted_object_with_required_nested_fields_stays_absent() -> None:
    schema = define_schema(
        {
            "name": "template_ref",
            "fields": {
                "launch_template": {
                    "type": "object",
                    "fields": {
                        "id": {"type": "string", "required": True},
                        "version": {"type": "string", "default": "$Latest"},
                    },
                },
            },
        }
    )

    attrs = assert_valid(schema, {})

    assert attrs.launch_template is NOT_PROVIDED
    assert "launch_template" not in attrs.to_dict()


def test_object_default_mapping_is_completed_with_nested_defaults() -> None:
    schema = define_schema(
        {
            "name": "backup_policy",
            "fields": {
                "backup": {
                    "type": "object",
                    "default": {"retention_days": 7},
                    "fields": {
                        "retention_days": {"type": "integer", "minimum": 0, "default": 1},
                        "copy_tags": {"type": "boolean", "default": True},
                    },
                },
            },
        }
    )

    attrs = assert_valid(schema, {})

    assert attrs.get_path("backup.retention_days") == 7
    assert attrs.get_path("backup.copy_tags") is True
