"""Unit tests for immutable architecture references."""

from __future__ import annotations

import pytest

from terraspec.architecture.reference import ArchitectureReference
from terraspec.domain.errors import InvalidComponent, SlotConflict, UnknownSlot
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.schema.catalog import SchemaCatalog
from terraspec.synthesis.references import ResourceReference, make_reference
from terraspec.synthesis.session import SynthesisSession

_ATTRS = ValidatedAttributes("stack", {"tier": "web"})


def _ref(resource_type: str, name: str) -> ResourceReference:
    return make_reference(resource_type, name, ValidatedAttributes(resource_type, {}), ["id"])


def _stack() -> ArchitectureReference:
    base = ArchitectureReference(architecture_type="stack", name="shop", attributes=_ATTRS)
    return base.with_component(
        "network", {"vpc": _ref("aws_vpc", "shop"), "subnets": {"a": _ref("aws_subnet", "a")}}
    ).with_component("database", _ref("aws_db_instance", "shop"))


def test_override_replaces_one_slot_and_shares_the_rest() -> None:
    stack = _stack()
    replacement = _ref("aws_db_instance", "replica")

    derived = stack.override("database", lambda ref: replacement)

    assert derived is not stack
    assert derived["database"] is replacement
    assert derived["network"] is stack["network"]
    assert stack["database"].name == "shop"  # type: ignore[union-attr]


def test_override_of_missing_slot_fails() -> None:
    with pytest.raises(UnknownSlot) as excinfo:
        _stack().override("cache", lambda ref: _ref("aws_elasticache_cluster", "shop"))

    assert excinfo.value.available == ("network", "database")


def test_extend_with_adds_slots_and_rejects_collisions() -> None:
    stack = _stack()

    extended = stack.extend_with({"cache": _ref("aws_elasticache_cluster", "shop")})

    assert extended.slots == ("network", "database", "cache")
    assert "cache" not in stack
    with pytest.raises(SlotConflict, match="database"):
        stack.extend_with({"database": _ref("aws_db_instance", "other")})


def test_compose_with_receives_the_current_reference() -> None:
    stack = _stack()

    composed = stack.compose_with(
        lambda ref: {"alarm": _ref("aws_cloudwatch_metric_alarm", ref.name)}
    )

    assert composed["alarm"].name == "shop"  # type: ignore[union-attr]
    with pytest.raises(InvalidComponent):
        stack.compose_with(lambda ref: ["not", "a", "mapping"])  # type: ignore[arg-type]


def test_outputs_are_recomputed_after_derivation() -> None:
    def outputs(ref: ArchitectureReference) -> dict[str, object]:
        database = ref["database"] if "database" in ref else None
        return {"database_id": database.id if isinstance(database, ResourceReference) else None}

    stack = _stack().with_outputs(outputs)
    assert str(stack.output("database_id")) == "${aws_db_instance.shop.id}"

    replacement = _ref("aws_db_instance", "replica")
    derived = stack.override("database", lambda ref: replacement)

    assert derived.output("database_id") == replacement.id
    assert stack.output("database_id") != replacement.id


def test_all_resources_walks_nested_slots_in_order() -> None:
    addresses = [resource.address for resource in _stack().all_resources()]

    assert addresses == ["aws_vpc.shop", "aws_subnet.a", "aws_db_instance.shop"]


def test_components_are_read_only() -> None:
    stack = _stack()

    with pytest.raises(TypeError):
        stack.components["cache"] = _ref("aws_elasticache_cluster", "shop")  # type: ignore[index]
    with pytest.raises(TypeError):
        stack["network"]["vpc"] = _ref("aws_vpc", "other")  # type: ignore[index]


def test_summary_and_configuration() -> None:
    stack = _stack()

    assert stack.summary() == {
        "type": "stack",
        "name": "shop",
        "address": "architecture.stack.shop",
        "slots": ["network", "database"],
        "component_count": 2,
        "resource_count": 3,
        "estimated_monthly_cost": 80.0,
        "security_compliance_score": 80.0,
        "high_availability_score": 20.0,
        "performance_score": 50.0,
        "validation_status": True,
    }
    config = stack.to_configuration()
    assert config["attributes"] == {"tier": "web"}
    assert config["components"]["network"]["vpc"]["address"] == "aws_vpc.shop"


def test_invalid_components_are_rejected() -> None:
    with pytest.raises(InvalidComponent):
        _stack().with_component("bucket", "arn:aws:s3:::bucket")
    with pytest.raises(SlotConflict):
        _stack().with_component("network", _ref("aws_vpc", "other"))


def test_bound_reference_rolls_back_a_failing_override() -> None:
    session = SynthesisSession()
    bucket_schema = SchemaCatalog.builtin().get("aws_s3_bucket")
    stack = _stack().bind(session)

    def archive(ref: ArchitectureReference) -> object:
        session.resource("aws_s3_bucket", f"{ref.name}_archive", bucket_schema, {})
        return "arn:aws:s3:::archive"

    with pytest.raises(InvalidComponent):
        stack.override("database", archive)  # type: ignore[arg-type]

    assert session.blocks == ()
    assert stack.session is session
    assert _stack().session is None
    assert stack.override("database", lambda ref: _ref("aws_db_instance", "b")).session is session
