"""Unit tests for the synthesis session registry and render boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from terraspec.domain.errors import (
    CrossFieldInvariantViolation,
    DuplicateResourceName,
    SchemaViolation,
    UnknownEnvironmentTier,
)
from terraspec.schema.catalog import SchemaCatalog
from terraspec.schema.definition import define_schema
from terraspec.synthesis.session import SynthesisSession

_CATALOG = SchemaCatalog.builtin()


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    def info(self, event: str, **fields: Any) -> None:
        self.events.append(("info", event, fields))

    def warning(self, event: str, **fields: Any) -> None:
        self.events.append(("warning", event, fields))

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


def test_resource_runs_defaults_validation_and_synthesis() -> None:
    logger = RecordingLogger()
    session = SynthesisSession(logger=logger)

    vpc = session.resource(
        "aws_vpc", "main", _CATALOG.get("aws_vpc"), {"cidr_block": "10.0.0.0/16"}
    )

    assert vpc.address == "aws_vpc.main"
    assert vpc.attributes.enable_dns_hostnames is True
    [block] = session.blocks
    assert block.address == "aws_vpc.main"
    assert block.node.assignments("cidr_block") == ("10.0.0.0/16",)
    assert session.reference("aws_vpc.main") is vpc
    assert logger.names() == ["resource_synthesized"]
    assert logger.events[0][2]["outputs"][:2] == ["id", "arn"]


def test_duplicate_names_fail_but_other_types_may_share_them() -> None:
    session = SynthesisSession(logger=RecordingLogger())
    schema = _CATALOG.get("aws_db_instance")
    raw = {"engine": "postgres", "instance_class": "db.t3.micro"}
    session.resource("aws_db_instance", "main", schema, raw)

    with pytest.raises(DuplicateResourceName, match="aws_db_instance.main"):
        session.resource("aws_db_instance", "main", schema, raw)

    session.resource("aws_vpc", "main", _CATALOG.get("aws_vpc"), {"cidr_block": "10.0.0.0/16"})
    session.data_source("aws_ami", "main", _CATALOG.get("aws_ami"), {"owners": ["amazon"]})
    assert [block.address for block in session.blocks] == [
        "aws_db_instance.main",
        "aws_vpc.main",
        "data.aws_ami.main",
    ]


def test_sessions_are_independent() -> None:
    schema = _CATALOG.get("aws_vpc")
    first = SynthesisSession(logger=RecordingLogger())
    second = SynthesisSession(logger=RecordingLogger())

    first.resource("aws_vpc", "main", schema, {"cidr_block": "10.0.0.0/16"})
    second.resource("aws_vpc", "main", schema, {"cidr_block": "10.1.0.0/16"})

    assert len(first.blocks) == len(second.blocks) == 1


def test_validation_failures_are_logged_and_register_nothing() -> None:
    logger = RecordingLogger()
    session = SynthesisSession(logger=logger)

    with pytest.raises(SchemaViolation):
        session.resource("aws_vpc", "main", _CATALOG.get("aws_vpc"), {"cidr_block": "nope"})

    assert not session.is_registered("aws_vpc.main")
    assert session.blocks == ()
    level, event, fields = logger.events[-1]
    assert (level, event) == ("info", "schema_validation_failed")
    assert fields["violations"][0].startswith("cidr_block: does not match pattern")


def test_invariant_failures_propagate() -> None:
    session = SynthesisSession(logger=RecordingLogger())

    with pytest.raises(CrossFieldInvariantViolation, match="capacity_bounds"):
        session.resource(
            "aws_autoscaling_group",
            "web",
            _CATALOG.get("aws_autoscaling_group"),
            {
                "min_size": 2,
                "max_size": 5,
                "desired_capacity": 9,
                "launch_template": {"id": "lt-1"},
            },
        )


def test_lenient_sessions_log_ignored_fields() -> None:
    logger = RecordingLogger()
    session = SynthesisSession(strict=False, logger=logger)

    vpc = session.resource(
        "aws_vpc", "main", _CATALOG.get("aws_vpc"), {"cidr_block": "10.0.0.0/16", "colour": "x"}
    )

    assert "colour" not in vpc.attributes
    assert ("warning", "schema_unknown_fields_ignored") in [
        (level, event) for level, event, _ in logger.events
    ]


def test_transaction_rolls_back_on_failure() -> None:
    logger = RecordingLogger()
    session = SynthesisSession(logger=logger)
    schema = _CATALOG.get("aws_vpc")
    session.resource("aws_vpc", "kept", schema, {"cidr_block": "10.0.0.0/16"})

    with pytest.raises(RuntimeError, match="boom"), session.transaction():
        session.resource("aws_vpc", "discarded", schema, {"cidr_block": "10.1.0.0/16"})
        raise RuntimeError("boom")

    assert [block.address for block in session.blocks] == ["aws_vpc.kept"]
    assert not session.is_registered("aws_vpc.discarded")
    assert "aws_vpc.discarded" not in session.references
    assert logger.events[-1][1:] == ("session_rolled_back", {"discarded": ["aws_vpc.discarded"]})


def test_environment_tier_defaults_apply_per_session() -> None:
    schema = define_schema(
        {
            "name": "aws_instance",
            "fields": {"instance_type": {"type": "string", "required": True}},
            "environment_defaults": {
                "development": {"instance_type": "t3.micro"},
                "production": {"instance_type": "m5.large"},
            },
        }
    )

    dev = SynthesisSession(environment="development", logger=RecordingLogger())
    prod = SynthesisSession(environment="production", logger=RecordingLogger())

    assert dev.resource("aws_instance", "web", schema).attributes.instance_type == "t3.micro"
    assert prod.resource("aws_instance", "web", schema).attributes.instance_type == "m5.large"
    overridden = prod.resource("aws_instance", "api", schema, {"instance_type": "c5.xlarge"})
    assert overridden.attributes.instance_type == "c5.xlarge"


def test_unknown_session_environment_is_rejected() -> None:
    with pytest.raises(UnknownEnvironmentTier):
        SynthesisSession(environment="qa")


def test_architecture_schemas_cannot_be_declared_as_resources() -> None:
    session = SynthesisSession(logger=RecordingLogger())

    with pytest.raises(ValueError, match="expected resource or data"):
        session.resource("web_application", "shop", _CATALOG.get("web_application"), {})


def test_unknown_reference_lookup() -> None:
    session = SynthesisSession(logger=RecordingLogger())

    with pytest.raises(KeyError, match="has not been declared"):
        session.reference("aws_vpc.main")
