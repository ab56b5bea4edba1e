"""
terraspec — resource references and output tokens.

File: src/terraspec/synthesis/references.py
Last updated: 2026-10-19

Purpose
- Build the read-only handle a caller keeps after declaring a resource or data source.

Functional requirements
- `outputs` holds exactly the declared output names, each mapped to an `OutputToken`.
- Reading an undeclared output raises `UnknownOutputReference` at access time.
- Construction is purely lexical: no lookups, no side effects.
- Output presets supply `id` plus provider/type specific outputs for schemas that
  do not list their outputs explicitly.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from terraspec.constants import (
    DATA_SOURCE_PREFIX,
    DEFAULT_OUTPUT,
    IDENTIFIER_PATTERN,
    TOKEN_SEPARATOR,
)
from terraspec.domain.errors import UnknownOutputReference
from terraspec.domain.values import OutputToken

if TYPE_CHECKING:
    from terraspec.schema.attributes import ValidatedAttributes

_IDENTIFIER: Final[re.Pattern[str]] = re.compile(IDENTIFIER_PATTERN)

PROVIDER_COMMON_OUTPUTS: Final[dict[str, tuple[str, ...]]] = {
    "aws_": ("id", "arn"),
    "cloudflare_": ("id",),
    "hcloud_": ("id",),
}

TYPE_OUTPUT_PRESETS: Final[dict[str, tuple[str, ...]]] = {
    "aws_vpc": ("cidr_block", "default_security_group_id", "main_route_table_id"),
    "aws_subnet": ("availability_zone", "cidr_block", "vpc_id"),
    "aws_security_group": ("name", "vpc_id"),
    "aws_s3_bucket": (
        "bucket",
        "bucket_domain_name",
        "bucket_regional_domain_name",
        "region",
    ),
    "aws_lb": ("dns_name", "zone_id"),
    "aws_lb_target_group": ("arn_suffix", "name"),
    "aws_acm_certificate": ("domain_name", "domain_validation_options"),
    "aws_launch_template": ("latest_version",),
    "aws_autoscaling_group": ("name",),
    "aws_db_instance": ("address", "endpoint", "port"),
    "aws_elasticache_cluster": ("cache_nodes", "configuration_endpoint"),
    "aws_cloudwatch_metric_alarm": ("alarm_name",),
    "aws_ami": ("image_id", "name"),
}


def output_preset(resource_type: str) -> tuple[str, ...]:
    """Default output names for `resource_type`: `id`, provider outputs, type outputs."""
    names: list[str] = [DEFAULT_OUTPUT]
    for prefix, common in PROVIDER_COMMON_OUTPUTS.items():
        if resource_type.startswith(prefix):
            names.extend(common)
    names.extend(TYPE_OUTPUT_PRESETS.get(resource_type, ()))
    return _dedupe(names)


def _dedupe(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


def validate_identifier(value: str, *, what: str) -> str:
    if not isinstance(value, str) or _IDENTIFIER.match(value) is None:
        raise ValueError(f"invalid {what} {value!r}; expected {IDENTIFIER_PATTERN}")
    return value


class OutputMap(Mapping[str, OutputToken]):
    """Declared outputs; unknown keys raise `UnknownOutputReference`."""

    __slots__ = ("_address", "_tokens")

    def __init__(self, address: str, tokens: Mapping[str, OutputToken]) -> None:
        self._address = address
        self._tokens = MappingProxyType(dict(tokens))

    def __getitem__(self, key: str) -> OutputToken:
        try:
            return self._tokens[key]
        except KeyError:
            raise UnknownOutputReference(self._address, key, self._tokens) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __repr__(self) -> str:
        return f"OutputMap({self._address!r}, {list(self._tokens)!r})"


@dataclass(frozen=True, slots=True, eq=False)
class ResourceReference:
    resource_type: str
    name: str
    attributes: ValidatedAttributes
    outputs: OutputMap = field(repr=False)
    data_source: bool = False

    @property
    def address(self) -> str:
        base = f"{self.resource_type}{TOKEN_SEPARATOR}{self.name}"
        return f"{DATA_SOURCE_PREFIX}{TOKEN_SEPARATOR}{base}" if self.data_source else base

    def output(self, field_name: str) -> OutputToken:
        return self.outputs[field_name]

    def __getitem__(self, field_name: str) -> OutputToken:
        return self.outputs[field_name]

    @property
    def id(self) -> OutputToken:
        return self.outputs[DEFAULT_OUTPUT]

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "type": self.resource_type,
            "name": self.name,
            "data_source": self.data_source,
            "outputs": {key: token.interpolation() for key, token in self.outputs.items()},
        }


def make_reference(
    resource_type: str,
    name: str,
    attributes: ValidatedAttributes,
    declared_outputs: Iterable[str],
    *,
    data_source: bool = False,
) -> ResourceReference:
    validate_identifier(resource_type, what="resource type")
    validate_identifier(name, what="resource name")
    tokens = {
        output: OutputToken(
            resource_type=resource_type,
            resource_name=name,
            field=validate_identifier(output, what="output name"),
            data_source=data_source,
        )
        for output in _dedupe(declared_outputs)
    }
    address = OutputToken(resource_type, name, DEFAULT_OUTPUT, data_source).resource_address
    return ResourceReference(
        resource_type=resource_type,
        name=name,
        attributes=attributes,
        outputs=OutputMap(address, tokens),
        data_source=data_source,
    )


__all__ = [
    "PROVIDER_COMMON_OUTPUTS",
    "TYPE_OUTPUT_PRESETS",
    "OutputMap",
    "ResourceReference",
    "make_reference",
    "output_preset",
    "validate_identifier",
]
