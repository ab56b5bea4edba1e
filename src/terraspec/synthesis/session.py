"""
terraspec — synthesis session.

File: src/terraspec/synthesis/session.py
Last updated: 2026-10-19

Purpose
- Explicit context threaded through every construction call: owns the name registry and
  the blocks emitted to the render boundary.

Functional requirements
- `resource` / `data_source` run defaults -> validate -> synthesize -> reference.
- Addresses (`type.name`, `data.type.name`) are registered insert-or-fail.
- `transaction()` rolls back every block and name registered inside it on failure; the
  architecture composer uses this for all-or-nothing composition.

Non-functional requirements
- No module-level session; independent sessions never interact.
- Single-threaded; a session must not be shared across threads.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from terraspec.architecture.composer import ArchitectureComposer, Tier
from terraspec.constants import DEFAULT_ENVIRONMENT, ENVIRONMENT_TIERS
from terraspec.domain.errors import DuplicateResourceName, UnknownEnvironmentTier
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.schema.fields import AttributeSchema, SchemaKind
from terraspec.schema.validator import validate
from terraspec.synthesis.blocks import ConfigNode, synthesize
from terraspec.synthesis.environment import resolve_defaults, resolve_tier
from terraspec.synthesis.references import ResourceReference, make_reference, validate_identifier

if TYPE_CHECKING:
    from terraspec.architecture.reference import ArchitectureReference, OutputsBuilder


@dataclass(frozen=True, slots=True)
class SynthesizedBlock:
    """One addressable unit handed to the renderer."""

    address: str
    resource_type: str
    name: str
    node: ConfigNode
    data_source: bool = False


class SynthesisSession:
    """Registry and render boundary for one independent build."""

    def __init__(
        self,
        *,
        environment: str | None = DEFAULT_ENVIRONMENT,
        strict: bool | None = None,
        logger: Any | None = None,
    ) -> None:
        if environment is not None and environment not in ENVIRONMENT_TIERS:
            raise UnknownEnvironmentTier(environment, ENVIRONMENT_TIERS)
        self.environment = environment
        self.strict = strict
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._addresses: set[str] = set()
        self._blocks: list[SynthesizedBlock] = []
        self._references: dict[str, ResourceReference] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, address: str) -> None:
        """Insert `address` or raise `DuplicateResourceName`."""
        if address in self._addresses:
            raise DuplicateResourceName(address)
        self._addresses.add(address)

    def is_registered(self, address: str) -> bool:
        return address in self._addresses

    @property
    def blocks(self) -> tuple[SynthesizedBlock, ...]:
        return tuple(self._blocks)

    @property
    def references(self) -> Mapping[str, ResourceReference]:
        return dict(self._references)

    def reference(self, address: str) -> ResourceReference:
        try:
            return self._references[address]
        except KeyError:
            raise KeyError(f"{address} has not been declared in this session") from None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Discard blocks and names registered inside the block if it raises."""
        addresses = set(self._addresses)
        block_count = len(self._blocks)
        references = dict(self._references)
        try:
            yield
        except BaseException:
            discarded = [block.address for block in self._blocks[block_count:]]
            self._addresses = addresses
            del self._blocks[block_count:]
            self._references = references
            self._logger.info("session_rolled_back", discarded=discarded)
            raise

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def resource(
        self,
        resource_type: str,
        name: str,
        schema: AttributeSchema,
        raw: Mapping[str, object] | None = None,
    ) -> ResourceReference:
        return self._declare(resource_type, name, schema, raw, data_source=False)

    def data_source(
        self,
        resource_type: str,
        name: str,
        schema: AttributeSchema,
        raw: Mapping[str, object] | None = None,
    ) -> ResourceReference:
        return self._declare(resource_type, name, schema, raw, data_source=True)

    def architecture(
        self,
        architecture_type: str,
        name: str,
        schema: AttributeSchema,
        tiers: Sequence[Tier],
        raw: Mapping[str, object] | None = None,
        *,
        outputs: OutputsBuilder | None = None,
    ) -> ArchitectureReference:
        composer = ArchitectureComposer(self, logger=self._logger)
        return composer.compose(architecture_type, name, schema, tiers, raw, outputs=outputs)

    def _declare(
        self,
        resource_type: str,
        name: str,
        schema: AttributeSchema,
        raw: Mapping[str, object] | None,
        *,
        data_source: bool,
    ) -> ResourceReference:
        validate_identifier(resource_type, what="resource type")
        validate_identifier(name, what="resource name")
        if schema.kind not in (SchemaKind.RESOURCE, SchemaKind.DATA):
            raise ValueError(
                f"schema {schema.name!r} is a {schema.kind} schema; expected resource or data"
            )
        address = f"data.{resource_type}.{name}" if data_source else f"{resource_type}.{name}"
        if address in self._addresses:
            raise DuplicateResourceName(address)

        attributes = self.validate_attributes(schema, raw, address=address)
        node = synthesize(attributes, label=address)
        reference = make_reference(
            resource_type, name, attributes, schema.outputs, data_source=data_source
        )
        self.register(address)
        self._blocks.append(
            SynthesizedBlock(
                address=address,
                resource_type=resource_type,
                name=name,
                node=node,
                data_source=data_source,
            )
        )
        self._references[address] = reference
        self._logger.info(
            "resource_synthesized",
            address=address,
            schema=schema.name,
            fields=len(attributes.provided()),
            outputs=list(schema.outputs),
        )
        return reference

    def validate_attributes(
        self,
        schema: AttributeSchema,
        raw: Mapping[str, object] | None,
        *,
        address: str,
    ) -> ValidatedAttributes:
        """Defaults then validation, with failures logged before they propagate."""
        tier = resolve_tier(raw, self.environment)
        merged = resolve_defaults(tier, raw, schema.environment_defaults)
        result = validate(schema, merged, strict=self.strict)
        if result.ignored:
            self._logger.warning(
                "schema_unknown_fields_ignored", address=address, fields=list(result.ignored)
            )
        if result.attributes is None:
            invariant = result.invariant_violation
            self._logger.info(
                "schema_validation_failed",
                address=address,
                schema=schema.name,
                violations=[item.render() for item in result.violations],
                invariant=invariant.rule if invariant is not None else None,
            )
        return result.unwrap()


__all__ = ["SynthesisSession", "SynthesizedBlock"]
