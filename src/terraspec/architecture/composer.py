"""
terraspec — architecture composer.

File: src/terraspec/architecture/composer.py
Last updated: 2026-10-19

Purpose
- Assemble ordered tiers of resource declarations into one `ArchitectureReference`.

Functional requirements
- Defaults -> validation of the architecture attributes, then each tier in order.
- A tier sees only the slots placed by earlier tiers; reading a later slot raises `UnknownSlot`.
- Disabled tiers and builders returning `None` leave their slot absent.
- The reference is registered under its own address and bound to the session, so later
  derivations are transactional too.
- All-or-nothing: a failing tier rolls back every declaration made during the composition
  and raises `TierBuildError` chained to the original error.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from terraspec.architecture.reference import (
    ArchitectureReference,
    Component,
    OutputsBuilder,
    architecture_address,
)
from terraspec.domain.errors import TierBuildError
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.schema.fields import AttributeSchema, SchemaKind
from terraspec.synthesis.references import validate_identifier

if TYPE_CHECKING:
    from terraspec.synthesis.session import SynthesisSession

TierBuilder = Callable[[ArchitectureReference, ValidatedAttributes], "Component | None"]
TierToggle = Callable[[ValidatedAttributes], bool]


@dataclass(frozen=True, slots=True)
class Tier:
    """One ordered construction step.

    `enabled` is either a boolean attribute path (e.g. `"enable_caching"`) or a predicate.
    """

    slot: str
    build: TierBuilder
    enabled: str | TierToggle | None = None

    def __post_init__(self) -> None:
        validate_identifier(self.slot, what="slot name")

    def is_enabled(self, attributes: ValidatedAttributes) -> bool:
        if self.enabled is None:
            return True
        if isinstance(self.enabled, str):
            return attributes.get_path(self.enabled, False) is True
        return bool(self.enabled(attributes))


def tier(slot: str, *, enabled: str | TierToggle | None = None) -> Callable[[TierBuilder], Tier]:
    """Decorator form: `@tier("network")` turns a builder function into a `Tier`."""

    def wrap(build: TierBuilder) -> Tier:
        return Tier(slot=slot, build=build, enabled=enabled)

    return wrap


class ArchitectureComposer:
    def __init__(self, session: SynthesisSession, *, logger: Any | None = None) -> None:
        self._session = session
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def compose(
        self,
        architecture_type: str,
        name: str,
        schema: AttributeSchema,
        tiers: Sequence[Tier],
        raw: Mapping[str, object] | None = None,
        *,
        outputs: OutputsBuilder | None = None,
    ) -> ArchitectureReference:
        validate_identifier(architecture_type, what="architecture type")
        validate_identifier(name, what="architecture name")
        if schema.kind is not SchemaKind.ARCHITECTURE:
            raise ValueError(
                f"schema {schema.name!r} is a {schema.kind} schema; expected architecture"
            )
        slots = [item.slot for item in tiers]
        duplicates = sorted({slot for slot in slots if slots.count(slot) > 1})
        if duplicates:
            raise ValueError(f"duplicate tier slots: {', '.join(duplicates)}")

        address = architecture_address(architecture_type, name)
        with self._session.transaction():
            self._session.register(address)
            attributes = self._session.validate_attributes(schema, raw, address=address)
            reference = ArchitectureReference(
                architecture_type=architecture_type,
                name=name,
                attributes=attributes,
                session=self._session,
            )
            for step in tiers:
                reference = self._run_tier(reference, step, attributes)
            reference = reference.with_outputs(outputs)

        self._logger.info(
            "architecture_composed",
            architecture=reference.address,
            slots=list(reference.slots),
            resources=len(reference.all_resources()),
        )
        return reference

    def _run_tier(
        self,
        reference: ArchitectureReference,
        step: Tier,
        attributes: ValidatedAttributes,
    ) -> ArchitectureReference:
        if not step.is_enabled(attributes):
            self._logger.info(
                "architecture_tier_skipped", architecture=reference.address, slot=step.slot
            )
            return reference
        try:
            result = step.build(reference, attributes)
            if result is None:
                self._logger.info(
                    "architecture_tier_skipped", architecture=reference.address, slot=step.slot
                )
                return reference
            extended = reference.with_component(step.slot, result)
        except Exception as exc:
            self._logger.info(
                "architecture_composition_failed",
                architecture=reference.address,
                slot=step.slot,
                error=type(exc).__name__,
            )
            raise TierBuildError(reference.address, step.slot, exc) from exc
        self._logger.info(
            "architecture_tier_built", architecture=reference.address, slot=step.slot
        )
        return extended


__all__ = ["ArchitectureComposer", "Tier", "TierBuilder", "TierToggle", "tier"]
