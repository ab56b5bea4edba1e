"""
terraspec — architecture references.

File: src/terraspec/architecture/reference.py
Last updated: 2026-10-19

Purpose
- Immutable named aggregate of component references built by the composer.

Functional requirements
- Addressed as `architecture.<type>.<name>`, the same key the composer registers.
- `override`, `extend_with` and `compose_with` return new references; untouched slots are
  the identical objects (structural sharing).
- A reference bound to a session derives inside `session.transaction()`, so a failing
  builder leaves no declarations behind.
- Slot keys are stable strings chosen by the composer.
- Outputs are recomputed by the stored outputs builder after every derivation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

from terraspec.architecture import assessment
from terraspec.constants import ARCHITECTURE_PREFIX, TOKEN_SEPARATOR
from terraspec.domain.errors import InvalidComponent, SlotConflict, UnknownSlot
from terraspec.domain.values import NOT_PROVIDED, OutputToken
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.synthesis.references import ResourceReference, validate_identifier

if TYPE_CHECKING:
    from terraspec.synthesis.session import SynthesisSession

Component: TypeAlias = "ResourceReference | ArchitectureReference | Mapping[str, Component]"
OutputsBuilder: TypeAlias = "Callable[[ArchitectureReference], Mapping[str, object]]"
SlotBuilder: TypeAlias = "Callable[[ArchitectureReference], Component]"
SlotsBuilder: TypeAlias = "Callable[[ArchitectureReference], Mapping[str, Component]]"


def architecture_address(architecture_type: str, name: str) -> str:
    return TOKEN_SEPARATOR.join((ARCHITECTURE_PREFIX, architecture_type, name))


def check_component(slot: str, value: object) -> Component:
    """Validate a tier result and freeze nested slot maps."""
    if isinstance(value, (ResourceReference, ArchitectureReference)):
        return value
    if isinstance(value, Mapping):
        frozen: dict[str, Component] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise InvalidComponent(f"{slot}.{key!r}", type(key).__name__)
            frozen[key] = check_component(f"{slot}.{key}", item)
        return MappingProxyType(frozen)
    raise InvalidComponent(slot, type(value).__name__)


@dataclass(frozen=True, slots=True, eq=False)
class ArchitectureReference:
    architecture_type: str
    name: str
    attributes: ValidatedAttributes
    components: Mapping[str, Component] = field(default_factory=dict)
    outputs: Mapping[str, object] = field(default_factory=dict)
    outputs_builder: OutputsBuilder | None = field(default=None, repr=False)
    session: SynthesisSession | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "components", MappingProxyType(dict(self.components)))
        object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))

    @property
    def address(self) -> str:
        return architecture_address(self.architecture_type, self.name)

    @property
    def slots(self) -> tuple[str, ...]:
        return tuple(self.components)

    def __contains__(self, slot: object) -> bool:
        return slot in self.components

    def __getitem__(self, slot: str) -> Component:
        return self.component(slot)

    def component(self, slot: str) -> Component:
        try:
            return self.components[slot]
        except KeyError:
            raise UnknownSlot(self.address, slot, self.components) from None

    def output(self, name: str) -> object:
        try:
            return self.outputs[name]
        except KeyError:
            raise UnknownSlot(self.address, name, self.outputs) from None

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_component(self, slot: str, value: object) -> ArchitectureReference:
        """New reference with one more slot; outputs are not recomputed."""
        validate_identifier(slot, what="slot name")
        if slot in self.components:
            raise SlotConflict(self.address, (slot,))
        components = dict(self.components)
        components[slot] = check_component(slot, value)
        return self._derive(components, recompute=False)

    def override(self, slot: str, builder: SlotBuilder) -> ArchitectureReference:
        """Replace `slot` with `builder(self)`; every other slot is shared as-is."""
        if slot not in self.components:
            raise UnknownSlot(self.address, slot, self.components)
        with self._transaction():
            components = dict(self.components)
            components[slot] = check_component(slot, builder(self))
            return self._derive(components)

    def extend_with(self, slots: Mapping[str, object]) -> ArchitectureReference:
        collisions = sorted(slot for slot in slots if slot in self.components)
        if collisions:
            raise SlotConflict(self.address, collisions)
        with self._transaction():
            components = dict(self.components)
            for slot, value in slots.items():
                validate_identifier(slot, what="slot name")
                components[slot] = check_component(slot, value)
            return self._derive(components)

    def compose_with(self, builder: SlotsBuilder) -> ArchitectureReference:
        """Merge the slot map returned by `builder(self)` into a new reference."""
        with self._transaction():
            produced = builder(self)
            if not isinstance(produced, Mapping):
                raise InvalidComponent("<compose_with>", type(produced).__name__)
            return self.extend_with(produced)

    def with_outputs(self, builder: OutputsBuilder | None) -> ArchitectureReference:
        derived = replace(self, outputs={}, outputs_builder=builder)
        return derived._derive(dict(self.components))

    def bind(self, session: SynthesisSession | None) -> ArchitectureReference:
        """Same reference whose derivations run inside `session.transaction()`."""
        return replace(self, session=session)

    def _transaction(self) -> AbstractContextManager[None]:
        if self.session is None:
            return nullcontext()
        return self.session.transaction()

    def _derive(
        self, components: Mapping[str, Component], *, recompute: bool = True
    ) -> ArchitectureReference:
        draft = replace(self, components=components)
        if not recompute or self.outputs_builder is None:
            return draft
        return replace(draft, outputs=self.outputs_builder(draft))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def all_resources(self) -> tuple[ResourceReference, ...]:
        """Every resource reference reachable from the slots, depth-first in slot order."""
        return tuple(_iter_resources(self.components))

    def cost_breakdown(self) -> assessment.CostBreakdown:
        return assessment.cost_breakdown(
            {
                slot: tuple(_iter_resources({slot: value}))
                for slot, value in self.components.items()
            }
        )

    def estimated_monthly_cost(self) -> float:
        return self.cost_breakdown().total

    def security_compliance_score(self) -> float:
        return self._score(assessment.SECURITY_CHECKS)

    def high_availability_score(self) -> float:
        return self._score(assessment.AVAILABILITY_CHECKS)

    def performance_score(self) -> float:
        return self._score(assessment.PERFORMANCE_CHECKS)

    def deployment_issues(self) -> tuple[str, ...]:
        return assessment.deployment_issues(self.all_resources())

    def validate_deployment(self) -> bool:
        """True when every output token used inside the architecture resolves within it."""
        return not self.deployment_issues()

    def _score(self, checks: tuple[assessment.Check, ...]) -> float:
        environment = self.attributes.get_path("environment", None)
        return assessment.score(checks, self.all_resources(), environment)

    def summary(self) -> dict[str, Any]:
        return {
            "type": self.architecture_type,
            "name": self.name,
            "address": self.address,
            "slots": list(self.slots),
            "component_count": len(self.components),
            "resource_count": len(self.all_resources()),
            "estimated_monthly_cost": self.estimated_monthly_cost(),
            "security_compliance_score": self.security_compliance_score(),
            "high_availability_score": self.high_availability_score(),
            "performance_score": self.performance_score(),
            "validation_status": self.validate_deployment(),
        }

    def to_configuration(self) -> dict[str, Any]:
        return {
            "type": self.architecture_type,
            "name": self.name,
            "attributes": _plain(self.attributes.to_dict()),
            "components": {
                slot: _component_config(value) for slot, value in self.components.items()
            },
            "outputs": plain_outputs(self.outputs),
        }


def _iter_resources(components: Mapping[str, Component]) -> Iterator[ResourceReference]:
    for value in components.values():
        if isinstance(value, ResourceReference):
            yield value
        elif isinstance(value, ArchitectureReference):
            yield from _iter_resources(value.components)
        else:
            yield from _iter_resources(value)


def _component_config(value: Component) -> Any:
    if isinstance(value, ResourceReference):
        return value.to_dict()
    if isinstance(value, ArchitectureReference):
        return value.to_configuration()
    return {key: _component_config(item) for key, item in value.items()}


def _plain(value: object) -> Any:
    if isinstance(value, OutputToken):
        return value.interpolation()
    if isinstance(value, ResourceReference):
        return value.address
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items() if item is not NOT_PROVIDED}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def plain_outputs(outputs: Mapping[str, object]) -> dict[str, Any]:
    """Outputs as plain data: tokens become `${...}` strings."""
    return {key: _plain(value) for key, value in outputs.items()}


__all__ = [
    "ArchitectureReference",
    "Component",
    "OutputsBuilder",
    "SlotBuilder",
    "SlotsBuilder",
    "architecture_address",
    "check_component",
    "plain_outputs",
]
