"""
terraspec — engine error taxonomy.

File: src/terraspec/domain/errors.py
Last updated: 2026-10-19

Purpose
- One exception hierarchy for every input/programming error the engine can raise.

Propagation
- Leaf-level field problems are batched into a single `SchemaViolation`.
- Invariant, reference, registry and composition errors abort the current construction.
- Nothing here is transient; callers fix the input and re-invoke.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType


class TerraspecError(Exception):
    """Base class for all engine errors."""


@dataclass(frozen=True, slots=True)
class FieldViolation:
    """A single field failing its type/required/enum/constraint check."""

    path: str
    constraint: str
    actual: object
    message: str

    def render(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"


class SchemaViolation(TerraspecError, ValueError):
    """Batched leaf-level failures for one validation call."""

    def __init__(self, schema_name: str, violations: Iterable[FieldViolation]) -> None:
        self.schema_name = schema_name
        self.violations: tuple[FieldViolation, ...] = tuple(violations)
        lines = "\n".join(f"- {item.render()}" for item in self.violations)
        super().__init__(f"{schema_name}: invalid attributes\n{lines}")

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(item.path for item in self.violations)

    def for_path(self, path: str) -> tuple[FieldViolation, ...]:
        return tuple(item for item in self.violations if item.path == path)


class SchemaDefinitionError(TerraspecError, ValueError):
    """A schema definition itself is malformed."""

    def __init__(self, schema_name: str, issues: Iterable[str]) -> None:
        self.schema_name = schema_name
        self.issues: tuple[str, ...] = tuple(issues)
        lines = "\n".join(f"- {issue}" for issue in self.issues)
        super().__init__(f"invalid schema definition {schema_name!r}:\n{lines}")


class CrossFieldInvariantViolation(TerraspecError, ValueError):
    """A named multi-field rule failed after every leaf field validated."""

    def __init__(
        self,
        rule: str,
        values: Mapping[str, object],
        *,
        scope: str = "",
        message: str | None = None,
    ) -> None:
        self.rule = rule
        self.scope = scope
        self.values: Mapping[str, object] = MappingProxyType(dict(values))
        detail = message or "invariant failed"
        rendered = ", ".join(f"{key}={value!r}" for key, value in self.values.items())
        location = f" at {scope}" if scope else ""
        super().__init__(f"invariant {rule!r}{location} violated: {detail} ({rendered})")


class UnknownOutputReference(TerraspecError, LookupError):
    """An output field was read that the schema never declared."""

    def __init__(self, address: str, field: str, declared: Iterable[str]) -> None:
        self.address = address
        self.field = field
        self.declared: tuple[str, ...] = tuple(declared)
        known = ", ".join(self.declared) if self.declared else "<none>"
        super().__init__(f"{address} has no output {field!r}; declared outputs: {known}")


class DuplicateResourceName(TerraspecError, ValueError):
    """`(type, name)` was already registered in this session."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"{address} is already declared in this session")


class UnsupportedNestedType(TerraspecError, TypeError):
    """The synthesizer met a value kind outside scalar/list/map."""

    def __init__(self, path: str, value_type: str) -> None:
        self.path = path
        self.value_type = value_type
        super().__init__(f"{path or '<root>'}: cannot synthesize value of type {value_type}")


class UnknownEnvironmentTier(TerraspecError, ValueError):
    def __init__(self, tier: str, known: Iterable[str]) -> None:
        self.tier = tier
        self.known: tuple[str, ...] = tuple(known)
        super().__init__(
            f"unknown environment tier {tier!r}; expected one of: {', '.join(self.known)}"
        )


class UnknownSlot(TerraspecError, LookupError):
    """An architecture slot was read or overridden before it exists."""

    def __init__(self, address: str, slot: str, available: Iterable[str]) -> None:
        self.address = address
        self.slot = slot
        self.available: tuple[str, ...] = tuple(available)
        known = ", ".join(self.available) if self.available else "<none>"
        super().__init__(f"{address} has no slot {slot!r}; available slots: {known}")


class SlotConflict(TerraspecError, ValueError):
    def __init__(self, address: str, slots: Iterable[str]) -> None:
        self.address = address
        self.slots: tuple[str, ...] = tuple(slots)
        super().__init__(f"{address} already has slot(s): {', '.join(self.slots)}")


class InvalidComponent(TerraspecError, TypeError):
    def __init__(self, slot: str, value_type: str) -> None:
        self.slot = slot
        self.value_type = value_type
        super().__init__(
            f"slot {slot!r}: expected a resource reference, architecture reference or "
            f"mapping of them, got {value_type}"
        )


class TierBuildError(TerraspecError, RuntimeError):
    """A tier builder failed; the whole composition was discarded."""

    def __init__(self, architecture: str, slot: str, cause: BaseException) -> None:
        self.architecture = architecture
        self.slot = slot
        self.cause = cause
        super().__init__(
            f"{architecture}: tier {slot!r} failed: {type(cause).__name__}: {cause}"
        )


__all__ = [
    "CrossFieldInvariantViolation",
    "DuplicateResourceName",
    "FieldViolation",
    "InvalidComponent",
    "SchemaDefinitionError",
    "SchemaViolation",
    "SlotConflict",
    "TerraspecError",
    "TierBuildError",
    "UnknownEnvironmentTier",
    "UnknownOutputReference",
    "UnknownSlot",
    "UnsupportedNestedType",
]
