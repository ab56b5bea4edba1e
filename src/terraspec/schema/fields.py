"""
terraspec — attribute schema model.

File: src/terraspec/schema/fields.py
Last updated: 2026-10-19

Purpose
- Immutable field descriptors and the `AttributeSchema` tree they form.

What should be included in this file
- `ValueKind`: the finite set of value kinds the validator and synthesizer switch over.
- `FieldSpec`: per-field kind, required flag, default, enum and scalar/length constraints.
- `AttributeSchema`: ordered fields, cross-field invariants, declared outputs, tier defaults.

Non-functional requirements
- Schemas are defined once per type and shared by every instance; nothing here mutates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING, Final

from terraspec.domain.values import NOT_PROVIDED

if TYPE_CHECKING:
    from terraspec.schema.invariants import CrossFieldInvariant
    from terraspec.synthesis.environment import EnvironmentDefaults


class ValueKind(StrEnum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAP = "map"
    OBJECT = "object"


SCALAR_KINDS: Final[frozenset[ValueKind]] = frozenset(
    {ValueKind.STRING, ValueKind.INTEGER, ValueKind.NUMBER, ValueKind.BOOLEAN}
)


class SchemaKind(StrEnum):
    RESOURCE = "resource"
    DATA = "data"
    ARCHITECTURE = "architecture"
    OBJECT = "object"


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Descriptor for one attribute.

    `items` describes list elements, `values` describes free-form map values, and
    `schema` is the nested schema of an `object` field. `default` is stored frozen.
    """

    name: str
    kind: ValueKind
    required: bool = False
    default: object = NOT_PROVIDED
    enum: tuple[object, ...] | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    items: FieldSpec | None = None
    values: FieldSpec | None = None
    schema: AttributeSchema | None = None
    description: str = ""

    @property
    def has_default(self) -> bool:
        return self.default is not NOT_PROVIDED

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    def matches_pattern(self, value: str) -> bool:
        if self.pattern is None:
            return True
        return compile_pattern(self.pattern).search(value) is not None


@dataclass(frozen=True, slots=True)
class AttributeSchema:
    name: str
    fields: tuple[FieldSpec, ...]
    invariants: tuple[CrossFieldInvariant, ...] = ()
    outputs: tuple[str, ...] = ()
    kind: SchemaKind = SchemaKind.RESOURCE
    strict: bool = True
    environment_defaults: EnvironmentDefaults | None = None
    description: str = ""
    _index: dict[str, FieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "invariants", tuple(self.invariants))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "kind", SchemaKind(self.kind))
        object.__setattr__(self, "_index", {spec.name: spec for spec in self.fields})

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def get_field(self, name: str) -> FieldSpec:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"{self.name} declares no field {name!r}") from None

    def has_field(self, name: str) -> bool:
        return name in self._index

    def with_invariants(self, *invariants: CrossFieldInvariant) -> AttributeSchema:
        return replace(self, invariants=(*self.invariants, *invariants))

    def with_outputs(self, *outputs: str) -> AttributeSchema:
        merged = list(self.outputs)
        merged.extend(output for output in outputs if output not in merged)
        return replace(self, outputs=tuple(merged))

    def with_environment_defaults(self, defaults: EnvironmentDefaults | None) -> AttributeSchema:
        return replace(self, environment_defaults=defaults)


__all__ = [
    "SCALAR_KINDS",
    "AttributeSchema",
    "FieldSpec",
    "SchemaKind",
    "ValueKind",
    "compile_pattern",
]
