"""
terraspec — cross-field invariants.

File: src/terraspec/schema/invariants.py
Last updated: 2026-10-19

Purpose
- Declarative multi-field rules evaluated by the validator after every leaf field passed.

Functional requirements
- Invariants read fields through dotted paths, so one rule can span nested objects.
- Fields holding an `OutputToken` have no value yet; rules treat them as satisfied.
- Factories are addressable by rule name so YAML catalogs can declare them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from terraspec.domain.errors import CrossFieldInvariantViolation
from terraspec.domain.values import NOT_PROVIDED, OutputToken

if TYPE_CHECKING:
    from terraspec.schema.attributes import ValidatedAttributes

InvariantCheck = Callable[["ValidatedAttributes"], bool]


@dataclass(frozen=True, slots=True)
class CrossFieldInvariant:
    """A named predicate over a fully defaulted attribute set."""

    name: str
    check: InvariantCheck
    fields: tuple[str, ...] = ()
    message: str = ""

    def holds(self, attributes: ValidatedAttributes) -> bool:
        return bool(self.check(attributes))

    def violation(
        self, attributes: ValidatedAttributes, *, scope: str = ""
    ) -> CrossFieldInvariantViolation:
        values = {field: attributes.get_path(field) for field in self.fields}
        return CrossFieldInvariantViolation(
            self.name, values, scope=scope, message=self.message or None
        )


def _known(value: object) -> bool:
    return value is not NOT_PROVIDED and value is not None and not isinstance(value, OutputToken)


def _is_set(value: object) -> bool:
    return _known(value) and value is not False


def invariant(
    name: str,
    check: InvariantCheck,
    *,
    fields: Sequence[str] = (),
    message: str = "",
) -> CrossFieldInvariant:
    return CrossFieldInvariant(name=name, check=check, fields=tuple(fields), message=message)


def ordered(name: str, *fields: str, message: str = "") -> CrossFieldInvariant:
    """Known values of `fields` must be non-decreasing, e.g. min <= desired <= max."""
    if len(fields) < 2:
        raise ValueError("ordered invariant needs at least two fields")

    def check(attributes: ValidatedAttributes) -> bool:
        values = [attributes.get_path(field) for field in fields]
        known = [value for value in values if _known(value)]
        return all(left <= right for left, right in zip(known, known[1:], strict=False))

    return CrossFieldInvariant(
        name=name,
        check=check,
        fields=tuple(fields),
        message=message or f"expected {' <= '.join(fields)}",
    )


def minimum_when(
    name: str,
    field: str,
    minimum: float,
    *,
    when: Mapping[str, object],
    message: str = "",
) -> CrossFieldInvariant:
    """`field` must be >= `minimum` whenever every `when` field equals its value."""
    conditions = dict(when)

    def check(attributes: ValidatedAttributes) -> bool:
        for key, expected in conditions.items():
            if attributes.get_path(key) != expected:
                return True
        value = attributes.get_path(field)
        if isinstance(value, OutputToken):
            return True
        return _known(value) and value >= minimum

    condition_text = ", ".join(f"{key} = {value!r}" for key, value in conditions.items())
    return CrossFieldInvariant(
        name=name,
        check=check,
        fields=(field, *conditions),
        message=message or f"{field} must be >= {minimum} when {condition_text}",
    )


def mutually_exclusive(name: str, *fields: str, message: str = "") -> CrossFieldInvariant:
    def check(attributes: ValidatedAttributes) -> bool:
        return sum(1 for field in fields if _is_set(attributes.get_path(field))) <= 1

    return CrossFieldInvariant(
        name=name,
        check=check,
        fields=tuple(fields),
        message=message or f"at most one of {', '.join(fields)} may be set",
    )


def requires(name: str, field: str, *dependents: str, message: str = "") -> CrossFieldInvariant:
    """When `field` is set, every dependent must be provided."""

    def check(attributes: ValidatedAttributes) -> bool:
        if not _is_set(attributes.get_path(field)):
            return True
        return all(attributes.get_path(dep) is not NOT_PROVIDED for dep in dependents)

    return CrossFieldInvariant(
        name=name,
        check=check,
        fields=(field, *dependents),
        message=message or f"{field} requires {', '.join(dependents)}",
    )


def prefixed_by(
    name: str, list_field: str, prefix_field: str, *, message: str = ""
) -> CrossFieldInvariant:
    """Every string in `list_field` must start with the value of `prefix_field`."""

    def check(attributes: ValidatedAttributes) -> bool:
        prefix = attributes.get_path(prefix_field)
        items = attributes.get_path(list_field)
        if not isinstance(prefix, str) or not isinstance(items, (list, tuple)):
            return True
        return all(item.startswith(prefix) for item in items if isinstance(item, str))

    return CrossFieldInvariant(
        name=name,
        check=check,
        fields=(list_field, prefix_field),
        message=message or f"every {list_field} entry must start with {prefix_field}",
    )


# Builders for the declarative `{rule: ...}` form used by YAML catalogs.
def _from_ordered(name: str, spec: Mapping[str, object]) -> CrossFieldInvariant:
    return ordered(name, *_str_list(spec, "fields"), message=_str(spec, "message"))


def _from_minimum_when(name: str, spec: Mapping[str, object]) -> CrossFieldInvariant:
    minimum = spec.get("minimum")
    if isinstance(minimum, bool) or not isinstance(minimum, (int, float)):
        raise ValueError("minimum must be a number")
    when = spec.get("when")
    if not isinstance(when, Mapping) or not when:
        raise ValueError("when must be a non-empty mapping")
    return minimum_when(
        name,
        _required_str(spec, "field"),
        minimum,
        when={str(key): value for key, value in when.items()},
        message=_str(spec, "message"),
    )


def _from_mutually_exclusive(name: str, spec: Mapping[str, object]) -> CrossFieldInvariant:
    return mutually_exclusive(name, *_str_list(spec, "fields"), message=_str(spec, "message"))


def _from_requires(name: str, spec: Mapping[str, object]) -> CrossFieldInvariant:
    return requires(
        name,
        _required_str(spec, "field"),
        *_str_list(spec, "fields"),
        message=_str(spec, "message"),
    )


def _from_prefixed_by(name: str, spec: Mapping[str, object]) -> CrossFieldInvariant:
    return prefixed_by(
        name,
        _required_str(spec, "field"),
        _required_str(spec, "prefix"),
        message=_str(spec, "message"),
    )


RULE_BUILDERS: Final[dict[str, Callable[[str, Mapping[str, object]], CrossFieldInvariant]]] = {
    "minimum_when": _from_minimum_when,
    "mutually_exclusive": _from_mutually_exclusive,
    "ordered": _from_ordered,
    "prefixed_by": _from_prefixed_by,
    "requires": _from_requires,
}


def invariant_from_mapping(spec: Mapping[str, object]) -> CrossFieldInvariant:
    """Build an invariant from `{rule: ..., name: ..., ...}`; raises `ValueError`."""
    rule = spec.get("rule")
    if not isinstance(rule, str) or rule not in RULE_BUILDERS:
        expected = ", ".join(sorted(RULE_BUILDERS))
        raise ValueError(f"invalid rule {rule!r}; expected one of: {expected}")
    raw_name = spec.get("name")
    name = raw_name if isinstance(raw_name, str) and raw_name else rule
    return RULE_BUILDERS[rule](name, spec)


def _str(spec: Mapping[str, object], key: str) -> str:
    value = spec.get(key, "")
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _required_str(spec: Mapping[str, object], key: str) -> str:
    value = spec.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _str_list(spec: Mapping[str, object], key: str) -> list[str]:
    value = spec.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
        raise ValueError(f"{key} must be a list of non-empty strings")
    return list(value)


__all__ = [
    "RULE_BUILDERS",
    "CrossFieldInvariant",
    "InvariantCheck",
    "invariant",
    "invariant_from_mapping",
    "minimum_when",
    "mutually_exclusive",
    "ordered",
    "prefixed_by",
    "requires",
]
