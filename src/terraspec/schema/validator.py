"""
terraspec — schema validation.

File: src/terraspec/schema/validator.py
Last updated: 2026-10-19

Purpose
- Apply an `AttributeSchema` to a raw attribute map and produce `ValidatedAttributes`.

Functional requirements
- Leaf problems (required, kind, enum, bounds, length, pattern, unknown keys) are collected
  in one pass with dotted/indexed paths and reported together.
- Cross-field invariants run only once every leaf passed: nested scopes first, then the
  schema's own invariants in declaration order. The first failure stops validation.
- Output tokens stand in for values unknown until render and skip value constraints.

Non-functional requirements
- Pure and deterministic; never mutates its input.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from terraspec.constants import DEFAULT_OUTPUT
from terraspec.domain.errors import CrossFieldInvariantViolation, FieldViolation, SchemaViolation
from terraspec.domain.values import NOT_PROVIDED, OutputToken
from terraspec.schema.attributes import ValidatedAttributes
from terraspec.schema.fields import AttributeSchema, FieldSpec, ValueKind
from terraspec.synthesis.references import ResourceReference

_INVALID: Final = object()


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of one validation call.

    Exactly one of `attributes`, a non-empty `violations`, or `invariant_violation` is set.
    """

    schema_name: str
    attributes: ValidatedAttributes | None
    violations: tuple[FieldViolation, ...] = ()
    invariant_violation: CrossFieldInvariantViolation | None = None
    ignored: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.attributes is not None

    def error(self) -> SchemaViolation | CrossFieldInvariantViolation | None:
        if self.violations:
            return SchemaViolation(self.schema_name, self.violations)
        return self.invariant_violation

    def unwrap(self) -> ValidatedAttributes:
        if self.attributes is not None:
            return self.attributes
        error = self.error()
        assert error is not None
        raise error


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[FieldViolation] = []

    def add(self, path: str, constraint: str, actual: object, message: str) -> None:
        self._items.append(
            FieldViolation(path=path, constraint=constraint, actual=actual, message=message)
        )

    def items(self) -> tuple[FieldViolation, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


@dataclass(slots=True)
class _Walk:
    """Mutable state for one validation pass."""

    issues: _IssueCollector
    strict: bool | None
    scopes: list[tuple[str, AttributeSchema, dict[str, Any]]]
    ignored: list[str]


def validate(
    schema: AttributeSchema,
    raw: Mapping[str, object] | None,
    *,
    strict: bool | None = None,
) -> ValidationResult:
    """Validate `raw` against `schema`.

    `strict` overrides every schema's own unknown-key policy when given.
    """

    walk = _Walk(issues=_IssueCollector(), strict=strict, scopes=[], ignored=[])
    payload: object = {} if raw is None else raw
    if not isinstance(payload, Mapping):
        walk.issues.add("", "type", payload, f"expected mapping, got {_type_name(payload)}")
        return ValidationResult(schema.name, None, walk.issues.items())

    values = _validate_object(schema, payload, "", walk)
    if walk.issues.has_issues:
        return ValidationResult(
            schema.name, None, walk.issues.items(), ignored=tuple(walk.ignored)
        )

    for scope, scope_schema, scope_values in walk.scopes:
        scoped = ValidatedAttributes(scope_schema.name, scope_values)
        for invariant in scope_schema.invariants:
            if not invariant.holds(scoped):
                return ValidationResult(
                    schema.name,
                    None,
                    invariant_violation=invariant.violation(scoped, scope=scope),
                    ignored=tuple(walk.ignored),
                )

    return ValidationResult(
        schema.name, ValidatedAttributes(schema.name, values), ignored=tuple(walk.ignored)
    )


def assert_valid(
    schema: AttributeSchema,
    raw: Mapping[str, object] | None,
    *,
    strict: bool | None = None,
) -> ValidatedAttributes:
    """Validate and return attributes, raising `SchemaViolation` or the invariant error."""
    return validate(schema, raw, strict=strict).unwrap()


def check_value(spec: FieldSpec, value: object, path: str) -> tuple[FieldViolation, ...]:
    """Check a single value against `spec`; used for schema defaults."""
    walk = _Walk(issues=_IssueCollector(), strict=None, scopes=[], ignored=[])
    _check_value(spec, value, path, walk)
    return walk.issues.items()


# ---------------------------------------------------------------------------
# Walk
# ---------------------------------------------------------------------------


def _validate_object(
    schema: AttributeSchema,
    raw: Mapping[str, object],
    path: str,
    walk: _Walk,
) -> dict[str, Any]:
    strict = schema.strict if walk.strict is None else walk.strict
    for key in raw:
        if schema.has_field(str(key)):
            continue
        key_path = _join(path, str(key))
        if strict:
            walk.issues.add(key_path, "unknown_field", raw[key], "unknown field")
        else:
            walk.ignored.append(key_path)

    values: dict[str, Any] = {}
    for spec in schema.fields:
        field_path = _join(path, spec.name)
        value = raw.get(spec.name)
        if value is None or value is NOT_PROVIDED:
            if spec.required:
                walk.issues.add(field_path, "required", NOT_PROVIDED, "missing required field")
                values[spec.name] = _INVALID
            else:
                values[spec.name] = _absent_value(spec, field_path, walk)
            continue
        values[spec.name] = _check_value(spec, value, field_path, walk)

    if schema.invariants:
        walk.scopes.append((path, schema, values))
    return values


def _absent_value(spec: FieldSpec, path: str, walk: _Walk) -> object:
    """Value of an omitted optional field.

    Objects are materialized so their nested defaults apply, unless the nested schema
    requires something the caller never supplied.
    """
    if spec.kind is not ValueKind.OBJECT or spec.schema is None:
        return spec.default
    if isinstance(spec.default, Mapping):
        return _validate_object(spec.schema, spec.default, path, walk)
    if spec.default is NOT_PROVIDED and not any(item.required for item in spec.schema.fields):
        return _validate_object(spec.schema, {}, path, walk)
    return spec.default


def _check_value(spec: FieldSpec, value: object, path: str, walk: _Walk) -> object:
    if isinstance(value, ResourceReference):
        if spec.kind is not ValueKind.STRING:
            walk.issues.add(
                path, "type", value.address, f"expected {spec.kind}, got resource reference"
            )
            return _INVALID
        value = value.output(DEFAULT_OUTPUT)
    if isinstance(value, OutputToken):
        return value

    issues = walk.issues
    kind = spec.kind
    if kind is ValueKind.STRING:
        if not isinstance(value, str):
            return _type_issue(spec, value, path, walk)
        _check_length(spec, value, len(value), path, walk, unit="character")
        if not spec.matches_pattern(value):
            issues.add(path, "pattern", value, f"does not match pattern {spec.pattern!r}")
        _check_enum(spec, value, path, walk)
        return value

    if kind is ValueKind.INTEGER:
        if isinstance(value, bool) or not isinstance(value, int):
            return _type_issue(spec, value, path, walk)
        _check_bounds(spec, value, path, walk)
        _check_enum(spec, value, path, walk)
        return value

    if kind is ValueKind.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _type_issue(spec, value, path, walk)
        if not math.isfinite(value):
            issues.add(path, "finite", value, "must be finite")
            return _INVALID
        _check_bounds(spec, value, path, walk)
        _check_enum(spec, value, path, walk)
        return value

    if kind is ValueKind.BOOLEAN:
        if not isinstance(value, bool):
            return _type_issue(spec, value, path, walk)
        _check_enum(spec, value, path, walk)
        return value

    if kind is ValueKind.LIST:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            return _type_issue(spec, value, path, walk)
        _check_length(spec, value, len(value), path, walk, unit="item")
        if spec.items is None:
            return list(value)
        return [
            _check_value(spec.items, item, f"{path}[{index}]", walk)
            for index, item in enumerate(value)
        ]

    if kind is ValueKind.MAP:
        if not isinstance(value, Mapping):
            return _type_issue(spec, value, path, walk)
        _check_length(spec, value, len(value), path, walk, unit="entry")
        checked: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                issues.add(path, "key_type", key, f"keys must be strings, got {_type_name(key)}")
                continue
            if spec.values is None:
                checked[key] = item
            elif item is None:
                issues.add(_join(path, key), "required", None, "map values must not be null")
            else:
                checked[key] = _check_value(spec.values, item, _join(path, key), walk)
        return checked

    if kind is ValueKind.OBJECT:
        if not isinstance(value, Mapping):
            return _type_issue(spec, value, path, walk)
        assert spec.schema is not None
        return _validate_object(spec.schema, value, path, walk)

    raise AssertionError(f"unhandled value kind {kind!r}")


def _type_issue(spec: FieldSpec, value: object, path: str, walk: _Walk) -> object:
    walk.issues.add(path, "type", value, f"expected {spec.kind}, got {_type_name(value)}")
    return _INVALID


def _check_enum(spec: FieldSpec, value: object, path: str, walk: _Walk) -> None:
    if spec.enum is None or value in spec.enum:
        return
    options = ", ".join(str(option) for option in spec.enum)
    walk.issues.add(path, "enum", value, f"invalid value {value!r}; expected one of: {options}")


def _check_bounds(spec: FieldSpec, value: int | float, path: str, walk: _Walk) -> None:
    low, high = spec.minimum, spec.maximum
    if low is not None and high is not None:
        if not low <= value <= high:
            walk.issues.add(path, "range", value, f"out of range {low}-{high}")
    elif low is not None and value < low:
        walk.issues.add(path, "minimum", value, f"must be >= {low}")
    elif high is not None and value > high:
        walk.issues.add(path, "maximum", value, f"must be <= {high}")


def _check_length(
    spec: FieldSpec, value: object, size: int, path: str, walk: _Walk, *, unit: str
) -> None:
    if spec.min_length is not None and size < spec.min_length:
        walk.issues.add(
            path, "min_length", value, f"must contain at least {spec.min_length} {unit}(s)"
        )
    if spec.max_length is not None and size > spec.max_length:
        walk.issues.add(
            path, "max_length", value, f"must contain at most {spec.max_length} {unit}(s)"
        )


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _type_name(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


__all__ = ["ValidationResult", "assert_valid", "check_value", "validate"]
