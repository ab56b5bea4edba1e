"""
terraspec — declarative schema definitions.

File: src/terraspec/schema/definition.py
Last updated: 2026-10-19

Purpose
- Turn a plain mapping (Python literal or YAML document) into an `AttributeSchema`.

Definition shape
- `name`, `kind` (resource|data|architecture|object), `description`, `strict`.
- `fields`: mapping of field name to a field definition, or a bare kind string.
  A field definition has `type`, `required`, `default`, `enum`, `minimum`, `maximum`,
  `min_length`, `max_length`, `pattern`, `items`, `values`, `fields` (object kind),
  `invariants` (object kind), `description`.
- `outputs`: declared output names. Omitted on resource/data schemas -> output preset.
- `invariants`: `CrossFieldInvariant` objects or `{rule: ...}` mappings.
- `environment_defaults`: tier -> partial attribute map.

Functional requirements
- Every definition problem is reported at once via `SchemaDefinitionError`.
- Declared defaults must satisfy their own field definition.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Final

from terraspec.domain.errors import SchemaDefinitionError
from terraspec.domain.values import NOT_PROVIDED
from terraspec.schema.attributes import freeze
from terraspec.schema.fields import SCALAR_KINDS, AttributeSchema, FieldSpec, SchemaKind, ValueKind
from terraspec.schema.invariants import CrossFieldInvariant, invariant_from_mapping
from terraspec.schema.validator import check_value
from terraspec.synthesis.environment import EnvironmentDefaults
from terraspec.synthesis.references import output_preset

_SCHEMA_KEYS: Final[frozenset[str]] = frozenset(
    {
        "description",
        "environment_defaults",
        "fields",
        "invariants",
        "kind",
        "name",
        "outputs",
        "strict",
    }
)
_FIELD_KEYS: Final[frozenset[str]] = frozenset(
    {
        "default",
        "description",
        "enum",
        "fields",
        "invariants",
        "items",
        "max_length",
        "maximum",
        "min_length",
        "minimum",
        "pattern",
        "required",
        "strict",
        "type",
        "values",
    }
)
_LENGTH_KINDS: Final[frozenset[ValueKind]] = frozenset(
    {ValueKind.STRING, ValueKind.LIST, ValueKind.MAP}
)
_NUMERIC_KINDS: Final[frozenset[ValueKind]] = frozenset({ValueKind.INTEGER, ValueKind.NUMBER})
_FIELD_NAME: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class _Issues:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[str] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(f"{path or '<root>'}: {message}")

    def items(self) -> tuple[str, ...]:
        return tuple(self._items)


def define_schema(spec: Mapping[str, object], *, name: str | None = None) -> AttributeSchema:
    """Build an immutable `AttributeSchema` from a declarative mapping."""

    raw_name = name if name is not None else spec.get("name")
    schema_name = raw_name if isinstance(raw_name, str) and raw_name else "<anonymous>"
    issues = _Issues()
    if not isinstance(raw_name, str) or not raw_name:
        issues.add("name", "schema name must be a non-empty string")

    raw_kind = spec.get("kind", SchemaKind.RESOURCE.value)
    try:
        kind = SchemaKind(raw_kind)
    except ValueError:
        options = ", ".join(item.value for item in SchemaKind)
        issues.add("kind", f"invalid value {raw_kind!r}; expected one of: {options}")
        kind = SchemaKind.RESOURCE

    schema = _build_schema(schema_name, spec, "", issues, kind=kind, top_level=True)
    if issues.items():
        raise SchemaDefinitionError(schema_name, issues.items())
    assert schema is not None
    return schema


def _build_schema(
    schema_name: str,
    spec: Mapping[str, object],
    path: str,
    issues: _Issues,
    *,
    kind: SchemaKind,
    top_level: bool,
) -> AttributeSchema | None:
    if top_level:
        for key in sorted(str(item) for item in spec):
            if key not in _SCHEMA_KEYS:
                issues.add(key, "unknown schema key")

    fields = _build_fields(spec.get("fields"), path, issues)
    invariants = _build_invariants(spec.get("invariants", ()), _join(path, "invariants"), issues)

    strict = spec.get("strict", True)
    if not isinstance(strict, bool):
        issues.add(_join(path, "strict"), "expected boolean")
        strict = True

    description = spec.get("description", "")
    if not isinstance(description, str):
        issues.add(_join(path, "description"), "expected string")
        description = ""

    outputs: tuple[str, ...] = ()
    environment_defaults: EnvironmentDefaults | None = None
    if top_level:
        outputs = _build_outputs(schema_name, spec.get("outputs", NOT_PROVIDED), kind, issues)
        environment_defaults = _build_environment_defaults(
            spec.get("environment_defaults"), issues
        )

    if fields is None:
        return None
    return AttributeSchema(
        name=schema_name,
        fields=fields,
        invariants=invariants,
        outputs=outputs,
        kind=kind if top_level else SchemaKind.OBJECT,
        strict=strict,
        environment_defaults=environment_defaults,
        description=description,
    )


def _build_fields(raw: object, path: str, issues: _Issues) -> tuple[FieldSpec, ...] | None:
    fields_path = _join(path, "fields")
    if isinstance(raw, Sequence) and not isinstance(raw, str):
        specs = tuple(item for item in raw if isinstance(item, FieldSpec))
        if len(specs) != len(raw):
            issues.add(fields_path, "field sequences may only contain FieldSpec objects")
            return None
        return _check_unique(specs, fields_path, issues)
    if not isinstance(raw, Mapping):
        issues.add(fields_path, "expected mapping of field definitions")
        return None

    specs_list: list[FieldSpec] = []
    for field_name, field_raw in raw.items():
        field_path = _join(fields_path, str(field_name))
        if not isinstance(field_name, str) or not _FIELD_NAME.match(field_name):
            issues.add(field_path, "field names must be identifiers")
            continue
        built = _build_field(field_name, field_raw, field_path, issues)
        if built is not None:
            specs_list.append(built)
    return tuple(specs_list)


def _build_field(
    field_name: str, raw: object, path: str, issues: _Issues
) -> FieldSpec | None:
    if isinstance(raw, FieldSpec):
        return raw
    if isinstance(raw, str):
        raw = {"type": raw}
    if not isinstance(raw, Mapping):
        issues.add(path, "expected field definition mapping or kind name")
        return None

    for key in sorted(str(item) for item in raw):
        if key not in _FIELD_KEYS:
            issues.add(_join(path, key), "unknown field definition key")

    raw_kind = raw.get("type")
    try:
        kind = ValueKind(raw_kind)
    except ValueError:
        options = ", ".join(item.value for item in ValueKind)
        issues.add(_join(path, "type"), f"invalid value {raw_kind!r}; expected one of: {options}")
        return None

    required = raw.get("required", False)
    if not isinstance(required, bool):
        issues.add(_join(path, "required"), "expected boolean")
        required = False

    enum: tuple[object, ...] | None = None
    if "enum" in raw:
        raw_enum = raw["enum"]
        if kind not in SCALAR_KINDS:
            issues.add(_join(path, "enum"), "enum is only allowed on scalar fields")
        elif not isinstance(raw_enum, (list, tuple)) or not raw_enum:
            issues.add(_join(path, "enum"), "expected non-empty list")
        else:
            enum = tuple(raw_enum)

    minimum = _number_option(raw, "minimum", kind, path, issues)
    maximum = _number_option(raw, "maximum", kind, path, issues)
    if minimum is not None and maximum is not None and minimum > maximum:
        issues.add(path, "minimum must be <= maximum")

    min_length = _length_option(raw, "min_length", kind, path, issues)
    max_length = _length_option(raw, "max_length", kind, path, issues)
    if min_length is not None and max_length is not None and min_length > max_length:
        issues.add(path, "min_length must be <= max_length")

    pattern = raw.get("pattern")
    if pattern is not None:
        if kind is not ValueKind.STRING or not isinstance(pattern, str):
            issues.add(_join(path, "pattern"), "pattern must be a string on a string field")
            pattern = None
        else:
            try:
                re.compile(pattern)
            except re.error as exc:
                issues.add(_join(path, "pattern"), f"invalid regular expression: {exc}")
                pattern = None

    items: FieldSpec | None = None
    if "items" in raw:
        if kind is not ValueKind.LIST:
            issues.add(_join(path, "items"), "items is only allowed on list fields")
        else:
            items = _build_field(f"{field_name}[]", raw["items"], _join(path, "items"), issues)

    values: FieldSpec | None = None
    if "values" in raw:
        if kind is not ValueKind.MAP:
            issues.add(_join(path, "values"), "values is only allowed on map fields")
        else:
            values = _build_field(f"{field_name}.*", raw["values"], _join(path, "values"), issues)

    nested: AttributeSchema | None = None
    if kind is ValueKind.OBJECT:
        nested = _build_schema(
            field_name, raw, path, issues, kind=SchemaKind.OBJECT, top_level=False
        )
        if nested is None:
            return None
    elif "fields" in raw or "invariants" in raw:
        issues.add(path, "fields/invariants are only allowed on object fields")

    description = raw.get("description", "")
    if not isinstance(description, str):
        issues.add(_join(path, "description"), "expected string")
        description = ""

    spec = FieldSpec(
        name=field_name,
        kind=kind,
        required=required,
        enum=enum,
        minimum=minimum,
        maximum=maximum,
        min_length=min_length,
        max_length=max_length,
        pattern=pattern,
        items=items,
        values=values,
        schema=nested,
        description=description,
    )

    default = raw.get("default", NOT_PROVIDED)
    if default is None:
        default = NOT_PROVIDED
    if default is not NOT_PROVIDED:
        if required:
            issues.add(_join(path, "default"), "required fields cannot declare a default")
            return spec
        problems = check_value(spec, default, _join(path, "default"))
        for problem in problems:
            issues.add(problem.path, problem.message)
        if not problems:
            return replace(spec, default=freeze(default))
    return spec


def _number_option(
    raw: Mapping[str, object], key: str, kind: ValueKind, path: str, issues: _Issues
) -> int | float | None:
    if key not in raw:
        return None
    value = raw[key]
    if kind not in _NUMERIC_KINDS:
        issues.add(_join(path, key), f"{key} is only allowed on integer/number fields")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(_join(path, key), "expected number")
        return None
    return value


def _length_option(
    raw: Mapping[str, object], key: str, kind: ValueKind, path: str, issues: _Issues
) -> int | None:
    if key not in raw:
        return None
    value = raw[key]
    if kind not in _LENGTH_KINDS:
        issues.add(_join(path, key), f"{key} is only allowed on string/list/map fields")
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        issues.add(_join(path, key), "expected non-negative integer")
        return None
    return value


def _build_invariants(
    raw: object, path: str, issues: _Issues
) -> tuple[CrossFieldInvariant, ...]:
    if not isinstance(raw, (list, tuple)):
        issues.add(path, "expected list of invariants")
        return ()
    built: list[CrossFieldInvariant] = []
    for index, item in enumerate(raw):
        item_path = f"{path}[{index}]"
        if isinstance(item, CrossFieldInvariant):
            built.append(item)
            continue
        if not isinstance(item, Mapping):
            issues.add(item_path, "expected invariant or {rule: ...} mapping")
            continue
        try:
            built.append(invariant_from_mapping(item))
        except ValueError as exc:
            issues.add(item_path, str(exc))
    names = [item.name for item in built]
    for duplicate in sorted({name for name in names if names.count(name) > 1}):
        issues.add(path, f"duplicate invariant name {duplicate!r}")
    return tuple(built)


def _build_outputs(
    schema_name: str, raw: object, kind: SchemaKind, issues: _Issues
) -> tuple[str, ...]:
    if raw is NOT_PROVIDED:
        if kind in (SchemaKind.RESOURCE, SchemaKind.DATA):
            return output_preset(schema_name)
        return ()
    if not isinstance(raw, (list, tuple)):
        issues.add("outputs", "expected list of output names")
        return ()
    outputs: list[str] = []
    for index, item in enumerate(raw):
        if not isinstance(item, str) or not _FIELD_NAME.match(item):
            issues.add(f"outputs[{index}]", "output names must be identifiers")
            continue
        if item in outputs:
            issues.add(f"outputs[{index}]", f"duplicate output {item!r}")
            continue
        outputs.append(item)
    return tuple(outputs)


def _build_environment_defaults(raw: object, issues: _Issues) -> EnvironmentDefaults | None:
    if raw is None or isinstance(raw, EnvironmentDefaults):
        return raw
    if not isinstance(raw, Mapping):
        issues.add("environment_defaults", "expected mapping of tier -> defaults")
        return None
    try:
        return EnvironmentDefaults.from_mapping(raw)
    except ValueError as exc:
        issues.add("environment_defaults", str(exc))
        return None


def _check_unique(
    specs: tuple[FieldSpec, ...], path: str, issues: _Issues
) -> tuple[FieldSpec, ...]:
    seen: set[str] = set()
    for spec in specs:
        if spec.name in seen:
            issues.add(path, f"duplicate field {spec.name!r}")
        seen.add(spec.name)
    return specs


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


__all__ = ["define_schema"]
