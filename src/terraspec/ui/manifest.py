"""
terraspec — YAML manifests for the CLI.

File: src/terraspec/ui/manifest.py
Last updated: 2026-10-19

Purpose
- Read a manifest file and replay its declarations into a `SynthesisSession`.

Manifest shape
- `environment`: optional tier for the whole manifest.
- `data` / `resources`: lists of `{type, name, attributes, schema?}`; `schema` defaults to `type`.
- `architectures`: list of `{type, name, attributes}` for the bundled architectures.

Functional requirements
- Declarations run in order: data sources, then resources, then architectures.
- `${type.name.field}` strings resolve to the output token of an earlier declaration;
  anything else raises `UnknownOutputReference`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import yaml

from terraspec.architecture.reference import ArchitectureReference
from terraspec.architecture.web_application import ARCHITECTURE_TYPE, build_web_application
from terraspec.domain.errors import TerraspecError, UnknownOutputReference
from terraspec.domain.values import OutputToken
from terraspec.schema.catalog import SchemaCatalog
from terraspec.schema.fields import AttributeSchema
from terraspec.synthesis.references import ResourceReference
from terraspec.synthesis.session import SynthesisSession

ArchitectureBuilder = Callable[..., ArchitectureReference]

ARCHITECTURE_BUILDERS: Final[dict[str, ArchitectureBuilder]] = {
    ARCHITECTURE_TYPE: build_web_application,
}
_MANIFEST_KEYS: Final[frozenset[str]] = frozenset(
    {"environment", "data", "resources", "architectures"}
)
_DECLARATION_KEYS: Final[frozenset[str]] = frozenset({"type", "name", "attributes", "schema"})


class ManifestError(TerraspecError, ValueError):
    """The manifest file is unreadable or not shaped like a manifest."""


@dataclass(frozen=True, slots=True)
class Declaration:
    type: str
    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    schema: str | None = None


@dataclass(frozen=True, slots=True)
class Manifest:
    environment: str | None = None
    data: tuple[Declaration, ...] = ()
    resources: tuple[Declaration, ...] = ()
    architectures: tuple[Declaration, ...] = ()


@dataclass(frozen=True, slots=True)
class ManifestResult:
    references: tuple[ResourceReference, ...]
    architectures: tuple[ArchitectureReference, ...]


def load_manifest(path: str | Path) -> Manifest:
    source = Path(path).expanduser()
    try:
        with source.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except OSError as exc:
        raise ManifestError(f"unable to read manifest {source}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ManifestError(f"{source}: invalid YAML ({exc})") from exc
    return parse_manifest(loaded if loaded is not None else {}, source=str(source))


def parse_manifest(payload: object, *, source: str = "<manifest>") -> Manifest:
    if not isinstance(payload, Mapping):
        raise ManifestError(f"{source}: expected top-level mapping")
    unknown = sorted(str(key) for key in payload if key not in _MANIFEST_KEYS)
    if unknown:
        raise ManifestError(f"{source}: unknown manifest keys: {', '.join(unknown)}")
    environment = payload.get("environment")
    if environment is not None and not isinstance(environment, str):
        raise ManifestError(f"{source}: environment must be a string")
    return Manifest(
        environment=environment,
        data=_declarations(payload, "data", source),
        resources=_declarations(payload, "resources", source),
        architectures=_declarations(payload, "architectures", source),
    )


def _declarations(payload: Mapping[str, object], key: str, source: str) -> tuple[Declaration, ...]:
    raw = payload.get(key) or []
    if not isinstance(raw, list):
        raise ManifestError(f"{source}: {key} must be a list")
    parsed: list[Declaration] = []
    for index, entry in enumerate(raw):
        where = f"{source}: {key}[{index}]"
        if not isinstance(entry, Mapping):
            raise ManifestError(f"{where}: expected mapping")
        unknown = sorted(str(item) for item in entry if item not in _DECLARATION_KEYS)
        if unknown:
            raise ManifestError(f"{where}: unknown keys: {', '.join(unknown)}")
        type_name, name = entry.get("type"), entry.get("name")
        if not isinstance(type_name, str) or not isinstance(name, str):
            raise ManifestError(f"{where}: type and name must be strings")
        attributes = entry.get("attributes") or {}
        if not isinstance(attributes, Mapping):
            raise ManifestError(f"{where}: attributes must be a mapping")
        schema = entry.get("schema")
        if schema is not None and not isinstance(schema, str):
            raise ManifestError(f"{where}: schema must be a string")
        parsed.append(Declaration(type=type_name, name=name, attributes=attributes, schema=schema))
    return tuple(parsed)


def resolve_tokens(value: object, session: SynthesisSession) -> Any:
    """Replace `${...}` strings with output tokens of declarations already in `session`."""
    if isinstance(value, str):
        if not OutputToken.looks_like_token(value):
            return value
        token = OutputToken.parse(value)
        if not session.is_registered(token.resource_address):
            raise UnknownOutputReference(token.resource_address, token.field, ())
        return session.reference(token.resource_address).output(token.field)
    if isinstance(value, Mapping):
        return {key: resolve_tokens(item, session) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_tokens(item, session) for item in value]
    return value


def _schema(catalog: SchemaCatalog, item: Declaration) -> AttributeSchema:
    try:
        return catalog.get(item.schema or item.type)
    except KeyError as exc:
        raise ManifestError(f"{item.type}.{item.name}: {exc.args[0]}") from exc


def apply_manifest(
    session: SynthesisSession, manifest: Manifest, catalog: SchemaCatalog
) -> ManifestResult:
    references: list[ResourceReference] = []
    for item in manifest.data:
        schema = _schema(catalog, item)
        attributes = resolve_tokens(item.attributes, session)
        references.append(session.data_source(item.type, item.name, schema, attributes))
    for item in manifest.resources:
        schema = _schema(catalog, item)
        attributes = resolve_tokens(item.attributes, session)
        references.append(session.resource(item.type, item.name, schema, attributes))

    architectures: list[ArchitectureReference] = []
    for item in manifest.architectures:
        builder = ARCHITECTURE_BUILDERS.get(item.type)
        if builder is None:
            known = ", ".join(sorted(ARCHITECTURE_BUILDERS))
            raise ManifestError(f"unknown architecture type {item.type!r}; known: {known}")
        attributes = resolve_tokens(item.attributes, session)
        architectures.append(builder(session, item.name, attributes, catalog=catalog))
    return ManifestResult(references=tuple(references), architectures=tuple(architectures))


__all__ = [
    "ARCHITECTURE_BUILDERS",
    "Declaration",
    "Manifest",
    "ManifestError",
    "ManifestResult",
    "apply_manifest",
    "load_manifest",
    "parse_manifest",
    "resolve_tokens",
]
