"""Deterministic YAML schema catalog loader and query surface."""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Final, TypeAlias, cast

import yaml

from terraspec.constants import CATALOG_SCHEMA_VERSION
from terraspec.domain.errors import SchemaDefinitionError, TerraspecError
from terraspec.schema.definition import define_schema
from terraspec.schema.fields import AttributeSchema, SchemaKind

PathLike: TypeAlias = str | os.PathLike[str]

BUILTIN_CATALOG_DIR: Final[Path] = Path(__file__).resolve().parent / "builtin"


class CatalogLoadError(TerraspecError, ValueError):
    """A catalog file is unreadable, malformed, or collides with another file."""


class SchemaCatalog:
    """In-memory view of one or more `*.yaml` schema directories."""

    __slots__ = ("_by_name", "_schemas", "_source_files")

    def __init__(
        self,
        *,
        schemas: Sequence[AttributeSchema],
        source_files: Sequence[Path] = (),
    ) -> None:
        self._schemas = tuple(schemas)
        self._source_files = tuple(source_files)
        by_name: dict[str, AttributeSchema] = {}
        for schema in self._schemas:
            if schema.name in by_name:
                raise CatalogLoadError(f"duplicate schema name in memory: {schema.name!r}")
            by_name[schema.name] = schema
        self._by_name = by_name

    @property
    def schemas(self) -> tuple[AttributeSchema, ...]:
        """All schemas in deterministic load order."""
        return self._schemas

    @property
    def source_files(self) -> tuple[Path, ...]:
        return self._source_files

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(schema.name for schema in self._schemas)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._schemas)

    def get(self, name: str) -> AttributeSchema:
        try:
            return self._by_name[name]
        except KeyError:
            known = ", ".join(sorted(self._by_name)) or "<none>"
            raise KeyError(f"unknown schema {name!r}; known schemas: {known}") from None

    def by_kind(self, kind: SchemaKind | str) -> tuple[AttributeSchema, ...]:
        wanted = SchemaKind(kind)
        return tuple(schema for schema in self._schemas if schema.kind is wanted)

    def with_schemas(self, schemas: Iterable[AttributeSchema]) -> SchemaCatalog:
        """Return a catalog copy extended with `schemas`; names must stay unique."""
        return SchemaCatalog(
            schemas=(*self._schemas, *schemas),
            source_files=self._source_files,
        )

    @classmethod
    def load(cls, paths: PathLike | Iterable[PathLike]) -> SchemaCatalog:
        """Load and validate every `*.yaml` file under the given directories."""

        roots = [paths] if isinstance(paths, (str, os.PathLike)) else list(paths)
        files: list[Path] = []
        for raw_root in roots:
            root = Path(raw_root).expanduser()
            if not root.exists():
                raise FileNotFoundError(f"schema catalog directory does not exist: {root}")
            if not root.is_dir():
                raise NotADirectoryError(f"schema catalog path is not a directory: {root}")
            files.extend(sorted(root.glob("*.yaml"), key=lambda path: (path.name, path.as_posix())))

        schemas: list[AttributeSchema] = []
        seen: dict[str, Path] = {}
        for source_file in files:
            for schema in _load_catalog_file(source_file):
                first_seen = seen.get(schema.name)
                if first_seen is not None:
                    raise CatalogLoadError(
                        "duplicate schema name "
                        f"{schema.name!r} across files: {first_seen.name} and {source_file.name}"
                    )
                seen[schema.name] = source_file
                schemas.append(schema)
        return cls(schemas=schemas, source_files=files)

    @classmethod
    def builtin(cls, *extra_paths: PathLike) -> SchemaCatalog:
        return cls.load([BUILTIN_CATALOG_DIR, *extra_paths])


def _load_catalog_file(path: Path) -> list[AttributeSchema]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except yaml.YAMLError as exc:
        raise CatalogLoadError(f"{path}: invalid YAML ({exc})") from exc

    if not isinstance(loaded, Mapping):
        raise CatalogLoadError(f"{path}: expected top-level mapping, got {type(loaded).__name__}")
    version = loaded.get("version", CATALOG_SCHEMA_VERSION)
    if version != CATALOG_SCHEMA_VERSION:
        raise CatalogLoadError(
            f"{path}: unsupported catalog version {version!r}; expected {CATALOG_SCHEMA_VERSION}"
        )
    entries = loaded.get("schemas")
    if not isinstance(entries, list):
        raise CatalogLoadError(f"{path}: 'schemas' must be a list")

    parsed: list[AttributeSchema] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise CatalogLoadError(f"{path}: schemas[{index}]: expected mapping")
        try:
            parsed.append(define_schema(entry))
        except SchemaDefinitionError as exc:
            raise CatalogLoadError(f"{path}: schemas[{index}]: {exc}") from exc
    return parsed


__all__ = ["BUILTIN_CATALOG_DIR", "CatalogLoadError", "SchemaCatalog"]
