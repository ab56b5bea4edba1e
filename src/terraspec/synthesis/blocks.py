"""
terraspec — generic block synthesis.

File: src/terraspec/synthesis/blocks.py
Last updated: 2026-10-19

Purpose
- Convert validated attributes into a `ConfigNode` tree with one code path for every type.

Rules
- scalar or output token -> `Assignment`
- mapping -> nested `Block` labelled by the field name
- list of scalars -> repeated `Assignment`s, list of mappings -> repeated `Block`s
- `NOT_PROVIDED` / `None` -> omitted
- anything else (including a list directly inside a list) -> `UnsupportedNestedType`

Non-functional requirements
- Deterministic and order preserving; arbitrary depth.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from terraspec.domain.errors import UnsupportedNestedType
from terraspec.domain.values import NOT_PROVIDED, OutputToken

Scalar = str | int | float | bool
LeafValue = Scalar | OutputToken


class EntryKind(StrEnum):
    ASSIGNMENT = "assignment"
    BLOCK = "block"


@dataclass(frozen=True, slots=True)
class Assignment:
    name: str
    value: LeafValue
    multiple: bool = False

    @property
    def kind(self) -> EntryKind:
        return EntryKind.ASSIGNMENT


@dataclass(frozen=True, slots=True)
class Block:
    name: str
    node: ConfigNode
    multiple: bool = False

    @property
    def kind(self) -> EntryKind:
        return EntryKind.BLOCK


ConfigEntry = Assignment | Block


@dataclass(frozen=True, slots=True)
class ConfigNode:
    """Labelled node of leaf assignments and nested blocks, in emission order."""

    label: str
    entries: tuple[ConfigEntry, ...] = ()

    def __iter__(self) -> Iterator[ConfigEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(entry.name for entry in self.entries))

    def assignments(self, name: str) -> tuple[LeafValue, ...]:
        return tuple(
            entry.value
            for entry in self.entries
            if isinstance(entry, Assignment) and entry.name == name
        )

    def blocks(self, name: str) -> tuple[ConfigNode, ...]:
        return tuple(
            entry.node for entry in self.entries if isinstance(entry, Block) and entry.name == name
        )

    def to_mapping(self, *, render_tokens: bool = False) -> dict[str, Any]:
        """Re-parse into plain data; repeated entries regroup into lists."""
        payload: dict[str, Any] = {}
        for entry in self.entries:
            item: Any
            if isinstance(entry, Block):
                item = entry.node.to_mapping(render_tokens=render_tokens)
            elif render_tokens and isinstance(entry.value, OutputToken):
                item = entry.value.interpolation()
            else:
                item = entry.value
            if entry.multiple:
                payload.setdefault(entry.name, []).append(item)
            else:
                payload[entry.name] = item
        return payload


def synthesize(attributes: Mapping[str, object], *, label: str = "") -> ConfigNode:
    """Synthesize a block tree from validated (or any plain) attributes."""
    return ConfigNode(label=label, entries=tuple(_entries(attributes, label)))


def _entries(values: Mapping[str, object], path: str) -> Iterator[ConfigEntry]:
    for key, value in values.items():
        name = str(key)
        field_path = f"{path}.{name}" if path else name
        yield from _field_entries(name, value, field_path)


def _field_entries(name: str, value: object, path: str) -> Iterator[ConfigEntry]:
    if _is_absent(value):
        return
    if _is_leaf(value):
        yield Assignment(name=name, value=value)  # type: ignore[arg-type]
        return
    if isinstance(value, Mapping):
        yield Block(name=name, node=synthesize(value, label=path))
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            item_path = f"{path}[{index}]"
            if _is_absent(item):
                continue
            if _is_leaf(item):
                yield Assignment(name=name, value=item, multiple=True)  # type: ignore[arg-type]
            elif isinstance(item, Mapping):
                yield Block(name=name, node=synthesize(item, label=item_path), multiple=True)
            else:
                raise UnsupportedNestedType(item_path, type(item).__name__)
        return
    raise UnsupportedNestedType(path, type(value).__name__)


def _is_absent(value: object) -> bool:
    return value is NOT_PROVIDED or value is None


def _is_leaf(value: object) -> bool:
    return isinstance(value, (str, int, float, bool, OutputToken))


__all__ = [
    "Assignment",
    "Block",
    "ConfigEntry",
    "ConfigNode",
    "EntryKind",
    "LeafValue",
    "synthesize",
]
