"""
terraspec — engine value types.

File: src/terraspec/domain/values.py
Last updated: 2026-10-19

Purpose
- `NOT_PROVIDED`: sentinel for an optional field that was neither supplied nor defaulted.
- `OutputToken`: symbolic placeholder for a resource output only known after rendering.

Render contract
- Token address is `type.name.field`, or `data.type.name.field` for lookups.
- Interpolation form is `${address}`; this textual form is stable across releases.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from terraspec.constants import (
    DATA_SOURCE_PREFIX,
    INTERPOLATION_CLOSE,
    INTERPOLATION_OPEN,
    TOKEN_SEPARATOR,
)


class _NotProvided:
    __slots__ = ()
    _instance: _NotProvided | None = None

    def __new__(cls) -> _NotProvided:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_PROVIDED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _NotProvided:
        return self

    def __deepcopy__(self, memo: object) -> _NotProvided:
        return self

    def __reduce__(self) -> str:
        return "NOT_PROVIDED"


NOT_PROVIDED: Final = _NotProvided()

_SEGMENT = r"[A-Za-z_][A-Za-z0-9_-]*"
_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(
    rf"^(?:(?P<data>{DATA_SOURCE_PREFIX})\.)?(?P<type>{_SEGMENT})\.(?P<name>{_SEGMENT})"
    rf"\.(?P<field>{_SEGMENT}(?:\.{_SEGMENT}|\[\d+\])*)$"
)
_INTERPOLATION_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\$\{(?P<body>[^{}]+)\}$")


@dataclass(frozen=True, slots=True)
class OutputToken:
    """Deferred output of a declared resource or data source."""

    resource_type: str
    resource_name: str
    field: str
    data_source: bool = False

    @property
    def resource_address(self) -> str:
        parts = [self.resource_type, self.resource_name]
        if self.data_source:
            parts.insert(0, DATA_SOURCE_PREFIX)
        return TOKEN_SEPARATOR.join(parts)

    @property
    def address(self) -> str:
        return f"{self.resource_address}{TOKEN_SEPARATOR}{self.field}"

    def interpolation(self) -> str:
        return f"{INTERPOLATION_OPEN}{self.address}{INTERPOLATION_CLOSE}"

    def __str__(self) -> str:
        return self.interpolation()

    @classmethod
    def parse(cls, text: str) -> OutputToken:
        """Parse `type.name.field`, `data.type.name.field` or their `${...}` form."""
        candidate = text.strip()
        wrapped = _INTERPOLATION_PATTERN.match(candidate)
        if wrapped is not None:
            candidate = wrapped.group("body").strip()
        match = _TOKEN_PATTERN.match(candidate)
        if match is None:
            raise ValueError(f"not an output token: {text!r}")
        return cls(
            resource_type=match.group("type"),
            resource_name=match.group("name"),
            field=match.group("field"),
            data_source=match.group("data") is not None,
        )

    @staticmethod
    def looks_like_token(text: str) -> bool:
        """True for the interpolation form only; bare dotted strings stay plain strings."""
        wrapped = _INTERPOLATION_PATTERN.match(text.strip())
        if wrapped is None:
            return False
        return _TOKEN_PATTERN.match(wrapped.group("body").strip()) is not None


__all__ = ["NOT_PROVIDED", "OutputToken"]
