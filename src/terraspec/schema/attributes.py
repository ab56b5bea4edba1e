"""Immutable validated attribute sets."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

from terraspec.domain.values import NOT_PROVIDED


def freeze(value: object) -> object:
    """Return a read-only copy: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: object, *, omit_absent: bool = True) -> object:
    """Inverse of `freeze`; plain dicts and lists, absent optionals dropped."""
    if isinstance(value, Mapping):
        return {
            key: thaw(item, omit_absent=omit_absent)
            for key, item in value.items()
            if not (omit_absent and item is NOT_PROVIDED)
        }
    if isinstance(value, (list, tuple)):
        return [thaw(item, omit_absent=omit_absent) for item in value]
    return value


class ValidatedAttributes(Mapping[str, Any]):
    """Read-only, fully defaulted field values that passed every schema check.

    Instances are only created by the validator. Every declared field is a key;
    optional fields without a value hold `NOT_PROVIDED`.
    """

    __slots__ = ("_schema_name", "_values")

    def __init__(self, schema_name: str, values: Mapping[str, object]) -> None:
        object.__setattr__(self, "_schema_name", schema_name)
        object.__setattr__(
            self,
            "_values",
            MappingProxyType({key: freeze(item) for key, item in values.items()}),
        )

    @property
    def schema_name(self) -> str:
        return self._schema_name

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(
                f"{self._schema_name} attributes have no field {name!r}"
            ) from None

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ValidatedAttributes is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("ValidatedAttributes is immutable")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValidatedAttributes):
            return self._schema_name == other._schema_name and dict(self._values) == dict(
                other._values
            )
        if isinstance(other, Mapping):
            return dict(self._values) == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __copy__(self) -> ValidatedAttributes:
        return self

    def __deepcopy__(self, memo: object) -> ValidatedAttributes:
        return self

    def __repr__(self) -> str:
        return f"ValidatedAttributes({self._schema_name!r}, {dict(self._values)!r})"

    def is_provided(self, key: str) -> bool:
        return self._values.get(key, NOT_PROVIDED) is not NOT_PROVIDED

    def get_path(self, path: str, default: object = NOT_PROVIDED) -> Any:
        """Resolve a dotted path such as `auto_scaling.min` through nested mappings."""
        cursor: object = self._values
        for part in path.split("."):
            if not isinstance(cursor, Mapping) or part not in cursor:
                return default
            cursor = cursor[part]
        return cursor

    def provided(self) -> dict[str, Any]:
        """Top-level fields that carry a value, in declaration order."""
        return {key: value for key, value in self._values.items() if value is not NOT_PROVIDED}

    def to_dict(self, *, omit_absent: bool = True) -> dict[str, Any]:
        payload = thaw(self._values, omit_absent=omit_absent)
        assert isinstance(payload, dict)
        return payload


__all__ = ["ValidatedAttributes", "freeze", "thaw"]
