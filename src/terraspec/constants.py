"""Stable constants shared across the engine."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
CATALOG_SCHEMA_VERSION: Final[int] = 1
RENDER_DOCUMENT_VERSION: Final[int] = 1

# Environment tiers, least to most critical.
ENVIRONMENT_TIERS: Final[tuple[str, ...]] = ("development", "staging", "production")
DEFAULT_ENVIRONMENT: Final[str] = "development"

# Render boundary token grammar.
DATA_SOURCE_PREFIX: Final[str] = "data"
ARCHITECTURE_PREFIX: Final[str] = "architecture"
TOKEN_SEPARATOR: Final[str] = "."
INTERPOLATION_OPEN: Final[str] = "${"
INTERPOLATION_CLOSE: Final[str] = "}"

# Identifier grammar for resource names, output fields and architecture slots.
IDENTIFIER_PATTERN: Final[str] = r"^[A-Za-z_][A-Za-z0-9_-]*$"

# Output every managed resource exposes.
DEFAULT_OUTPUT: Final[str] = "id"

__all__ = [
    "ARCHITECTURE_PREFIX",
    "CATALOG_SCHEMA_VERSION",
    "CONFIG_SCHEMA_VERSION",
    "DATA_SOURCE_PREFIX",
    "DEFAULT_ENVIRONMENT",
    "DEFAULT_OUTPUT",
    "ENVIRONMENT_TIERS",
    "IDENTIFIER_PATTERN",
    "INTERPOLATION_CLOSE",
    "INTERPOLATION_OPEN",
    "RENDER_DOCUMENT_VERSION",
    "TOKEN_SEPARATOR",
]
