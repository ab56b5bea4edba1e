"""
terraspec — declarative infrastructure description engine

File: src/terraspec/__init__.py
Last updated: 2026-10-19

Purpose
- Package root. Validates nested attribute trees against typed schemas, synthesizes them
  into generic block trees, and hands out references whose outputs are symbolic tokens.

Layout
- `schema`: field descriptors, validator, invariant factories, YAML schema catalog.
- `synthesis`: environment defaults, block synthesizer, references, session, render boundary.
- `architecture`: immutable architecture references and the tier composer.
- `config` / `observability` / `ui`: engine settings, structlog setup, argparse CLI.

Import boundary
- Importing the package has no side effects (no config loading, no logging init).
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
