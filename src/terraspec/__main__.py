"""Module entrypoint for ``python -m terraspec``."""

from __future__ import annotations

from terraspec.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
