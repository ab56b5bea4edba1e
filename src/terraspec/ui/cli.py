"""Command-line interface router for terraspec."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from terraspec.architecture.reference import plain_outputs
from terraspec.config import effective_config, load_config
from terraspec.observability.logging import configure_logging
from terraspec.schema.catalog import SchemaCatalog
from terraspec.synthesis.render import dump_document, render_document
from terraspec.synthesis.session import SynthesisSession
from terraspec.ui.manifest import ManifestResult, apply_manifest, load_manifest


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 2

    def __str__(self) -> str:
        return self.message


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="terraspec",
        description=(
            "terraspec — declarative infrastructure description engine.\n\n"
            "Common workflows:\n"
            "  terraspec schemas                 List catalog schemas and their outputs\n"
            "  terraspec validate stack.yaml     Validate a manifest and print outputs\n"
            "  terraspec render stack.yaml       Write the render document as JSON\n"
            "  terraspec config                  Show the effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to terraspec TOML config (default: ./terraspec.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Log at DEBUG level.",
    )

    catalog_option = argparse.ArgumentParser(add_help=False)
    catalog_option.add_argument(
        "--catalog",
        action="append",
        default=[],
        metavar="DIR",
        help="Extra schema catalog directory (repeatable).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    schemas_parser = subparsers.add_parser(
        "schemas",
        parents=[common, catalog_option],
        help="List catalog schemas",
    )
    schemas_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    schemas_parser.set_defaults(handler=_cmd_schemas)

    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common, catalog_option],
        help="Validate a manifest and print reference outputs",
    )
    validate_parser.add_argument("manifest", help="Path to the YAML manifest")
    validate_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    validate_parser.set_defaults(handler=_cmd_validate)

    render_parser = subparsers.add_parser(
        "render",
        parents=[common, catalog_option],
        help="Write the render document for a manifest",
    )
    render_parser.add_argument("manifest", help="Path to the YAML manifest")
    render_parser.add_argument(
        "--output", "-o", default=None, help="Output file (default: stdout)"
    )
    render_parser.set_defaults(handler=_cmd_render)

    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration (secrets redacted)",
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_schemas(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    catalog = _load_catalog(args, config)
    rows = [
        {
            "name": schema.name,
            "kind": str(schema.kind),
            "fields": list(schema.field_names),
            "outputs": list(schema.outputs),
        }
        for schema in catalog.schemas
    ]
    if _flag(args, "json"):
        _emit_json({"command": "schemas", "schemas": rows})
        return 0

    width = max((len(row["name"]) for row in rows), default=0)
    for row in rows:
        outputs = ", ".join(row["outputs"]) or "-"
        print(f"{row['name']:<{width}}  {row['kind']:<12}  outputs: {outputs}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    session, result = _run_manifest(args, config)

    payload: dict[str, Any] = {
        "command": "validate",
        "environment": session.environment,
        "resources": [reference.to_dict() for reference in result.references],
        "architectures": [
            {
                **architecture.summary(),
                "outputs": plain_outputs(architecture.outputs),
            }
            for architecture in result.architectures
        ],
        "blocks": len(session.blocks),
    }
    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    print(f"manifest valid: {len(session.blocks)} block(s) in {session.environment}")
    for reference in result.references:
        outputs = ", ".join(token.interpolation() for token in reference.outputs.values())
        print(f"- {reference.address}: {outputs}")
    for architecture in result.architectures:
        print(f"- {architecture.address} [{', '.join(architecture.slots)}]")
        for key, value in plain_outputs(architecture.outputs).items():
            print(f"    {key} = {_display(value)}")
    return 0


def _cmd_render(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    session, _ = _run_manifest(args, config)
    rendered = dump_document(render_document(session))

    output = getattr(args, "output", None)
    if output is None:
        sys.stdout.write(rendered)
        return 0
    target = Path(output).expanduser()
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"unable to write {target}: {exc}") from exc
    print(f"wrote {len(session.blocks)} block(s) to {target}", file=sys.stderr)
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))
    redacted = effective_config(config)

    if _flag(args, "json"):
        _emit_json({"command": "config", "active_profile": profile, "config": redacted})
        return 0

    print(f"Active profile: {profile or '(default)'}")
    print(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {}
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"
    config = load_config(
        getattr(args, "config_path", None),
        profile=_optional_str(getattr(args, "profile", None)),
        cli_overrides=overrides,
    )
    configure_logging(config["observability"])
    return config


def _load_catalog(args: argparse.Namespace, config: Mapping[str, Any]) -> SchemaCatalog:
    extra = [*config["engine"]["catalog_paths"], *getattr(args, "catalog", [])]
    try:
        return SchemaCatalog.builtin(*extra)
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise CLIError(str(exc)) from exc


def _run_manifest(
    args: argparse.Namespace, config: Mapping[str, Any]
) -> tuple[SynthesisSession, ManifestResult]:
    catalog = _load_catalog(args, config)
    manifest = load_manifest(args.manifest)
    engine = config["engine"]
    session = SynthesisSession(
        environment=manifest.environment or engine["environment"],
        strict=None if engine["strict_schemas"] else False,
        logger=structlog.get_logger("terraspec.session"),
    )
    return session, apply_manifest(session, manifest, catalog)


def _display(value: object) -> str:
    if value is None:
        return "(disabled)"
    if isinstance(value, (Mapping, list, bool)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _flag(args: argparse.Namespace, name: str) -> bool:
    return getattr(args, name, False) is True


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = ["CLIError", "build_parser", "run_cli"]
