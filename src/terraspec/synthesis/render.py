"""
terraspec — render boundary document.

File: src/terraspec/synthesis/render.py
Last updated: 2026-10-19

Purpose
- Collect a session's synthesized blocks into the addressable document the external renderer
  consumes: `{"resource": {type: {name: body}}, "data": {type: {name: body}}}`.

Render contract
- Output tokens are emitted in interpolation form `${type.name.field}`.
- Repeated assignments and repeated blocks become JSON arrays.
- `dump_document` is canonical: sorted keys, compact separators, trailing newline.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from terraspec.constants import RENDER_DOCUMENT_VERSION
from terraspec.synthesis.session import SynthesisSession, SynthesizedBlock


def render_blocks(blocks: Iterable[SynthesizedBlock]) -> dict[str, Any]:
    resources: dict[str, dict[str, Any]] = {}
    data: dict[str, dict[str, Any]] = {}
    for block in blocks:
        section = data if block.data_source else resources
        section.setdefault(block.resource_type, {})[block.name] = block.node.to_mapping(
            render_tokens=True
        )
    document: dict[str, Any] = {"terraspec_version": RENDER_DOCUMENT_VERSION}
    if resources:
        document["resource"] = resources
    if data:
        document["data"] = data
    return document


def render_document(session: SynthesisSession) -> dict[str, Any]:
    return render_blocks(session.blocks)


def dump_document(document: dict[str, Any]) -> str:
    return json.dumps(document, sort_keys=True, separators=(",", ":"), ensure_ascii=False) + "\n"


__all__ = ["dump_document", "render_blocks", "render_document"]
