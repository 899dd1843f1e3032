"""Tree output formatting helpers."""

from __future__ import annotations

import os
from typing import Iterable

from .shape_pretty import ShapePrettifier
from .tree_helpers import count_procedures
from .types import ProcedureTreeNode

INDENT = "  "


def tree_to_dict(node: ProcedureTreeNode) -> dict:
    return node.to_dict()


def trees_to_dicts(trees: Iterable[ProcedureTreeNode]) -> list[dict]:
    return [tree_to_dict(tree) for tree in trees]


def _location(node: ProcedureTreeNode, root: str | None) -> str:
    if node.source_file is None:
        return ""
    path = node.source_file
    if root:
        rel = os.path.relpath(path, root)
        if not rel.startswith(".."):
            path = rel
    path = path.replace(os.sep, "/")
    return f"{path}:{node.source_line}" if node.source_line is not None else path


def _format_counts(counts: dict[str, int]) -> str:
    return ", ".join(f"{count} {kind}" for kind, count in counts.items() if count)


def _render_node(
    node: ProcedureTreeNode,
    depth: int,
    lines: list[str],
    root: str | None,
    prettifier: ShapePrettifier | None,
) -> None:
    pad = INDENT * depth
    location = _location(node, root)
    head = f"{pad}{node.name} [{node.kind.value}]"
    lines.append(f"{head}  {location}" if location else head)

    if node.kind.is_procedure:
        for label, shape in (("input", node.input_shape), ("output", node.output_shape)):
            if shape is None:
                continue
            text = prettifier.prettify(shape) if prettifier is not None else shape
            continuation = "\n" + pad + INDENT * 2
            lines.append(f"{pad}{INDENT}{label}: {continuation.join(text.splitlines())}")
        return

    for child in node.children:
        _render_node(child, depth + 1, lines, root, prettifier)


def format_text_tree(
    trees: Iterable[ProcedureTreeNode],
    root: str | None = None,
    prettifier: ShapePrettifier | None = None,
) -> str:
    """Indented plain-text rendering, one block per tree.

    Paths are shown relative to ``root`` when they lie below it.
    """
    blocks: list[str] = []
    for tree in trees:
        lines: list[str] = []
        _render_node(tree, 0, lines, root, prettifier)
        counts = _format_counts(count_procedures(tree))
        if counts:
            lines.append(f"({counts})")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def prettify_tree(node: ProcedureTreeNode, prettifier: ShapePrettifier) -> ProcedureTreeNode:
    """Copy of ``node`` with every shape passed through ``prettifier``."""
    return ProcedureTreeNode(
        name=node.name,
        kind=node.kind,
        children=[prettify_tree(child, prettifier) for child in node.children],
        source_file=node.source_file,
        source_line=node.source_line,
        input_shape=prettifier.prettify(node.input_shape) if node.input_shape is not None else None,
        output_shape=prettifier.prettify(node.output_shape) if node.output_shape is not None else None,
    )
