"""tree-sitter parsing of TypeScript sources.

Every analysis step works on a ``SourceUnit``: the raw bytes of one file
plus the tree-sitter tree parsed from them. Node offsets are byte offsets
into ``SourceUnit.source``; two units parsed from the same bytes therefore
agree on every span, which is how the router walk and the whole-program
model correlate nodes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

import tree_sitter_typescript
from tree_sitter import Language, Parser

logger = logging.getLogger(__name__)


_DIALECTS = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}

FUNCTION_NODE_TYPES = frozenset(
    {
        "arrow_function",
        "function",
        "function_expression",
        "function_declaration",
        "generator_function",
        "generator_function_declaration",
        "method_definition",
    }
)

# Wrappers that do not change which value an expression denotes.
TRANSPARENT_EXPRESSION_TYPES = frozenset(
    {
        "parenthesized_expression",
        "as_expression",
        "satisfies_expression",
        "non_null_expression",
    }
)


def dialect_for_path(path: str | Path) -> str:
    return _DIALECTS.get(Path(path).suffix.lower(), "typescript")


@lru_cache(maxsize=None)
def _tree_sitter_language(dialect: str) -> Language:
    if dialect == "tsx":
        return Language(tree_sitter_typescript.language_tsx())
    return Language(tree_sitter_typescript.language_typescript())


@lru_cache(maxsize=None)
def get_parser(dialect: str = "typescript") -> Parser:
    lang = _tree_sitter_language(dialect)
    try:
        parser = Parser()
        parser.language = lang
    except (TypeError, AttributeError):
        parser = Parser(lang)
    return parser


@dataclass
class SourceUnit:
    """One parsed file."""

    path: str
    source: bytes
    tree: Any

    @property
    def root(self) -> Any:
        return self.tree.root_node

    def text(self, node: Any) -> str:
        return node_text(node, self.source)

    def line_of(self, node: Any) -> int:
        return node.start_point[0] + 1


def parse_source(path: str | Path, source: bytes | str) -> SourceUnit:
    if isinstance(source, str):
        source = source.encode("utf-8")
    tree = get_parser(dialect_for_path(path)).parse(source)
    return SourceUnit(path=str(path), source=source, tree=tree)


def parse_file(path: str | Path) -> SourceUnit | None:
    """Parse a file from disk; None when it does not exist."""
    file_path = Path(path)
    if not file_path.is_file():
        return None
    return parse_source(file_path, file_path.read_bytes())


def node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def walk(node: Any) -> Iterator[Any]:
    """Pre-order traversal in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def unwrap_expression(node: Any) -> Any:
    while node is not None and node.type in TRANSPARENT_EXPRESSION_TYPES:
        inner = node.named_children[0] if node.named_children else None
        if inner is None:
            break
        node = inner
    return node


def is_function_node(node: Any) -> bool:
    return node is not None and node.type in FUNCTION_NODE_TYPES


def has_token(node: Any, token: str) -> bool:
    """True when an anonymous child token (``async``, ``const``...) is present."""
    return any(not child.is_named and child.type == token for child in node.children)


def string_value(node: Any, source: bytes) -> str:
    """Contents of a string literal node without its quotes."""
    text = node_text(node, source)
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


def property_name(node: Any, source: bytes) -> str | None:
    """Text of a property key; None for computed keys."""
    if node is None:
        return None
    if node.type == "string":
        return string_value(node, source)
    if node.type == "computed_property_name":
        return None
    return node_text(node, source)


def find_variable_declarator(unit: SourceUnit, name: str) -> Any | None:
    """First ``variable_declarator`` binding ``name`` with an initializer."""
    for node in walk(unit.root):
        if node.type != "variable_declarator":
            continue
        name_node = node.child_by_field_name("name")
        if name_node is None or unit.text(name_node) != name:
            continue
        if node.child_by_field_name("value") is not None:
            return node
    return None


def find_export_default_value(unit: SourceUnit) -> Any | None:
    for stmt in unit.root.named_children:
        if stmt.type != "export_statement" or not has_token(stmt, "default"):
            continue
        value = stmt.child_by_field_name("value")
        if value is not None:
            return value
    return None


def find_node_by_range(
    root: Any,
    start: int,
    end: int,
    node_type: str | None = None,
) -> Any | None:
    """Locate the node spanning exactly ``[start, end)``.

    Among nested nodes sharing the span the outermost wins, unless
    ``node_type`` names one of them.
    """
    node = root
    first_match = None
    while node is not None:
        if node.start_byte == start and node.end_byte == end:
            if first_match is None:
                first_match = node
            if node_type is None or node.type == node_type:
                return node
        next_node = None
        for child in node.children:
            if child.start_byte <= start and child.end_byte >= end:
                next_node = child
                break
        node = next_node
    return first_match


def iter_return_expressions(body: Any) -> Iterator[Any | None]:
    """Operands of ``return`` statements under ``body`` in source order.

    Nested functions and classes are not entered. A bare ``return`` yields
    None.
    """
    stack = [body]
    while stack:
        node = stack.pop()
        if node.type == "return_statement":
            operands = [c for c in node.named_children if c.type != "comment"]
            yield operands[0] if operands else None
            continue
        for child in reversed(node.children):
            if is_function_node(child) or child.type in ("class_declaration", "class"):
                continue
            stack.append(child)


def call_arguments(arguments: Any) -> list[Any]:
    """Argument expressions of an ``arguments`` node, comments excluded."""
    if arguments is None:
        return []
    return [c for c in arguments.named_children if c.type != "comment"]
