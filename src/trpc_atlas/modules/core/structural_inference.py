"""Syntax-only type inference for handler return values.

Works on the shallow parse alone: literals, object and array literals,
conditionals and ``input.<field>`` lookups against the resolved input
schema text. Anything else is ``unknown``; callers treat an all-``unknown``
result as no information and ask the type checker instead.
"""

from __future__ import annotations

import re
from typing import Any

from .ts_parser import (
    SourceUnit,
    TRANSPARENT_EXPRESSION_TYPES,
    is_function_node,
    iter_return_expressions,
    property_name,
)
from .type_text import value_segment_at

_ZOD_PRIMITIVES = {
    "string": "string",
    "number": "number",
    "boolean": "boolean",
    "date": "Date",
    "bigint": "bigint",
    "unknown": "unknown",
    "any": "any",
    "null": "null",
    "undefined": "undefined",
}

INPUT_PARAMETER_NAME = "input"

_ZOD_BASE_RE = re.compile(r"z\.(" + "|".join(_ZOD_PRIMITIVES) + r")\s*\(")


def guess_input_field_type(input_schema: str | None, field: str) -> str | None:
    """Primitive type of ``field`` read off zod-style input schema text.

    ``name: z.string().optional()`` gives ``string | undefined``;
    ``.nullable()`` gives ``string | null``.
    """
    if not input_schema:
        return None
    field_re = re.compile(r"(?<![\w$])[\"']?" + re.escape(field) + r"[\"']?\s*\??\s*:\s*")
    for match in field_re.finditer(input_schema):
        value = value_segment_at(input_schema, match.end())
        base = _ZOD_BASE_RE.match(value)
        if base is None:
            continue
        primitive = _ZOD_PRIMITIVES[base.group(1)]
        if re.search(r"\.optional\s*\(", value):
            return f"{primitive} | undefined"
        if re.search(r"\.nullable\s*\(", value):
            return f"{primitive} | null"
        return primitive
    return None


def collect_return_expressions(unit: SourceUnit, fn_node: Any) -> list[Any]:
    """Returned expressions of a handler; an expression body counts as one."""
    body = fn_node.child_by_field_name("body")
    if body is None:
        return []
    if body.type != "statement_block":
        return [body]
    return [expr for expr in iter_return_expressions(body) if expr is not None]


def infer_expression_type(unit: SourceUnit, node: Any, input_schema: str | None = None) -> str:
    kind = node.type

    if kind in TRANSPARENT_EXPRESSION_TYPES:
        inner = [c for c in node.named_children if c.type != "comment"]
        return infer_expression_type(unit, inner[0], input_schema) if inner else "unknown"

    if kind == "member_expression":
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is not None and prop is not None and obj.type == "identifier" and (
            unit.text(obj) == INPUT_PARAMETER_NAME
        ):
            guessed = guess_input_field_type(input_schema, unit.text(prop))
            if guessed:
                return guessed
        return "unknown"

    if kind in ("string", "template_string"):
        return "string"
    if kind == "number":
        return "number"
    if kind in ("true", "false"):
        return "boolean"
    if kind == "null":
        return "null"
    if kind == "undefined" or (kind == "identifier" and unit.text(node) == "undefined"):
        return "undefined"

    if kind == "new_expression":
        constructor = node.child_by_field_name("constructor")
        if constructor is not None and constructor.type == "identifier" and unit.text(constructor) == "Date":
            return "Date"
        return "unknown"

    if kind == "array":
        item_types: list[str] = []
        for element in node.named_children:
            if element.type in ("spread_element", "comment"):
                continue
            inferred = infer_expression_type(unit, element, input_schema)
            if inferred not in item_types:
                item_types.append(inferred)
        if not item_types:
            return "unknown[]"
        return (item_types[0] if len(item_types) == 1 else " | ".join(item_types)) + "[]"

    if kind == "object":
        return _infer_object(unit, node, input_schema)

    if kind == "ternary_expression":
        consequence = node.child_by_field_name("consequence")
        alternative = node.child_by_field_name("alternative")
        when_true = infer_expression_type(unit, consequence, input_schema) if consequence else "unknown"
        when_false = infer_expression_type(unit, alternative, input_schema) if alternative else "unknown"
        return when_true if when_true == when_false else f"{when_true} | {when_false}"

    return "unknown"


def _infer_object(unit: SourceUnit, node: Any, input_schema: str | None) -> str:
    members = [c for c in node.named_children if c.type != "comment"]
    if not members:
        return "{ }"

    fields: list[str] = []
    has_spread = False
    for member in members:
        if member.type == "spread_element":
            has_spread = True
        elif member.type == "pair":
            key = property_name(member.child_by_field_name("key"), unit.source)
            if key is None:
                continue
            value = member.child_by_field_name("value")
            value_type = infer_expression_type(unit, value, input_schema) if value is not None else "unknown"
            fields.append(f"{key}: {value_type};")
        elif member.type == "shorthand_property_identifier":
            fields.append(f"{unit.text(member)}: unknown;")
        elif member.type == "method_definition":
            key = property_name(member.child_by_field_name("name"), unit.source)
            if key is not None:
                fields.append(f"{key}: (...args: unknown[]) => unknown;")

    if has_spread:
        fields.append("[key: string]: unknown;")
    if not fields:
        return "{ [key: string]: unknown; }"
    return "{ " + " ".join(fields) + " }"


def is_inline_handler(node: Any) -> bool:
    return is_function_node(node) and node.type in ("arrow_function", "function_expression", "function")
