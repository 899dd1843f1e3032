"""Kind and input/output shapes of one procedure chain.

Given ``publicProcedure.input(schema).query(handler)`` the analyzer reports
the kind (``query``) and shape texts, trying in order:

1. explicit ``.input()`` / ``.output()`` arguments, with schema identifiers
   followed to their definitions;
2. syntax-only inference over the handler's returned expressions;
3. for returned expressions step 2 cannot type, the type checker's type of
   the same expression in the whole-program model;
4. the type checker's type of the whole call, whose generic argument usually
   spells out ``{ input: ...; output: ...; }``.

Explicit shapes always win. Step 4 supplies a missing input, and replaces
the output only when step 2 learned nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .errors import log_and_return_empty
from .schema_text import SchemaTextResolver
from .semantic.enums import resolve_enum_aliases_in_text
from .semantic.render import type_to_display_string, type_to_string
from .structural_inference import collect_return_expressions, infer_expression_type, is_inline_handler
from .ts_parser import SourceUnit, call_arguments, find_node_by_range
from .type_text import (
    extract_top_level_generic_arg,
    extract_top_level_object_field_type,
    is_non_informative_inferred_type,
    sanitize_type_text,
)
from .types import ImportBinding, NodeKind, ProcedureAnalysis

if TYPE_CHECKING:
    from .config_cache import SemanticContext
    from .session import AnalysisSession

logger = logging.getLogger(__name__)

PROCEDURE_METHODS = {
    "query": NodeKind.QUERY,
    "mutation": NodeKind.MUTATION,
    "subscription": NodeKind.SUBSCRIPTION,
}


def procedure_method(unit: SourceUnit, node: Any) -> NodeKind | None:
    """Kind of a ``<chain>.query(...)``-style call; None for anything else."""
    if node is None or node.type != "call_expression":
        return None
    callee = node.child_by_field_name("function")
    if callee is None or callee.type != "member_expression":
        return None
    prop = callee.child_by_field_name("property")
    return PROCEDURE_METHODS.get(unit.text(prop)) if prop is not None else None


def find_method_in_chain(unit: SourceUnit, node: Any, method: str) -> str | None:
    """First-argument text of the nearest ``.method(...)`` call down the receiver chain."""
    while node is not None and node.type == "call_expression":
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != "member_expression":
            return None
        prop = callee.child_by_field_name("property")
        args = call_arguments(node.child_by_field_name("arguments"))
        if prop is not None and unit.text(prop) == method and args:
            return unit.text(args[0])
        node = callee.child_by_field_name("object")
    return None


class ProcedureAnalyzer:
    def __init__(self, session: AnalysisSession, schema_resolver: SchemaTextResolver | None = None):
        self.session = session
        self.schema_resolver = schema_resolver or SchemaTextResolver(session)

    def analyze(
        self,
        node: Any,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
    ) -> ProcedureAnalysis | None:
        kind = procedure_method(unit, node)
        if kind is None:
            return None
        receiver = node.child_by_field_name("function").child_by_field_name("object")

        input_shape = find_method_in_chain(unit, receiver, "input")
        output_shape = find_method_in_chain(unit, receiver, "output")
        has_explicit_input = input_shape is not None
        has_explicit_output = output_shape is not None
        if input_shape is not None:
            input_shape = self.schema_resolver.resolve(input_shape, unit, imports)
        if output_shape is not None:
            output_shape = self.schema_resolver.resolve(output_shape, unit, imports)

        structural_informative = False
        if not output_shape:
            output_shape, structural_informative = self._infer_handler_output(node, unit, input_shape)

        from_type = self._shapes_from_procedure_type(node, unit)
        if from_type is not None:
            typed_input, typed_output = from_type
            if not has_explicit_input and typed_input and not is_non_informative_inferred_type(typed_input):
                input_shape = typed_input
            if (
                not has_explicit_output
                and not structural_informative
                and typed_output
                and not is_non_informative_inferred_type(typed_output)
            ):
                output_shape = typed_output

        logger.debug(
            "Analyzed %s at %s:%d: input=%s output=%s",
            kind.value, unit.path, unit.line_of(node), input_shape, output_shape,
        )
        return ProcedureAnalysis(kind=kind, input_shape=input_shape or None, output_shape=output_shape or None)

    def _infer_handler_output(
        self, node: Any, unit: SourceUnit, input_shape: str | None
    ) -> tuple[str | None, bool]:
        """Output shape from the handler's returns, and whether syntax alone was informative."""
        args = call_arguments(node.child_by_field_name("arguments"))
        if not args or not is_inline_handler(args[0]):
            return None, False

        inferred_types: list[str] = []
        structural_informative = False
        for expr in collect_return_expressions(unit, args[0]):
            inferred: str | None = infer_expression_type(unit, expr, input_shape)
            if is_non_informative_inferred_type(inferred):
                inferred = self._semantic_expression_type(expr, unit)
            else:
                structural_informative = True
            if inferred and not is_non_informative_inferred_type(inferred) and inferred not in inferred_types:
                inferred_types.append(inferred)

        if not inferred_types:
            return None, structural_informative
        logger.debug("Inferred output shape(s) from handler: %s", " | ".join(inferred_types))
        return " | ".join(inferred_types), structural_informative

    def _locate(self, node: Any, unit: SourceUnit) -> tuple[SemanticContext, SourceUnit, Any] | None:
        """The semantic context and the same node in its independent parse."""
        context = self.session.semantic_context(unit.path)
        if context is None:
            return None
        program_unit = context.program.get_unit(unit.path)
        if program_unit is None:
            return None
        found = find_node_by_range(program_unit.root, node.start_byte, node.end_byte, node.type)
        if found is None:
            logger.debug("No node at %d-%d in program parse of %s", node.start_byte, node.end_byte, unit.path)
            return None
        return context, program_unit, found

    def _semantic_expression_type(self, expr: Any, unit: SourceUnit) -> str | None:
        located = self._locate(expr, unit)
        if located is None:
            return None
        context, program_unit, found = located
        try:
            text = type_to_display_string(context.checker.type_at(program_unit, found), context.checker)
        except RecursionError as exc:
            return log_and_return_empty(logger, logging.DEBUG, f"Type of expression in {unit.path} too deep", exc)
        sanitized = sanitize_type_text(text)
        if not sanitized:
            return None
        return resolve_enum_aliases_in_text(sanitized, context, self.session.enum_cache)

    def _shapes_from_procedure_type(self, node: Any, unit: SourceUnit) -> tuple[str | None, str | None] | None:
        located = self._locate(node, unit)
        if located is None:
            return None
        context, program_unit, found = located
        try:
            type_text = type_to_string(context.checker.type_at(program_unit, found))
        except RecursionError as exc:
            return log_and_return_empty(logger, logging.DEBUG, f"Procedure type in {unit.path} too deep", exc)

        generic_arg = extract_top_level_generic_arg(type_text)
        if not generic_arg:
            return None
        input_field = extract_top_level_object_field_type(generic_arg, "input")
        output_field = extract_top_level_object_field_type(generic_arg, "output")
        input_shape = sanitize_type_text(input_field) if input_field else None
        output_shape = sanitize_type_text(output_field) if output_field else None
        if not input_shape and not output_shape:
            return None
        if output_shape:
            output_shape = resolve_enum_aliases_in_text(output_shape, context, self.session.enum_cache)
        return input_shape, output_shape
