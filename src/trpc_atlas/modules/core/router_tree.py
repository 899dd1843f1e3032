"""Router tree construction.

Starting from a file and the name of a router variable, find the variable's
``router({...})`` call and walk its object literal in source order:

- a procedure chain becomes a leaf;
- an identifier is tried as a procedure (local declaration, then import),
  then as another router variable, which is built recursively;
- an inline ``router({...})`` call becomes a nested collection;
- shorthand properties are resolved as router variables;
- anything else becomes an empty collection placeholder.

A ``(file, variable)`` pair is expanded at most once per build, which keeps
mutually referencing routers finite.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable

from .procedure_analysis import ProcedureAnalyzer
from .ts_parser import (
    SourceUnit,
    call_arguments,
    find_export_default_value,
    find_variable_declarator,
    parse_file,
    property_name,
    unwrap_expression,
    walk,
)
from .session import AnalysisSession
from .types import ImportBinding, NodeKind, ProcedureResolution, ProcedureTreeNode

logger = logging.getLogger(__name__)

DEFAULT_ALIAS_NAMES = frozenset({"AppRouter"})


def is_router_call(unit: SourceUnit, node: Any, factory_names: Iterable[str]) -> bool:
    """``router(...)``, ``createTRPCRouter(...)`` or ``<expr>.router(...)``."""
    if node is None or node.type != "call_expression":
        return False
    callee = node.child_by_field_name("function")
    if callee is None:
        return False
    if callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        return prop is not None and unit.text(prop) in set(factory_names) | {"router"}
    if callee.type == "identifier":
        return unit.text(callee) in set(factory_names)
    return False


def find_root_aliases(unit: SourceUnit, alias_names: Iterable[str] = DEFAULT_ALIAS_NAMES) -> list[tuple[str, str]]:
    """``(alias, target)`` for each ``export type <alias> = typeof <target>``."""
    wanted = set(alias_names)
    seen: set[tuple[str, str]] = set()
    results: list[tuple[str, str]] = []
    for node in walk(unit.root):
        if node.type != "type_alias_declaration":
            continue
        if node.parent is None or node.parent.type != "export_statement":
            continue
        name = node.child_by_field_name("name")
        value = node.child_by_field_name("value")
        if name is None or value is None or value.type != "type_query":
            continue
        alias = unit.text(name)
        if alias not in wanted:
            continue
        query = [c for c in value.named_children if c.type != "comment"]
        if not query:
            continue
        pair = (alias, unit.text(query[0]))
        if pair not in seen:
            seen.add(pair)
            results.append(pair)
    return results


def find_root_alias_names(file: str | Path, alias_names: Iterable[str] = DEFAULT_ALIAS_NAMES) -> list[str]:
    """Router variable names behind the root type aliases of ``file``."""
    unit = parse_file(file)
    if unit is None:
        logger.debug("find_root_alias_names: file does not exist: %s", file)
        return []
    names: list[str] = []
    for _alias, target in find_root_aliases(unit, alias_names):
        if target not in names:
            names.append(target)
    return names


class RouterTreeBuilder:
    def __init__(self, session: AnalysisSession | None = None, analyzer: ProcedureAnalyzer | None = None):
        self.session = session or AnalysisSession()
        self.analyzer = analyzer or ProcedureAnalyzer(self.session)

    @property
    def factory_names(self) -> tuple[str, ...]:
        return self.session.config.router_factory_names

    def build(
        self,
        file: str | Path,
        variable: str,
        visited: set[tuple[str, str]] | None = None,
    ) -> ProcedureTreeNode | None:
        """Tree of the router bound to ``variable`` in ``file``.

        Passing ``visited=None`` starts a new build and clears the session's
        semantic caches. Returns None for a missing file or a pair already
        expanded in this build.
        """
        if visited is None:
            self.session.clear_semantic_caches()
            visited = set()

        path = os.path.abspath(file)
        key = (path, variable)
        if key in visited:
            logger.debug("Already visited %s:%s", path, variable)
            return None
        unit = self.session.load_unit(path)
        if unit is None:
            logger.warning("Router file not found: %s", path)
            return None
        visited.add(key)
        logger.debug("Building router %s:%s", path, variable)

        imports = self.session.imports_of(unit)
        root = ProcedureTreeNode(name=variable, kind=NodeKind.COLLECTION, source_file=path)
        for declarator in _declarators_named(unit, variable):
            if root.source_line is None:
                root.source_line = unit.line_of(declarator)
            init = unwrap_expression(declarator.child_by_field_name("value"))
            if not is_router_call(unit, init, self.factory_names):
                continue
            obj = _object_argument(init)
            if obj is not None:
                self._walk_router_object(obj, root, unit, imports, visited)
        return root

    def _walk_router_object(
        self,
        obj: Any,
        parent: ProcedureTreeNode,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
        visited: set[tuple[str, str]],
    ) -> None:
        for prop in obj.named_children:
            if prop.type == "pair":
                child = self._child_from_pair(prop, unit, imports, visited)
                if child is not None:
                    parent.children.append(child)
            elif prop.type == "shorthand_property_identifier":
                key = unit.text(prop)
                child = self._resolve_router(key, unit, imports, visited)
                if child is not None:
                    parent.children.append(replace(child, name=key))

    def _child_from_pair(
        self,
        prop: Any,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
        visited: set[tuple[str, str]],
    ) -> ProcedureTreeNode | None:
        key_node = prop.child_by_field_name("key")
        value = prop.child_by_field_name("value")
        if key_node is None or value is None:
            return None
        key = property_name(key_node, unit.source) or unit.text(key_node)
        line = unit.line_of(prop)

        analysis = self.analyzer.analyze(value, unit, imports)
        if analysis is not None:
            return ProcedureTreeNode(
                name=key,
                kind=analysis.kind,
                source_file=unit.path,
                source_line=line,
                input_shape=analysis.input_shape,
                output_shape=analysis.output_shape,
            )

        if value.type == "identifier":
            name = unit.text(value)
            procedure = self.resolve_procedure(name, unit, imports)
            if procedure is not None:
                return ProcedureTreeNode(
                    name=key,
                    kind=procedure.analysis.kind,
                    source_file=procedure.source_file,
                    source_line=procedure.source_line,
                    input_shape=procedure.analysis.input_shape,
                    output_shape=procedure.analysis.output_shape,
                )
            child = self._resolve_router(name, unit, imports, visited)
            if child is not None:
                return replace(child, name=key)

        nested = ProcedureTreeNode(name=key, kind=NodeKind.COLLECTION, source_file=unit.path, source_line=line)
        if is_router_call(unit, value, self.factory_names):
            obj = _object_argument(value)
            if obj is not None:
                self._walk_router_object(obj, nested, unit, imports, visited)
        return nested

    def resolve_procedure(
        self,
        name: str,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
    ) -> ProcedureResolution | None:
        """A procedure bound to ``name``: declared locally, else imported."""
        declarator = find_variable_declarator(unit, name)
        if declarator is not None:
            analysis = self.analyzer.analyze(declarator.child_by_field_name("value"), unit, imports)
            if analysis is not None:
                return ProcedureResolution(analysis, unit.path, unit.line_of(declarator))

        binding = imports.get(name)
        if binding is None or binding.is_namespace:
            return None
        target_path = self.session.resolver.resolve(binding.module_specifier, unit.path)
        target = self.session.load_unit(target_path) if target_path else None
        if target is None:
            return None
        target_imports = self.session.imports_of(target)

        target_name = name if binding.is_default else binding.exported_name
        declarator = find_variable_declarator(target, target_name)
        if declarator is None and binding.is_default:
            value = find_export_default_value(target)
            if value is not None and value.type == "identifier":
                declarator = find_variable_declarator(target, target.text(value))
            elif value is not None:
                analysis = self.analyzer.analyze(value, target, target_imports)
                if analysis is not None:
                    return ProcedureResolution(analysis, target.path, target.line_of(value))
        if declarator is None:
            return None

        analysis = self.analyzer.analyze(declarator.child_by_field_name("value"), target, target_imports)
        if analysis is None:
            return None
        logger.debug("Resolved procedure %s from %s", name, target.path)
        return ProcedureResolution(analysis, target.path, target.line_of(declarator))

    def _resolve_router(
        self,
        name: str,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
        visited: set[tuple[str, str]],
    ) -> ProcedureTreeNode | None:
        """Router bound to ``name``: followed through its import first, else local."""
        binding = imports.get(name)
        if binding is not None and not binding.is_namespace:
            resolved = self.session.resolver.resolve(binding.module_specifier, unit.path)
            if resolved:
                target_name = name if binding.is_default else binding.exported_name
                if binding.is_default:
                    target_name = self._default_export_name(resolved) or target_name
                return self.build(resolved, target_name, visited)
        return self.build(unit.path, name, visited)

    def _default_export_name(self, path: str) -> str | None:
        target = self.session.load_unit(path)
        if target is None:
            return None
        value = find_export_default_value(target)
        if value is not None and value.type == "identifier":
            return target.text(value)
        return None


def _declarators_named(unit: SourceUnit, name: str) -> Iterable[Any]:
    for node in walk(unit.root):
        if node.type != "variable_declarator" or node.child_by_field_name("value") is None:
            continue
        name_node = node.child_by_field_name("name")
        if name_node is not None and unit.text(name_node) == name:
            yield node


def _object_argument(call: Any) -> Any | None:
    args = call_arguments(call.child_by_field_name("arguments"))
    if args and args[0].type == "object":
        return args[0]
    return None
