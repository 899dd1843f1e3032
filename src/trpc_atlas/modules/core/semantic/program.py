"""Whole-program model: independent parses of project files plus symbol tables.

A ``Program`` owns its own tree-sitter parse of every file it touches; it
never shares trees with the router walk. Files are parsed lazily, so the
root file list only matters for whole-program scans (exported enum-like
declarations). Imports are followed through the session's module resolver,
which means path aliases work here exactly as they do for router discovery.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from ..imports import collect_import_bindings
from ..ts_parser import (
    SourceUnit,
    has_token,
    is_function_node,
    parse_file,
    property_name,
    string_value,
)
from ..types import ImportBinding

if TYPE_CHECKING:
    from ..module_resolver import ModuleResolver

logger = logging.getLogger(__name__)

VALUE = "value"
TYPE = "type"

_LIB_REFERENCE_RE = re.compile(r'///\s*<reference\s+lib="([^"]+)"\s*/>')

_VARIABLE_STATEMENTS = ("lexical_declaration", "variable_declaration")
_FUNCTION_DECLARATIONS = (
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
)
_CLASS_DECLARATIONS = ("class_declaration", "abstract_class_declaration")
_NAMESPACE_DECLARATIONS = ("internal_module", "module")
_TYPE_DECLARATIONS = {
    "type_alias_declaration": "type_alias",
    "interface_declaration": "interface",
    "class_declaration": "class",
    "enum_declaration": "enum",
}


@dataclass(eq=False)
class Declaration:
    """A named binding: module-level declaration, local variable or parameter.

    ``path`` locates a destructured name inside its declared value, as
    ``("prop", name)``, ``("index", i)`` and ``("rest",)`` steps.
    """

    kind: str
    name: str
    node: Any
    unit: SourceUnit
    path: tuple = ()
    const: bool = False
    scope: ModuleScope | None = None
    function: Any = None
    index: int = 0
    extra_nodes: list = field(default_factory=list)

    @property
    def key(self) -> tuple:
        return (self.unit.path, self.node.start_byte, self.node.end_byte, self.name, self.path)


@dataclass
class ExportEntry:
    local: str | None = None
    module_specifier: str | None = None
    imported: str | None = None
    expression: Any = None


@dataclass(eq=False)
class ModuleScope:
    """Symbol table of a file or of a namespace body."""

    unit: SourceUnit
    values: dict[str, Declaration] = field(default_factory=dict)
    types: dict[str, Declaration] = field(default_factory=dict)
    imports: dict[str, ImportBinding] = field(default_factory=dict)
    exports: dict[str, ExportEntry] = field(default_factory=dict)
    star_exports: list[str] = field(default_factory=list)


def pattern_bindings(node: Any, unit: SourceUnit, path: tuple = ()) -> Iterator[tuple[str, tuple]]:
    """Names bound by a binding pattern, each with its destructuring path."""
    if node is None:
        return
    kind = node.type
    if kind in ("identifier", "shorthand_property_identifier_pattern"):
        yield unit.text(node), path
    elif kind == "object_pattern":
        for child in node.named_children:
            if child.type == "shorthand_property_identifier_pattern":
                name = unit.text(child)
                yield name, path + (("prop", name),)
            elif child.type == "pair_pattern":
                key = property_name(child.child_by_field_name("key"), unit.source)
                if key is not None:
                    yield from pattern_bindings(
                        child.child_by_field_name("value"), unit, path + (("prop", key),)
                    )
            elif child.type == "object_assignment_pattern":
                left = child.child_by_field_name("left")
                if left is not None and left.type == "shorthand_property_identifier_pattern":
                    name = unit.text(left)
                    yield name, path + (("prop", name),)
                else:
                    yield from pattern_bindings(left, unit, path)
            elif child.type == "rest_pattern":
                yield from pattern_bindings(
                    child.named_children[0] if child.named_children else None,
                    unit,
                    path + (("rest",),),
                )
    elif kind == "array_pattern":
        for i, child in enumerate(node.named_children):
            if child.type == "rest_pattern":
                inner = child.named_children[0] if child.named_children else None
                yield from pattern_bindings(inner, unit, path + (("rest_index", i),))
            elif child.type == "assignment_pattern":
                yield from pattern_bindings(child.child_by_field_name("left"), unit, path + (("index", i),))
            else:
                yield from pattern_bindings(child, unit, path + (("index", i),))
    elif kind == "assignment_pattern":
        yield from pattern_bindings(node.child_by_field_name("left"), unit, path)


def function_parameters(fn_node: Any) -> list[Any]:
    """Parameter nodes of a function-like node, in order."""
    single = fn_node.child_by_field_name("parameter")
    if single is not None:
        return [single]
    params = fn_node.child_by_field_name("parameters")
    if params is None:
        return []
    return [
        p for p in params.named_children
        if p.type in ("required_parameter", "optional_parameter", "identifier", "rest_pattern")
    ]


def parameter_pattern(param: Any) -> Any:
    if param.type in ("identifier", "rest_pattern"):
        return param
    return param.child_by_field_name("pattern")


class Program:
    """Lazily parsed set of files sharing one module resolver."""

    def __init__(
        self,
        root_files: list[str | Path],
        resolver: ModuleResolver,
        lib_directory: Path | None = None,
    ):
        self.root_files = [str(Path(p).resolve()) for p in root_files]
        self.resolver = resolver
        self.lib_directory = lib_directory
        self._units: dict[str, SourceUnit | None] = {}
        self._scopes: dict[str, ModuleScope] = {}
        self._globals: dict[str, Declaration] | None = None

    # -- files -----------------------------------------------------------

    def get_unit(self, path: str | Path) -> SourceUnit | None:
        key = str(Path(path).resolve())
        if key not in self._units:
            try:
                self._units[key] = parse_file(key)
            except OSError as exc:
                logger.debug("Program cannot read %s: %s", key, exc)
                self._units[key] = None
        return self._units[key]

    def source_units(self) -> Iterator[SourceUnit]:
        """Root files first, then every other file loaded so far."""
        seen: set[str] = set()
        for path in self.root_files:
            unit = self.get_unit(path)
            if unit is not None:
                seen.add(unit.path)
                yield unit
        for unit in list(self._units.values()):
            if unit is not None and unit.path not in seen:
                seen.add(unit.path)
                yield unit

    def module_scope(self, unit: SourceUnit) -> ModuleScope:
        scope = self._scopes.get(unit.path)
        if scope is None:
            scope = ModuleScope(unit=unit, imports=collect_import_bindings(unit))
            self._index_statements(unit.root.named_children, unit, scope)
            self._scopes[unit.path] = scope
        return scope

    def scope_for_path(self, path: str) -> ModuleScope | None:
        unit = self.get_unit(path)
        return self.module_scope(unit) if unit is not None else None

    # -- indexing --------------------------------------------------------

    def _index_statements(self, statements: list, unit: SourceUnit, scope: ModuleScope) -> None:
        for stmt in statements:
            if stmt.type == "export_statement":
                self._index_export(stmt, unit, scope)
            elif stmt.type == "expression_statement" and stmt.named_children and (
                stmt.named_children[0].type in _NAMESPACE_DECLARATIONS
            ):
                self._index_declaration(stmt.named_children[0], unit, scope)
            else:
                self._index_declaration(stmt, unit, scope)

    def _index_export(self, stmt: Any, unit: SourceUnit, scope: ModuleScope) -> None:
        source = stmt.child_by_field_name("source")
        specifier = string_value(source, unit.source) if source is not None else None
        is_default = has_token(stmt, "default")

        declaration = stmt.child_by_field_name("declaration")
        if declaration is not None:
            names = self._index_declaration(declaration, unit, scope)
            if is_default and names:
                scope.exports["default"] = ExportEntry(local=names[0])
            else:
                for name in names:
                    scope.exports[name] = ExportEntry(local=name)
            return

        value = stmt.child_by_field_name("value")
        if value is not None:
            if value.type == "identifier":
                scope.exports["default"] = ExportEntry(local=unit.text(value))
            else:
                scope.exports["default"] = ExportEntry(expression=value)
            return

        clause = next((c for c in stmt.named_children if c.type == "export_clause"), None)
        if clause is not None:
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                if name_node is None:
                    continue
                alias_node = spec.child_by_field_name("alias")
                name = unit.text(name_node)
                exported = unit.text(alias_node) if alias_node is not None else name
                if specifier is not None:
                    scope.exports[exported] = ExportEntry(module_specifier=specifier, imported=name)
                else:
                    scope.exports[exported] = ExportEntry(local=name)
            return

        ns_export = next((c for c in stmt.named_children if c.type == "namespace_export"), None)
        if ns_export is not None and specifier is not None:
            ident = next((c for c in ns_export.named_children if c.type == "identifier"), None)
            if ident is not None:
                scope.exports[unit.text(ident)] = ExportEntry(module_specifier=specifier, imported="*")
            return

        if specifier is not None:
            scope.star_exports.append(specifier)

    def _index_declaration(self, node: Any, unit: SourceUnit, scope: ModuleScope) -> list[str]:
        kind = node.type
        names: list[str] = []

        if kind == "ambient_declaration":
            for child in node.named_children:
                names.extend(self._index_declaration(child, unit, scope))
            return names

        if kind in _VARIABLE_STATEMENTS:
            is_const = bool(node.children) and node.children[0].type == "const"
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                for name, path in pattern_bindings(declarator.child_by_field_name("name"), unit):
                    scope.values[name] = Declaration(
                        "variable", name, declarator, unit, path=path, const=is_const
                    )
                    names.append(name)
            return names

        name_node = node.child_by_field_name("name")
        if name_node is None:
            return names
        name = unit.text(name_node)

        if kind in _FUNCTION_DECLARATIONS:
            existing = scope.values.get(name)
            if existing is not None and existing.kind == "function":
                existing.extra_nodes.append(node)
            else:
                scope.values[name] = Declaration("function", name, node, unit)
            names.append(name)
        elif kind in _CLASS_DECLARATIONS:
            decl = Declaration("class", name, node, unit)
            scope.values[name] = decl
            scope.types[name] = decl
            names.append(name)
        elif kind == "interface_declaration":
            existing = scope.types.get(name)
            if existing is not None and existing.kind == "interface":
                existing.extra_nodes.append(node)
            else:
                scope.types[name] = Declaration("interface", name, node, unit)
            names.append(name)
        elif kind == "type_alias_declaration":
            scope.types[name] = Declaration("type_alias", name, node, unit)
            names.append(name)
        elif kind == "enum_declaration":
            decl = Declaration("enum", name, node, unit)
            scope.values[name] = decl
            scope.types[name] = decl
            names.append(name)
        elif kind in _NAMESPACE_DECLARATIONS and name_node.type != "string":
            body = node.child_by_field_name("body")
            nested = scope.values.get(name)
            if nested is None or nested.kind != "namespace":
                nested = Declaration("namespace", name, node, unit, scope=ModuleScope(unit=unit))
                scope.values[name] = nested
                scope.types.setdefault(name, nested)
            if body is not None and nested.scope is not None:
                self._index_statements(body.named_children, unit, nested.scope)
            names.append(name)
        return names

    # -- lookups ---------------------------------------------------------

    def resolve_value(self, unit: SourceUnit, name: str, at_node: Any) -> Declaration | None:
        """Binding of ``name`` as seen from ``at_node`` (locals, module, imports)."""
        local = self._find_local(unit, name, at_node)
        if local is not None:
            return local
        return self.lookup(self.module_scope(unit), name, VALUE)

    def resolve_type(self, unit: SourceUnit, name: str, at_node: Any = None) -> Declaration | None:
        node = at_node
        while node is not None and node.type != "program":
            if node.type == "statement_block":
                for stmt in node.named_children:
                    if stmt.type not in _TYPE_DECLARATIONS:
                        continue
                    name_node = stmt.child_by_field_name("name")
                    if name_node is not None and unit.text(name_node) == name:
                        return Declaration(_TYPE_DECLARATIONS[stmt.type], name, stmt, unit)
            node = node.parent
        return self.lookup(self.module_scope(unit), name, TYPE)

    def lookup(self, scope: ModuleScope, name: str, side: str) -> Declaration | None:
        table = scope.values if side == VALUE else scope.types
        decl = table.get(name)
        if decl is not None:
            return decl
        binding = scope.imports.get(name)
        if binding is not None:
            return self.resolve_import(binding, scope.unit, side)
        return None

    def resolve_import(
        self, binding: ImportBinding, from_unit: SourceUnit, side: str
    ) -> Declaration | None:
        target_path = self.resolver.resolve(binding.module_specifier, from_unit.path)
        if target_path is None:
            return None
        target = self.scope_for_path(target_path)
        if target is None:
            return None
        if binding.is_namespace:
            return Declaration("module", binding.module_specifier, target.unit.root, target.unit, scope=target)
        return self.resolve_export(target, binding.exported_name, side)

    def resolve_export(
        self,
        scope: ModuleScope,
        name: str,
        side: str,
        _seen: set | None = None,
    ) -> Declaration | None:
        seen = _seen if _seen is not None else set()
        marker = (scope.unit.path, id(scope), name, side)
        if marker in seen:
            return None
        seen.add(marker)

        entry = scope.exports.get(name)
        if entry is not None:
            if entry.expression is not None:
                return Declaration("expression", name, entry.expression, scope.unit)
            if entry.local is not None:
                return self.lookup(scope, entry.local, side)
            if entry.module_specifier is not None:
                target_path = self.resolver.resolve(entry.module_specifier, scope.unit.path)
                target = self.scope_for_path(target_path) if target_path else None
                if target is None:
                    return None
                if entry.imported == "*":
                    return Declaration("module", entry.module_specifier, target.unit.root, target.unit, scope=target)
                return self.resolve_export(target, entry.imported or name, side, seen)

        if name == "default":
            return None
        for specifier in scope.star_exports:
            target_path = self.resolver.resolve(specifier, scope.unit.path)
            target = self.scope_for_path(target_path) if target_path else None
            if target is None:
                continue
            found = self.resolve_export(target, name, side, seen)
            if found is not None:
                return found
        return None

    def member(self, container: Declaration, name: str, side: str) -> Declaration | None:
        """Member of a namespace declaration or namespace import."""
        if container.scope is None:
            return None
        if container.kind == "module":
            return self.resolve_export(container.scope, name, side)
        table = container.scope.values if side == VALUE else container.scope.types
        return table.get(name)

    def _find_local(self, unit: SourceUnit, name: str, at_node: Any) -> Declaration | None:
        node = at_node
        while node is not None and node.type != "program":
            parent = node.parent
            if is_function_node(node):
                for index, param in enumerate(function_parameters(node)):
                    for bound, path in pattern_bindings(parameter_pattern(param), unit):
                        if bound == name:
                            return Declaration(
                                "parameter", name, param, unit, path=path, function=node, index=index
                            )
            elif node.type in ("statement_block", "switch_case", "switch_default", "class_static_block"):
                found = self._find_in_block(node, unit, name)
                if found is not None:
                    return found
            elif node.type == "for_statement":
                initializer = node.child_by_field_name("initializer")
                if initializer is not None and initializer.type in _VARIABLE_STATEMENTS:
                    found = self._find_in_block_statements([initializer], unit, name)
                    if found is not None:
                        return found
            elif node.type == "for_in_statement":
                for bound, path in pattern_bindings(node.child_by_field_name("left"), unit):
                    if bound == name:
                        return Declaration("for_of", name, node, unit, path=path)
            elif node.type == "catch_clause":
                param = node.child_by_field_name("parameter")
                for bound, path in pattern_bindings(param, unit):
                    if bound == name:
                        return Declaration("catch", name, node, unit, path=path)
            node = parent
        return None

    def _find_in_block(self, block: Any, unit: SourceUnit, name: str) -> Declaration | None:
        return self._find_in_block_statements(block.named_children, unit, name)

    def _find_in_block_statements(self, statements: list, unit: SourceUnit, name: str) -> Declaration | None:
        for stmt in statements:
            if stmt.type in _VARIABLE_STATEMENTS:
                is_const = bool(stmt.children) and stmt.children[0].type == "const"
                for declarator in stmt.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    for bound, path in pattern_bindings(declarator.child_by_field_name("name"), unit):
                        if bound == name:
                            return Declaration("variable", name, declarator, unit, path=path, const=is_const)
            elif stmt.type in _FUNCTION_DECLARATIONS or stmt.type in _CLASS_DECLARATIONS:
                name_node = stmt.child_by_field_name("name")
                if name_node is not None and unit.text(name_node) == name:
                    kind = "function" if stmt.type in _FUNCTION_DECLARATIONS else "class"
                    return Declaration(kind, name, stmt, unit)
        return None

    # -- default library -------------------------------------------------

    def global_type(self, name: str) -> Declaration | None:
        """Global declaration from the pinned TypeScript lib directory, if any."""
        if self.lib_directory is None:
            return None
        if self._globals is None:
            self._globals = self._load_globals(self.lib_directory)
        return self._globals.get(name)

    def _load_globals(self, lib_directory: Path) -> dict[str, Declaration]:
        result: dict[str, Declaration] = {}
        pending = ["lib.d.ts"]
        loaded: set[str] = set()
        while pending:
            file_name = pending.pop(0)
            if file_name in loaded:
                continue
            loaded.add(file_name)
            unit = self.get_unit(lib_directory / file_name)
            if unit is None:
                continue
            for ref in _LIB_REFERENCE_RE.findall(unit.source.decode("utf-8", errors="replace")):
                pending.append(f"lib.{ref.lower()}.d.ts")
            scope = self.module_scope(unit)
            for table in (scope.types, scope.values):
                for name, decl in table.items():
                    result.setdefault(name, decl)
        logger.debug("Loaded %d global declarations from %s", len(result), lib_directory)
        return result
