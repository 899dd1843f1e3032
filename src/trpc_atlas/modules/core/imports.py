"""Import statement bindings of a single file."""

from __future__ import annotations

from .ts_parser import SourceUnit, string_value
from .types import ImportBinding


def collect_import_bindings(unit: SourceUnit) -> dict[str, ImportBinding]:
    """Map every locally bound import name to where it comes from.

    Only top-level ``import ... from "..."`` statements are considered;
    side-effect imports and ``import x = require()`` bind nothing.
    """
    result: dict[str, ImportBinding] = {}

    for stmt in unit.root.named_children:
        if stmt.type != "import_statement":
            continue
        source = stmt.child_by_field_name("source")
        clause = next((c for c in stmt.named_children if c.type == "import_clause"), None)
        if source is None or clause is None:
            continue
        specifier = string_value(source, unit.source)

        for part in clause.named_children:
            if part.type == "identifier":
                result[unit.text(part)] = ImportBinding(specifier, "default", is_default=True)
            elif part.type == "namespace_import":
                ident = next((c for c in part.named_children if c.type == "identifier"), None)
                if ident is not None:
                    result[unit.text(ident)] = ImportBinding(specifier, "*")
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    if name_node is None:
                        continue
                    alias_node = spec.child_by_field_name("alias")
                    imported = (
                        string_value(name_node, unit.source)
                        if name_node.type == "string"
                        else unit.text(name_node)
                    )
                    local = unit.text(alias_node) if alias_node is not None else imported
                    result[local] = ImportBinding(specifier, imported)

    return result
