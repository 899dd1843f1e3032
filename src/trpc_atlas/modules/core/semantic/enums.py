"""Replace enum-like type names in rendered type text with their literal unions.

Prisma generates string enums as ``$Enums.Role`` plus an exported alias
``Role``; a rendered output such as ``{ role: $Enums.Role; }`` reads better
as ``{ role: "ADMIN" | "USER"; }``. Names are resolved against exported
declarations across the program and memoized per name.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from .program import TYPE, VALUE, Declaration
from .type_model import NamedRef, TsType, Union, is_string_literal_union

if TYPE_CHECKING:
    from ..config_cache import SemanticContext

logger = logging.getLogger(__name__)

ENUMS_NAMESPACE = "$Enums"

ENUM_REFERENCE_RE = re.compile(
    r"\$Enums\.(?P<qualified>[A-Za-z_]\w*)"
    r"|(?P<prefix>:\s*)(?P<bare>[A-Z][A-Za-z_]\w*)\b(?!\s*[<({.])"
)

BUILTIN_TYPE_NAMES = frozenset(
    {"Date", "Map", "Set", "Array", "Promise", "RegExp", "Error", "Buffer",
     "String", "Number", "Boolean", "Object", "Symbol", "BigInt"}
)


def _literal_union_text(t: Union) -> str:
    return " | ".join(m.text if m.text.startswith('"') else f'"{m.text}"' for m in t.members)


def _literal_union_of(context: SemanticContext, decl: Declaration) -> str | None:
    checker = context.checker
    if decl.kind in ("type_alias", "enum", "interface", "class"):
        t: TsType = checker.resolve_structure(NamedRef(decl.name, (), decl, decl.key))
    elif decl.kind == "variable":
        annotation = decl.node.child_by_field_name("type")
        if annotation is None:
            return None
        t = checker.resolve_structure(checker.type_from_node(decl.unit, annotation))
    else:
        return None
    if is_string_literal_union(t):
        return _literal_union_text(t)
    return None


def _searchable(path: str) -> bool:
    return not path.endswith(".d.ts") or "generated" in path


def resolve_enum_type(context: SemanticContext, name: str) -> str | None:
    """Literal union text for an exported enum-like ``name``; None if none exists."""
    program = context.program
    for unit in program.source_units():
        if not _searchable(unit.path):
            continue
        scope = program.module_scope(unit)
        if ENUMS_NAMESPACE in scope.exports or ENUMS_NAMESPACE in scope.values:
            namespace = program.resolve_export(scope, ENUMS_NAMESPACE, VALUE)
            if namespace is None:
                namespace = scope.values.get(ENUMS_NAMESPACE)
            if namespace is not None:
                for side in (TYPE, VALUE):
                    member = program.member(namespace, name, side)
                    resolved = _literal_union_of(context, member) if member is not None else None
                    if resolved is not None:
                        return resolved
        if name in scope.exports:
            for side in (TYPE, VALUE):
                decl = program.resolve_export(scope, name, side)
                resolved = _literal_union_of(context, decl) if decl is not None else None
                if resolved is not None:
                    return resolved
    return None


def resolve_enum_aliases_in_text(
    text: str,
    context: SemanticContext | None,
    cache: dict[str, str | None],
) -> str:
    """Substitute ``$Enums.X`` and ``: X`` references that name string enums."""
    if context is None or not text:
        return text

    def lookup(name: str) -> str | None:
        if name not in cache:
            try:
                cache[name] = resolve_enum_type(context, name)
            except RecursionError:
                logger.debug("Enum resolution for %s recursed too deeply", name)
                cache[name] = None
        return cache[name]

    def replace(match: re.Match) -> str:
        qualified = match.group("qualified")
        if qualified is not None:
            resolved = lookup(qualified)
            return resolved if resolved is not None else match.group(0)
        bare = match.group("bare")
        if bare in BUILTIN_TYPE_NAMES:
            return match.group(0)
        resolved = lookup(bare)
        if resolved is None:
            return match.group(0)
        return match.group("prefix") + resolved

    return ENUM_REFERENCE_RE.sub(replace, text)
