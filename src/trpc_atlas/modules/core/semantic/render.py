"""Type to text.

``type_to_string`` is the compact form: named types stay names, so a
procedure type reads ``QueryProcedure<{ input: { id: string; }; output: User; }>``.
``type_to_display_string`` expands named types (each at most once along a
path) into the structural form shown to users.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .type_model import (
    ArrayOf,
    FunctionSig,
    Intersection,
    Literal,
    NamedRef,
    ObjectShape,
    Primitive,
    Prop,
    TsType,
    TupleOf,
    TypeParamRef,
    Union,
    is_string_literal_union,
)

if TYPE_CHECKING:
    from .checker import TypeChecker

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


def _key(name: str) -> str:
    return name if _IDENTIFIER_RE.match(name) else '"' + name.replace('"', '\\"') + '"'


def _needs_parens(t: TsType) -> bool:
    return isinstance(t, (Union, Intersection, FunctionSig))


def _signature_string(sig: FunctionSig, render) -> str:
    params = ", ".join(
        f"{'...' if p.rest else ''}{p.name}{'?' if p.optional and not p.rest else ''}: {render(p.type)}"
        for p in sig.params
    )
    prefix = f"<{', '.join(sig.type_params)}>" if sig.type_params else ""
    return f"{prefix}({params}) => {render(sig.return_type)}"


def _object_string(shape: ObjectShape, render) -> str:
    if not shape.props and shape.string_index is None and shape.number_index is None:
        if len(shape.call_signatures) == 1:
            return _signature_string(shape.call_signatures[0], render)
        if not shape.call_signatures:
            return "{}"
    members: list[str] = []
    for sig in shape.call_signatures:
        members.append(_signature_string(sig, render).replace(") => ", "): ", 1) + ";")
    if shape.string_index is not None:
        members.append(f"[key: string]: {render(shape.string_index)};")
    if shape.number_index is not None:
        members.append(f"[key: number]: {render(shape.number_index)};")
    for prop in shape.props:
        members.append(_prop_string(prop, render))
    return "{ " + " ".join(members) + " }"


def _prop_string(prop: Prop, render) -> str:
    return f"{_key(prop.name)}{'?' if prop.optional else ''}: {render(prop.type)};"


def type_to_string(t: TsType) -> str:
    """Compact rendering; named types are not expanded."""
    if isinstance(t, Primitive):
        return t.name
    if isinstance(t, Literal):
        return t.text
    if isinstance(t, TypeParamRef):
        return t.name
    if isinstance(t, NamedRef):
        if t.args:
            return f"{t.name}<{', '.join(type_to_string(a) for a in t.args)}>"
        return t.name
    if isinstance(t, ArrayOf):
        inner = type_to_string(t.element)
        return f"({inner})[]" if _needs_parens(t.element) else f"{inner}[]"
    if isinstance(t, TupleOf):
        return "[" + ", ".join(type_to_string(e) for e in t.elements) + "]"
    if isinstance(t, Union):
        return " | ".join(type_to_string(m) for m in t.members)
    if isinstance(t, Intersection):
        return " & ".join(type_to_string(m) for m in t.members)
    if isinstance(t, FunctionSig):
        return _signature_string(t, type_to_string)
    if isinstance(t, ObjectShape):
        return _object_string(t, type_to_string)
    return "unknown"


def _literal_union_string(t: Union) -> str:
    return " | ".join(
        m.text if m.text.startswith('"') else f'"{m.text}"' for m in t.members if isinstance(m, Literal)
    )


def type_to_display_string(
    t: TsType,
    checker: TypeChecker,
    seen: frozenset | None = None,
) -> str:
    """Structural rendering for display.

    Objects print as ``{ a: string; b?: number; }``, arrays as ``T[]``,
    string-literal unions as ``"a" | "b"``. Each named type is expanded at
    most once along a path; a repeat prints by name.
    """
    seen = frozenset() if seen is None else seen

    def render(inner: TsType) -> str:
        return type_to_display_string(inner, checker, seen)

    if isinstance(t, NamedRef):
        if t.declaration is None and not t.args:
            return t.name
        if t.declaration is None:
            expanded = checker.expand(t)
            if expanded == t:
                return f"{t.name}<{', '.join(render(a) for a in t.args)}>"
            return render(expanded)
        if t in seen:
            return type_to_string(t)
        expanded = checker.resolve_structure(t)
        if isinstance(expanded, NamedRef):
            return type_to_string(expanded)
        return type_to_display_string(expanded, checker, seen | {t})

    if isinstance(t, Union):
        if is_string_literal_union(t):
            return _literal_union_string(t)
        parts: list[str] = []
        for member in t.members:
            text = render(member)
            if text not in parts:
                parts.append(text)
        return " | ".join(parts)

    if isinstance(t, ArrayOf):
        inner = render(t.element)
        return f"({inner})[]" if _needs_parens(t.element) else f"{inner}[]"

    if isinstance(t, ObjectShape) and t.props and not t.call_signatures and t.string_index is None:
        fields = [f"{_key(p.name)}{'?' if p.optional else ''}: {render(p.type)}" for p in t.props]
        return "{ " + "; ".join(fields) + "; }"

    if isinstance(t, TupleOf):
        return "[" + ", ".join(render(e) for e in t.elements) + "]"
    if isinstance(t, Intersection):
        return " & ".join(render(m) for m in t.members)
    if isinstance(t, FunctionSig):
        return _signature_string(t, render)
    if isinstance(t, ObjectShape):
        return _object_string(t, render)
    return type_to_string(t)
