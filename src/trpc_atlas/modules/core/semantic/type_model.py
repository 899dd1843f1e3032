"""Type values produced by the type checker.

All types are immutable and hashable so they can be deduplicated in unions
and used as cache keys. ``NamedRef`` points back at the declaration it
names (``None`` for built-in globals such as ``Promise`` or ``Date``) and is
expanded lazily by the checker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable


class TsType:
    __slots__ = ()


@dataclass(frozen=True)
class Primitive(TsType):
    name: str


@dataclass(frozen=True)
class Literal(TsType):
    """A literal type; ``text`` is its source form (``"a"``, ``1``, ``true``)."""

    base: str
    text: str


@dataclass(frozen=True)
class ArrayOf(TsType):
    element: TsType


@dataclass(frozen=True)
class TupleOf(TsType):
    elements: tuple[TsType, ...]


@dataclass(frozen=True)
class Union(TsType):
    members: tuple[TsType, ...]


@dataclass(frozen=True)
class Intersection(TsType):
    members: tuple[TsType, ...]


@dataclass(frozen=True)
class Prop:
    name: str
    type: TsType
    optional: bool = False


@dataclass(frozen=True)
class Param:
    name: str
    type: TsType
    optional: bool = False
    rest: bool = False


@dataclass(frozen=True)
class FunctionSig(TsType):
    params: tuple[Param, ...]
    return_type: TsType
    type_params: tuple[str, ...] = ()


@dataclass(frozen=True)
class ObjectShape(TsType):
    props: tuple[Prop, ...] = ()
    string_index: TsType | None = None
    number_index: TsType | None = None
    call_signatures: tuple[FunctionSig, ...] = ()

    def prop(self, name: str) -> Prop | None:
        for prop in self.props:
            if prop.name == name:
                return prop
        return None


@dataclass(frozen=True)
class TypeParamRef(TsType):
    name: str


@dataclass(frozen=True)
class NamedRef(TsType):
    """Reference to a named type; ``declaration`` is None for built-in globals."""

    name: str
    args: tuple[TsType, ...] = ()
    declaration: Any = field(default=None, compare=False, hash=False)
    declaration_key: tuple = ()


ANY = Primitive("any")
UNKNOWN = Primitive("unknown")
NEVER = Primitive("never")
VOID = Primitive("void")
STRING = Primitive("string")
NUMBER = Primitive("number")
BOOLEAN = Primitive("boolean")
BIGINT = Primitive("bigint")
NULL = Primitive("null")
UNDEFINED = Primitive("undefined")

PRIMITIVE_NAMES = frozenset(
    {"any", "unknown", "never", "void", "string", "number", "boolean", "bigint",
     "symbol", "object", "null", "undefined"}
)


def make_union(types: Iterable[TsType]) -> TsType:
    """Flatten, deduplicate and simplify a union."""
    members: list[TsType] = []
    for t in types:
        parts = t.members if isinstance(t, Union) else (t,)
        for part in parts:
            if part == NEVER or part in members:
                continue
            members.append(part)
    if not members:
        return NEVER
    if ANY in members:
        return ANY
    if UNKNOWN in members:
        return UNKNOWN
    literal_true = Literal("boolean", "true")
    literal_false = Literal("boolean", "false")
    if literal_true in members and literal_false in members:
        index = min(members.index(literal_true), members.index(literal_false))
        members = [m for m in members if m not in (literal_true, literal_false)]
        members.insert(index, BOOLEAN)
    if len(members) == 1:
        return members[0]
    return Union(tuple(members))


def widen(t: TsType) -> TsType:
    """Literal types to their primitive, as for mutable locations."""
    if isinstance(t, Literal):
        return Primitive(t.base)
    if isinstance(t, Union):
        return make_union(widen(m) for m in t.members)
    return t


def remove_nullish(t: TsType) -> TsType:
    if isinstance(t, Union):
        return make_union(m for m in t.members if m not in (NULL, UNDEFINED))
    if t in (NULL, UNDEFINED):
        return NEVER
    return t


def is_string_literal_union(t: TsType) -> bool:
    if isinstance(t, Union):
        return all(isinstance(m, Literal) and m.base == "string" for m in t.members)
    return False


def map_type(t: TsType, fn: Callable[[TsType], TsType | None]) -> TsType:
    """Rebuild ``t`` bottom-up, letting ``fn`` replace any node."""
    replaced = fn(t)
    if replaced is not None:
        return replaced
    if isinstance(t, ArrayOf):
        return ArrayOf(map_type(t.element, fn))
    if isinstance(t, TupleOf):
        return TupleOf(tuple(map_type(e, fn) for e in t.elements))
    if isinstance(t, Union):
        return make_union(map_type(m, fn) for m in t.members)
    if isinstance(t, Intersection):
        return Intersection(tuple(map_type(m, fn) for m in t.members))
    if isinstance(t, ObjectShape):
        return ObjectShape(
            props=tuple(Prop(p.name, map_type(p.type, fn), p.optional) for p in t.props),
            string_index=map_type(t.string_index, fn) if t.string_index else None,
            number_index=map_type(t.number_index, fn) if t.number_index else None,
            call_signatures=tuple(map_type(s, fn) for s in t.call_signatures),
        )
    if isinstance(t, FunctionSig):
        return FunctionSig(
            params=tuple(Param(p.name, map_type(p.type, fn), p.optional, p.rest) for p in t.params),
            return_type=map_type(t.return_type, fn),
            type_params=t.type_params,
        )
    if isinstance(t, NamedRef) and t.args:
        return NamedRef(t.name, tuple(map_type(a, fn) for a in t.args), t.declaration, t.declaration_key)
    return t


def substitute(t: TsType, bindings: dict[str, TsType]) -> TsType:
    if not bindings:
        return t

    def replace(node: TsType) -> TsType | None:
        if isinstance(node, TypeParamRef) and node.name in bindings:
            return bindings[node.name]
        if isinstance(node, FunctionSig) and node.type_params:
            shadowed = {k: v for k, v in bindings.items() if k not in node.type_params}
            if len(shadowed) != len(bindings):
                return FunctionSig(
                    params=tuple(
                        Param(p.name, substitute(p.type, shadowed), p.optional, p.rest)
                        for p in node.params
                    ),
                    return_type=substitute(node.return_type, shadowed),
                    type_params=node.type_params,
                )
        return None

    return map_type(t, replace)


def unbound_to_unknown(t: TsType, names: Iterable[str]) -> TsType:
    names = set(names)
    if not names:
        return t
    return map_type(
        t, lambda node: UNKNOWN if isinstance(node, TypeParamRef) and node.name in names else None
    )
