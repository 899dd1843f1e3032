"""Whole-program model, type checker, rendering and enum substitution."""
from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core.config_cache import ConfigCache
from trpc_atlas.modules.core.semantic.enums import resolve_enum_aliases_in_text
from trpc_atlas.modules.core.semantic.render import type_to_display_string, type_to_string
from trpc_atlas.modules.core.semantic.type_model import (
    BOOLEAN,
    NUMBER,
    STRING,
    ArrayOf,
    Literal,
    NamedRef,
    ObjectShape,
    Prop,
    Union,
    make_union,
)
from trpc_atlas.modules.core.ts_parser import find_variable_declarator

DATA_TS = """
export interface User {
  id: string;
  name: string;
  role: Role;
}

export type Role = "admin" | "member";

export enum Status {
  Active = "ACTIVE",
  Inactive = "INACTIVE",
}

export function listUsers(): User[] {
  return [];
}
"""

USE_TS = """
import { listUsers } from "./data";

const users = listUsers();
const answer = 42;
const point = { x: 1, label: "p" };
const flags = [true, false];
"""


def _context(tmp_path: Path):
    (tmp_path / "tsconfig.json").write_text('{ "compilerOptions": { "strict": true }, "include": ["src"] }')
    src = tmp_path / "src"
    src.mkdir()
    (src / "data.ts").write_text(DATA_TS.lstrip())
    (src / "use.ts").write_text(USE_TS.lstrip())
    context = ConfigCache().semantic_context(src / "use.ts")
    assert context is not None
    return context, src / "use.ts"


def _initializer_type(context, path: Path, name: str):
    unit = context.program.get_unit(path)
    declarator = find_variable_declarator(unit, name)
    return context.checker.type_at(unit, declarator.child_by_field_name("value"))


def test_make_union_flattens_and_simplifies() -> None:
    assert make_union([STRING]) == STRING
    assert make_union([STRING, Union((STRING, NUMBER))]) == Union((STRING, NUMBER))
    assert make_union([Literal("boolean", "true"), Literal("boolean", "false")]) == BOOLEAN


def test_type_to_string_forms() -> None:
    assert type_to_string(ArrayOf(Union((STRING, NUMBER)))) == "(string | number)[]"
    assert type_to_string(NamedRef("Promise", (NamedRef("User"),))) == "Promise<User>"
    shape = ObjectShape((Prop("id", STRING), Prop("my-key", NUMBER, optional=True)))
    assert type_to_string(shape) == '{ id: string; "my-key"?: number; }'
    assert type_to_string(ObjectShape()) == "{}"


def test_checker_literal_and_object_types(tmp_path: Path) -> None:
    context, use = _context(tmp_path)
    checker = context.checker

    assert type_to_string(_initializer_type(context, use, "answer")) == "42"
    point = _initializer_type(context, use, "point")
    assert type_to_display_string(point, checker) == "{ x: number; label: string; }"
    assert type_to_string(_initializer_type(context, use, "flags")) == "boolean[]"


def test_checker_follows_imports_and_expands_for_display(tmp_path: Path) -> None:
    context, use = _context(tmp_path)
    users = _initializer_type(context, use, "users")

    assert type_to_string(users) == "User[]"
    display = type_to_display_string(users, context.checker)
    assert display.endswith("[]")
    assert "id: string" in display
    assert 'role: "admin" | "member"' in display


def test_enum_like_names_become_literal_unions(tmp_path: Path) -> None:
    context, _use = _context(tmp_path)
    cache: dict[str, str | None] = {}

    text = resolve_enum_aliases_in_text("{ status: Status; role: Role; at: Date; user: User; }", context, cache)

    assert text == '{ status: "ACTIVE" | "INACTIVE"; role: "admin" | "member"; at: Date; user: User; }'
    assert cache["User"] is None
    assert resolve_enum_aliases_in_text("{ a: Status; }", None, {}) == "{ a: Status; }"
