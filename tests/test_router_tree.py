"""Router tree construction across files, imports and cycles."""
from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core.config import AtlasConfig
from trpc_atlas.modules.core.router_tree import (
    RouterTreeBuilder,
    find_root_alias_names,
    find_root_aliases,
    is_router_call,
)
from trpc_atlas.modules.core.session import AnalysisSession
from trpc_atlas.modules.core.ts_parser import parse_source, walk
from trpc_atlas.modules.core.types import NodeKind

PROJECT = {
    "src/trpc.ts": """
import { initTRPC } from "@trpc/server";
const t = initTRPC.create();
export const router = t.router;
export const publicProcedure = t.procedure;
""",
    "src/server/procedures/getUser.ts": """
import { z } from "zod";
import { publicProcedure } from "../../trpc";
const getUser = publicProcedure
  .input(z.object({ id: z.string() }))
  .query(({ input }) => ({ id: input.id }));
export default getUser;
""",
    "src/server/routers/user.ts": """
import { z } from "zod";
import { publicProcedure, router } from "../../trpc";
import getUser from "../procedures/getUser";
export const userRouter = router({
  list: publicProcedure.query(() => [{ id: "1" }]),
  byId: publicProcedure.input(z.string()).query(({ input }) => input.length),
  get: getUser,
});
""",
    "src/server/routers/post.ts": """
import { z } from "zod";
import { publicProcedure, router } from "../../trpc";
import { appRouter } from "../root";
export const postRouter = router({
  create: publicProcedure.input(z.object({ title: z.string() })).mutation(() => true),
  back: appRouter,
});
""",
    "src/server/root.ts": """
import { publicProcedure, router } from "../trpc";
import { userRouter } from "./routers/user";
import { postRouter } from "./routers/post";
const healthRouter = router({ ping: publicProcedure.query(() => "pong") });
export const appRouter = router({
  user: userRouter,
  post: postRouter,
  healthRouter,
  admin: router({ stats: publicProcedure.query(() => ({ count: 1 })) }),
  legacy: somethingElse,
});
export type AppRouter = typeof appRouter;
""",
}


def _write_project(root: Path, files: dict[str, str]) -> None:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text.lstrip())


def _builder(**config) -> RouterTreeBuilder:
    return RouterTreeBuilder(AnalysisSession(AtlasConfig(semantic_inference=False, **config)))


def _child(node, name):
    return next(child for child in node.children if child.name == name)


def test_builds_tree_in_source_order(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    root_file = tmp_path / "src" / "server" / "root.ts"

    tree = _builder().build(root_file, "appRouter")

    assert tree.name == "appRouter"
    assert tree.kind is NodeKind.COLLECTION
    assert tree.source_file == str(root_file)
    assert tree.source_line == 5
    assert [c.name for c in tree.children] == ["user", "post", "healthRouter", "admin", "legacy"]


def test_imported_router_and_procedures(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    tree = _builder().build(tmp_path / "src" / "server" / "root.ts", "appRouter")

    user = _child(tree, "user")
    assert user.kind is NodeKind.COLLECTION
    assert user.source_file == str(tmp_path / "src" / "server" / "routers" / "user.ts")
    assert [c.name for c in user.children] == ["list", "byId", "get"]

    listed = _child(user, "list")
    assert listed.kind is NodeKind.QUERY
    assert listed.input_shape is None
    assert listed.output_shape == "{ id: string; }[]"
    assert listed.source_line == 5

    by_id = _child(user, "byId")
    assert by_id.input_shape == "z.string()"
    assert by_id.output_shape is None


def test_default_imported_procedure_keeps_its_declaring_file(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    tree = _builder().build(tmp_path / "src" / "server" / "root.ts", "appRouter")

    get = _child(_child(tree, "user"), "get")

    assert get.kind is NodeKind.QUERY
    assert get.input_shape == "z.object({ id: z.string() })"
    assert get.output_shape == "{ id: string; }"
    assert get.source_file == str(tmp_path / "src" / "server" / "procedures" / "getUser.ts")
    assert get.source_line == 3


def test_cycle_back_to_root_is_an_empty_placeholder(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    tree = _builder().build(tmp_path / "src" / "server" / "root.ts", "appRouter")

    post = _child(tree, "post")
    create = _child(post, "create")
    back = _child(post, "back")

    assert create.kind is NodeKind.MUTATION
    assert create.output_shape == "boolean"
    assert back.kind is NodeKind.COLLECTION
    assert back.children == []


def test_local_shorthand_and_inline_routers(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    tree = _builder().build(tmp_path / "src" / "server" / "root.ts", "appRouter")

    health = _child(tree, "healthRouter")
    assert [c.name for c in health.children] == ["ping"]
    assert health.children[0].output_shape == "string"

    admin = _child(tree, "admin")
    assert admin.kind is NodeKind.COLLECTION
    stats = _child(admin, "stats")
    assert stats.output_shape == "{ count: number; }"

    legacy = _child(tree, "legacy")
    assert legacy.kind is NodeKind.COLLECTION
    assert legacy.children == []


def test_building_twice_gives_the_same_tree(tmp_path: Path) -> None:
    _write_project(tmp_path, PROJECT)
    builder = _builder()
    root_file = tmp_path / "src" / "server" / "root.ts"

    first = builder.build(root_file, "appRouter")
    second = builder.build(root_file, "appRouter")

    assert first.to_dict() == second.to_dict()


def test_mutually_referencing_routers_terminate(tmp_path: Path) -> None:
    _write_project(
        tmp_path,
        {
            "a.ts": """
import { bRouter } from "./b";
export const aRouter = router({ b: bRouter, hello: p.query(() => 1) });
""",
            "b.ts": """
import { aRouter } from "./a";
export const bRouter = router({ a: aRouter });
""",
        },
    )
    tree = _builder().build(tmp_path / "a.ts", "aRouter")

    b = _child(tree, "b")
    a = _child(b, "a")
    assert a.children == []
    assert _child(tree, "hello").kind is NodeKind.QUERY


def test_default_exported_router(tmp_path: Path) -> None:
    _write_project(
        tmp_path,
        {
            "admin.ts": """
const admin = router({ stats: p.query(() => 1) });
export default admin;
""",
            "root.ts": """
import adminRouter from "./admin";
export const appRouter = router({ admin: adminRouter });
""",
        },
    )
    tree = _builder().build(tmp_path / "root.ts", "appRouter")

    admin = _child(tree, "admin")
    assert admin.source_file == str(tmp_path / "admin.ts")
    assert [c.name for c in admin.children] == ["stats"]


def test_custom_factory_names(tmp_path: Path) -> None:
    _write_project(
        tmp_path,
        {"root.ts": "export const appRouter = makeRouter({ hi: p.query(() => 1) });\n"},
    )
    root_file = tmp_path / "root.ts"

    assert _builder().build(root_file, "appRouter").children == []
    custom = _builder(router_factory_names=("makeRouter",)).build(root_file, "appRouter")
    assert [c.name for c in custom.children] == ["hi"]


def test_missing_file_gives_none(tmp_path: Path) -> None:
    assert _builder().build(tmp_path / "nope.ts", "appRouter") is None


def test_is_router_call() -> None:
    unit = parse_source(
        "calls.ts",
        "a(router({})); b(t.router({})); c(createTRPCRouter({})); d(makeRouter({}));",
    )
    calls = {
        unit.text(node.child_by_field_name("function")): node
        for node in walk(unit.root)
        if node.type == "call_expression"
    }
    factories = ("router", "createTRPCRouter")
    assert is_router_call(unit, calls["router"], factories)
    assert is_router_call(unit, calls["t.router"], factories)
    assert is_router_call(unit, calls["createTRPCRouter"], factories)
    assert not is_router_call(unit, calls["makeRouter"], factories)
    assert not is_router_call(unit, calls["a"], factories)


def test_find_root_aliases() -> None:
    unit = parse_source(
        "root.ts",
        """
export type AppRouter = typeof appRouter;
export type AppRouter = typeof appRouter;
type AppRouter = typeof hiddenRouter;
export type Other = typeof otherRouter;
export type AdminRouter = typeof adminRouter;
""".lstrip(),
    )
    assert find_root_aliases(unit) == [("AppRouter", "appRouter")]
    assert find_root_aliases(unit, {"AppRouter", "AdminRouter"}) == [
        ("AppRouter", "appRouter"),
        ("AdminRouter", "adminRouter"),
    ]


def test_find_root_alias_names(tmp_path: Path) -> None:
    (tmp_path / "root.ts").write_text("export type AppRouter = typeof appRouter;\n")
    assert find_root_alias_names(tmp_path / "root.ts") == ["appRouter"]
    assert find_root_alias_names(tmp_path / "missing.ts") == []
