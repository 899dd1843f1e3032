"""Workspace discovery and post-processing of the discovered trees."""
from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core.api import discover, root_aliases, show_router
from trpc_atlas.modules.core.config import AtlasConfig
from trpc_atlas.modules.core.discovery import candidate_files, discover_router_trees
from trpc_atlas.modules.core.output_formats import format_text_tree, prettify_tree, trees_to_dicts
from trpc_atlas.modules.core.shape_pretty import FallbackPrettifier
from trpc_atlas.modules.core.tree_helpers import (
    NO_RESULT_TEXT,
    count_procedures,
    group_trees_by_file,
    no_result_node,
)
from trpc_atlas.modules.core.types import NodeKind, ProcedureTreeNode

NO_SEMANTIC = AtlasConfig(semantic_inference=False)


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text.lstrip())
    return path


def _simple_project(root: Path) -> Path:
    return _write(
        root,
        "src/server/root.ts",
        """
import { z } from "zod";
export const appRouter = router({
  hello: publicProcedure.input(z.string()).query(() => "hi"),
  save: publicProcedure.mutation(() => ({ ok: true })),
});
export type AppRouter = typeof appRouter;
""",
    )


def test_discovers_and_renames_to_alias(tmp_path: Path) -> None:
    root_file = _simple_project(tmp_path)

    trees = discover_router_trees(tmp_path, NO_SEMANTIC)

    assert len(trees) == 1
    tree = trees[0]
    assert tree.name == "AppRouter"
    assert tree.source_file == str(root_file)
    assert [c.name for c in tree.children] == ["hello", "save"]
    assert count_procedures(tree) == {"query": 1, "mutation": 1, "subscription": 0}


def test_empty_workspace_finds_nothing(tmp_path: Path) -> None:
    _write(tmp_path, "src/index.ts", "export const x = 1;\n")
    assert discover_router_trees(tmp_path, NO_SEMANTIC) == []


def test_excluded_directories_are_not_probed(tmp_path: Path) -> None:
    _simple_project(tmp_path)
    _write(tmp_path, "node_modules/pkg/root.ts", "export type AppRouter = typeof appRouter;\n")
    _write(tmp_path, "generated/root.ts", "export type AppRouter = typeof appRouter;\n")

    config = NO_SEMANTIC.with_overrides(exclude_patterns=("**/generated/**",))
    files = [p.relative_to(tmp_path).as_posix() for p in candidate_files(tmp_path, config)]

    assert files == ["src/server/root.ts"]
    assert len(discover_router_trees(tmp_path, config)) == 1


def test_prioritized_patterns_come_first(tmp_path: Path) -> None:
    _write(tmp_path, "a/helpers.ts", "export {};\n")
    _write(tmp_path, "z/root.ts", "export {};\n")

    files = [p.relative_to(tmp_path).as_posix() for p in candidate_files(tmp_path, NO_SEMANTIC)]

    assert files == ["z/root.ts", "a/helpers.ts"]


def test_several_roots_in_one_file_are_grouped(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "root.ts",
        """
export const appRouter = router({ a: p.query(() => 1) });
export const adminRouter = router({ b: p.mutation(() => 1) });
export type AppRouter = typeof appRouter;
export type AdminRouter = typeof adminRouter;
""",
    )
    config = NO_SEMANTIC.with_overrides(root_alias_names=("AppRouter", "AdminRouter"))

    trees = discover_router_trees(tmp_path, config)
    assert [t.name for t in trees] == ["AppRouter", "AdminRouter"]

    grouped = group_trees_by_file(trees)
    assert len(grouped) == 1
    assert grouped[0].kind is NodeKind.FILE_GROUP
    assert grouped[0].name == "root.ts"
    assert [c.name for c in grouped[0].children] == ["AppRouter", "AdminRouter"]
    assert count_procedures(grouped[0]) == {"query": 1, "mutation": 1, "subscription": 0}


def test_group_keeps_single_and_loose_trees() -> None:
    single = ProcedureTreeNode("A", NodeKind.COLLECTION, source_file="/p/a.ts")
    loose = ProcedureTreeNode("B", NodeKind.COLLECTION)

    assert group_trees_by_file([loose, single]) == [single, loose]


def test_no_result_node() -> None:
    node = no_result_node()
    assert node.name == NO_RESULT_TEXT
    assert node.kind is NodeKind.COLLECTION
    assert node.children == []


def test_api_facade(tmp_path: Path) -> None:
    root_file = _simple_project(tmp_path)

    trees = discover(tmp_path, semantic=False)
    assert [t.name for t in trees] == ["AppRouter"]
    assert root_aliases(root_file) == ["appRouter"]

    tree = show_router(root_file, "appRouter", semantic=False)
    assert tree.name == "appRouter"
    assert show_router(tmp_path / "missing.ts", "appRouter") is None


def test_to_dict_uses_camel_case_and_skips_missing_fields() -> None:
    leaf = ProcedureTreeNode(
        "hello", NodeKind.QUERY, source_file="/p/root.ts", source_line=3, input_shape="z.string()"
    )
    tree = ProcedureTreeNode("AppRouter", NodeKind.COLLECTION, children=[leaf])

    assert trees_to_dicts([tree]) == [
        {
            "name": "AppRouter",
            "kind": "collection",
            "children": [
                {
                    "name": "hello",
                    "kind": "query",
                    "children": [],
                    "sourceFile": "/p/root.ts",
                    "sourceLine": 3,
                    "inputShape": "z.string()",
                }
            ],
        }
    ]


def test_text_tree_with_prettifier() -> None:
    leaf = ProcedureTreeNode(
        "hello",
        NodeKind.QUERY,
        source_file="/p/src/root.ts",
        source_line=3,
        input_shape="z.string()",
        output_shape="{\n  ok: boolean;\n}",
    )
    tree = ProcedureTreeNode("AppRouter", NodeKind.COLLECTION, children=[leaf], source_file="/p/src/root.ts", source_line=2)

    text = format_text_tree([tree], root="/p", prettifier=FallbackPrettifier())

    assert text.splitlines() == [
        "AppRouter [collection]  src/root.ts:2",
        "  hello [query]  src/root.ts:3",
        "    input: string",
        "    output: { ok: boolean; }",
        "(1 query)",
    ]


def test_prettify_tree_returns_a_copy() -> None:
    leaf = ProcedureTreeNode("hello", NodeKind.QUERY, input_shape="z.number()")
    tree = ProcedureTreeNode("AppRouter", NodeKind.COLLECTION, children=[leaf])

    pretty = prettify_tree(tree, FallbackPrettifier())

    assert pretty.children[0].input_shape == "number"
    assert leaf.input_shape == "z.number()"
