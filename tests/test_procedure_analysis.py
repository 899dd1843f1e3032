"""Procedure kind and shape detection, with and without the type checker."""
import logging
from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core import config_cache
from trpc_atlas.modules.core.config import AtlasConfig
from trpc_atlas.modules.core.procedure_analysis import (
    ProcedureAnalyzer,
    find_method_in_chain,
    procedure_method,
)
from trpc_atlas.modules.core.session import AnalysisSession
from trpc_atlas.modules.core.ts_parser import parse_source, property_name, walk
from trpc_atlas.modules.core.types import NodeKind

PROCEDURES_TS = """
import { z } from "zod";
import { publicProcedure } from "./trpc";

const byIdInput = z.object({ id: z.string() });

export const procedures = {
  byId: publicProcedure.input(byIdInput).query(({ input }) => ({ id: input.id })),
  rename: publicProcedure
    .input(z.object({ name: z.string() }))
    .output(z.boolean())
    .mutation(() => true),
  onEvent: publicProcedure.subscription(() => observable()),
  notProcedure: publicProcedure.input(z.string()),
  chained: publicProcedure.use(auth).input(z.number()).input(z.string()).query(() => 1),
};
"""

# Minimal generic builder: the checker can spell out a procedure's
# ``{ input; output }`` from it without any node_modules.
TRPC_TS = """
export interface Parser<T> {
  parse(input: unknown): T;
}

export interface QueryProcedure<TDef> {
  _def: TDef;
}

export class ProcedureBuilder<TInput> {
  input<T>(schema: Parser<T>): ProcedureBuilder<T> {
    return new ProcedureBuilder<T>();
  }
  query<TOutput>(
    resolver: (opts: { input: TInput }) => TOutput | Promise<TOutput>,
  ): QueryProcedure<{ input: TInput; output: TOutput }> {
    return { _def: {} as { input: TInput; output: TOutput } };
  }
}

export const publicProcedure = new ProcedureBuilder<void>();

export function router<T>(routes: T): T {
  return routes;
}
"""

DATA_TS = """
export interface User {
  id: string;
  name: string;
}

export function listUsers(): User[] {
  return [];
}
"""

ROOT_TS = """
import { publicProcedure, router } from "./trpc";
import { listUsers } from "./data";

export const appRouter = router({
  list: publicProcedure.query(() => listUsers()),
  health: publicProcedure.query(() => ({ ok: true })),
});

export type AppRouter = typeof appRouter;
"""

BUILDER_TS = """
export interface Parser<T> {
  parse(input: unknown): T;
}

export interface Procedure<TDef> {
  _def: TDef;
}

export class Builder<I> {
  input<T>(schema: Parser<T>): Builder<T> {
    return new Builder<T>();
  }
  output<T>(schema: Parser<T>): Builder<I> {
    return this;
  }
  query<O>(resolver: (opts: { input: I }) => O): Procedure<{ input: I; output: O }> {
    return { _def: {} as { input: I; output: O } };
  }
}

export const publicProcedure = new Builder<void>();

export function parser(name: string): any {
  return { parse: (input: unknown) => input };
}

export function getName(): string {
  return "name";
}
"""

BUILDER_ROOT_TS = """
import { getName, parser, publicProcedure, Parser } from "./builder";

const idInput: Parser<{ id: string }> = parser("id");
const nameOutput: Parser<{ name: string }> = parser("name");
const authed = publicProcedure.input(idInput);

export const procedures = {
  byId: authed.query(() => getName()),
  rename: publicProcedure.input(idInput).output(nameOutput).query(() => ({ name: "x" })),
};
"""


def _pairs(source: str):
    unit = parse_source("procedures.ts", source.lstrip())
    pairs = {
        property_name(node.child_by_field_name("key"), unit.source): node.child_by_field_name("value")
        for node in walk(unit.root)
        if node.type == "pair"
    }
    return unit, pairs


def _analyzer(semantic: bool = False) -> ProcedureAnalyzer:
    return ProcedureAnalyzer(AnalysisSession(AtlasConfig(semantic_inference=semantic)))


def test_procedure_method_kinds() -> None:
    unit, pairs = _pairs(PROCEDURES_TS)
    assert procedure_method(unit, pairs["byId"]) is NodeKind.QUERY
    assert procedure_method(unit, pairs["rename"]) is NodeKind.MUTATION
    assert procedure_method(unit, pairs["onEvent"]) is NodeKind.SUBSCRIPTION
    assert procedure_method(unit, pairs["notProcedure"]) is None
    assert procedure_method(unit, None) is None


def test_nearest_method_in_chain_wins() -> None:
    unit, pairs = _pairs(PROCEDURES_TS)
    chained = pairs["chained"]
    receiver = chained.child_by_field_name("function").child_by_field_name("object")
    assert find_method_in_chain(unit, receiver, "input") == "z.string()"
    assert find_method_in_chain(unit, receiver, "use") == "auth"
    assert find_method_in_chain(unit, receiver, "output") is None


def test_explicit_and_structural_shapes() -> None:
    unit, pairs = _pairs(PROCEDURES_TS)
    analyzer = _analyzer()

    by_id = analyzer.analyze(pairs["byId"], unit, {})
    assert by_id.kind is NodeKind.QUERY
    assert by_id.input_shape == "z.object({ id: z.string() })"
    assert by_id.output_shape == "{ id: string; }"

    rename = analyzer.analyze(pairs["rename"], unit, {})
    assert rename.kind is NodeKind.MUTATION
    assert rename.input_shape == "z.object({ name: z.string() })"
    assert rename.output_shape == "z.boolean()"


def test_unknown_output_without_type_checker() -> None:
    unit, pairs = _pairs(PROCEDURES_TS)
    on_event = _analyzer().analyze(pairs["onEvent"], unit, {})

    assert on_event.kind is NodeKind.SUBSCRIPTION
    assert on_event.input_shape is None
    assert on_event.output_shape is None


def test_non_procedure_is_not_analyzed() -> None:
    unit, pairs = _pairs(PROCEDURES_TS)
    assert _analyzer().analyze(pairs["notProcedure"], unit, {}) is None


def _semantic_project(tmp_path: Path) -> Path:
    (tmp_path / "tsconfig.json").write_text('{ "compilerOptions": { "strict": true }, "include": ["src"] }')
    src = tmp_path / "src"
    src.mkdir()
    (src / "trpc.ts").write_text(TRPC_TS.lstrip())
    (src / "data.ts").write_text(DATA_TS.lstrip())
    (src / "root.ts").write_text(ROOT_TS.lstrip())
    return src / "root.ts"


def test_type_checker_fills_unknown_output(tmp_path: Path) -> None:
    root = _semantic_project(tmp_path)
    session = AnalysisSession(AtlasConfig(semantic_inference=True))
    unit = session.load_unit(root)
    pairs = {
        property_name(node.child_by_field_name("key"), unit.source): node.child_by_field_name("value")
        for node in walk(unit.root)
        if node.type == "pair"
    }
    analyzer = ProcedureAnalyzer(session)

    listed = analyzer.analyze(pairs["list"], unit, session.imports_of(unit))
    assert listed.kind is NodeKind.QUERY
    assert listed.input_shape == "void"
    assert listed.output_shape == "User[]"


def test_structural_output_beats_type_checker(tmp_path: Path) -> None:
    root = _semantic_project(tmp_path)
    session = AnalysisSession(AtlasConfig(semantic_inference=True))
    unit = session.load_unit(root)
    health = next(
        node.child_by_field_name("value")
        for node in walk(unit.root)
        if node.type == "pair" and unit.text(node.child_by_field_name("key")) == "health"
    )

    analysis = ProcedureAnalyzer(session).analyze(health, unit, session.imports_of(unit))

    assert analysis.output_shape == "{ ok: boolean; }"


def test_semantic_inference_can_be_disabled(tmp_path: Path) -> None:
    root = _semantic_project(tmp_path)
    session = AnalysisSession(AtlasConfig(semantic_inference=False))
    unit = session.load_unit(root)
    listed = next(
        node.child_by_field_name("value")
        for node in walk(unit.root)
        if node.type == "pair" and unit.text(node.child_by_field_name("key")) == "list"
    )

    analysis = ProcedureAnalyzer(session).analyze(listed, unit, session.imports_of(unit))

    assert session.semantic_context(root) is None
    assert analysis.input_shape is None
    assert analysis.output_shape is None


def _procedure_values(unit) -> dict:
    return {
        property_name(node.child_by_field_name("key"), unit.source): node.child_by_field_name("value")
        for node in walk(unit.root)
        if node.type == "pair"
    }


def _builder_project(tmp_path: Path) -> Path:
    (tmp_path / "tsconfig.json").write_text('{ "include": ["src"] }')
    src = tmp_path / "src"
    src.mkdir()
    (src / "builder.ts").write_text(BUILDER_TS.lstrip())
    (src / "root.ts").write_text(BUILDER_ROOT_TS.lstrip())
    return src / "root.ts"


def test_procedure_type_fills_missing_input(tmp_path: Path) -> None:
    root = _builder_project(tmp_path)
    session = AnalysisSession(AtlasConfig(semantic_inference=True))
    unit = session.load_unit(root)

    by_id = ProcedureAnalyzer(session).analyze(_procedure_values(unit)["byId"], unit, session.imports_of(unit))

    assert by_id.kind is NodeKind.QUERY
    assert by_id.input_shape == "{ id: string; }"
    assert by_id.output_shape == "string"


def test_explicit_shapes_beat_procedure_type(tmp_path: Path) -> None:
    root = _builder_project(tmp_path)
    session = AnalysisSession(AtlasConfig(semantic_inference=True))
    unit = session.load_unit(root)

    rename = ProcedureAnalyzer(session).analyze(_procedure_values(unit)["rename"], unit, session.imports_of(unit))

    assert rename.input_shape == 'parser("id")'
    assert rename.output_shape == 'parser("name")'


def test_failed_checker_context_is_built_once(tmp_path: Path, monkeypatch, caplog) -> None:
    root = _semantic_project(tmp_path)
    (tmp_path / "tsconfig.json").write_text("{ not json")
    loads = []
    original = config_cache.load_config_file

    def counting_load(path):
        loads.append(path)
        return original(path)

    monkeypatch.setattr(config_cache, "load_config_file", counting_load)
    session = AnalysisSession(AtlasConfig(semantic_inference=True))
    unit = session.load_unit(root)
    values = _procedure_values(unit)
    analyzer = ProcedureAnalyzer(session)

    with caplog.at_level(logging.WARNING):
        listed = analyzer.analyze(values["list"], unit, session.imports_of(unit))
        health = analyzer.analyze(values["health"], unit, session.imports_of(unit))
        assert session.semantic_context(root) is None

    assert listed.output_shape is None
    assert health.output_shape == "{ ok: boolean; }"
    assert loads == [tmp_path / "tsconfig.json"]
    assert caplog.text.count("Unable to create type checker context") == 1
