"""Syntax-only inference of handler return types."""
import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core.structural_inference import (
    collect_return_expressions,
    guess_input_field_type,
    infer_expression_type,
    is_inline_handler,
)
from trpc_atlas.modules.core.ts_parser import parse_source, walk


def _handler(source: str):
    unit = parse_source("handler.ts", source)
    fn = next(node for node in walk(unit.root) if node.type == "arrow_function")
    return unit, fn


def _infer(source: str, input_schema: str | None = None) -> list[str]:
    unit, fn = _handler(source)
    return [infer_expression_type(unit, expr, input_schema) for expr in collect_return_expressions(unit, fn)]


def test_object_literal_fields() -> None:
    source = "const h = () => ({ id: 1, name: 'a', tags: ['x'], ok: true, when: new Date(), gone: null });"
    assert _infer(source) == [
        "{ id: number; name: string; tags: string[]; ok: boolean; when: Date; gone: null; }"
    ]


def test_block_body_collects_every_return() -> None:
    source = """
const h = (flag: boolean) => {
  const inner = () => { return 'ignored'; };
  if (flag) {
    return { ok: true };
  }
  return `done`;
};
""".lstrip()
    assert _infer(source) == ["{ ok: boolean; }", "string"]


def test_input_fields_follow_schema_text() -> None:
    source = "const h = ({ input }) => ({ id: input.id, other: input.other });"
    assert _infer(source, "z.object({ id: z.number() })") == ["{ id: number; other: unknown; }"]


def test_spread_and_empty_objects() -> None:
    assert _infer("const h = () => ({ ...base, a: 1 });") == ["{ a: number; [key: string]: unknown; }"]
    assert _infer("const h = () => ({});") == ["{ }"]


def test_ternary_and_unknown_calls() -> None:
    assert _infer("const h = (c: boolean) => (c ? 1 : 'a');") == ["number | string"]
    assert _infer("const h = (c: boolean) => (c ? 1 : 2);") == ["number"]
    assert _infer("const h = () => db.user.findMany();") == ["unknown"]
    assert _infer("const h = () => [];") == ["unknown[]"]


def test_guess_input_field_type() -> None:
    assert guess_input_field_type("z.object({ id: z.number() })", "id") == "number"
    assert guess_input_field_type("z.object({ name: z.string().optional() })", "name") == "string | undefined"
    assert guess_input_field_type("z.object({ at: z.date().nullable() })", "at") == "Date | null"
    assert guess_input_field_type("z.object({ id: z.number() })", "missing") is None
    assert guess_input_field_type(None, "id") is None


def test_guess_input_field_type_reads_each_fields_own_suffixes() -> None:
    schema = "z.object({ userId: z.number(), id: z.string(), n: z.number().nullable(), o: z.string().optional() })"

    assert guess_input_field_type(schema, "id") == "string"
    assert guess_input_field_type(schema, "userId") == "number"
    assert guess_input_field_type(schema, "n") == "number | null"
    assert guess_input_field_type(schema, "o") == "string | undefined"


def test_guess_input_field_type_needs_a_whole_name() -> None:
    schema = "z.object({ uid: z.number(), nested: z.object({ id: z.string().optional() }) })"

    assert guess_input_field_type(schema, "id") == "string | undefined"
    assert guess_input_field_type("z.object({ uid: z.number() })", "id") is None


def test_input_field_suffixes_through_handler() -> None:
    source = "const h = ({ input }) => ({ id: input.id, n: input.n });"
    schema = "z.object({ id: z.string(), n: z.number().nullable(), o: z.string().optional() })"
    assert _infer(source, schema) == ["{ id: string; n: number | null; }"]


def test_is_inline_handler() -> None:
    unit, fn = _handler("const h = () => 1;")
    assert is_inline_handler(fn)
    assert not is_inline_handler(unit.root)
