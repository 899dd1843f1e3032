from trpc_atlas.modules.core.shape_pretty import (
    FallbackPrettifier,
    ShapePrettifier,
    compact_type_text,
    decode_unicode_escapes,
    simplify_builder_expression,
)


def test_simplify_builder_expression() -> None:
    assert simplify_builder_expression("z.string()") == "string"
    assert simplify_builder_expression(" z.number( ) ") == "number"
    assert simplify_builder_expression("z.object({ id: z.string() })") == "object({ id: z.string() })"
    assert simplify_builder_expression("  User ") == "User"


def test_compact_short_multiline_text() -> None:
    text = "{\n  id: string;\n  name: string;\n}"
    assert compact_type_text(text) == "{ id: string; name: string; }"


def test_compact_keeps_long_text() -> None:
    text = "\n".join(f"field{i}: string;" for i in range(8))
    assert compact_type_text(text) == text


def test_decode_unicode_escapes() -> None:
    assert decode_unicode_escapes("caf\\u00e9") == "café"


def test_fallback_prettifier() -> None:
    prettifier = FallbackPrettifier()
    assert isinstance(prettifier, ShapePrettifier)
    assert prettifier.prettify("z.string()") == "string"
    assert prettifier.prettify("") == ""
