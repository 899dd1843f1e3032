"""Operations on rendered type text.

Procedure types arrive as text like
``QueryProcedure<{ input: { id: string; }; output: User; }>``; these helpers
pull fields out of such text and tidy it for display. Extraction respects
nesting of ``<>``, ``{}``, ``()`` and ``[]`` and skips over string literals.
"""

from __future__ import annotations

import re

_IMPORT_QUALIFIER_RE = re.compile(r"""import\((["'])[^"']*\1\)\.""")
_WRAPPER_RE = re.compile(
    r"^(?:Promise|PrismaPromise|[A-Za-z_$][\w$]*\.PrismaPromise|Prisma__[A-Za-z_$][\w$]*)<"
)

_OPENERS = {"<": ">", "{": "}", "(": ")", "[": "]"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}

NON_INFORMATIVE_PARTS = frozenset(
    {
        "any",
        "any[]",
        "unknown",
        "unknown[]",
        "{[key:string]:unknown;}",
        "{[key:string]:unknown}",
    }
)


def _scan(text: str, start: int):
    """Yield ``(index, char, depth)`` from ``start``, skipping string literals.

    ``depth`` counts open brackets before the character. ``=>`` arrows are
    not treated as closing angle brackets.
    """
    depth = 0
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in "\"'`":
            j = i + 1
            while j < n and text[j] != ch:
                j += 2 if text[j] == "\\" else 1
            i = j + 1
            continue
        if ch == ">" and i > 0 and text[i - 1] == "=":
            yield i, ch, depth
            i += 1
            continue
        if ch in _CLOSERS:
            depth -= 1
        yield i, ch, depth
        if ch in _OPENERS:
            depth += 1
        i += 1


def extract_top_level_generic_arg(type_text: str) -> str | None:
    """Text between the outermost ``<`` and its matching ``>``."""
    start = type_text.find("<")
    if start < 0:
        return None
    close = _matching_close(type_text, start)
    if close is None:
        return None
    return type_text[start + 1:close].strip()


def _matching_close(text: str, open_index: int) -> int | None:
    for i, ch, depth in _scan(text, open_index + 1):
        if depth < 0:
            return i
    return None


def _top_level_segments(body: str) -> list[str]:
    segments: list[str] = []
    last = 0
    for i, ch, depth in _scan(body, 0):
        if depth == 0 and ch in ";,":
            segments.append(body[last:i])
            last = i + 1
    segments.append(body[last:])
    return [s.strip() for s in segments if s.strip()]


def value_segment_at(text: str, start: int) -> str:
    """Text from ``start`` up to the next separator or unmatched closer at depth zero."""
    for i, ch, depth in _scan(text, start):
        if depth < 0 or (depth == 0 and ch in ";,"):
            return text[start:i].strip()
    return text[start:].strip()


def extract_top_level_object_field_type(object_text: str, field: str) -> str | None:
    """Type text of ``field`` in an object type literal, at nesting depth one.

    Returns None when ``object_text`` is not an object type or has no such
    field.
    """
    text = object_text.strip()
    if not text.startswith("{"):
        return None
    close = _matching_close(text, 0)
    body = text[1:close] if close is not None else text[1:]
    member_re = re.compile(
        r"^(?:readonly\s+)?([\"']?)" + re.escape(field) + r"\1\s*\??\s*:\s*(.*)$", re.DOTALL
    )
    for segment in _top_level_segments(body):
        match = member_re.match(segment)
        if match is not None:
            return match.group(2).strip()
    return None


def unwrap_known_wrapper_types(type_text: str) -> str:
    """Strip ``Promise<...>`` and Prisma promise wrappers spanning the whole text, repeatedly."""
    text = type_text.strip()
    while True:
        match = _WRAPPER_RE.match(text)
        if match is None:
            return text
        open_index = match.end() - 1
        close = _matching_close(text, open_index)
        if close != len(text) - 1:
            return text
        text = text[open_index + 1:close].strip()


def sanitize_type_text(type_text: str) -> str:
    """Drop ``import("...").`` qualifiers and unwrap promise wrappers."""
    return unwrap_known_wrapper_types(_IMPORT_QUALIFIER_RE.sub("", type_text))


def is_non_informative_inferred_type(type_text: str | None) -> bool:
    """True when every union member is ``any``/``unknown`` (or their arrays or records)."""
    if type_text is None:
        return True
    parts = [re.sub(r"\s+", "", part) for part in split_top_level_union(type_text)]
    return all(not part or part in NON_INFORMATIVE_PARTS for part in parts)


def split_top_level_union(type_text: str) -> list[str]:
    parts: list[str] = []
    last = 0
    for i, ch, depth in _scan(type_text, 0):
        if ch == "|" and depth == 0:
            parts.append(type_text[last:i])
            last = i + 1
    parts.append(type_text[last:])
    return [p.strip() for p in parts]
