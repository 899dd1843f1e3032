"""Display renderings of shape text.

The analysis only ever produces raw shape text. How that text is shown is
up to a ``ShapePrettifier``; the bundled ``FallbackPrettifier`` is purely
textual and never evaluates the schema expression.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MAX_COMPACT_LINES = 5
MAX_COMPACT_WIDTH = 80

_UNICODE_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")


@runtime_checkable
class ShapePrettifier(Protocol):
    """Turns raw shape text into something readable; returns the input on failure."""

    def prettify(self, text: str) -> str: ...


def decode_unicode_escapes(text: str) -> str:
    return _UNICODE_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), text)


def compact_type_text(text: str) -> str:
    """Put short multi-line type text on one line."""
    decoded = decode_unicode_escapes(text)
    if len(decoded.split("\n")) <= MAX_COMPACT_LINES:
        single_line = re.sub(r"\s+", " ", re.sub(r"\n\s*", " ", decoded)).strip()
        if len(single_line) <= MAX_COMPACT_WIDTH:
            return single_line
    return decoded


def simplify_builder_expression(text: str) -> str:
    """``z.string()`` -> ``string``; other text is only trimmed."""
    simplified = text.strip()
    if simplified.startswith("z."):
        simplified = re.sub(r"\(\s*\)$", "", simplified[2:])
    return simplified


class FallbackPrettifier:
    def prettify(self, text: str) -> str:
        if not text.strip():
            return text
        pretty = compact_type_text(simplify_builder_expression(text))
        logger.debug("Prettified %r -> %r", text, pretty)
        return pretty
