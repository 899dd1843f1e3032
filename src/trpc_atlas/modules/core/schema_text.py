"""Follow identifier references in schema text back to a literal schema.

``.input(byIdInput)`` names a schema defined elsewhere; the displayed shape
should be the ``z.object({...})`` expression it refers to. References are
followed through local declarations and imports, splicing any trailing
member chain (``byIdInput.extend(...)``) onto the resolved text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .ts_parser import SourceUnit, find_export_default_value, find_variable_declarator
from .types import ImportBinding

if TYPE_CHECKING:
    from .session import AnalysisSession

logger = logging.getLogger(__name__)

MAX_ALIAS_DEPTH = 5

_LEADING_IDENTIFIER_RE = re.compile(r"^([A-Za-z_$][\w$]*)([\s\S]*)$")


@dataclass
class IdentifierResolution:
    text: str
    unit: SourceUnit
    imports: dict[str, ImportBinding]


def is_schema_literal(text: str) -> bool:
    return text.startswith("z.") or text.startswith("{")


class SchemaTextResolver:
    """Resolves schema identifiers using the session's parser and module resolver."""

    def __init__(self, session: AnalysisSession):
        self.session = session

    def resolve(
        self,
        text: str,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
        depth: int = 0,
    ) -> str:
        if depth > MAX_ALIAS_DEPTH:
            logger.debug("Schema alias chain too deep at %r in %s", text, unit.path)
            return text

        trimmed = text.strip()
        if is_schema_literal(trimmed):
            return trimmed

        match = _LEADING_IDENTIFIER_RE.match(trimmed)
        if match is None:
            return trimmed
        identifier, suffix = match.group(1), match.group(2)

        resolved = self.resolve_identifier(identifier, unit, imports)
        if resolved is None:
            return trimmed

        substituted = resolved.text + suffix
        if substituted.startswith("z."):
            return substituted
        return self.resolve(substituted, resolved.unit, resolved.imports, depth + 1)

    def resolve_identifier(
        self,
        name: str,
        unit: SourceUnit,
        imports: dict[str, ImportBinding],
    ) -> IdentifierResolution | None:
        """Initializer text of ``name``: local declaration first, then its import."""
        local = _initializer_text(unit, name)
        if local is not None:
            return IdentifierResolution(local, unit, imports)

        binding = imports.get(name)
        if binding is None or binding.is_namespace:
            return None

        target_path = self.session.resolver.resolve(binding.module_specifier, unit.path)
        target = self.session.load_unit(target_path) if target_path else None
        if target is None:
            return None
        target_imports = self.session.imports_of(target)

        target_name = name if binding.is_default else binding.exported_name
        text = _initializer_text(target, target_name)
        if text is None and binding.is_default:
            value = find_export_default_value(target)
            if value is not None and value.type != "identifier":
                text = target.text(value)
            elif value is not None:
                text = _initializer_text(target, target.text(value))
        if text is None:
            return None
        return IdentifierResolution(text, target, target_imports)


def _initializer_text(unit: SourceUnit, name: str) -> str | None:
    declarator: Any = find_variable_declarator(unit, name)
    if declarator is None:
        return None
    return unit.text(declarator.child_by_field_name("value"))
