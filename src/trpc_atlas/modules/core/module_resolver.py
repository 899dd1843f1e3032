"""Import specifier to file resolution (relative paths and tsconfig ``paths``)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config_cache import ConfigCache

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".ts", ".tsx", ".d.ts")
INDEX_FILES = ("index.ts", "index.tsx")

# ESM-style imports name the emitted file; the source sits next to it.
_EMITTED_TO_SOURCE = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}


def resolve_file(base: str | Path) -> str | None:
    """Accept ``base`` as a file, with a source suffix, or as a directory index."""
    base = str(base)
    candidates = [base]
    candidates.extend(base + suffix for suffix in SOURCE_SUFFIXES)
    stem, ext = os.path.splitext(base)
    for twin in _EMITTED_TO_SOURCE.get(ext, ()):
        candidates.append(stem + twin)
    candidates.extend(os.path.join(base, name) for name in INDEX_FILES)

    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return None


def _pattern_prefix(pattern: str) -> str:
    star = pattern.find("*")
    return pattern if star < 0 else pattern[:star]


class ModuleResolver:
    """Resolve ``import`` specifiers the way the TypeScript compiler would, mostly."""

    def __init__(self, config_cache: ConfigCache):
        self._config_cache = config_cache

    def resolve(self, specifier: str, from_file: str | Path) -> str | None:
        """Concrete file for ``specifier`` imported from ``from_file``; None if unresolvable."""
        if not specifier:
            return None
        if specifier.startswith("."):
            base = os.path.normpath(os.path.join(os.path.dirname(os.path.abspath(from_file)), specifier))
            return resolve_file(base)
        return self._resolve_mapped(specifier, from_file)

    def _resolve_mapped(self, specifier: str, from_file: str | Path) -> str | None:
        config = self._config_cache.nearest_path_mapping(from_file)
        if config is None:
            return None

        # Longest literal prefix first; declaration order breaks ties.
        patterns = sorted(
            config.mappings.items(),
            key=lambda item: len(_pattern_prefix(item[0])),
            reverse=True,
        )
        for pattern, substitutions in patterns:
            has_wildcard = "*" in pattern
            prefix = _pattern_prefix(pattern)
            suffix = pattern[pattern.find("*") + 1:] if has_wildcard else ""
            if has_wildcard:
                if not (specifier.startswith(prefix) and specifier.endswith(suffix)):
                    continue
                if len(specifier) < len(prefix) + len(suffix):
                    continue
                rest = specifier[len(prefix):len(specifier) - len(suffix)]
            else:
                if specifier != pattern:
                    continue
                rest = ""

            for substitution in substitutions:
                mapped = substitution.replace("*", rest, 1) if "*" in substitution else substitution
                resolved = resolve_file(os.path.normpath(os.path.join(config.base_directory, mapped)))
                if resolved:
                    return resolved
            logger.debug("Path mapping %s matched %s but no file exists", pattern, specifier)

        return None
