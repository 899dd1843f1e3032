"""State shared by one discovery run.

An ``AnalysisSession`` owns every cache the analysis uses: shallow parses,
import tables, path mappings, semantic contexts and resolved enum names.
Nothing is process-global, so two sessions never see each other's state.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import AtlasConfig
from .config_cache import ConfigCache, SemanticContext
from .imports import collect_import_bindings
from .module_resolver import ModuleResolver
from .ts_parser import SourceUnit, parse_file
from .types import ImportBinding

logger = logging.getLogger(__name__)


class AnalysisSession:
    def __init__(self, config: AtlasConfig | None = None):
        self.config = config or AtlasConfig()
        self.config_cache = ConfigCache()
        self.resolver = ModuleResolver(self.config_cache)
        self.enum_cache: dict[str, str | None] = {}
        self._units: dict[str, SourceUnit | None] = {}
        self._imports: dict[str, dict[str, ImportBinding]] = {}

    def load_unit(self, path: str | Path) -> SourceUnit | None:
        """Shallow parse of ``path``, cached until the next cache clear."""
        key = os.path.abspath(path)
        if key not in self._units:
            try:
                self._units[key] = parse_file(key)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", key, exc)
                self._units[key] = None
        return self._units[key]

    def imports_of(self, unit: SourceUnit) -> dict[str, ImportBinding]:
        imports = self._imports.get(unit.path)
        if imports is None:
            imports = collect_import_bindings(unit)
            self._imports[unit.path] = imports
        return imports

    def semantic_context(self, path: str | Path) -> SemanticContext | None:
        if not self.config.semantic_inference:
            return None
        return self.config_cache.semantic_context(path)

    def clear_semantic_caches(self) -> None:
        """Forget parses, configuration roots, semantic contexts and enum names.

        Path mappings survive; they only change when a tsconfig changes.
        """
        self._units.clear()
        self._imports.clear()
        self.enum_cache.clear()
        self.config_cache.clear()
