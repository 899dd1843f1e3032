"""Memoized lookups of the nearest ``tsconfig.json``.

Three caches, all keyed by directory:

- path mappings (``compilerOptions.paths`` + ``baseUrl``), used by the
  module resolver; a directory without a reachable mapping caches ``None``
- configuration roots (the nearest ``tsconfig.json`` at all)
- semantic contexts (whole-program model + type checker) per root; failed
  builds are cached as ``None`` and never retried until ``clear()``
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import commentjson
import pathspec

from .errors import ConfigError
from .module_resolver import ModuleResolver
from .semantic.checker import TypeChecker
from .semantic.program import Program
from .types import PathMappingConfig
from .workspace import compile_patterns, iter_workspace_files

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "tsconfig.json"
SOURCE_EXTENSIONS = {".ts", ".tsx", ".mts", ".cts"}
DEFAULT_INCLUDE = ["**/*"]
DEFAULT_EXCLUDE = ["node_modules", "bower_components", "jspm_packages"]


@dataclass
class SemanticContext:
    """Whole-program model and its type oracle for one configuration root."""

    program: Program
    checker: TypeChecker
    config_path: Path
    lib_directory: Path | None = None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Read a tsconfig-style JSON file.

    Raises:
        ConfigError: unreadable file, invalid JSON, or a non-object document
    """
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read {config_path}: {exc}") from exc
    try:
        data = commentjson.loads(raw)
    except (commentjson.JSONLibraryException, ValueError) as exc:
        raise ConfigError(f"invalid JSON in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} is not a JSON object")
    return data


def find_typescript_lib_dir(project_dir: Path) -> Path | None:
    """Nearest ``node_modules/typescript/lib`` holding ``lib.d.ts``."""
    for directory in (project_dir, *project_dir.parents):
        candidate = directory / "node_modules" / "typescript" / "lib"
        if (candidate / "lib.d.ts").is_file():
            return candidate
    return None


def _config_spec(patterns: list[str]) -> pathspec.PathSpec:
    # tsconfig patterns are relative to the config directory
    anchored = []
    for pattern in patterns:
        pattern = pattern.replace("\\", "/")
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if not pattern.startswith(("/", "**")):
            pattern = "/" + pattern
        anchored.append(pattern)
    return compile_patterns(anchored)


def collect_program_files(config: dict[str, Any], config_dir: Path) -> list[Path]:
    """Root files declared by a configuration (``files`` + ``include`` - ``exclude``)."""
    declared = config.get("files") or []
    result: list[Path] = []
    seen: set[Path] = set()

    for name in declared:
        path = (config_dir / name).resolve()
        if path.is_file() and path not in seen:
            seen.add(path)
            result.append(path)

    include = config.get("include")
    if include is None:
        include = [] if declared else DEFAULT_INCLUDE
    exclude = config.get("exclude")
    if exclude is None:
        exclude = DEFAULT_EXCLUDE
    if not include:
        return result
    include_spec = _config_spec(include)
    exclude_spec = _config_spec(exclude)

    for file_path in iter_workspace_files(config_dir, extensions=SOURCE_EXTENSIONS):
        rel = file_path.relative_to(config_dir).as_posix()
        if not include_spec.match_file(rel) or exclude_spec.match_file(rel):
            continue
        resolved = file_path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            result.append(resolved)
    return result


class ConfigCache:
    """Nearest-configuration lookups shared by one analysis session."""

    def __init__(self) -> None:
        self._path_mappings: dict[Path, PathMappingConfig | None] = {}
        self._config_files: dict[Path, Path | None] = {}
        self._semantic_contexts: dict[Path, SemanticContext | None] = {}

    def nearest_path_mapping(self, from_file: str | Path) -> PathMappingConfig | None:
        start = Path(os.path.abspath(from_file)).parent
        visited: list[Path] = []
        result: PathMappingConfig | None = None

        for directory in (start, *start.parents):
            if directory in self._path_mappings:
                result = self._path_mappings[directory]
                break
            visited.append(directory)
            mapping = self._read_path_mapping(directory / CONFIG_FILE_NAME)
            if mapping is not None:
                logger.debug("Found tsconfig with paths at %s", directory / CONFIG_FILE_NAME)
                result = mapping
                break

        for directory in visited:
            self._path_mappings[directory] = result
        return result

    def _read_path_mapping(self, config_path: Path) -> PathMappingConfig | None:
        if not config_path.is_file():
            return None
        try:
            config = load_config_file(config_path)
        except ConfigError as exc:
            logger.warning("Invalid tsconfig.json at %s: %s", config_path, exc)
            return None

        options = config.get("compilerOptions") or {}
        paths = options.get("paths") if isinstance(options, dict) else None
        if not isinstance(paths, dict) or not paths:
            return None

        mappings: dict[str, list[str]] = {}
        for pattern, targets in paths.items():
            if isinstance(targets, str):
                targets = [targets]
            if isinstance(targets, list):
                mappings[pattern] = [t for t in targets if isinstance(t, str)]
        base_url = options.get("baseUrl") or "."
        return PathMappingConfig(
            mappings=mappings,
            base_directory=(config_path.parent / base_url).resolve(),
        )

    def nearest_config_file(self, from_file: str | Path) -> Path | None:
        start = Path(os.path.abspath(from_file)).parent
        visited: list[Path] = []
        result: Path | None = None

        for directory in (start, *start.parents):
            if directory in self._config_files:
                result = self._config_files[directory]
                break
            visited.append(directory)
            candidate = directory / CONFIG_FILE_NAME
            if candidate.is_file():
                result = candidate
                break

        for directory in visited:
            self._config_files[directory] = result
        return result

    def semantic_context(self, from_file: str | Path) -> SemanticContext | None:
        config_path = self.nearest_config_file(from_file)
        if config_path is None:
            logger.debug("No tsconfig found for %s", from_file)
            return None

        if config_path in self._semantic_contexts:
            return self._semantic_contexts[config_path]

        context = self._build_semantic_context(config_path, Path(from_file))
        if context is None:
            logger.warning("Unable to create type checker context for %s", config_path)
        else:
            logger.debug("Created type checker context for %s", config_path)
        self._semantic_contexts[config_path] = context
        return context

    def _build_semantic_context(
        self, config_path: Path, target_file: Path
    ) -> SemanticContext | None:
        try:
            config = load_config_file(config_path)
        except ConfigError as exc:
            logger.warning("%s", exc)
            return None

        config_dir = config_path.parent
        try:
            root_files = collect_program_files(config, config_dir)
        except OSError as exc:
            logger.warning("Cannot enumerate program files for %s: %s", config_path, exc)
            return None

        target = target_file.resolve()
        if target not in root_files:
            root_files.append(target)

        lib_directory = find_typescript_lib_dir(config_dir)
        if lib_directory is None:
            logger.debug("No local typescript lib directory for %s; using built-in globals", config_dir)

        program = Program(root_files, ModuleResolver(self), lib_directory=lib_directory)
        return SemanticContext(
            program=program,
            checker=TypeChecker(program),
            config_path=config_path,
            lib_directory=lib_directory,
        )

    def clear(self) -> None:
        """Forget configuration roots and semantic contexts."""
        self._config_files.clear()
        self._semantic_contexts.clear()
        logger.debug("Cleared semantic context caches")

    def clear_path_mappings(self) -> None:
        self._path_mappings.clear()
