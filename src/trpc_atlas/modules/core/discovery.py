"""
Workspace-wide router discovery.

Candidate files are probed in priority order: the configured discovery
patterns first (``**/root.ts``, ``**/trpc.ts``...), then every other
``.ts``/``.tsx`` file. Each file is probed once, and each root alias found
yields one tree, renamed to the alias.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from .config import AtlasConfig, load_config
from .router_tree import RouterTreeBuilder, find_root_aliases
from .session import AnalysisSession
from .types import ProcedureTreeNode
from .workspace import DEFAULT_EXCLUDE_PATTERNS, glob_workspace_files, iter_workspace_files

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = {".ts", ".tsx"}


def candidate_files(root: str | Path, config: AtlasConfig) -> list[Path]:
    """Files to probe for root aliases, prioritized and without repeats."""
    excludes = DEFAULT_EXCLUDE_PATTERNS + list(config.exclude_patterns)
    seen: set[Path] = set()
    ordered: list[Path] = []

    for pattern in config.discovery_patterns:
        for path in glob_workspace_files(root, pattern, exclude_patterns=excludes):
            if path not in seen:
                seen.add(path)
                ordered.append(path)
    prioritized = len(ordered)

    for path in iter_workspace_files(root, extensions=SOURCE_EXTENSIONS, exclude_patterns=excludes):
        if path not in seen:
            seen.add(path)
            ordered.append(path)

    logger.debug("%d candidate file(s), %d prioritized", len(ordered), prioritized)
    return ordered


def discover_router_trees(
    root: str | Path,
    config: AtlasConfig | None = None,
    session: AnalysisSession | None = None,
) -> list[ProcedureTreeNode]:
    """One tree per root alias found below ``root``."""
    if config is None:
        config = session.config if session is not None else load_config(root)
    if session is None:
        session = AnalysisSession(config)
    builder = RouterTreeBuilder(session)

    logger.info("Starting discovery of router trees in %s", root)
    trees: list[ProcedureTreeNode] = []
    built: set[tuple[str, str]] = set()

    for path in candidate_files(root, config):
        unit = session.load_unit(path)
        if unit is None:
            continue
        for alias, variable in find_root_aliases(unit, config.root_alias_names):
            key = (unit.path, variable)
            if key in built:
                continue
            built.add(key)

            tree = builder.build(unit.path, variable)
            if tree is None:
                continue
            trees.append(replace(tree, name=alias))

    logger.info("Router discovery completed: %d tree(s) found", len(trees))
    return trees
