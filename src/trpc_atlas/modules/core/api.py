"""
trpc-atlas API - static discovery of tRPC router trees.

Usage:
    from trpc_atlas.modules.core.api import discover

    trees = discover("/path/to/project")
    for tree in trees:
        print(tree.to_dict())
"""

from __future__ import annotations

from pathlib import Path

from .config import AtlasConfig, load_config
from .discovery import discover_router_trees
from .router_tree import RouterTreeBuilder, find_root_alias_names
from .session import AnalysisSession
from .tree_helpers import group_trees_by_file
from .types import ProcedureTreeNode

__all__ = [
    "discover",
    "root_aliases",
    "show_router",
]


def _config_for(project: str | Path, config: AtlasConfig | None, semantic: bool | None) -> AtlasConfig:
    config = config or load_config(project)
    return config.with_overrides(semantic_inference=semantic)


def discover(
    project: str | Path,
    config: AtlasConfig | None = None,
    semantic: bool | None = None,
    group_by_file: bool = True,
) -> list[ProcedureTreeNode]:
    """All router trees below ``project``, grouped per file by default."""
    config = _config_for(project, config, semantic)
    trees = discover_router_trees(project, config, AnalysisSession(config))
    return group_trees_by_file(trees) if group_by_file else trees


def root_aliases(file: str | Path, config: AtlasConfig | None = None) -> list[str]:
    config = config or AtlasConfig()
    return find_root_alias_names(file, config.root_alias_names)


def show_router(
    file: str | Path,
    variable: str,
    config: AtlasConfig | None = None,
    semantic: bool | None = None,
) -> ProcedureTreeNode | None:
    """Tree of one router variable; None when the file does not exist."""
    project = Path(file).resolve().parent
    config = _config_for(project, config, semantic)
    return RouterTreeBuilder(AnalysisSession(config)).build(file, variable)
