"""
trpc-atlas: static discovery of tRPC router trees in TypeScript codebases.

Finds ``export type AppRouter = typeof appRouter`` aliases, rebuilds the
router/procedure tree they point to across files and path aliases, and
reports each procedure's input and output shape without running the code.
"""

try:
    from importlib.metadata import version
    __version__ = version("trpc-atlas")
except Exception:
    __version__ = "0.1.0"

from .modules.core import (
    AnalysisSession,
    AtlasConfig,
    NodeKind,
    ProcedureTreeNode,
    RouterTreeBuilder,
    discover,
    discover_router_trees,
    find_root_alias_names,
    show_router,
)

from . import modules

__all__ = [
    "modules",
    "AnalysisSession",
    "AtlasConfig",
    "NodeKind",
    "ProcedureTreeNode",
    "RouterTreeBuilder",
    "discover",
    "discover_router_trees",
    "find_root_alias_names",
    "show_router",
]
