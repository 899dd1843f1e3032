"""Router discovery, procedure analysis and the semantic type model."""

from .api import discover, root_aliases, show_router
from .config import AtlasConfig, load_config
from .discovery import discover_router_trees
from .procedure_analysis import ProcedureAnalyzer
from .router_tree import RouterTreeBuilder, find_root_alias_names
from .session import AnalysisSession
from .tree_helpers import count_procedures, group_trees_by_file, no_result_node
from .types import NodeKind, ProcedureTreeNode

__all__ = [
    "AnalysisSession",
    "AtlasConfig",
    "NodeKind",
    "ProcedureAnalyzer",
    "ProcedureTreeNode",
    "RouterTreeBuilder",
    "count_procedures",
    "discover",
    "discover_router_trees",
    "find_root_alias_names",
    "group_trees_by_file",
    "load_config",
    "no_result_node",
    "root_aliases",
    "show_router",
]
