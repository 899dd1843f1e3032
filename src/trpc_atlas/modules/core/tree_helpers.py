"""Post-processing of discovered trees."""

from __future__ import annotations

import os
from collections import OrderedDict

from .types import NodeKind, ProcedureTreeNode

NO_RESULT_TEXT = "No AppRouter found"


def count_procedures(node: ProcedureTreeNode) -> dict[str, int]:
    """Number of queries, mutations and subscriptions below ``node``."""
    counts = {NodeKind.QUERY.value: 0, NodeKind.MUTATION.value: 0, NodeKind.SUBSCRIPTION.value: 0}
    for child in node.children:
        if child.kind.is_procedure:
            counts[child.kind.value] += 1
            continue
        for kind, count in count_procedures(child).items():
            counts[kind] += count
    return counts


def group_trees_by_file(trees: list[ProcedureTreeNode]) -> list[ProcedureTreeNode]:
    """Wrap several roots discovered in the same file under a ``file-group`` node.

    A file contributing a single root, and roots without a source file, are
    returned unchanged. First-seen file order is kept.
    """
    grouped: OrderedDict[str | None, list[ProcedureTreeNode]] = OrderedDict()
    loose: list[ProcedureTreeNode] = []
    for tree in trees:
        if tree.source_file is None:
            loose.append(tree)
            continue
        grouped.setdefault(tree.source_file, []).append(tree)

    result: list[ProcedureTreeNode] = []
    for source_file, group in grouped.items():
        if len(group) == 1:
            result.append(group[0])
            continue
        result.append(
            ProcedureTreeNode(
                name=os.path.basename(source_file),
                kind=NodeKind.FILE_GROUP,
                children=list(group),
                source_file=source_file,
            )
        )
    return result + loose


def no_result_node(text: str = NO_RESULT_TEXT) -> ProcedureTreeNode:
    """Placeholder shown when discovery finds nothing."""
    return ProcedureTreeNode(name=text, kind=NodeKind.COLLECTION)
