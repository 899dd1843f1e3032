"""Data model shared by the router walk, the analyzers and the outputs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class NodeKind(str, enum.Enum):
    COLLECTION = "collection"
    FILE_GROUP = "file-group"
    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"

    @property
    def is_procedure(self) -> bool:
        return self in PROCEDURE_KINDS


PROCEDURE_KINDS = frozenset({NodeKind.QUERY, NodeKind.MUTATION, NodeKind.SUBSCRIPTION})


@dataclass
class ProcedureTreeNode:
    """A collection (router), a file group, or a leaf procedure."""

    name: str
    kind: NodeKind
    children: list[ProcedureTreeNode] = field(default_factory=list)
    source_file: str | None = None
    source_line: int | None = None
    input_shape: str | None = None
    output_shape: str | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "name": self.name,
            "kind": self.kind.value,
            "children": [child.to_dict() for child in self.children],
        }
        if self.source_file is not None:
            data["sourceFile"] = self.source_file
        if self.source_line is not None:
            data["sourceLine"] = self.source_line
        if self.input_shape is not None:
            data["inputShape"] = self.input_shape
        if self.output_shape is not None:
            data["outputShape"] = self.output_shape
        return data


@dataclass(frozen=True)
class ImportBinding:
    """How one locally bound name was imported.

    ``exported_name`` is ``"default"`` for default imports and ``"*"`` for
    namespace imports.
    """

    module_specifier: str
    exported_name: str
    is_default: bool = False

    @property
    def is_namespace(self) -> bool:
        return self.exported_name == "*"


@dataclass(frozen=True)
class PathMappingConfig:
    """``compilerOptions.paths`` of one tsconfig, with its resolved base."""

    mappings: dict[str, list[str]]
    base_directory: Path


@dataclass(frozen=True)
class ProcedureAnalysis:
    kind: NodeKind
    input_shape: str | None = None
    output_shape: str | None = None


@dataclass(frozen=True)
class ProcedureResolution:
    """A procedure found behind an identifier, with where it was declared."""

    analysis: ProcedureAnalysis
    source_file: str
    source_line: int | None = None
