"""
Workspace file enumeration.

Provides:
- DEFAULT_EXCLUDE_PATTERNS for dependency and build directories
- should_include_path() to check a workspace-relative path
- iter_workspace_files() to walk a tree with pruning
- compile_patterns() to build a gitwildmatch spec
- glob_workspace_files() for ``**``-style discovery patterns
"""

import fnmatch
import os
from pathlib import Path
from typing import Iterator, List, Union

import pathspec


# Default exclude patterns for common non-source directories
DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
    "**/.next/**",
    "**/coverage/**",
]


def _normalize_path(path: str) -> str:
    """
    Normalize a path for consistent matching.

    - Converts backslashes to forward slashes
    - Removes leading ./
    - Removes trailing /
    """
    path = path.replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path.rstrip("/")


def _matches_any_pattern(path: str, patterns: List[str]) -> bool:
    """
    Check if path matches any of the glob patterns.

    Args:
        path: Path to check (should be normalized)
        patterns: List of glob patterns

    Returns:
        True if path matches any pattern
    """
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True

        # fnmatch doesn't treat **/dir/** as "dir anywhere in the path"
        if "**" in pattern:
            for part in pattern.split("/"):
                if part and part != "**" and part != "*":
                    dir_name = part.rstrip("*")
                    if not dir_name:
                        continue
                    if path.startswith(f"{dir_name}/"):
                        return True
                    if f"/{dir_name}/" in path:
                        return True
                    if path == dir_name:
                        return True

    return False


def should_include_path(path: str, exclude_patterns: List[str]) -> bool:
    """True unless the workspace-relative ``path`` matches an exclude pattern."""
    return not _matches_any_pattern(_normalize_path(path), exclude_patterns)


def iter_workspace_files(
    root: Union[str, Path],
    extensions: set[str] | None = None,
    exclude_patterns: List[str] | None = None,
    exclude_hidden: bool = True,
) -> Iterator[Path]:
    """Iterate files below ``root`` in a stable order.

    Args:
        root: Directory to walk
        extensions: Optional set of suffixes to include (e.g., {".ts"})
        exclude_patterns: Glob patterns to skip; defaults to DEFAULT_EXCLUDE_PATTERNS
        exclude_hidden: If True, skip hidden files/dirs

    Yields:
        Absolute Path objects for matching files
    """
    root_path = Path(root).resolve()
    patterns = DEFAULT_EXCLUDE_PATTERNS if exclude_patterns is None else exclude_patterns

    for dirpath, dirnames, filenames in os.walk(root_path):
        rel_dir = os.path.relpath(dirpath, root_path)

        kept = []
        for d in sorted(dirnames):
            if exclude_hidden and d.startswith("."):
                continue
            rel = d if rel_dir == "." else f"{rel_dir}/{d}"
            if not should_include_path(rel + "/", patterns) or not should_include_path(rel, patterns):
                continue
            kept.append(d)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if exclude_hidden and filename.startswith("."):
                continue
            if extensions and Path(filename).suffix not in extensions:
                continue
            file_path = Path(dirpath) / filename
            rel_path = file_path.relative_to(root_path).as_posix()
            if not should_include_path(rel_path, patterns):
                continue
            yield file_path


def compile_patterns(patterns: List[str]) -> pathspec.PathSpec:
    """Compile ``**``-style patterns into one gitwildmatch spec."""
    return pathspec.PathSpec.from_lines("gitwildmatch", [_normalize_path(p) for p in patterns])


def glob_workspace_files(
    root: Union[str, Path],
    pattern: str,
    exclude_patterns: List[str] | None = None,
) -> List[Path]:
    """Files below ``root`` whose relative path matches a ``**``-style pattern."""
    spec = compile_patterns([pattern])
    root_path = Path(root).resolve()
    return [
        path
        for path in iter_workspace_files(root_path, exclude_patterns=exclude_patterns)
        if spec.match_file(path.relative_to(root_path).as_posix())
    ]
