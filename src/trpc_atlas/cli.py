#!/usr/bin/env python3
"""
trpc-atlas CLI - static discovery of tRPC router trees.

Usage:
    trpc-atlas discover [path]               Discover every AppRouter tree
    trpc-atlas aliases <file>                List root alias targets of a file
    trpc-atlas show <file> <variable>        Build the tree of one router
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .modules.core.config import AtlasConfig, load_config
from .modules.core.errors import ERR_INTERNAL, ERR_NOT_FOUND, make_error, make_not_found_error
from .modules.core.output_formats import format_text_tree, prettify_tree, trees_to_dicts
from .modules.core.shape_pretty import FallbackPrettifier

LOG_LEVEL_ENV = "TRPC_ATLAS_LOG_LEVEL"


def _machine_output(result: dict | list, args) -> None:
    """Print result in machine-readable format if --machine flag is set.

    For --machine mode, wraps result in success envelope:
    {"success": true, "result": <result>}

    Otherwise prints with standard indentation.
    """
    if getattr(args, "machine", False):
        wrapped = {"success": True, "result": result}
        print(json.dumps(wrapped, separators=(",", ":"), ensure_ascii=False))
    else:
        print(json.dumps(result, indent=2))


def _error_output(payload: dict, args) -> None:
    if getattr(args, "machine", False):
        print(json.dumps(payload))
    else:
        print(f"Error: {payload['message']}", file=sys.stderr)


def _configure_logging(verbosity: int) -> None:
    """-v gives INFO, -vv DEBUG; otherwise TRPC_ATLAS_LOG_LEVEL or WARNING."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _config_for(project: Path, args) -> AtlasConfig:
    config = load_config(project)
    return config.with_overrides(
        semantic_inference=False if getattr(args, "no_semantic", False) else None,
        root_alias_names=tuple(args.alias) if getattr(args, "alias", None) else None,
    )


def _emit_trees(trees, args, project: Path | None) -> None:
    if args.pretty:
        prettifier = FallbackPrettifier()
        trees = [prettify_tree(tree, prettifier) for tree in trees]
    if args.format == "text" and not args.machine:
        print(format_text_tree(trees, root=str(project) if project else None))
    else:
        _machine_output(trees_to_dicts(trees), args)


def _add_output_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--format",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    p.add_argument(
        "--pretty",
        action="store_true",
        help="Simplify shape text for display",
    )
    p.add_argument(
        "--no-semantic",
        action="store_true",
        help="Skip the whole-program type fallback (faster, fewer shapes)",
    )


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="trpc-atlas",
        description="Static discovery of tRPC router trees in TypeScript codebases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Version: %(prog)s """ + __version__ + """

Examples:
    trpc-atlas discover .                          # All AppRouter trees, as JSON
    trpc-atlas discover . --format text --pretty   # Indented tree
    trpc-atlas aliases src/server/root.ts          # Router variables behind AppRouter
    trpc-atlas show src/server/root.ts appRouter   # One router tree

Configuration:
    Settings are read from .trpc-atlas.json at the project root
    (rootAliasNames, routerFactoryNames, discoveryPatterns,
    excludePatterns, semanticInference).
    Set TRPC_ATLAS_LOG_LEVEL=DEBUG to trace the analysis.
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="More logging on stderr (-v info, -vv debug)",
    )
    parser.add_argument(
        "--machine",
        action="store_true",
        help="Machine-readable output (forces JSON with consistent schema and error codes)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # trpc-atlas discover [path]
    discover_p = subparsers.add_parser("discover", help="Discover every AppRouter tree")
    discover_p.add_argument("path", nargs="?", default=".", help="Project directory")
    discover_p.add_argument(
        "--alias",
        action="append",
        help="Root alias name to look for (repeatable, default: AppRouter)",
    )
    discover_p.add_argument(
        "--no-group",
        action="store_true",
        help="Do not group several roots of one file under a file node",
    )
    _add_output_flags(discover_p)

    # trpc-atlas aliases <file>
    aliases_p = subparsers.add_parser("aliases", help="List root alias targets of a file")
    aliases_p.add_argument("file", help="TypeScript file")
    aliases_p.add_argument(
        "--alias",
        action="append",
        help="Root alias name to look for (repeatable, default: AppRouter)",
    )

    # trpc-atlas show <file> <variable>
    show_p = subparsers.add_parser("show", help="Build the tree of one router variable")
    show_p.add_argument("file", help="File declaring the router")
    show_p.add_argument("variable", help="Router variable name")
    _add_output_flags(show_p)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    from .modules.core.discovery import discover_router_trees
    from .modules.core.router_tree import RouterTreeBuilder, find_root_alias_names
    from .modules.core.session import AnalysisSession
    from .modules.core.tree_helpers import group_trees_by_file, no_result_node
    from .modules.core.ts_parser import find_variable_declarator

    try:
        if args.command == "discover":
            project = Path(args.path).resolve()
            if not project.is_dir():
                raise FileNotFoundError(f"Project directory not found: {args.path}")
            config = _config_for(project, args)
            trees = discover_router_trees(project, config, AnalysisSession(config))
            if not args.no_group:
                trees = group_trees_by_file(trees)
            if not trees:
                trees = [no_result_node()]
            _emit_trees(trees, args, project)

        elif args.command == "aliases":
            file_path = Path(args.file).resolve()
            if not file_path.is_file():
                _error_output(make_not_found_error("file", args.file), args)
                sys.exit(1)
            config = _config_for(file_path.parent, args)
            names = find_root_alias_names(file_path, config.root_alias_names)
            _machine_output({"file": str(file_path), "aliases": names}, args)

        elif args.command == "show":
            file_path = Path(args.file).resolve()
            if not file_path.is_file():
                _error_output(make_not_found_error("file", args.file), args)
                sys.exit(1)
            config = _config_for(file_path.parent, args)
            session = AnalysisSession(config)
            unit = session.load_unit(file_path)
            if unit is None or find_variable_declarator(unit, args.variable) is None:
                _error_output(make_not_found_error("router", args.variable), args)
                sys.exit(1)
            tree = RouterTreeBuilder(session).build(file_path, args.variable)
            _emit_trees([tree], args, file_path.parent)

    except FileNotFoundError as e:
        _error_output(make_error(ERR_NOT_FOUND, str(e)), args)
        sys.exit(1)
    except Exception as e:
        logging.getLogger(__name__).debug("Unexpected failure", exc_info=True)
        _error_output(make_error(ERR_INTERNAL, str(e)), args)
        sys.exit(1)


if __name__ == "__main__":
    main()
