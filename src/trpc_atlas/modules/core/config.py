"""
Project settings for router discovery.

Read from ``.trpc-atlas.json`` at the workspace root:

    {
      "rootAliasNames": ["AppRouter"],
      "routerFactoryNames": ["router", "createTRPCRouter"],
      "discoveryPatterns": ["**/root.ts", "**/trpc.ts"],
      "excludePatterns": ["**/generated/**"],
      "semanticInference": true
    }

Every key is optional. A missing or invalid file gives the defaults.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".trpc-atlas.json"

DEFAULT_ROOT_ALIAS_NAMES = ("AppRouter",)
DEFAULT_ROUTER_FACTORY_NAMES = ("router", "createTRPCRouter")
DEFAULT_DISCOVERY_PATTERNS = (
    "**/root.ts",
    "**/trpc.ts",
    "**/_app.ts",
    "**/server/**/*.ts",
    "**/api/**/*.ts",
)

_JSON_KEYS = {
    "rootAliasNames": "root_alias_names",
    "routerFactoryNames": "router_factory_names",
    "discoveryPatterns": "discovery_patterns",
    "excludePatterns": "exclude_patterns",
    "semanticInference": "semantic_inference",
}


@dataclass(frozen=True)
class AtlasConfig:
    root_alias_names: tuple[str, ...] = DEFAULT_ROOT_ALIAS_NAMES
    router_factory_names: tuple[str, ...] = DEFAULT_ROUTER_FACTORY_NAMES
    discovery_patterns: tuple[str, ...] = DEFAULT_DISCOVERY_PATTERNS
    exclude_patterns: tuple[str, ...] = field(default_factory=tuple)
    semantic_inference: bool = True

    def with_overrides(self, **overrides: Any) -> AtlasConfig:
        """Copy with the non-None ``overrides`` applied (CLI flags)."""
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in known and v is not None})


def _string_tuple(value: Any, key: str) -> tuple[str, ...] | None:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    logger.warning("Ignoring %s in %s: expected a list of strings", key, CONFIG_FILE_NAME)
    return None


def parse_config(data: dict[str, Any]) -> AtlasConfig:
    values: dict[str, Any] = {}
    for json_key, attr in _JSON_KEYS.items():
        if json_key not in data:
            continue
        raw = data[json_key]
        if attr == "semantic_inference":
            if isinstance(raw, bool):
                values[attr] = raw
            else:
                logger.warning("Ignoring %s in %s: expected a boolean", json_key, CONFIG_FILE_NAME)
            continue
        parsed = _string_tuple(raw, json_key)
        if parsed is not None:
            values[attr] = parsed
    return AtlasConfig(**values)


def load_config(workspace_root: str | Path) -> AtlasConfig:
    """Settings for ``workspace_root``; defaults when the file is absent or invalid."""
    path = Path(workspace_root) / CONFIG_FILE_NAME
    if not path.is_file():
        return AtlasConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Invalid %s: %s", path, exc)
        return AtlasConfig()
    if not isinstance(data, dict):
        logger.warning("Invalid %s: expected a JSON object", path)
        return AtlasConfig()
    logger.debug("Loaded settings from %s", path)
    return parse_config(data)
