import json
import logging
from pathlib import Path

from trpc_atlas.modules.core.config_cache import ConfigCache, collect_program_files, load_config_file
from trpc_atlas.modules.core.module_resolver import ModuleResolver, resolve_file


def _write(path: Path, text: str = "export {};\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def _tsconfig(root: Path, paths: dict, base_url: str = ".") -> None:
    _write(
        root / "tsconfig.json",
        json.dumps({"compilerOptions": {"baseUrl": base_url, "paths": paths}}),
    )


def test_relative_import_tries_suffixes_and_index(tmp_path: Path) -> None:
    importer = _write(tmp_path / "src" / "root.ts")
    db = _write(tmp_path / "src" / "db.ts")
    users = _write(tmp_path / "src" / "users" / "index.ts")
    resolver = ModuleResolver(ConfigCache())

    assert resolver.resolve("./db", importer) == str(db)
    assert resolver.resolve("./db.js", importer) == str(db)
    assert resolver.resolve("./users", importer) == str(users)
    assert resolver.resolve("./missing", importer) is None


def test_path_mapping_wildcard(tmp_path: Path) -> None:
    _tsconfig(tmp_path, {"@app/*": ["src/*"]})
    importer = _write(tmp_path / "src" / "server" / "root.ts")
    db = _write(tmp_path / "src" / "db.ts")
    resolver = ModuleResolver(ConfigCache())

    assert Path(resolver.resolve("@app/db", importer)) == db.resolve()


def test_path_mapping_falls_back_to_directory_index(tmp_path: Path) -> None:
    _tsconfig(tmp_path, {"@app/*": ["src/*"]})
    importer = _write(tmp_path / "src" / "root.ts")
    index = _write(tmp_path / "src" / "db" / "index.ts")
    resolver = ModuleResolver(ConfigCache())

    assert Path(resolver.resolve("@app/db", importer)) == index.resolve()


def test_longest_prefix_mapping_wins(tmp_path: Path) -> None:
    _tsconfig(tmp_path, {"@/*": ["src/*"], "@/server/*": ["server/*"]})
    importer = _write(tmp_path / "src" / "root.ts")
    _write(tmp_path / "src" / "server" / "trpc.ts")
    preferred = _write(tmp_path / "server" / "trpc.ts")
    resolver = ModuleResolver(ConfigCache())

    assert Path(resolver.resolve("@/server/trpc", importer)) == preferred.resolve()


def test_bare_specifier_without_mapping_is_unresolved(tmp_path: Path) -> None:
    importer = _write(tmp_path / "src" / "root.ts")
    resolver = ModuleResolver(ConfigCache())

    assert resolver.resolve("@trpc/server", importer) is None
    assert resolver.resolve("", importer) is None


def test_invalid_tsconfig_warns_and_gives_no_mapping(tmp_path: Path, caplog) -> None:
    _write(tmp_path / "tsconfig.json", "{ compilerOptions: ")
    importer = _write(tmp_path / "src" / "root.ts")
    cache = ConfigCache()

    with caplog.at_level(logging.WARNING):
        assert cache.nearest_path_mapping(importer) is None
    assert "Invalid tsconfig.json" in caplog.text


def test_nearest_mapping_is_memoized_per_directory(tmp_path: Path) -> None:
    _tsconfig(tmp_path, {"~/*": ["src/*"]})
    importer = _write(tmp_path / "src" / "a" / "b.ts")
    cache = ConfigCache()

    first = cache.nearest_path_mapping(importer)
    (tmp_path / "tsconfig.json").unlink()
    second = cache.nearest_path_mapping(importer)

    assert first is not None
    assert second is first
    assert first.base_directory == tmp_path.resolve()

    cache.clear_path_mappings()
    assert cache.nearest_path_mapping(importer) is None


def test_tsconfig_with_comments(tmp_path: Path) -> None:
    config = _write(
        tmp_path / "tsconfig.json",
        """
    {
      // path aliases
      "compilerOptions": {
        "baseUrl": ".",  /* relative to this file */
        "paths": { "@x/*": ["lib/*"] }
      }
    }
    """,
    )
    importer = _write(tmp_path / "src" / "root.ts")
    target = _write(tmp_path / "lib" / "db.ts")

    assert load_config_file(config) == {"compilerOptions": {"baseUrl": ".", "paths": {"@x/*": ["lib/*"]}}}
    assert Path(ModuleResolver(ConfigCache()).resolve("@x/db", importer)) == target.resolve()


def test_program_files_follow_include_and_exclude(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "a.ts")
    _write(tmp_path / "src" / "a.test.ts")
    _write(tmp_path / "scripts" / "b.ts")
    config = {"include": ["src"], "exclude": ["**/*.test.ts"]}

    files = collect_program_files(config, tmp_path)

    assert files == [(tmp_path / "src" / "a.ts").resolve()]


def test_program_include_is_relative_to_config_dir(tmp_path: Path) -> None:
    _write(tmp_path / "src" / "a.ts")
    _write(tmp_path / "lib" / "src" / "b.ts")
    _write(tmp_path / "node_modules" / "pkg" / "c.ts")

    assert collect_program_files({"include": ["src"]}, tmp_path) == [(tmp_path / "src" / "a.ts").resolve()]
    assert collect_program_files({}, tmp_path) == [
        (tmp_path / "lib" / "src" / "b.ts").resolve(),
        (tmp_path / "src" / "a.ts").resolve(),
    ]


def test_resolve_file_prefers_exact_path(tmp_path: Path) -> None:
    exact = _write(tmp_path / "mod.ts")
    assert resolve_file(tmp_path / "mod.ts") == str(exact)
    assert resolve_file(tmp_path / "mod") == str(exact)
