from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_typescript")

from trpc_atlas.modules.core.config import AtlasConfig
from trpc_atlas.modules.core.schema_text import MAX_ALIAS_DEPTH, SchemaTextResolver
from trpc_atlas.modules.core.session import AnalysisSession


def _project(tmp_path: Path, files: dict[str, str]) -> AnalysisSession:
    for rel, text in files.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text.lstrip())
    return AnalysisSession(AtlasConfig(semantic_inference=False))


def _resolve(session: AnalysisSession, file: Path, text: str) -> str:
    unit = session.load_unit(file)
    return SchemaTextResolver(session).resolve(text, unit, session.imports_of(unit))


def test_literals_are_returned_unchanged(tmp_path: Path) -> None:
    session = _project(tmp_path, {"root.ts": "export {};\n"})
    assert _resolve(session, tmp_path / "root.ts", " z.string() ") == "z.string()"
    assert _resolve(session, tmp_path / "root.ts", "{ id: string }") == "{ id: string }"
    assert _resolve(session, tmp_path / "root.ts", "notDeclared") == "notDeclared"


def test_imported_schema_with_member_chain(tmp_path: Path) -> None:
    session = _project(
        tmp_path,
        {
            "schemas.ts": """
import { z } from "zod";
export const idInput = z.object({ id: z.string() });
""",
            "root.ts": """
import { idInput } from "./schemas";
const extended = idInput;
""",
        },
    )
    root = tmp_path / "root.ts"
    assert _resolve(session, root, "idInput") == "z.object({ id: z.string() })"
    assert _resolve(session, root, "idInput.extend({ n: z.number() })") == (
        "z.object({ id: z.string() }).extend({ n: z.number() })"
    )
    assert _resolve(session, root, "extended") == "z.object({ id: z.string() })"


def test_renamed_and_default_imports(tmp_path: Path) -> None:
    session = _project(
        tmp_path,
        {
            "named.ts": "export const base = z.number();\n",
            "fallback.ts": "export default z.object({ n: z.number() });\n",
            "root.ts": """
import { base as renamed } from "./named";
import fallback from "./fallback";
""",
        },
    )
    root = tmp_path / "root.ts"
    assert _resolve(session, root, "renamed") == "z.number()"
    assert _resolve(session, root, "fallback") == "z.object({ n: z.number() })"


def test_alias_chain_is_depth_bounded(tmp_path: Path) -> None:
    chain = [f"const a{i} = a{i + 1};" for i in range(MAX_ALIAS_DEPTH + 2)]
    chain.append(f"const a{MAX_ALIAS_DEPTH + 2} = z.string();")
    session = _project(
        tmp_path,
        {
            "deep.ts": "\n".join(chain) + "\n",
            "short.ts": "const b0 = b1;\nconst b1 = b2;\nconst b2 = z.number();\n",
        },
    )
    assert _resolve(session, tmp_path / "short.ts", "b0") == "z.number()"
    assert _resolve(session, tmp_path / "deep.ts", "a0") == f"a{MAX_ALIAS_DEPTH + 1}"
