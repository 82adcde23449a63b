from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT / "src", ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from tagref.directive import SigilMatchers, SigilSet, compile_sigil_matchers


@pytest.fixture
def default_matchers() -> SigilMatchers:
    return compile_sigil_matchers(SigilSet())


@pytest.fixture
def write_tree(tmp_path: Path):
    def _write(files: dict[str, str | bytes], *, root: Path | None = None) -> Path:
        base = root if root is not None else tmp_path
        for rel, content in files.items():
            target = base / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return base

    return _write
