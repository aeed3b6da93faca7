"""
Pytest configuration and fixtures
"""
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
BACKEND_SRC = PROJECT_ROOT / "backend" / "src"

if str(BACKEND_SRC) not in sys.path:
    sys.path.insert(0, str(BACKEND_SRC))

from dockev.storage.backends import MemoryStore  # noqa: E402


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def make_tree(tmp_path):
    """Create files from a ``{relative_path: content}`` mapping under tmp_path."""

    def _make(files, root=None):
        base = Path(root) if root is not None else tmp_path
        for rel, content in files.items():
            target = base / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return base

    return _make
