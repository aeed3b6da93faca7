from __future__ import annotations

import os
from pathlib import Path


def normalize_path(raw: str | os.PathLike[str]) -> Path:
    """
    Expand a leading ``~`` and resolve to an absolute path.

    Symlinks are not followed so a project registered through a link keeps
    its registered location.
    """
    text = os.fspath(raw)
    if text.startswith("~"):
        text = str(Path.home()) + text[1:]
    return Path(os.path.abspath(text))


def same_volume(first: Path, second: Path) -> bool:
    """Return True when both paths live on the same filesystem device."""
    try:
        return first.stat().st_dev == _nearest_existing(second).stat().st_dev
    except OSError:
        return False


def _nearest_existing(path: Path) -> Path:
    candidate = path
    while not candidate.exists() and candidate.parent != candidate:
        candidate = candidate.parent
    return candidate


def default_data_dir() -> Path:
    """Per-user directory where dockev keeps its documents."""
    return Path.home() / ".dockev"
