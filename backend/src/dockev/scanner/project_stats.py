from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import List, Optional, Sequence

from ..analyzer.project_detector import read_package_json
from ..utils.paths import normalize_path
from .models import NodeModulesReport, NodeModulesStatus, ProjectDetails, ProjectStats, ScanIssue

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        ".cache",
        ".vscode",
        ".idea",
    }
)

README_CANDIDATES = ("README.md", "README.txt", "readme.md", "readme.txt", "Readme.md")
README_PREVIEW_CHARS = 500


def collect_project_stats(project_path: str | os.PathLike[str]) -> Optional[ProjectStats]:
    """
    Aggregate size, counts and timestamps for a project tree.

    Noise directories (see ``IGNORED_DIRS``) are skipped at every depth.
    Entries that cannot be read are recorded in ``ProjectStats.issues`` and
    the walk continues.

    Returns:
        ProjectStats, or None when the path does not exist
    """
    root = normalize_path(project_path)
    if not root.exists():
        return None

    stats = ProjectStats()
    _walk(root, stats)
    stats.language = infer_primary_language(root)
    if stats.issues:
        logger.info(f"Skipped {stats.skipped} entr(y/ies) while collecting stats for {root}")
    return stats


def _walk(directory: Path, stats: ProjectStats) -> None:
    try:
        with os.scandir(directory) as iterator:
            entries = list(iterator)
    except OSError as exc:
        logger.warning(f"Error reading directory {directory}: {exc}")
        stats.issues.append(ScanIssue(path=str(directory), code="unreadable_dir", message=str(exc)))
        return

    for entry in entries:
        if entry.name in IGNORED_DIRS:
            continue
        full_path = Path(entry.path)
        try:
            info = full_path.stat()
        except OSError as exc:
            # broken symlinks and permission errors land here
            logger.warning(f"Error accessing {full_path}: {exc}")
            stats.issues.append(ScanIssue(path=str(full_path), code="stat_failed", message=str(exc)))
            continue

        if stat.S_ISDIR(info.st_mode):
            stats.folder_count += 1
            _walk(full_path, stats)
        elif stat.S_ISREG(info.st_mode):
            stats.file_count += 1
            stats.size += info.st_size
            created = _created_millis(info)
            modified = info.st_mtime * 1000
            if created and (not stats.created or created < stats.created):
                stats.created = created
            if modified and (not stats.modified or modified > stats.modified):
                stats.modified = modified


def _created_millis(info: os.stat_result) -> float:
    birth = getattr(info, "st_birthtime", None)
    if birth:
        return birth * 1000
    return info.st_ctime * 1000


def infer_primary_language(root: Path) -> Optional[str]:
    """
    First-match language guess for a project root.

    Only evaluated when ``package.json`` exists and parses; TypeScript wins
    when it is a dependency, then Python, Go and Rust marker files, then
    JavaScript.
    """
    package_json = root / "package.json"
    if not package_json.is_file():
        return None
    data = read_package_json(package_json)
    if data is None:
        return None

    for section in ("devDependencies", "dependencies"):
        deps = data.get(section)
        if isinstance(deps, dict) and deps.get("typescript"):
            return "TypeScript"
    if (root / "requirements.txt").exists():
        return "Python"
    if (root / "go.mod").exists():
        return "Go"
    if (root / "Cargo.toml").exists():
        return "Rust"
    return "JavaScript"


def read_project_details(project_path: str | os.PathLike[str]) -> Optional[ProjectDetails]:
    """Metadata from package.json plus a README preview."""
    root = normalize_path(project_path)
    if not root.exists():
        return None

    details = ProjectDetails(name="")
    package_json = root / "package.json"
    if package_json.exists():
        data = read_package_json(package_json)
        if data is not None:
            details.package_json = data
            details.name = _as_text(data.get("name")) or root.name
            details.description = _as_text(data.get("description"))
            details.version = _as_text(data.get("version"))
            details.author = _name_or_field(data.get("author"), "name")
            details.license = _as_text(data.get("license"))
            details.repository = _name_or_field(data.get("repository"), "url")
            details.homepage = _as_text(data.get("homepage"))

    for candidate in README_CANDIDATES:
        readme = root / candidate
        if not readme.is_file():
            continue
        try:
            details.readme = readme.read_text(encoding="utf-8", errors="replace")[:README_PREVIEW_CHARS]
            break
        except OSError as exc:
            logger.warning(f"Unable to read {readme}: {exc}")

    if not details.name:
        details.name = root.name
    return details


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


def _name_or_field(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return _as_text(value.get(key))
    return ""


def check_node_modules(
    project_path: str | os.PathLike[str],
    module_paths: Optional[Sequence[str]] = None,
) -> NodeModulesReport:
    """
    Report whether dependencies are installed at the root and in modules.

    When ``module_paths`` is empty every direct subdirectory holding a
    ``package.json`` is checked instead.
    """
    root = normalize_path(project_path)
    report = NodeModulesReport()
    if not root.exists():
        return report

    report.root_has_node_modules = (root / "node_modules").exists()
    report.root_has_package_json = (root / "package.json").exists()

    if module_paths:
        for raw in module_paths:
            relative = _split_module_path(raw)
            module_dir = root.joinpath(*relative) if relative else root
            if not module_dir.exists():
                continue
            report.modules.append(
                NodeModulesStatus(
                    name=module_dir.name,
                    path=os.sep.join(relative),
                    has_node_modules=(module_dir / "node_modules").exists(),
                    has_package_json=(module_dir / "package.json").exists(),
                )
            )
        return report

    try:
        children = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError as exc:
        logger.error(f"Error detecting modules for node_modules check: {exc}")
        return report
    for child in children:
        if (child / "package.json").exists():
            report.modules.append(
                NodeModulesStatus(
                    name=child.name,
                    path=child.name,
                    has_node_modules=(child / "node_modules").exists(),
                    has_package_json=True,
                )
            )
    return report


def _split_module_path(raw: str) -> List[str]:
    """Split on either separator and drop empty and ``.`` segments."""
    return [part for part in raw.replace("\\", "/").split("/") if part and part != "."]
