from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from ..analyzer.project_detector import DetectionReport
from ..local_analysis.git_repo import GitStatus
from ..models.project import Project
from ..scanner.models import MoveProgress, MovePhase, ProjectDetails, ProjectStats


def format_bytes(size: int) -> str:
    """Represent file sizes with a readable binary unit."""
    step = 1024.0
    units = ["B", "KB", "MB", "GB", "TB", "PB"]
    value = float(size)
    for unit in units:
        if value < step or unit == units[-1]:
            return f"{value:.2f} {unit}"
        value /= step
    return f"{value:.2f} PB"


def format_timestamp(millis: float) -> str:
    if not millis:
        return "-"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


def format_rows(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Build an aligned two-space padded table for readability."""
    materialized = [tuple(str(cell) for cell in row) for row in rows]
    col_widths = [len(part) for part in header]
    for parts in materialized:
        for idx, part in enumerate(parts):
            col_widths[idx] = max(col_widths[idx], len(part))

    def join(parts: Sequence[str]) -> str:
        return "  ".join(part.ljust(col_widths[idx]) for idx, part in enumerate(parts)).rstrip()

    lines = [join(header), "-" * len(join(header))]
    lines.extend(join(parts) for parts in materialized)
    return "\n".join(lines)


def render_detection(report: DetectionReport) -> str:
    if not report.modules:
        return "No modules detected."
    rows = [
        (module.name, module.path, ", ".join(module.tech_stack) or "-", f"{module.confidence:.1f}")
        for module in report.modules
    ]
    lines = [format_rows(("MODULE", "PATH", "TECH STACK", "CONFIDENCE"), rows)]
    for issue in report.issues:
        lines.append(f"{issue.code} {issue.path} {issue.message}")
    return "\n".join(lines)


def render_stats(stats: ProjectStats) -> list[str]:
    lines = [
        f"Size: {format_bytes(stats.size)} ({stats.size} bytes)",
        f"Files: {stats.file_count}",
        f"Folders: {stats.folder_count}",
        f"Created: {format_timestamp(stats.created)}",
        f"Modified: {format_timestamp(stats.modified)}",
        f"Language: {stats.language or '-'}",
    ]
    if stats.skipped:
        lines.append(f"Skipped entries: {len(stats.issues)}")
    return lines


def render_details(details: ProjectDetails) -> list[str]:
    lines = [
        f"Name: {details.name}",
        f"Version: {details.version or '-'}",
        f"Description: {details.description or '-'}",
        f"Author: {details.author or '-'}",
        f"License: {details.license or '-'}",
    ]
    if details.repository:
        lines.append(f"Repository: {details.repository}")
    if details.homepage:
        lines.append(f"Homepage: {details.homepage}")
    if details.readme:
        lines.append("README:")
        lines.extend(f"  {line}" for line in details.readme.splitlines())
    return lines


def render_git_status(status: GitStatus) -> list[str]:
    lines = [
        f"Branch: {status.branch}",
        f"Last commit: {status.last_commit} ({status.last_commit_time or 'unknown'})",
        f"Pending changes: {status.pending_changes}",
    ]
    if status.files:
        lines.append(format_rows(("STATUS", "FILE"), ((change.status, change.name) for change in status.files)))
    return lines


def render_projects(projects: Iterable[Project]) -> str:
    rows = [
        (
            project.id[:8],
            project.name,
            project.category or "-",
            ", ".join(project.tags) or "-",
            str(len(project.modules or [])),
            project.path,
        )
        for project in projects
    ]
    if not rows:
        return "No projects registered."
    return format_rows(("ID", "NAME", "CATEGORY", "TAGS", "MODULES", "PATH"), rows)


def format_move_progress(progress: MoveProgress) -> str:
    if progress.phase is MovePhase.moving and progress.total_files:
        current = f" {progress.current_file}" if progress.current_file else ""
        return (
            f"[{progress.phase.value}] {progress.files_processed or 0}/{progress.total_files}"
            f" ({progress.percent:.0f}%){current}"
        )
    if progress.phase is MovePhase.error:
        return f"[error] {progress.error}"
    return f"[{progress.phase.value}]"
