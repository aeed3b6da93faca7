from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "main"
LAST_COMMIT_FORMAT = "%H|%s|%ar"


@dataclass
class GitFileChange:
    name: str
    status: str


@dataclass
class GitStatus:
    branch: str = ""
    last_commit: str = ""
    last_commit_time: str = ""
    pending_changes: int = 0
    files: List[GitFileChange] = field(default_factory=list)


@dataclass
class GitResult:
    returncode: int
    stdout: str


def _is_git_repo(repo_dir: Path) -> bool:
    return (repo_dir / ".git").exists()


async def _git(args: Sequence[str], cwd: Path) -> Optional[GitResult]:
    """Run git and capture stdout; None when git cannot be started."""
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        stdout, _ = await process.communicate()
    except OSError as exc:
        logger.warning(f"git {' '.join(args)} failed to start in {cwd}: {exc}")
        return None
    return GitResult(returncode=process.returncode or 0, stdout=stdout.decode("utf-8", errors="replace"))


def classify_status(code: str) -> str:
    """Map a two-character porcelain code to added/deleted/renamed/modified."""
    code = code.strip()
    if code.startswith("A") or code.endswith("A"):
        return "added"
    if code.startswith("D") or code.endswith("D"):
        return "deleted"
    if code.startswith("R") or code.endswith("R"):
        return "renamed"
    return "modified"


def parse_porcelain(output: str) -> Tuple[List[GitFileChange], int]:
    """
    Parse ``git status --porcelain`` output.

    Returns:
        (one change per line, number of unique paths)
    """
    files: List[GitFileChange] = []
    unique: set[str] = set()
    for line in output.strip("\n").splitlines():
        if not line.strip():
            continue
        name = line[3:].strip()
        unique.add(name)
        files.append(GitFileChange(name=name, status=classify_status(line[:2])))
    return files, len(unique)


def parse_last_commit(output: str) -> Tuple[str, str]:
    """(subject, relative time) from ``log -1 --format=%H|%s|%ar`` output."""
    parts = output.strip().split("|")
    message = parts[1] if len(parts) > 1 and parts[1] else "No commit message"
    when = parts[2] if len(parts) > 2 else ""
    return message, when


async def get_git_status_async(project_path: str | os.PathLike[str]) -> Optional[GitStatus]:
    repo_dir = normalize_path(project_path)
    if not _is_git_repo(repo_dir):
        return None

    status = GitStatus()
    branch, commit, porcelain = await asyncio.gather(
        _git(["branch", "--show-current"], repo_dir),
        _git(["log", "-1", f"--format={LAST_COMMIT_FORMAT}"], repo_dir),
        _git(["status", "--porcelain"], repo_dir),
    )

    if branch is not None and branch.returncode == 0:
        status.branch = branch.stdout.strip() or DEFAULT_BRANCH
    if commit is not None and commit.returncode == 0 and commit.stdout.strip():
        status.last_commit, status.last_commit_time = parse_last_commit(commit.stdout)
    if porcelain is not None and porcelain.returncode == 0 and porcelain.stdout.strip():
        status.files, status.pending_changes = parse_porcelain(porcelain.stdout)
    return status


async def get_remote_url_async(project_path: str | os.PathLike[str]) -> Optional[str]:
    repo_dir = normalize_path(project_path)
    if not _is_git_repo(repo_dir):
        return None
    result = await _git(["config", "--get", "remote.origin.url"], repo_dir)
    if result is None or result.returncode != 0:
        return None
    return result.stdout.strip() or None


async def get_diff_async(project_path: str | os.PathLike[str], file_path: Optional[str] = None) -> Optional[str]:
    repo_dir = normalize_path(project_path)
    if not _is_git_repo(repo_dir):
        return None
    args = ["diff", file_path] if file_path else ["diff"]
    result = await _git(args, repo_dir)
    if result is None or result.returncode != 0:
        return None
    return result.stdout or None


def get_git_status(project_path: str | os.PathLike[str]) -> Optional[GitStatus]:
    return asyncio.run(get_git_status_async(project_path))


def get_remote_url(project_path: str | os.PathLike[str]) -> Optional[str]:
    return asyncio.run(get_remote_url_async(project_path))


def get_diff(project_path: str | os.PathLike[str], file_path: Optional[str] = None) -> Optional[str]:
    return asyncio.run(get_diff_async(project_path, file_path))
