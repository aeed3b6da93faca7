from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..models.ide_target import KNOWN_IDE_IDS, CustomIde, IdeTarget, KnownIde
from ..models.settings import IDE, PackageManager
from ..scanner.errors import CommandNotFoundError, LaunchError, PathNotFoundError
from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

LEGACY_CUSTOM_PREFIX = "custom_"

PACKAGE_MANAGER_ORDER: Tuple[str, ...] = ("npm", "yarn", "pnpm")

DEV_SCRIPTS: Dict[str, List[str]] = {
    "npm": ["run", "dev"],
    "yarn": ["dev"],
    "pnpm": ["run", "dev"],
}


@dataclass
class LaunchResult:
    command: str
    args: List[str]
    cwd: str
    pid: int
    tried: List[str] = field(default_factory=list)


@dataclass
class InstallResult:
    success: bool
    error: Optional[str] = None
    install_path: Optional[str] = None
    pid: Optional[int] = None


def resolve_ide_target(ide_id: str, custom_ides: Iterable[IDE] = ()) -> IdeTarget:
    """
    Turn a stored IDE id into a launch target.

    Built-in ids map to ``KnownIde``. Anything else is looked up among the
    user's custom IDEs; ids that match nothing are treated as a command,
    with the legacy ``custom_`` prefix stripped.
    """
    if ide_id in KNOWN_IDE_IDS:
        return KnownIde(ide_id)
    for ide in custom_ides:
        if ide.id == ide_id:
            return CustomIde(command=ide.command, name=ide.name)
    if ide_id.startswith(LEGACY_CUSTOM_PREFIX):
        return CustomIde(command=ide_id[len(LEGACY_CUSTOM_PREFIX):])
    return CustomIde(command=ide_id)


def _windows_webstorm(env: Mapping[str, str]) -> Optional[str]:
    candidates = [
        Path(env.get("ProgramFiles", "")) / "JetBrains" / "WebStorm" / "bin" / "webstorm64.exe",
        Path(env.get("ProgramFiles(x86)", "")) / "JetBrains" / "WebStorm" / "bin" / "webstorm64.exe",
        Path(env.get("LOCALAPPDATA", "")) / "Programs" / "WebStorm" / "bin" / "webstorm64.exe",
    ]
    for candidate in candidates:
        if candidate.exists():
            return str(candidate)
    return None


def build_ide_command(
    target: IdeTarget,
    path: Path,
    *,
    platform: str = sys.platform,
    env: Optional[Mapping[str, str]] = None,
) -> Tuple[str, List[str]]:
    env = os.environ if env is None else env
    location = str(path)

    if isinstance(target, CustomIde):
        parts = _split_command(target.command)
        return parts[0], [*parts[1:], location]

    if target.id == "vscode":
        return "code", [location]
    if target.id == "cursor":
        return "cursor", [location]
    if target.id == "webstorm":
        if platform == "win32":
            return _windows_webstorm(env) or "webstorm", [location]
        return "webstorm", [location]
    if target.id == "terminal":
        if platform == "win32":
            escaped = location.replace("'", "''")
            return "powershell.exe", ["-NoExit", "-Command", f"Set-Location -LiteralPath '{escaped}'"]
        if platform == "darwin":
            return "open", ["-a", "Terminal", location]
        return "gnome-terminal", ["--working-directory", location]
    raise LaunchError(f"Unknown IDE: {target.id}", command=target.id, cwd=location)


def _split_command(command: str) -> List[str]:
    try:
        parts = shlex.split(command.strip())
    except ValueError:
        parts = command.split()
    if not parts:
        raise LaunchError("Command is empty", command=command)
    return parts


def spawn_detached(
    command: str,
    args: Sequence[str],
    cwd: Path,
    *,
    env: Optional[Mapping[str, str]] = None,
    platform: str = sys.platform,
) -> int:
    """
    Start ``command`` without tracking it afterwards.

    The spawn is acknowledged once the OS has created the process; its
    exit status is never collected.

    Raises:
        CommandNotFoundError: the executable does not exist
        LaunchError: any other spawn failure
    """
    kwargs: Dict[str, object] = {
        "cwd": str(cwd),
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
    }
    if env is not None:
        kwargs["env"] = dict(env)
    if platform == "win32":
        # .cmd shims such as code.cmd only resolve through the shell
        kwargs["shell"] = True
        kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(
            subprocess, "CREATE_NEW_PROCESS_GROUP", 0
        )
    else:
        kwargs["start_new_session"] = True

    logger.info(f"Launching {command} {' '.join(args)} in {cwd}")
    try:
        process = subprocess.Popen([command, *args], **kwargs)
    except FileNotFoundError as exc:
        raise CommandNotFoundError(
            f"Command not found: {command}\n\nPath: {cwd}\n\n"
            f"Make sure it's installed and available in PATH.\n\nError: {exc}",
            command=command,
            cwd=str(cwd),
        ) from exc
    except OSError as exc:
        raise LaunchError(
            f"Failed to launch {command}.\n\nPath: {cwd}\n\nError: {exc}",
            command=command,
            cwd=str(cwd),
        ) from exc
    return process.pid


def launch_ide(project_path: str | os.PathLike[str], target: IdeTarget, *, platform: str = sys.platform) -> LaunchResult:
    path = normalize_path(project_path)
    if not path.exists():
        raise PathNotFoundError(str(path))
    command, args = build_ide_command(target, path, platform=platform)
    label = target.id if isinstance(target, KnownIde) else (target.name or target.command)
    try:
        pid = spawn_detached(command, args, path, platform=platform)
    except LaunchError as exc:
        logger.error(f"Error launching {label}: {exc}")
        raise
    return LaunchResult(command=command, args=args, cwd=str(path), pid=pid)


def package_manager_chain(preferred: Optional[str]) -> List[str]:
    """Preferred manager first, then the rest in npm, yarn, pnpm order."""
    first = preferred if preferred in PACKAGE_MANAGER_ORDER else "npm"
    return [first, *[pm for pm in PACKAGE_MANAGER_ORDER if pm != first]]


def terminal_command(command_line: str, cwd: Path, *, platform: str = sys.platform) -> Tuple[str, List[str]]:
    """Wrap ``command_line`` so it runs in a new, visible terminal window."""
    if platform == "win32":
        return "cmd", ["/c", "start", "cmd", "/k", command_line]
    if platform == "darwin":
        escaped_path = str(cwd).replace("'", "\\'")
        escaped_command = command_line.replace("'", "\\'")
        script = f"tell application \"Terminal\" to do script \"cd '{escaped_path}' && {escaped_command}\""
        return "osascript", ["-e", script]
    inner = f"cd {shlex.quote(str(cwd))} && {command_line}; exec bash"
    return "x-terminal-emulator", ["-e", f"bash -c {shlex.quote(inner)}"]


def run_dev_server(
    project_path: str | os.PathLike[str],
    custom_command: Optional[str] = None,
    env_vars: Optional[Mapping[str, str]] = None,
    package_manager: Optional[str] = None,
    *,
    platform: str = sys.platform,
) -> LaunchResult:
    """
    Start the dev server in a terminal window.

    A custom command runs as given. Otherwise package managers are tried
    in order, skipping any that is not installed. When no terminal emulator
    is available the command is spawned directly.
    """
    path = normalize_path(project_path)
    if not path.exists():
        raise PathNotFoundError(str(path))
    env = {**os.environ, **dict(env_vars or {})}

    if custom_command and custom_command.strip():
        parts = _split_command(custom_command)
        candidates = [(parts[0], parts[1:])]
        from_chain = False
    else:
        if isinstance(package_manager, PackageManager):
            package_manager = package_manager.value
        candidates = [(pm, DEV_SCRIPTS[pm]) for pm in package_manager_chain(package_manager)]
        from_chain = True

    tried: List[str] = []
    last_error: Optional[LaunchError] = None
    for command, args in candidates:
        command_line = " ".join([command, *args])
        if from_chain and shutil.which(command, path=env.get("PATH")) is None:
            tried.append(f"{command_line} (not found)")
            last_error = CommandNotFoundError(f"Command not found: {command}", command=command, cwd=str(path))
            logger.info(f"{command} is not installed, trying next package manager")
            continue

        term_cmd, term_args = terminal_command(command_line, path, platform=platform)
        try:
            pid = spawn_detached(term_cmd, term_args, path, env=env, platform=platform)
            tried.append(f"{term_cmd} {' '.join(term_args)}")
            return LaunchResult(command=term_cmd, args=term_args, cwd=str(path), pid=pid, tried=tried)
        except LaunchError as exc:
            tried.append(f"{term_cmd} {' '.join(term_args)} ({exc.code})")
            logger.warning(f"Error running dev server in terminal, falling back to direct execution: {exc}")

        try:
            pid = spawn_detached(command, args, path, env=env, platform=platform)
            tried.append(command_line)
            return LaunchResult(command=command, args=list(args), cwd=str(path), pid=pid, tried=tried)
        except CommandNotFoundError as exc:
            tried.append(f"{command_line} (not found)")
            last_error = exc
            if from_chain:
                continue
            break
        except LaunchError as exc:
            tried.append(f"{command_line} ({exc.code})")
            last_error = exc
            break

    summary = "\n".join(f"Tried: {attempt}" for attempt in tried)
    reason = f": {last_error}" if last_error else ""
    raise LaunchError(
        f"Failed to run dev server{reason}\n\n{summary}",
        command=candidates[-1][0],
        cwd=str(path),
        code=last_error.code if last_error else "launch_failed",
    )


def resolve_module_dir(project_root: Path, module_path: Optional[str]) -> Path:
    """
    Directory of a module inside ``project_root``.

    Empty and ``.`` paths mean the root. When the exact path is missing, a
    direct child with the same name (case-insensitive) is used instead.
    """
    if not module_path or not module_path.strip() or module_path.strip() == ".":
        return project_root
    parts = [p for p in module_path.strip().replace("\\", "/").split("/") if p and p != "."]
    if not parts:
        return project_root
    candidate = project_root.joinpath(*parts)
    if candidate.exists():
        return candidate

    wanted = parts[-1].lower()
    try:
        for child in project_root.iterdir():
            if child.is_dir() and child.name.lower() == wanted:
                logger.info(f"Found matching directory for module {module_path}: {child}")
                return child
    except OSError as exc:
        logger.error(f"Error searching for module directory: {exc}")
    return candidate


def install_packages(
    project_path: str | os.PathLike[str],
    package_manager: str,
    module_path: Optional[str] = None,
    *,
    platform: str = sys.platform,
) -> InstallResult:
    if isinstance(package_manager, PackageManager):
        package_manager = package_manager.value
    if package_manager not in PACKAGE_MANAGER_ORDER:
        return InstallResult(success=False, error=f"Unsupported package manager: {package_manager}")

    root = normalize_path(project_path)
    install_path = resolve_module_dir(root, module_path)
    if not install_path.exists():
        return InstallResult(success=False, error=f"Path does not exist: {install_path}")
    package_json = install_path / "package.json"
    if not package_json.exists():
        return InstallResult(success=False, error=f"package.json not found at {package_json}")

    try:
        pid = spawn_detached(package_manager, ["install"], install_path, platform=platform)
    except LaunchError as exc:
        logger.error(f"Error installing packages with {package_manager}: {exc}")
        return InstallResult(success=False, error=f"Failed to install packages: {exc}", install_path=str(install_path))
    return InstallResult(success=True, install_path=str(install_path), pid=pid)


def open_folder(folder_path: str | os.PathLike[str], *, platform: str = sys.platform) -> LaunchResult:
    """Reveal a folder in the platform file manager."""
    path = normalize_path(folder_path)
    if not path.exists():
        raise PathNotFoundError(str(path))
    if platform == "win32":
        command = "explorer"
    elif platform == "darwin":
        command = "open"
    else:
        command = "xdg-open"
    pid = spawn_detached(command, [str(path)], path, platform=platform)
    return LaunchResult(command=command, args=[str(path)], cwd=str(path), pid=pid)
