from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..analyzer.project_detector import detect_modules, detect_modules_report
from ..config.app_config import configure_logging, get_config
from ..local_analysis.git_repo import get_diff, get_git_status, get_remote_url
from ..models.project import ProjectCreate
from ..scanner.errors import DockevError, PathNotFoundError, ProjectImportError, StorageError
from ..scanner.project_stats import collect_project_stats, read_project_details
from ..services import launcher
from ..services.folder_mover import FolderMover
from ..services.projects_service import ProjectRepository
from ..services.settings_service import SettingsRepository
from ..storage.backends import JsonFileStore, KeyValueStore
from ..utils.paths import normalize_path
from .display import (
    format_move_progress,
    render_detection,
    render_details,
    render_git_status,
    render_projects,
    render_stats,
)

logger = logging.getLogger(__name__)


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _report(message: str, tone: str) -> None:
    print(f"[{tone}] {message}", file=sys.stderr)


# ----------------------------------------------------------------- inspection


def cmd_detect(args: argparse.Namespace, store: KeyValueStore) -> int:
    report = detect_modules_report(args.path)
    if args.json:
        _print_json({
            "modules": [module.to_dict() for module in report.modules],
            "issues": [asdict(issue) for issue in report.issues],
        })
    else:
        print(render_detection(report))
    return 0


def cmd_stats(args: argparse.Namespace, store: KeyValueStore) -> int:
    stats = collect_project_stats(args.path)
    if stats is None:
        print(f"Unable to read project: {args.path}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(asdict(stats))
    else:
        print("\n".join(render_stats(stats)))
    return 0


def cmd_details(args: argparse.Namespace, store: KeyValueStore) -> int:
    if not normalize_path(args.path).is_dir():
        raise PathNotFoundError(args.path)
    details = read_project_details(args.path)
    if details is None:
        print(f"No package.json found in {args.path}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(asdict(details))
    else:
        print("\n".join(render_details(details)))
    return 0


def cmd_git(args: argparse.Namespace, store: KeyValueStore) -> int:
    if args.remote:
        url = get_remote_url(args.path)
        print(url or "No remote configured.")
        return 0
    if args.diff:
        diff = get_diff(args.path, args.file)
        print(diff or "No changes.")
        return 0
    status = get_git_status(args.path)
    if status is None:
        print(f"Not a git repository: {args.path}", file=sys.stderr)
        return 1
    if args.json:
        _print_json(asdict(status))
    else:
        print("\n".join(render_git_status(status)))
    return 0


# ------------------------------------------------------------------ actions


def cmd_move(args: argparse.Namespace, store: KeyValueStore) -> int:
    mover = FolderMover(progress_callback=lambda progress: print(format_move_progress(progress)))
    try:
        result = mover.move(
            args.source,
            args.destination,
            exclude_node_modules=args.exclude_node_modules,
            delete_source=not args.keep_source,
        )
    except KeyboardInterrupt:
        print("Move interrupted, partial copy removed.", file=sys.stderr)
        return 130
    if not result.success:
        print(f"Move failed: {result.error}", file=sys.stderr)
        return 1
    print(f"Moved to {result.new_path}")
    if args.project:
        ProjectRepository(store, reporter=_report).update_project(args.project, {"path": result.new_path})
        print(f"Updated project {args.project}")
    return 0


def cmd_open(args: argparse.Namespace, store: KeyValueStore) -> int:
    settings = SettingsRepository(store, reporter=_report).get_settings()
    target = launcher.resolve_ide_target(args.ide or settings.default_ide, settings.custom_ides)
    result = launcher.launch_ide(args.path, target)
    print(f"Launched {result.command} (pid {result.pid})")
    return 0


def cmd_dev(args: argparse.Namespace, store: KeyValueStore) -> int:
    settings = SettingsRepository(store, reporter=_report).get_settings()
    env_vars: Dict[str, str] = {}
    for item in args.env or []:
        key, _, value = item.partition("=")
        env_vars[key] = value
    result = launcher.run_dev_server(
        args.path,
        args.command,
        env_vars or None,
        args.package_manager or settings.default_package_manager,
    )
    print(f"Dev server started with {result.command} {' '.join(result.args)} (pid {result.pid})")
    return 0


def cmd_install(args: argparse.Namespace, store: KeyValueStore) -> int:
    settings = SettingsRepository(store, reporter=_report).get_settings()
    result = launcher.install_packages(
        args.path,
        args.package_manager or settings.default_package_manager,
        args.module,
    )
    if not result.success:
        print(result.error, file=sys.stderr)
        return 1
    print(f"Installing packages in {result.install_path} (pid {result.pid})")
    return 0


# ----------------------------------------------------------------- registry


def cmd_projects(args: argparse.Namespace, store: KeyValueStore) -> int:
    repo = ProjectRepository(store, reporter=_report)
    action = args.projects_action
    if action == "list":
        projects = repo.filter_projects(category=args.category, tag=args.tag, query=args.query)
        if args.json:
            _print_json([project.model_dump(mode="json") for project in projects])
        else:
            print(render_projects(projects))
        return 0
    if action == "add":
        path = normalize_path(args.path)
        project = repo.add_project(
            ProjectCreate(
                name=args.name or path.name,
                path=str(path),
                category=args.category or "",
                tags=args.tag or [],
            )
        )
        if not args.no_detect:
            candidates = detect_modules(project.path)
            if candidates:
                project = repo.add_modules(project.id, candidates)
        print(f"Added {project.name} ({project.id}) with {len(project.modules or [])} module(s)")
        return 0
    if action == "remove":
        if not repo.delete_project(args.project_id):
            print(f"Project not found: {args.project_id}", file=sys.stderr)
            return 1
        print(f"Removed {args.project_id}")
        return 0
    if action == "export":
        payload = repo.export_projects()
        if args.output:
            try:
                Path(args.output).write_text(payload, encoding="utf-8")
            except OSError as exc:
                raise StorageError(f"Unable to write {args.output}: {exc}") from exc
            print(f"Exported to {args.output}")
        else:
            print(payload)
        return 0
    if action == "import":
        try:
            raw = Path(args.input).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ProjectImportError(f"Unable to read {args.input}: {exc}") from exc
        imported = repo.import_projects(raw)
        print(f"Imported {len(imported)} project(s)")
        return 0
    return 2


def cmd_settings(args: argparse.Namespace, store: KeyValueStore) -> int:
    repo = SettingsRepository(store, reporter=_report)
    if args.settings_action == "set":
        try:
            value = json.loads(args.value)
        except json.JSONDecodeError:
            value = args.value
        settings = repo.update_setting(args.key, value)
    else:
        settings = repo.get_settings()
    _print_json(settings.model_dump(mode="json"))
    return 0


def cmd_serve(args: argparse.Namespace, store: KeyValueStore) -> int:
    import uvicorn

    config = get_config()
    uvicorn.run(
        "dockev.main:app",
        host=args.host or config.api_host,
        port=args.port or config.api_port,
        reload=args.reload,
        log_level=config.log_level.lower(),
    )
    return 0


# ------------------------------------------------------------------- parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dockev", description="Manage local development projects.")
    parser.add_argument("--data-dir", help="Directory holding the project and settings documents.")
    parser.add_argument("--log-level", default=None, help="Logging level (default from DOCKEV_LOG_LEVEL).")
    sub = parser.add_subparsers(dest="command_name", required=True)

    detect = sub.add_parser("detect", help="Detect modules and tech stacks under a project root.")
    detect.add_argument("path")
    detect.add_argument("--json", action="store_true")
    detect.set_defaults(handler=cmd_detect)

    stats = sub.add_parser("stats", help="Size, counts and timestamps for a project folder.")
    stats.add_argument("path")
    stats.add_argument("--json", action="store_true")
    stats.set_defaults(handler=cmd_stats)

    details = sub.add_parser("details", help="package.json metadata and README preview.")
    details.add_argument("path")
    details.add_argument("--json", action="store_true")
    details.set_defaults(handler=cmd_details)

    git = sub.add_parser("git", help="Git status, remote or diff for a project.")
    git.add_argument("path")
    git.add_argument("--remote", action="store_true", help="Print the origin URL.")
    git.add_argument("--diff", action="store_true", help="Print the working tree diff.")
    git.add_argument("--file", help="Limit --diff to one file.")
    git.add_argument("--json", action="store_true")
    git.set_defaults(handler=cmd_git)

    move = sub.add_parser("move", help="Move a project folder into another directory.")
    move.add_argument("source")
    move.add_argument("destination")
    move.add_argument("--exclude-node-modules", action="store_true", help="Skip node_modules directories.")
    move.add_argument("--keep-source", action="store_true", help="Copy without deleting the source.")
    move.add_argument("--project", help="Project id whose stored path should follow the move.")
    move.set_defaults(handler=cmd_move)

    open_ide = sub.add_parser("open", help="Open a folder in an IDE.")
    open_ide.add_argument("path")
    open_ide.add_argument("--ide", help="IDE id (vscode, cursor, webstorm, terminal or a custom id).")
    open_ide.set_defaults(handler=cmd_open)

    dev = sub.add_parser("dev", help="Start the dev server in a new terminal.")
    dev.add_argument("path")
    dev.add_argument("--command", help="Custom command instead of the package manager dev script.")
    dev.add_argument("--package-manager", choices=launcher.PACKAGE_MANAGER_ORDER)
    dev.add_argument("--env", action="append", metavar="KEY=VALUE")
    dev.set_defaults(handler=cmd_dev)

    install = sub.add_parser("install", help="Install packages for a project or module.")
    install.add_argument("path")
    install.add_argument("--module", help="Module path relative to the project root.")
    install.add_argument("--package-manager", choices=launcher.PACKAGE_MANAGER_ORDER)
    install.set_defaults(handler=cmd_install)

    projects = sub.add_parser("projects", help="Manage the project registry.")
    projects_sub = projects.add_subparsers(dest="projects_action", required=True)
    listing = projects_sub.add_parser("list")
    listing.add_argument("--category")
    listing.add_argument("--tag")
    listing.add_argument("--query")
    listing.add_argument("--json", action="store_true")
    add = projects_sub.add_parser("add")
    add.add_argument("path")
    add.add_argument("--name")
    add.add_argument("--category")
    add.add_argument("--tag", action="append")
    add.add_argument("--no-detect", action="store_true", help="Do not attach detected modules.")
    remove = projects_sub.add_parser("remove")
    remove.add_argument("project_id")
    export = projects_sub.add_parser("export")
    export.add_argument("--output", "-o")
    import_parser = projects_sub.add_parser("import")
    import_parser.add_argument("input")
    projects.set_defaults(handler=cmd_projects)

    settings = sub.add_parser("settings", help="Show or change settings.")
    settings_sub = settings.add_subparsers(dest="settings_action", required=True)
    settings_sub.add_parser("show")
    set_parser = settings_sub.add_parser("set")
    set_parser.add_argument("key")
    set_parser.add_argument("value", help="JSON value, or a bare string.")
    settings.set_defaults(handler=cmd_settings)

    serve = sub.add_parser("serve", help="Run the local API server.")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    configure_logging(args.log_level or config.log_level)
    data_dir = normalize_path(args.data_dir) if args.data_dir else config.data_dir

    try:
        store = JsonFileStore(data_dir)
        return args.handler(args, store)
    except DockevError as exc:
        print(f"Error ({exc.code}): {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
