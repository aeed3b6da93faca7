"""OS-facing routes: detection, statistics, git and process launching.

Filesystem walks are declared as plain ``def`` endpoints so FastAPI runs
them in its worker thread pool instead of on the event loop.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..analyzer.project_detector import detect_modules_report
from ..local_analysis.git_repo import get_diff_async, get_git_status_async, get_remote_url_async
from ..models.settings import PackageManager
from ..scanner.errors import DockevError, ModuleNotFoundInProject
from ..scanner.project_stats import check_node_modules, collect_project_stats, read_project_details
from ..services import launcher
from ..services.projects_service import ProjectRepository
from ..services.settings_service import SettingsRepository
from .dependencies import get_project_repository, get_settings_repository, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["System"])


class DetectedModuleOut(BaseModel):
    name: str
    path: str
    tech_stack: List[str]
    confidence: float


class ScanIssueOut(BaseModel):
    path: str
    code: str
    message: str


class DetectionResponse(BaseModel):
    modules: List[DetectedModuleOut] = Field(default_factory=list)
    issues: List[ScanIssueOut] = Field(default_factory=list)


class GitFileOut(BaseModel):
    name: str
    status: str


class GitStatusOut(BaseModel):
    branch: str
    last_commit: str
    last_commit_time: str
    pending_changes: int
    files: List[GitFileOut] = Field(default_factory=list)


class LaunchIdeRequest(BaseModel):
    path: str
    ide: Optional[str] = Field(default=None, description="IDE id; defaults to the configured default IDE")
    project_id: Optional[str] = Field(default=None, description="Record the launch as the project's last open")
    module_id: Optional[str] = None


class DevServerRequest(BaseModel):
    path: str
    custom_command: Optional[str] = None
    env_vars: Optional[Dict[str, str]] = None
    package_manager: Optional[PackageManager] = None
    project_id: Optional[str] = Field(default=None, description="Fill command and env vars from the project config")


class InstallRequest(BaseModel):
    path: str
    package_manager: Optional[PackageManager] = None
    module_path: Optional[str] = None


class OpenFolderRequest(BaseModel):
    path: str


class LaunchResponse(BaseModel):
    command: str
    args: List[str]
    cwd: str
    pid: int
    tried: List[str] = Field(default_factory=list)


@router.get("/detect-modules", response_model=DetectionResponse)
def detect(path: str = Query(..., description="Project root")) -> DetectionResponse:
    report = detect_modules_report(path)
    return DetectionResponse(
        modules=[DetectedModuleOut(**module.to_dict()) for module in report.modules],
        issues=[ScanIssueOut(**asdict(issue)) for issue in report.issues],
    )


@router.get("/stats")
def project_stats(path: str = Query(...)) -> Optional[Dict[str, Any]]:
    stats = collect_project_stats(path)
    if stats is None:
        return None
    payload = asdict(stats)
    payload["skipped"] = stats.skipped
    return payload


@router.get("/details")
def project_details(path: str = Query(...)) -> Optional[Dict[str, Any]]:
    details = read_project_details(path)
    return asdict(details) if details is not None else None


@router.get("/node-modules")
def node_modules(
    path: str = Query(...),
    module_path: Optional[List[str]] = Query(default=None),
) -> Dict[str, Any]:
    return asdict(check_node_modules(path, module_path))


@router.get("/git/status", response_model=Optional[GitStatusOut])
async def git_status(path: str = Query(...)) -> Optional[GitStatusOut]:
    result = await get_git_status_async(path)
    if result is None:
        return None
    return GitStatusOut(**asdict(result))


@router.get("/git/remote")
async def git_remote(path: str = Query(...)) -> Dict[str, Optional[str]]:
    return {"url": await get_remote_url_async(path)}


@router.get("/git/diff")
async def git_diff(path: str = Query(...), file: Optional[str] = Query(default=None)) -> Dict[str, Optional[str]]:
    return {"diff": await get_diff_async(path, file)}


@router.post("/launch/ide", response_model=LaunchResponse)
def launch_ide(
    payload: LaunchIdeRequest,
    settings_repo: SettingsRepository = Depends(get_settings_repository),
    project_repo: ProjectRepository = Depends(get_project_repository),
) -> LaunchResponse:
    settings = settings_repo.get_settings()
    target = launcher.resolve_ide_target(payload.ide or settings.default_ide, settings.custom_ides)
    try:
        if payload.project_id:
            project = project_repo.get_project(payload.project_id)
            if payload.module_id and not any(m.id == payload.module_id for m in project.modules or []):
                raise ModuleNotFoundInProject(payload.project_id, payload.module_id)
        result = launcher.launch_ide(payload.path, target)
        if payload.project_id:
            project_repo.mark_opened(payload.project_id, payload.module_id)
    except DockevError as exc:
        raise http_error(exc)
    return LaunchResponse(**asdict(result))


@router.post("/launch/dev-server", response_model=LaunchResponse)
def run_dev_server(
    payload: DevServerRequest,
    settings_repo: SettingsRepository = Depends(get_settings_repository),
    project_repo: ProjectRepository = Depends(get_project_repository),
) -> LaunchResponse:
    custom_command = payload.custom_command
    env_vars = payload.env_vars
    try:
        if payload.project_id:
            project = project_repo.get_project(payload.project_id)
            if project.config is not None:
                custom_command = custom_command or project.config.dev_server_command
                env_vars = env_vars if env_vars is not None else project.config.env_vars
        package_manager = payload.package_manager or settings_repo.get_settings().default_package_manager
        result = launcher.run_dev_server(payload.path, custom_command, env_vars, package_manager)
    except DockevError as exc:
        raise http_error(exc)
    return LaunchResponse(**asdict(result))


@router.post("/install")
def install_packages(
    payload: InstallRequest,
    settings_repo: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, Any]:
    package_manager = payload.package_manager or settings_repo.get_settings().default_package_manager
    return asdict(launcher.install_packages(payload.path, package_manager, payload.module_path))


@router.post("/open-folder", response_model=LaunchResponse)
def open_folder(payload: OpenFolderRequest) -> LaunchResponse:
    try:
        result = launcher.open_folder(payload.path)
    except DockevError as exc:
        raise http_error(exc)
    return LaunchResponse(**asdict(result))

