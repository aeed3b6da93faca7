"""Project registry routes: CRUD, import/export and module management."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field

from ..analyzer.project_detector import detect_modules
from ..models.project import Module, ModuleUpdate, Project, ProjectCreate, ProjectUpdate
from ..scanner.errors import DockevError
from ..services.projects_service import ProjectRepository
from ..services.settings_service import SettingsRepository
from .dependencies import get_project_repository, get_settings_repository, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])


class ProjectListResponse(BaseModel):
    items: List[Project]
    total: int


class MarkOpenedRequest(BaseModel):
    module_id: Optional[str] = None


class MergeModulesRequest(BaseModel):
    keep_id: str = Field(..., description="Module that survives the merge")
    discard_id: str = Field(..., description="Module folded into keep_id and removed")


class AddModulesRequest(BaseModel):
    modules: Optional[List[Module]] = Field(
        default=None,
        description="Modules to add; when omitted the detector's suggestions are accepted",
    )


@router.get("", response_model=ProjectListResponse)
def list_projects(
    category: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, description="Case-insensitive search over name, path, tags"),
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectListResponse:
    items = repo.filter_projects(category=category, tag=tag, query=q)
    return ProjectListResponse(items=items, total=len(items))


@router.get("/by-category", response_model=Dict[str, List[Project]])
def projects_by_category(
    repo: ProjectRepository = Depends(get_project_repository),
    settings_repo: SettingsRepository = Depends(get_settings_repository),
) -> Dict[str, List[Project]]:
    return repo.group_by_category(settings_repo.get_categories())


@router.get("/export")
def export_projects(repo: ProjectRepository = Depends(get_project_repository)) -> Response:
    return Response(content=repo.export_projects(), media_type="application/json")


@router.post("/import", response_model=ProjectListResponse)
async def import_projects(
    request: Request,
    repo: ProjectRepository = Depends(get_project_repository),
) -> ProjectListResponse:
    """Replace all projects with an exported JSON document sent as the raw body."""
    payload = (await request.body()).decode("utf-8", errors="replace")
    try:
        items = repo.import_projects(payload)
    except DockevError as exc:
        raise http_error(exc)
    return ProjectListResponse(items=items, total=len(items))


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    detect: bool = Query(default=False, description="Attach detected modules to the new project"),
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        project = repo.add_project(payload)
        if detect and not project.modules:
            candidates = detect_modules(project.path)
            if candidates:
                project = repo.add_modules(project.id, candidates)
    except DockevError as exc:
        raise http_error(exc)
    return project


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_projects(repo: ProjectRepository = Depends(get_project_repository)) -> Response:
    repo.clear_projects()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str, repo: ProjectRepository = Depends(get_project_repository)) -> Project:
    try:
        return repo.get_project(project_id)
    except DockevError as exc:
        raise http_error(exc)


@router.patch("/{project_id}", response_model=Project)
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        return repo.update_project(project_id, payload)
    except DockevError as exc:
        raise http_error(exc)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(project_id: str, repo: ProjectRepository = Depends(get_project_repository)) -> Response:
    if not repo.delete_project(project_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "project_not_found", "message": f"Project not found: {project_id}"},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/opened", response_model=Project)
def mark_opened(
    project_id: str,
    payload: Optional[MarkOpenedRequest] = None,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        return repo.mark_opened(project_id, payload.module_id if payload else None)
    except DockevError as exc:
        raise http_error(exc)


@router.post("/{project_id}/modules", response_model=Project)
def add_modules(
    project_id: str,
    payload: Optional[AddModulesRequest] = None,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        if payload is None or payload.modules is None:
            project = repo.get_project(project_id)
            return repo.add_modules(project_id, detect_modules(project.path))
        return repo.add_modules(project_id, payload.modules)
    except DockevError as exc:
        raise http_error(exc)


@router.patch("/{project_id}/modules/{module_id}", response_model=Project)
def update_module(
    project_id: str,
    module_id: str,
    payload: ModuleUpdate,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        return repo.update_module(project_id, module_id, payload)
    except DockevError as exc:
        raise http_error(exc)


@router.delete("/{project_id}/modules/{module_id}", response_model=Project)
def remove_module(
    project_id: str,
    module_id: str,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        return repo.remove_module(project_id, module_id)
    except DockevError as exc:
        raise http_error(exc)


@router.post("/{project_id}/modules/merge", response_model=Project)
def merge_modules(
    project_id: str,
    payload: MergeModulesRequest,
    repo: ProjectRepository = Depends(get_project_repository),
) -> Project:
    try:
        return repo.merge_modules(project_id, payload.keep_id, payload.discard_id)
    except DockevError as exc:
        raise http_error(exc)
