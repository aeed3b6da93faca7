from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from ..analyzer.project_detector import DetectedModule
from ..models.project import Module, ModuleUpdate, Project, ProjectCreate, ProjectUpdate, new_id
from ..models.settings import Category
from ..models.updates import merge_update, update_fields
from ..scanner.errors import (
    DuplicateProjectError,
    ModuleNotFoundInProject,
    ProjectImportError,
    ProjectNotFoundError,
    StorageError,
)
from ..storage.backends import PROJECTS_KEY, KeyValueStore
from ..utils.color_utils import get_project_color

logger = logging.getLogger(__name__)

NotifyFn = Callable[[str, str], None]

UNCATEGORIZED = "Uncategorized"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProjectRepository:
    """Project list persisted as one document under ``dockev_projects``.

    Every mutation is read-modify-write over the whole list; concurrent
    writers are not coordinated and the last write wins.
    """

    def __init__(self, store: KeyValueStore, reporter: Optional[NotifyFn] = None) -> None:
        self._store = store
        self._report = reporter
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------ reads

    def get_projects(self) -> List[Project]:
        raw = self._store.read(PROJECTS_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Error reading projects, stored document is corrupted: {exc}")
            return []
        if not isinstance(data, list):
            logger.error("Error reading projects, stored document is not a list")
            return []

        projects: List[Project] = []
        for item in data:
            try:
                projects.append(Project.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping invalid stored project: {exc.error_count()} validation error(s)")
        return projects

    def get_project(self, project_id: str) -> Project:
        for project in self.get_projects():
            if project.id == project_id:
                return project
        raise ProjectNotFoundError(project_id)

    def filter_projects(
        self,
        *,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[Project]:
        """Projects matching every given filter; ``query`` is a case-insensitive substring."""
        needle = (query or "").strip().lower()
        results: List[Project] = []
        for project in self.get_projects():
            if category and project.category != category:
                continue
            if tag and tag not in project.tags:
                continue
            if needle:
                haystack = [project.name, project.path, project.description or "", *project.tags]
                if not any(needle in value.lower() for value in haystack):
                    continue
            results.append(project)
        return results

    def group_by_category(self, categories: Iterable[Category]) -> Dict[str, List[Project]]:
        names = [category.name for category in categories]
        groups: Dict[str, List[Project]] = {name: [] for name in names}
        for project in self.get_projects():
            key = project.category if project.category in groups else UNCATEGORIZED
            groups.setdefault(key, []).append(project)
        return groups

    # ----------------------------------------------------------------- writes

    def save_projects(self, projects: List[Project]) -> bool:
        try:
            payload = json.dumps([project.model_dump(mode="json") for project in projects])
            self._store.write(PROJECTS_KEY, payload)
        except (StorageError, TypeError, ValueError) as exc:
            self.last_error = f"Unable to save projects: {exc}"
            logger.error(self.last_error)
            self._notify(self.last_error, "warning")
            return False
        self.last_error = None
        return True

    def add_project(self, data: Union[ProjectCreate, Project]) -> Project:
        projects = self.get_projects()
        fields = data.model_dump()
        if not fields.get("id"):
            fields["id"] = new_id()
        if any(existing.id == fields["id"] for existing in projects):
            raise DuplicateProjectError(fields["id"])
        if not fields.get("color"):
            fields["color"] = get_project_color(None, [p.color for p in projects if p.color])
        project = Project.model_validate(fields)
        projects.append(project)
        self.save_projects(projects)
        logger.info(f"Added project {project.name} ({project.id})")
        return project

    def update_project(self, project_id: str, updates: Union[ProjectUpdate, Dict[str, Any]]) -> Project:
        changes = update_fields(ProjectUpdate, updates, "project")

        projects = self.get_projects()
        for index, project in enumerate(projects):
            if project.id == project_id:
                merged = merge_update(Project, project, changes, "project", id=project.id)
                projects[index] = merged
                self.save_projects(projects)
                return merged
        raise ProjectNotFoundError(project_id)

    def delete_project(self, project_id: str) -> bool:
        projects = self.get_projects()
        remaining = [project for project in projects if project.id != project_id]
        if len(remaining) == len(projects):
            return False
        self.save_projects(remaining)
        return True

    def mark_opened(self, project_id: str, module_id: Optional[str] = None) -> Project:
        now = _now_ms()
        project = self.get_project(project_id)
        if module_id is None:
            return self.update_project(project_id, {"last_opened_at": now})
        modules = self._modules_with(project, module_id, lambda m: m.model_copy(update={"last_opened_at": now}))
        return self.update_project(project_id, {"last_opened_at": now, "modules": modules})

    def export_projects(self) -> str:
        return json.dumps([project.model_dump(mode="json") for project in self.get_projects()], indent=2)

    def import_projects(self, json_string: str) -> List[Project]:
        """Replace the stored list with the projects in ``json_string``."""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as exc:
            logger.error(f"Error importing projects: {exc}")
            raise ProjectImportError() from exc
        if not isinstance(data, list):
            raise ProjectImportError("Invalid projects format")
        try:
            projects = [Project.model_validate(item) for item in data]
        except ValidationError as exc:
            raise ProjectImportError(f"Invalid project entry: {exc.errors()[0].get('msg')}") from exc
        ids = [project.id for project in projects]
        if len(ids) != len(set(ids)):
            raise ProjectImportError("Imported projects contain duplicate ids")
        self.save_projects(projects)
        return projects

    def clear_projects(self) -> None:
        try:
            self._store.delete(PROJECTS_KEY)
        except StorageError as exc:
            self._notify(str(exc), "warning")

    # ---------------------------------------------------------------- modules

    def add_modules(self, project_id: str, candidates: Iterable[Union[DetectedModule, Module]]) -> Project:
        """Accept detector suggestions; paths already registered are skipped."""
        project = self.get_project(project_id)
        modules = list(project.modules or [])
        known_paths = {module.path for module in modules}
        for candidate in candidates:
            if candidate.path in known_paths:
                continue
            if isinstance(candidate, DetectedModule):
                module = Module(
                    name=candidate.name,
                    path=candidate.path,
                    tech_stack=list(candidate.tech_stack),
                    default_ide=project.default_ide,
                )
            else:
                module = candidate
            modules.append(module)
            known_paths.add(module.path)
        return self.update_project(project_id, {"modules": modules})

    def update_module(self, project_id: str, module_id: str, updates: Union[ModuleUpdate, Dict[str, Any]]) -> Project:
        changes = update_fields(ModuleUpdate, updates, "module")
        project = self.get_project(project_id)
        modules = self._modules_with(
            project,
            module_id,
            lambda m: merge_update(Module, m, changes, "module", id=m.id),
        )
        return self.update_project(project_id, {"modules": modules})

    def remove_module(self, project_id: str, module_id: str) -> Project:
        project = self.get_project(project_id)
        modules = list(project.modules or [])
        remaining = [module for module in modules if module.id != module_id]
        if len(remaining) == len(modules):
            raise ModuleNotFoundInProject(project_id, module_id)
        return self.update_project(project_id, {"modules": remaining})

    def merge_modules(self, project_id: str, keep_id: str, discard_id: str) -> Project:
        """Union ``discard_id``'s tech stack into ``keep_id`` and drop ``discard_id``."""
        project = self.get_project(project_id)
        modules = list(project.modules or [])
        keep = next((m for m in modules if m.id == keep_id), None)
        discard = next((m for m in modules if m.id == discard_id), None)
        if keep is None:
            raise ModuleNotFoundInProject(project_id, keep_id)
        if discard is None or discard_id == keep_id:
            raise ModuleNotFoundInProject(project_id, discard_id)

        tech_stack = list(keep.tech_stack)
        for tech in discard.tech_stack:
            if tech not in tech_stack:
                tech_stack.append(tech)
        merged = keep.model_copy(update={"tech_stack": tech_stack})
        result = [merged if m.id == keep_id else m for m in modules if m.id != discard_id]
        return self.update_project(project_id, {"modules": result})

    def _modules_with(self, project: Project, module_id: str, change: Callable[[Module], Module]) -> List[Module]:
        modules = list(project.modules or [])
        for index, module in enumerate(modules):
            if module.id == module_id:
                modules[index] = change(module)
                return modules
        raise ModuleNotFoundInProject(project.id, module_id)

    def _notify(self, message: str, tone: str) -> None:
        if self._report:
            self._report(message, tone)
