from __future__ import annotations


class DockevError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class PathNotFoundError(DockevError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Path does not exist: {path}", "path_not_found")
        self.path = path


class StorageError(DockevError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "storage_error")


class ProjectNotFoundError(DockevError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}", "project_not_found")
        self.project_id = project_id


class DuplicateProjectError(DockevError):
    def __init__(self, project_id: str) -> None:
        super().__init__(f"A project with id '{project_id}' already exists", "duplicate_project")
        self.project_id = project_id


class ProjectImportError(DockevError):
    def __init__(self, message: str = "Failed to import projects. Invalid JSON format.") -> None:
        super().__init__(message, "invalid_import")


class ModuleNotFoundInProject(DockevError):
    def __init__(self, project_id: str, module_id: str) -> None:
        super().__init__(
            f"Module '{module_id}' not found in project '{project_id}'",
            "module_not_found",
        )
        self.project_id = project_id
        self.module_id = module_id


class LaunchError(DockevError):
    """A spawned tool could not be started."""

    def __init__(self, message: str, *, command: str = "", cwd: str = "", code: str = "launch_failed") -> None:
        super().__init__(message, code)
        self.command = command
        self.cwd = cwd


class CommandNotFoundError(LaunchError):
    def __init__(self, message: str, *, command: str = "", cwd: str = "") -> None:
        super().__init__(message, command=command, cwd=cwd, code="command_not_found")


class InvalidUpdateError(DockevError):
    """A partial update that would leave a stored record invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "invalid_update")
