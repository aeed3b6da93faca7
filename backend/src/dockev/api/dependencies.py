from __future__ import annotations

import logging
import threading
from typing import Optional

from fastapi import HTTPException, status

from ..config.app_config import get_config
from ..scanner.errors import (
    CommandNotFoundError,
    DockevError,
    DuplicateProjectError,
    InvalidUpdateError,
    LaunchError,
    ModuleNotFoundInProject,
    PathNotFoundError,
    ProjectImportError,
    ProjectNotFoundError,
)
from ..services.projects_service import ProjectRepository
from ..services.settings_service import SettingsRepository
from ..storage.backends import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

_store: Optional[KeyValueStore] = None
_store_lock = threading.Lock()


def _log_notification(message: str, tone: str) -> None:
    logger.warning(f"[{tone}] {message}")


def get_store() -> KeyValueStore:
    """Get or create the document store (thread-safe)."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = JsonFileStore(get_config().data_dir)
    return _store


def get_project_repository() -> ProjectRepository:
    return ProjectRepository(get_store(), reporter=_log_notification)


def get_settings_repository() -> SettingsRepository:
    return SettingsRepository(get_store(), reporter=_log_notification)


_STATUS_BY_ERROR = (
    (ProjectNotFoundError, status.HTTP_404_NOT_FOUND),
    (ModuleNotFoundInProject, status.HTTP_404_NOT_FOUND),
    (PathNotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateProjectError, status.HTTP_409_CONFLICT),
    (ProjectImportError, status.HTTP_400_BAD_REQUEST),
    (InvalidUpdateError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CommandNotFoundError, status.HTTP_424_FAILED_DEPENDENCY),
    (LaunchError, status.HTTP_502_BAD_GATEWAY),
)


def http_error(exc: DockevError) -> HTTPException:
    """Translate a domain error into an HTTPException with a code/message body."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = mapped
            break
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": str(exc)})
