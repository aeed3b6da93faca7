"""Settings routes: the settings document, custom IDEs and categories."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ..models.settings import IDE, Category, CategoryUpdate, IDEUpdate, Settings, SettingsUpdate
from ..scanner.errors import DockevError
from ..services.settings_service import SettingsRepository
from .dependencies import get_settings_repository, http_error

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("", response_model=Settings)
def read_settings(repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    return repo.get_settings()


@router.put("", response_model=Settings)
def replace_settings(payload: Settings, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    repo.save_settings(payload)
    return payload


@router.patch("", response_model=Settings)
def patch_settings(payload: SettingsUpdate, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    try:
        return repo.update_settings(payload)
    except DockevError as exc:
        raise http_error(exc)


@router.get("/ides", response_model=List[IDE])
def list_ides(repo: SettingsRepository = Depends(get_settings_repository)) -> List[IDE]:
    """Built-in IDEs followed by the user's custom ones."""
    return repo.get_all_ides()


@router.post("/ides", response_model=Settings, status_code=status.HTTP_201_CREATED)
def add_ide(payload: IDE, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    try:
        return repo.add_custom_ide(payload)
    except DockevError as exc:
        raise http_error(exc)


@router.patch("/ides/{ide_id}", response_model=Settings)
def update_ide(ide_id: str, payload: IDEUpdate, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    try:
        return repo.update_custom_ide(ide_id, payload)
    except DockevError as exc:
        raise http_error(exc)


@router.delete("/ides/{ide_id}", response_model=Settings)
def remove_ide(ide_id: str, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    return repo.remove_custom_ide(ide_id)


@router.get("/categories", response_model=List[Category])
def list_categories(repo: SettingsRepository = Depends(get_settings_repository)) -> List[Category]:
    return repo.get_categories()


@router.post("/categories", response_model=Settings, status_code=status.HTTP_201_CREATED)
def add_category(payload: Category, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    try:
        return repo.add_category(payload)
    except DockevError as exc:
        raise http_error(exc)


@router.post("/categories/reset", response_model=Settings)
def reset_categories(repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    return repo.reset_categories()


@router.patch("/categories/{category_id}", response_model=Settings)
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    repo: SettingsRepository = Depends(get_settings_repository),
) -> Settings:
    try:
        return repo.update_category(category_id, payload)
    except DockevError as exc:
        raise http_error(exc)


@router.delete("/categories/{category_id}", response_model=Settings)
def remove_category(category_id: str, repo: SettingsRepository = Depends(get_settings_repository)) -> Settings:
    return repo.remove_category(category_id)
