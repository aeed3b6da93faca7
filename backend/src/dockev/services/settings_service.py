from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from ..models.settings import (
    BUILTIN_IDES,
    IDE,
    Category,
    CategoryUpdate,
    IDEUpdate,
    Settings,
    SettingsUpdate,
    default_categories,
)
from ..models.updates import merge_update, update_fields
from ..scanner.errors import DockevError, StorageError
from ..storage.backends import SETTINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

NotifyFn = Callable[[str, str], None]


class SettingsRepository:
    """Process-wide settings document stored under ``dockev_settings``."""

    def __init__(self, store: KeyValueStore, reporter: Optional[NotifyFn] = None) -> None:
        self._store = store
        self._report = reporter
        self.last_error: Optional[str] = None

    def get_settings(self) -> Settings:
        """Stored settings merged over the defaults; defaults when absent or corrupted."""
        raw = self._store.read(SETTINGS_KEY)
        if not raw:
            return Settings()
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error(f"Error reading settings, stored document is corrupted: {exc}")
            return Settings()
        if not isinstance(parsed, dict):
            return Settings()
        try:
            return Settings.model_validate({**Settings().model_dump(), **parsed})
        except ValidationError as exc:
            logger.error(f"Stored settings are invalid, using defaults: {exc.error_count()} error(s)")
            return Settings()

    def save_settings(self, settings: Settings) -> bool:
        try:
            self._store.write(SETTINGS_KEY, json.dumps(settings.model_dump(mode="json")))
        except (StorageError, TypeError, ValueError) as exc:
            self.last_error = f"Unable to save settings: {exc}"
            logger.error(self.last_error)
            self._notify(self.last_error, "warning")
            return False
        self.last_error = None
        return True

    def update_settings(self, updates: Union[SettingsUpdate, Dict[str, Any]]) -> Settings:
        changes = update_fields(SettingsUpdate, updates, "settings")
        merged = merge_update(Settings, self.get_settings(), changes, "settings")
        self.save_settings(merged)
        return merged

    def update_setting(self, key: str, value: Any) -> Settings:
        if key not in Settings.model_fields:
            raise DockevError(f"Unknown setting: {key}", "unknown_setting")
        return self.update_settings({key: value})

    # ------------------------------------------------------------------- IDEs

    def get_all_ides(self) -> List[IDE]:
        return [ide.model_copy() for ide in BUILTIN_IDES] + self.get_settings().custom_ides

    def add_custom_ide(self, ide: IDE) -> Settings:
        settings = self.get_settings()
        if any(existing.id == ide.id for existing in self.get_all_ides()):
            raise DockevError(f"An IDE with id '{ide.id}' already exists", "duplicate_ide")
        settings.custom_ides.append(ide)
        self.save_settings(settings)
        return settings

    def remove_custom_ide(self, ide_id: str) -> Settings:
        settings = self.get_settings()
        settings.custom_ides = [ide for ide in settings.custom_ides if ide.id != ide_id]
        self.save_settings(settings)
        return settings

    def update_custom_ide(self, ide_id: str, updates: Union[IDEUpdate, Dict[str, Any]]) -> Settings:
        changes = update_fields(IDEUpdate, updates, "IDE")
        settings = self.get_settings()
        for index, ide in enumerate(settings.custom_ides):
            if ide.id == ide_id:
                settings.custom_ides[index] = merge_update(IDE, ide, changes, "IDE", id=ide.id)
                self.save_settings(settings)
                break
        return settings

    def find_ide(self, ide_id: str) -> Optional[IDE]:
        return next((ide for ide in self.get_all_ides() if ide.id == ide_id), None)

    # ------------------------------------------------------------- categories

    def get_categories(self) -> List[Category]:
        return self.get_settings().categories

    def add_category(self, category: Category) -> Settings:
        settings = self.get_settings()
        if any(existing.id == category.id for existing in settings.categories):
            raise DockevError(f"A category with id '{category.id}' already exists", "duplicate_category")
        settings.categories.append(category)
        self.save_settings(settings)
        return settings

    def update_category(self, category_id: str, updates: Union[CategoryUpdate, Dict[str, Any]]) -> Settings:
        changes = update_fields(CategoryUpdate, updates, "category")
        settings = self.get_settings()
        for index, category in enumerate(settings.categories):
            if category.id == category_id:
                settings.categories[index] = merge_update(Category, category, changes, "category", id=category.id)
                self.save_settings(settings)
                break
        return settings

    def remove_category(self, category_id: str) -> Settings:
        settings = self.get_settings()
        settings.categories = [c for c in settings.categories if c.id != category_id]
        self.save_settings(settings)
        return settings

    def get_default_categories(self) -> List[Category]:
        return default_categories()

    def reset_categories(self) -> Settings:
        settings = self.get_settings()
        settings.categories = default_categories()
        self.save_settings(settings)
        return settings

    def _notify(self, message: str, tone: str) -> None:
        if self._report:
            self._report(message, tone)
