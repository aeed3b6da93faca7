from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Theme(str, Enum):
    dark = "dark"
    light = "light"
    system = "system"


class PackageManager(str, Enum):
    npm = "npm"
    yarn = "yarn"
    pnpm = "pnpm"


class IDE(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)
    is_default: Optional[bool] = None


class IDEUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    command: Optional[str] = Field(None, min_length=1)
    is_default: Optional[bool] = None


class Category(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    icon: str = ""
    color: str = ""


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None


DEFAULT_CATEGORIES: List[Category] = [
    Category(id="web", name="Web", icon="language", color="#3B82F6"),
    Category(id="mobile", name="Mobile", icon="smartphone", color="#8B5CF6"),
    Category(id="backend", name="Backend", icon="database", color="#10B981"),
    Category(id="experiments", name="Experiments", icon="science", color="#F59E0B"),
    Category(id="archived", name="Archived", icon="archive", color="#6B7280"),
]

BUILTIN_IDES: List[IDE] = [
    IDE(id="vscode", name="VS Code", command="code"),
    IDE(id="cursor", name="Cursor", command="cursor"),
    IDE(id="webstorm", name="WebStorm", command="webstorm"),
]


def default_categories() -> List[Category]:
    return [category.model_copy() for category in DEFAULT_CATEGORIES]


class Settings(BaseModel):
    default_ide: str = "vscode"
    auto_tech_stack_detection: bool = True
    theme: Theme = Theme.dark
    custom_ides: List[IDE] = Field(default_factory=list)
    default_package_manager: PackageManager = PackageManager.npm
    categories: List[Category] = Field(default_factory=default_categories)


class SettingsUpdate(BaseModel):
    default_ide: Optional[str] = None
    auto_tech_stack_detection: Optional[bool] = None
    theme: Optional[Theme] = None
    custom_ides: Optional[List[IDE]] = None
    default_package_manager: Optional[PackageManager] = None
    categories: Optional[List[Category]] = None
