from .ide_target import CustomIde, IdeTarget, KnownIde
from .project import Module, ModuleUpdate, Project, ProjectConfig, ProjectCreate, ProjectUpdate
from .settings import IDE, Category, CategoryUpdate, IDEUpdate, PackageManager, Settings, SettingsUpdate, Theme

__all__ = [
    "Category",
    "CategoryUpdate",
    "CustomIde",
    "IDE",
    "IDEUpdate",
    "IdeTarget",
    "KnownIde",
    "Module",
    "ModuleUpdate",
    "PackageManager",
    "Project",
    "ProjectConfig",
    "ProjectCreate",
    "ProjectUpdate",
    "Settings",
    "SettingsUpdate",
    "Theme",
]
