# API routes module
# Local HTTP surface used by the desktop shell

from .move_routes import router as move_router
from .project_routes import router as project_router
from .settings_routes import router as settings_router
from .system_routes import router as system_router

__all__ = ["move_router", "project_router", "settings_router", "system_router"]
