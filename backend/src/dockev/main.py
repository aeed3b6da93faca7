# main.py
# Entry point for the local dockev API.
# - Builds the FastAPI app and registers the project, settings, system and move routes
# - Provides root and health-check endpoints
# - Run with: dockev serve  (or uvicorn dockev.main:app --reload)
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import move_router, project_router, settings_router, system_router
from .config.app_config import AppConfig, configure_logging, get_config

logger = logging.getLogger(__name__)


def create_app(config: AppConfig | None = None) -> FastAPI:
    config = config or get_config()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Dockev API",
        description="Local backend for the dockev project dashboard",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root():
        return {"status": "healthy", "message": "Dockev API is running"}

    @app.get("/health")
    def health_check():
        return {"status": "ok", "version": __version__}

    app.include_router(project_router)
    app.include_router(settings_router)
    app.include_router(system_router)
    app.include_router(move_router)

    logger.info(f"Data directory: {config.data_dir}")
    return app


app = create_app()
