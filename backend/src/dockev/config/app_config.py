"""Configuration for the dockev backend, read from the environment."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from ..utils.paths import default_data_dir, normalize_path

# Load environment variables from .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class AppConfig:
    """Configuration values for the API server and CLI."""

    def __init__(self) -> None:
        data_dir = os.getenv("DOCKEV_DATA_DIR")
        self.data_dir: Path = normalize_path(data_dir) if data_dir else default_data_dir()

        self.api_host = os.getenv("DOCKEV_API_HOST", "127.0.0.1")
        self.api_port = int(os.getenv("DOCKEV_API_PORT", "8771"))

        # Comma separated; the desktop shell runs on the Vite dev server by default
        origins = os.getenv("DOCKEV_CORS_ORIGINS", "http://localhost:5173")
        self.cors_origins: List[str] = [o.strip() for o in origins.split(",") if o.strip()]

        self.log_level = os.getenv("DOCKEV_LOG_LEVEL", "INFO").upper()


def get_config() -> AppConfig:
    return AppConfig()


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
