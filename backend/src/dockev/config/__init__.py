from .app_config import AppConfig, configure_logging, get_config

__all__ = ["AppConfig", "configure_logging", "get_config"]
