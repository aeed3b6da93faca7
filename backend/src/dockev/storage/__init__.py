from .backends import PROJECTS_KEY, SETTINGS_KEY, JsonFileStore, KeyValueStore, MemoryStore

__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore", "PROJECTS_KEY", "SETTINGS_KEY"]
