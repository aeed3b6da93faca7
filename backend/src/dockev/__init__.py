"""Dockev backend: project registry, detection and launch helpers."""

__version__ = "0.3.0"
