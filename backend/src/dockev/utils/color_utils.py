from __future__ import annotations

import random
from typing import Iterable, Optional

DEFAULT_COLOR_PALETTE = (
    "#6366F1",  # indigo
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#F43F5E",  # rose
    "#EF4444",  # red
    "#F59E0B",  # amber
    "#10B981",  # emerald
    "#06B6D4",  # cyan
    "#3B82F6",  # blue
    "#14B8A6",  # teal
    "#F97316",  # orange
    "#84CC16",  # lime
)

DEFAULT_PROJECT_COLOR = "#6366F1"


def get_random_color(exclude_colors: Iterable[str] = ()) -> str:
    """Pick a palette color not in ``exclude_colors``, or the default when all are taken."""
    excluded = set(exclude_colors)
    available = [color for color in DEFAULT_COLOR_PALETTE if color not in excluded]
    if not available:
        return DEFAULT_PROJECT_COLOR
    return random.choice(available)


def get_project_color(color: Optional[str] = None, existing_colors: Iterable[str] = ()) -> str:
    if color and color.strip():
        return color.strip()
    return get_random_color(existing_colors)
