"""Category colour palette."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

PREDEFINED_COLORS = (
    "#F59E0B",  # amber
    "#3B82F6",  # blue
    "#8B5CF6",  # purple
    "#10B981",  # emerald
    "#F97316",  # orange
    "#EF4444",  # red
    "#06B6D4",  # cyan
    "#84CC16",  # lime
    "#F472B6",  # pink
    "#6366F1",  # indigo
)

UNCATEGORIZED_COLOR = "#6B7280"

UI_COLORS = {
    "primary": "#4F46E5",
    "secondary": "#6B7280",
    "success": "#10B981",
    "warning": "#F59E0B",
    "error": "#EF4444",
    "info": "#3B82F6",
}

STATUS_COLORS = {
    "green": UI_COLORS["success"],
    "good": UI_COLORS["success"],
    "yellow": UI_COLORS["warning"],
    "warning": UI_COLORS["warning"],
    "red": UI_COLORS["error"],
    "danger": UI_COLORS["error"],
    "gray": UI_COLORS["secondary"],
}


def _stable_hash(seed: str) -> int:
    # 32-bit string hash so a category keeps its colour across processes.
    h = 0
    for ch in seed:
        h = (ord(ch) + ((h << 5) - h)) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return h


def color_for(category_id=None, name: Optional[str] = None, stored: Optional[Mapping] = None) -> str:
    """Colour of a category: its stored colour, grey when uncategorized, else a stable pick."""
    if stored and category_id in stored and stored[category_id]:
        return stored[category_id]
    if category_id in ("uncategorized", "default") or (category_id is None and not name):
        return UNCATEGORIZED_COLOR
    seed = str(category_id or name or "default")
    return PREDEFINED_COLORS[abs(_stable_hash(seed)) % len(PREDEFINED_COLORS)]


def next_available_color(used: Iterable[str]) -> str:
    """First palette colour not in ``used``; cycles once every colour is taken."""
    used = [u.upper() for u in used if u]
    for color in PREDEFINED_COLORS:
        if color.upper() not in used:
            return color
    return PREDEFINED_COLORS[len(used) % len(PREDEFINED_COLORS)]


def is_hex_color(value: str) -> bool:
    if not isinstance(value, str) or len(value) != 7 or not value.startswith("#"):
        return False
    try:
        int(value[1:], 16)
    except ValueError:
        return False
    return True


def with_opacity(color: str, opacity: float = 0.1) -> str:
    r = int(color[1:3], 16)
    g = int(color[3:5], 16)
    b = int(color[5:7], 16)
    return f"rgba({r}, {g}, {b}, {opacity})"
