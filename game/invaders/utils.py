"""
Utility functions for game mechanics
"""

from __future__ import annotations
import random
from typing import Tuple, Optional
import numpy as np


def clamp(x: float, lo: float, hi: float) -> float:
    """Clamp value between low and high bounds"""
    return lo if x < lo else hi if x > hi else x


def rect_overlap(a, b) -> bool:
    """Check if two axis-aligned boxes overlap.

    Both objects need x, y, width, height. Touching edges do not count.
    """
    return (
        a.x < b.x + b.width
        and a.x + a.width > b.x
        and a.y < b.y + b.height
        and a.y + a.height > b.y
    )


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Convert '#RRGGBB' (or '#RGB', '#RRGGBBAA') to an RGB tuple"""
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(c * 2 for c in value)
    if len(value) not in (6, 8):
        raise ValueError(f"Invalid color: {color!r}")
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        raise ValueError(f"Invalid color: {color!r}") from None


def format_time(ms: float) -> str:
    """Format milliseconds as M:SS, negative values show as 0:00"""
    ms = max(0, int(ms))
    minutes = ms // 60000
    seconds = (ms % 60000) // 1000
    return f"{minutes}:{seconds:02d}"


def seed_everything(py_seed: Optional[int]):
    """Seed all random number generators"""
    if py_seed is None:
        return
    random.seed(py_seed)
    np.random.seed(py_seed)


def shade(color: str, factor: float) -> str:
    """Scale a hex color's brightness by factor, returned as '#RRGGBB'"""
    r, g, b = (int(round(clamp(c * factor, 0, 255))) for c in hex_to_rgb(color))
    return f"#{r:02X}{g:02X}{b:02X}"
