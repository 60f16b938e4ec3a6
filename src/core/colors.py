"""Tab group color palette and normalization helpers."""

from __future__ import annotations

import math
from typing import Optional

from core.models import DEFAULT_COLOR

# Order matters: AI groups without a color take palette[index % len(palette)].
PALETTE = ["blue", "red", "green", "yellow", "purple", "cyan", "orange", "pink", "grey"]

HEX_TO_COLOR = {
    "#4285F4": "blue",
    "#EA4335": "red",
    "#34A853": "green",
    "#FBBC05": "yellow",
    "#A142F4": "purple",
    "#24C1E0": "cyan",
    "#FA7B17": "orange",
    "#F06292": "pink",
    "#9AA0A6": "grey",
}


def _hex_to_rgb(value: str) -> Optional[tuple[int, int, int]]:
    digits = value.lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) != 6:
        return None
    try:
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)
    except ValueError:
        return None


def nearest_palette_color(hex_color: str) -> str:
    """Map an arbitrary hex color to the closest palette color (RGB distance)."""

    exact = HEX_TO_COLOR.get(hex_color.upper())
    if exact:
        return exact

    rgb = _hex_to_rgb(hex_color)
    if rgb is None:
        return DEFAULT_COLOR

    closest = DEFAULT_COLOR
    best = math.inf
    for palette_hex, name in HEX_TO_COLOR.items():
        other = _hex_to_rgb(palette_hex)
        distance = math.dist(rgb, other)
        if distance < best:
            best = distance
            closest = name
    return closest


def normalize_color(color: Optional[str], fallback: str = DEFAULT_COLOR) -> str:
    """Return a palette color name for a name, a hex value, or nothing."""

    if not color:
        return fallback
    value = color.strip()
    if value.startswith("#"):
        return nearest_palette_color(value)
    lowered = value.lower()
    if lowered == "gray":
        return "grey"
    if lowered in PALETTE:
        return lowered
    return fallback


def palette_color(index: int) -> str:
    return PALETTE[index % len(PALETTE)]
