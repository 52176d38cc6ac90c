"""
Default configuration values and lookup tables for the wave calendar.

This module provides the fixed constants of the simulation (grid size, calendar
shape, impulse timing) and the category table used to weight calendar events.
"""

from typing import Dict, Optional, Tuple
import math


# ============================================
# Simulation Defaults
# ============================================

DEFAULT_GRID_SIZE = 128
DEFAULT_VISCOSITY = 0.985
DEFAULT_BOUNDS = 14.0
DEFAULT_DT = 1.0 / 60.0
DEFAULT_BOUNDARY = 'clamp'

# Forcing shapes (physical units)
POINTER_RADIUS = 0.6
POINTER_DEPTH = 0.02
IMPULSE_RADIUS = 1.0
IMPULSE_DEPTH = 0.1

# ============================================
# Calendar Layout
# ============================================

CALENDAR_ROWS = 6  # weeks
CALENDAR_COLS = 7  # weekdays, Monday first
IMPULSE_CAPACITY = CALENDAR_ROWS * CALENDAR_COLS

# ============================================
# Event Impulses
# ============================================

SCALE_CONSTANT = 0.15
IMPULSE_STAGGER = 0.5  # seconds between consecutive onsets
IMPULSE_DURATION = 0.1  # seconds
DROP_INTENSITY = 0.5
DROP_CAPACITY = 8

DEFAULT_MULTIPLIER = 1.0
DEFAULT_EVENT_COLOR = '#3b82f6'

# key -> (label, multiplier, color)
EVENT_CATEGORIES: Dict[str, Tuple[str, float, str]] = {
    'mutui': ('Mutui', 1.20, '#dc2626'),
    'riscossione': ('Riscossione', 1.15, '#ea580c'),
    'stipendi': ('Stipendi', 1.10, '#ca8a04'),
    'imposte': ('Imposte', 1.05, '#16a34a'),
    'altro': ('Altro', 1.00, '#2563eb'),
}

# ============================================
# Shading
# ============================================

THEMES: Dict[str, Dict[str, object]] = {
    'dark': {'base': '#0c1929', 'crest': '#3b82f6', 'ambient': 0.2},
    'light': {'base': '#1e40af', 'crest': '#93c5fd', 'ambient': 0.4},
}

LIGHT_DIRECTION = (0.5, 1.0, 0.3)
SPECULAR_POWER = 32.0
CAMERA_POSITION = (0.0, 12.0, 12.0)
CAMERA_FOV = 50.0


# ============================================
# Lookup Functions
# ============================================

def category_multiplier(category: Optional[str]) -> float:
    """
    Look up the weight multiplier for an event category.

    Unknown or missing categories fall back to 1.0.
    """
    entry = EVENT_CATEGORIES.get(category) if category is not None else None
    if entry is None:
        return DEFAULT_MULTIPLIER
    return entry[1]


def category_color(category: Optional[str]) -> str:
    """Marker color for an event category."""
    entry = EVENT_CATEGORIES.get(category) if category is not None else None
    if entry is None:
        return DEFAULT_EVENT_COLOR
    return entry[2]


def compute_intensity(amount: Optional[float], category: Optional[str],
                      scale: float = SCALE_CONSTANT) -> float:
    """
    Map an event amount to an impulse intensity.

    intensity = log10(amount + 1) * multiplier * scale

    Args:
        amount: Non-negative event amount (None counts as 0)
        category: Category key
        scale: Global scale constant

    Returns:
        Intensity >= 0
    """
    if amount is None or not math.isfinite(amount) or amount < 0:
        amount = 0.0
    return math.log10(amount + 1.0) * category_multiplier(category) * scale


def hex_to_rgb(color: str) -> Tuple[float, float, float]:
    """Convert '#rrggbb' to an RGB triple in [0, 1]."""
    value = color.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Expected #rrggbb color, got {color!r}")
    return tuple(int(value[i:i + 2], 16) / 255.0 for i in (0, 2, 4))
