"""Shared constants and utility helpers for Pourgame."""

from __future__ import annotations

from pathlib import Path
from typing import Any
import json
import math

SCREEN_WIDTH = 900
SCREEN_HEIGHT = 760
FPS = 60

BG_COLOR = (8, 14, 30)
PANEL_COLOR = (18, 30, 58)
GLASS_COLOR = (150, 200, 235)
TEXT_COLOR = (220, 238, 255)
SHADOW_COLOR = (15, 24, 45)

WATER = (40, 150, 255)
WATER_LIGHT = (120, 200, 255)
YELLOW = (255, 233, 68)
ORANGE = (255, 130, 40)
GREEN = (93, 255, 100)
RED = (255, 107, 107)

Color = tuple[int, int, int]

DATA_DIR = Path(".pourgame")
SETTINGS_FILE = DATA_DIR / "settings.json"
RECORDS_FILE = DATA_DIR / "records.json"


def ensure_data_dirs() -> None:
    """Create the data directory for save files."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp a value into a closed interval."""
    return max(minimum, min(maximum, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves towards positive infinity instead of to even."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def load_json(path: Path, default: Any) -> Any:
    """Load JSON data, returning default when missing or malformed."""
    if not path.exists():
        return default
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (ValueError, OSError):
        return default


def save_json(path: Path, payload: Any) -> None:
    """Save JSON data with deterministic formatting."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
