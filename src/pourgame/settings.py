"""Settings persistence and runtime configuration."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path

from .difficulty import DifficultyVariant
from .utils import SETTINGS_FILE, load_json, save_json


@dataclass(slots=True)
class DisplaySettings:
    """Display-related options."""

    fullscreen: bool = False
    show_tolerance_band: bool = True
    particles: bool = True


@dataclass(slots=True)
class GameSettings:
    """Persistent settings for the game."""

    master_volume: float = 0.8
    sfx_volume: float = 0.8
    difficulty: DifficultyVariant = DifficultyVariant.CLASSIC
    display: DisplaySettings = field(default_factory=DisplaySettings)


class SettingsManager:
    """Load, save, and mutate game settings."""

    def __init__(self, path: Path = SETTINGS_FILE) -> None:
        self.path = path
        self.settings = self.load()

    def load(self) -> GameSettings:
        """Load game settings from disk with safe defaults."""
        raw = load_json(self.path, {})
        settings = GameSettings()
        if not isinstance(raw, dict):
            return settings

        settings.master_volume = _volume(raw.get("master_volume"), settings.master_volume)
        settings.sfx_volume = _volume(raw.get("sfx_volume"), settings.sfx_volume)

        if raw.get("difficulty") in {e.value for e in DifficultyVariant}:
            settings.difficulty = DifficultyVariant(raw["difficulty"])

        display = raw.get("display", {})
        if isinstance(display, dict):
            settings.display.fullscreen = bool(display.get("fullscreen", settings.display.fullscreen))
            settings.display.show_tolerance_band = bool(
                display.get("show_tolerance_band", settings.display.show_tolerance_band)
            )
            settings.display.particles = bool(display.get("particles", settings.display.particles))
        return settings

    def save(self) -> None:
        """Persist settings to disk."""
        payload = asdict(self.settings)
        payload["difficulty"] = self.settings.difficulty.value
        save_json(self.path, payload)

    def set_difficulty(self, variant: DifficultyVariant) -> None:
        """Update difficulty and persist settings."""
        self.settings.difficulty = variant
        self.save()

    def cycle_difficulty(self) -> DifficultyVariant:
        """Cycle difficulty and persist settings."""
        order = list(DifficultyVariant)
        idx = order.index(self.settings.difficulty)
        self.set_difficulty(order[(idx + 1) % len(order)])
        return self.settings.difficulty

    def adjust_volume(self, field_name: str, delta: float) -> None:
        """Adjust a volume setting and save."""
        value = float(getattr(self.settings, field_name))
        setattr(self.settings, field_name, max(0.0, min(1.0, value + delta)))
        self.save()

    def toggle_display(self, field_name: str) -> bool:
        """Flip a display flag and save."""
        value = not getattr(self.settings.display, field_name)
        setattr(self.settings.display, field_name, value)
        self.save()
        return value


def _volume(value: object, default: float) -> float:
    try:
        return max(0.0, min(1.0, float(value)))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
