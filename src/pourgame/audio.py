"""Audio loading and playback wrappers."""

from __future__ import annotations

from pathlib import Path
import pygame

SOUND_NAMES = ("pour", "success", "fail", "record", "menu")


class AudioManager:
    """Loads and plays sound effects with graceful fallback when assets are absent."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.sound_enabled = False
        self.sounds: dict[str, pygame.mixer.Sound] = {}
        self.pour_channel: pygame.mixer.Channel | None = None
        try:
            pygame.mixer.init()
            self.sound_enabled = True
        except pygame.error:
            self.sound_enabled = False

    def load_assets(self) -> None:
        """Load available audio files from the assets folder."""
        if not self.sound_enabled:
            return
        for key in SOUND_NAMES:
            path = self.root / "assets" / "sounds" / f"{key}.wav"
            if path.exists():
                try:
                    self.sounds[key] = pygame.mixer.Sound(str(path))
                except pygame.error:
                    continue

    def set_volume(self, master: float, sfx: float) -> None:
        """Apply current volume settings."""
        for sound in self.sounds.values():
            sound.set_volume(master * sfx)

    def play(self, key: str) -> None:
        """Play a named sound effect."""
        sound = self.sounds.get(key)
        if sound:
            sound.play()

    def start_pour(self) -> None:
        """Loop the pouring sound until stop_pour is called."""
        sound = self.sounds.get("pour")
        if sound and self.pour_channel is None:
            self.pour_channel = sound.play(loops=-1)

    def stop_pour(self) -> None:
        if self.pour_channel is not None:
            self.pour_channel.stop()
            self.pour_channel = None
