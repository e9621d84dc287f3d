"""Frame loop, input mapping, and rendering around the round engine."""

from __future__ import annotations

from enum import Enum, auto
from pathlib import Path
import logging
import random
import pygame

from .audio import AudioManager
from .difficulty import get_profile
from .engine import RoundEngine, RoundResult, RoundTransition
from .menu import Menu, MenuItem
from .particles import ParticleSystem
from .settings import GameSettings, SettingsManager
from .storage import JsonRecordStore, RecordStore
from .utils import (
    BG_COLOR,
    FPS,
    GLASS_COLOR,
    GREEN,
    ORANGE,
    PANEL_COLOR,
    RED,
    SCREEN_HEIGHT,
    SCREEN_WIDTH,
    SHADOW_COLOR,
    TEXT_COLOR,
    WATER,
    WATER_LIGHT,
    YELLOW,
    clamp,
    ensure_data_dirs,
)

logger = logging.getLogger(__name__)

VESSEL_RECT = pygame.Rect(SCREEN_WIDTH // 2 - 110, 190, 220, 400)
POUR_BUTTON_CENTER = (SCREEN_WIDTH // 2 - 170, 680)
POUR_BUTTON_RADIUS = 48
CONFIRM_BUTTON_RECT = pygame.Rect(SCREEN_WIDTH // 2 - 40, 650, 180, 60)
RESET_BUTTON_RECT = pygame.Rect(SCREEN_WIDTH // 2 + 170, 650, 120, 60)
STREAM_WIDTH = 14


class GameState(Enum):
    """Finite states for menus and gameplay."""

    MAIN_MENU = auto()
    SETTINGS = auto()
    PLAYING = auto()
    PAUSED = auto()
    RESULT = auto()


class PourGame:
    """Water-pouring skill game with menus, effects, and a persisted record."""

    def __init__(
        self,
        root: Path,
        store: RecordStore | None = None,
        settings_manager: SettingsManager | None = None,
        rng: random.Random | None = None,
    ) -> None:
        pygame.init()
        pygame.font.init()
        ensure_data_dirs()

        self.root = root
        self.settings_manager = settings_manager or SettingsManager()
        self.settings: GameSettings = self.settings_manager.settings

        flags = pygame.FULLSCREEN if self.settings.display.fullscreen else 0
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT), flags)
        pygame.display.set_caption("Pourgame - Fill to the Line")
        self.clock = pygame.time.Clock()

        self.title_font = pygame.font.SysFont("consolas", 52, bold=True)
        self.body_font = pygame.font.SysFont("consolas", 27, bold=True)
        self.small_font = pygame.font.SysFont("consolas", 18)

        self.engine = RoundEngine(
            store=store or JsonRecordStore(),
            profile=get_profile(self.settings.difficulty),
            clock=pygame.time.get_ticks,
            rng=rng,
        )

        self.state = GameState.MAIN_MENU
        self.main_menu = Menu(
            title="POURGAME",
            items=[
                MenuItem("Play", "play"),
                MenuItem("Mode", "mode"),
                MenuItem("Settings", "settings"),
                MenuItem("Clear Record", "clear_record"),
                MenuItem("Exit", "exit"),
            ],
        )
        self.pause_menu = Menu(
            title="PAUSED",
            items=[
                MenuItem("Resume", "resume"),
                MenuItem("Restart Game", "restart"),
                MenuItem("Quit to Menu", "quit"),
            ],
        )
        self._refresh_menu_labels()

        self.particles = ParticleSystem()
        self.audio = AudioManager(self.root)
        self.audio.load_assets()
        self.audio.set_volume(self.settings.master_volume, self.settings.sfx_volume)

        self.last_result: RoundResult | None = None
        self.flash_message = ""
        self.flash_timer = 0

    def _refresh_menu_labels(self) -> None:
        state = self.engine.state
        self.main_menu.relabel("mode", f"Mode: {self.engine.profile.label}")
        if state.best_score:
            stamp = f" ({state.best_score_timestamp})" if state.best_score_timestamp else ""
            self.main_menu.subtitle = f"Best score: {state.best_score}{stamp}"
        else:
            self.main_menu.subtitle = "No record yet"

    def run(self) -> None:
        """Main event/render/update loop."""
        running = True
        while running:
            dt_ms = self.clock.tick(FPS)
            running = self._handle_events()
            if not running:
                break

            if self.state == GameState.PLAYING:
                self._update_playing(dt_ms)
            elif self.state == GameState.RESULT:
                self.particles.update()

            self._render()

        pygame.quit()

    def _handle_events(self) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False

            if event.type == pygame.KEYUP:
                if event.key == pygame.K_SPACE and self.state == GameState.PLAYING:
                    self._stop_pour()
                continue
            if event.type == pygame.MOUSEBUTTONUP:
                if self.state == GameState.PLAYING:
                    self._stop_pour()
                continue
            if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self._handle_click(event.pos)
                continue
            if event.type != pygame.KEYDOWN:
                continue

            if event.key == pygame.K_ESCAPE:
                if self.state == GameState.PLAYING:
                    self._stop_pour()
                    self.state = GameState.PAUSED
                elif self.state in {GameState.PAUSED, GameState.SETTINGS}:
                    self._refresh_menu_labels()
                    self.state = GameState.MAIN_MENU
                elif self.state == GameState.MAIN_MENU:
                    return False
                continue

            if self.state == GameState.MAIN_MENU:
                self._handle_menu_input(self.main_menu, event.key)
            elif self.state == GameState.PAUSED:
                self._handle_menu_input(self.pause_menu, event.key)
            elif self.state == GameState.PLAYING:
                self._handle_gameplay_input(event.key)
            elif self.state == GameState.RESULT:
                if event.key in (pygame.K_SPACE, pygame.K_RETURN):
                    self._advance()
            elif self.state == GameState.SETTINGS:
                self._handle_settings_input(event.key)
        return True

    def _handle_click(self, pos: tuple[int, int]) -> None:
        if self.state == GameState.RESULT:
            self._advance()
        elif self.state == GameState.PLAYING:
            if in_circle(pos, POUR_BUTTON_CENTER, POUR_BUTTON_RADIUS):
                self._start_pour()
            elif CONFIRM_BUTTON_RECT.collidepoint(pos):
                self._confirm()
            elif RESET_BUTTON_RECT.collidepoint(pos):
                self._reset_game()

    def _handle_menu_input(self, menu: Menu, key: int) -> None:
        if key == pygame.K_UP:
            menu.move(-1)
            self.audio.play("menu")
            return
        if key == pygame.K_DOWN:
            menu.move(1)
            self.audio.play("menu")
            return
        if key not in (pygame.K_RETURN, pygame.K_SPACE):
            return

        action = menu.current_action()
        self.audio.play("menu")
        if action == "play":
            self._reset_game()
        elif action == "mode":
            variant = self.settings_manager.cycle_difficulty()
            self.engine.set_profile(get_profile(variant))
            self._refresh_menu_labels()
        elif action == "settings":
            self.state = GameState.SETTINGS
        elif action == "clear_record":
            self.engine.clear_best_score()
            self._refresh_menu_labels()
            logger.info("Best score cleared")
        elif action == "resume":
            self.state = GameState.PLAYING
        elif action == "restart":
            self._reset_game()
        elif action == "quit":
            self._refresh_menu_labels()
            self.state = GameState.MAIN_MENU
        elif action == "exit":
            pygame.event.post(pygame.event.Event(pygame.QUIT))

    def _handle_settings_input(self, key: int) -> None:
        if key == pygame.K_d:
            variant = self.settings_manager.cycle_difficulty()
            self.engine.set_profile(get_profile(variant))
        elif key == pygame.K_1:
            self.settings_manager.adjust_volume("master_volume", -0.05)
        elif key == pygame.K_2:
            self.settings_manager.adjust_volume("master_volume", 0.05)
        elif key == pygame.K_3:
            self.settings_manager.adjust_volume("sfx_volume", -0.05)
        elif key == pygame.K_4:
            self.settings_manager.adjust_volume("sfx_volume", 0.05)
        elif key == pygame.K_t:
            self.settings_manager.toggle_display("show_tolerance_band")
        elif key == pygame.K_p:
            self.settings_manager.toggle_display("particles")
        elif key == pygame.K_BACKSPACE:
            self._refresh_menu_labels()
            self.state = GameState.MAIN_MENU

        self.settings = self.settings_manager.settings
        self.audio.set_volume(self.settings.master_volume, self.settings.sfx_volume)

    def _handle_gameplay_input(self, key: int) -> None:
        if key == pygame.K_SPACE:
            self._start_pour()
        elif key == pygame.K_RETURN:
            self._confirm()
        elif key == pygame.K_r:
            self._reset_game()

    def _start_pour(self) -> None:
        if self.engine.start_filling():
            self.audio.start_pour()

    def _stop_pour(self) -> None:
        self.engine.stop_filling()
        self.audio.stop_pour()

    def _confirm(self) -> None:
        result = self.engine.confirm()
        self.audio.stop_pour()
        if result is None:
            return
        self.last_result = result
        self.state = GameState.RESULT
        if result.new_record:
            self.audio.play("record")
        else:
            self.audio.play("success" if result.is_success else "fail")
        if result.is_success and self.settings.display.particles:
            surface_y = level_to_y(result.final_level, VESSEL_RECT)
            self.particles.emit_celebration((VESSEL_RECT.centerx, surface_y), [YELLOW, GREEN, WATER_LIGHT, ORANGE])

    def _advance(self) -> None:
        transition = self.engine.advance_after_result(self.last_result)
        self.last_result = None
        self.particles.clear()
        self.state = GameState.PLAYING
        if transition == RoundTransition.NEXT:
            self._flash(f"Round {self.engine.state.round_number}")
        elif transition == RoundTransition.RETRY:
            self._flash(f"Try again - {self.engine.state.attempts_left} attempts left")
        elif transition == RoundTransition.RESET:
            self._flash("New game")

    def _reset_game(self) -> None:
        self.audio.stop_pour()
        self.engine.reset_game()
        self.last_result = None
        self.particles.clear()
        self.state = GameState.PLAYING
        self._flash(f"{self.engine.profile.label} - Round 1")

    def _flash(self, message: str) -> None:
        self.flash_message = message
        self.flash_timer = FPS * 2

    def _update_playing(self, dt_ms: float) -> None:
        state = self.engine.state
        was_expired = state.time_expired
        self.engine.tick(dt_ms)

        if state.time_expired and not was_expired:
            self.audio.stop_pour()
            self._flash("Time's up! Press Enter to confirm")
        if not state.is_filling:
            self.audio.stop_pour()
        elif self.settings.display.particles:
            self.particles.emit_splash((VESSEL_RECT.centerx, level_to_y(state.current_level, VESSEL_RECT)), WATER_LIGHT)

        self.particles.update()
        if self.flash_timer > 0:
            self.flash_timer -= 1

    def _render(self) -> None:
        frame = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), pygame.SRCALPHA)
        if self.state == GameState.MAIN_MENU:
            self.main_menu.render(frame, self.title_font, self.body_font, self.small_font)
        elif self.state == GameState.PAUSED:
            self._render_playfield(frame)
            overlay = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), pygame.SRCALPHA)
            overlay.fill((0, 0, 0, 135))
            frame.blit(overlay, (0, 0))
            self.pause_menu.render(frame, self.title_font, self.body_font, fill=False)
        elif self.state == GameState.SETTINGS:
            self._render_settings(frame)
        else:
            self._render_playfield(frame)
            if self.state == GameState.RESULT:
                self._render_result_overlay(frame)

        self.screen.fill((0, 0, 0))
        self.screen.blit(frame, (0, 0))
        pygame.display.flip()

    def _render_playfield(self, surface: pygame.Surface) -> None:
        surface.fill(BG_COLOR)
        state = self.engine.state

        self._render_hud(surface)
        self._draw_vessel(surface)
        if state.is_filling:
            top = VESSEL_RECT.top - 70
            bottom = level_to_y(state.current_level, VESSEL_RECT)
            stream = pygame.Rect(VESSEL_RECT.centerx - STREAM_WIDTH // 2, top, STREAM_WIDTH, bottom - top)
            pygame.draw.rect(surface, (*WATER_LIGHT, 200), stream, border_radius=6)
        self.particles.draw(surface)
        self._draw_controls(surface)

        if state.timed:
            self._draw_timer(surface)

        if self.flash_timer > 0 and self.flash_message:
            msg = self.body_font.render(self.flash_message, True, GREEN)
            surface.blit(msg, (SCREEN_WIDTH // 2 - msg.get_width() // 2, 140))

    def _render_hud(self, surface: pygame.Surface) -> None:
        state = self.engine.state
        title = self.body_font.render(self.engine.profile.label.upper(), True, YELLOW)
        surface.blit(title, (20, 15))

        best = f"Best: {state.best_score}"
        if state.best_score_timestamp:
            best += f" ({state.best_score_timestamp})"
        lines = [
            (f"Round {state.round_number}", TEXT_COLOR),
            (f"Score {state.score}", TEXT_COLOR),
            (best, ORANGE),
        ]
        for idx, (line, color) in enumerate(lines):
            text = self.small_font.render(line, True, color)
            surface.blit(text, (20 + idx * 170, 60))

        target = self.body_font.render(
            f"Target {state.target_level}% (±{state.allowed_error:.1f}%)", True, YELLOW
        )
        surface.blit(target, (SCREEN_WIDTH // 2 - target.get_width() // 2, 95))
        attempts = self.small_font.render(f"Attempts left: {state.attempts_left}", True, TEXT_COLOR)
        surface.blit(attempts, (SCREEN_WIDTH - attempts.get_width() - 20, 60))

        helper = self.small_font.render("Hold Space to pour | Enter confirm | R restart | ESC pause", True, TEXT_COLOR)
        surface.blit(helper, (20, SCREEN_HEIGHT - 28))

    def _draw_vessel(self, surface: pygame.Surface) -> None:
        state = self.engine.state
        pygame.draw.rect(surface, PANEL_COLOR, VESSEL_RECT, border_radius=10)

        water_top = level_to_y(state.current_level, VESSEL_RECT)
        if state.current_level > 0:
            water = pygame.Rect(VESSEL_RECT.left, water_top, VESSEL_RECT.width, VESSEL_RECT.bottom - water_top)
            pygame.draw.rect(surface, WATER, water, border_radius=10)
            pygame.draw.line(surface, WATER_LIGHT, (water.left + 4, water_top), (water.right - 4, water_top), 3)

        if self.settings.display.show_tolerance_band:
            band_top = level_to_y(min(100.0, state.target_level + state.allowed_error), VESSEL_RECT)
            band_bottom = level_to_y(max(0.0, state.target_level - state.allowed_error), VESSEL_RECT)
            band = pygame.Surface((VESSEL_RECT.width, max(2, band_bottom - band_top)), pygame.SRCALPHA)
            band.fill((*GREEN, 60))
            surface.blit(band, (VESSEL_RECT.left, band_top))

        target_y = level_to_y(state.target_level, VESSEL_RECT)
        for x in range(VESSEL_RECT.left - 20, VESSEL_RECT.right + 20, 16):
            pygame.draw.line(surface, RED, (x, target_y), (x + 8, target_y), 3)
        label = self.small_font.render(f"{state.target_level}%", True, RED)
        surface.blit(label, (VESSEL_RECT.right + 28, target_y - label.get_height() // 2))

        level = self.small_font.render(f"{state.current_level:.0f}%", True, TEXT_COLOR)
        surface.blit(level, (VESSEL_RECT.left - level.get_width() - 28, water_top - level.get_height() // 2))

        pygame.draw.rect(surface, GLASS_COLOR, VESSEL_RECT, width=4, border_radius=10)

    def _draw_controls(self, surface: pygame.Surface) -> None:
        state = self.engine.state
        can_pour = not (state.round_ended or state.time_expired)
        pour_color = WATER_LIGHT if state.is_filling else (WATER if can_pour else SHADOW_COLOR)
        pygame.draw.circle(surface, pour_color, POUR_BUTTON_CENTER, POUR_BUTTON_RADIUS)
        text = self.small_font.render("POUR", True, TEXT_COLOR)
        surface.blit(text, text.get_rect(center=POUR_BUTTON_CENTER))

        confirm_color = GREEN if state.current_level > 0 else SHADOW_COLOR
        pygame.draw.rect(surface, confirm_color, CONFIRM_BUTTON_RECT, border_radius=12)
        text = self.body_font.render("CONFIRM", True, BG_COLOR)
        surface.blit(text, text.get_rect(center=CONFIRM_BUTTON_RECT.center))

        pygame.draw.rect(surface, ORANGE, RESET_BUTTON_RECT, width=3, border_radius=12)
        text = self.small_font.render("RESTART", True, ORANGE)
        surface.blit(text, text.get_rect(center=RESET_BUTTON_RECT.center))

    def _draw_timer(self, surface: pygame.Surface) -> None:
        state = self.engine.state
        fraction = clamp(state.time_remaining_ms / max(1, state.time_budget_ms), 0.0, 1.0)
        outline = pygame.Rect(VESSEL_RECT.left, VESSEL_RECT.bottom + 16, VESSEL_RECT.width, 12)
        fill = outline.copy()
        fill.width = int(outline.width * fraction)
        color = RED if state.time_expired or fraction < 0.25 else YELLOW
        pygame.draw.rect(surface, color, fill, border_radius=6)
        pygame.draw.rect(surface, GLASS_COLOR, outline, width=1, border_radius=6)
        seconds = self.small_font.render(f"{state.time_remaining_ms / 1000:.1f}s", True, color)
        surface.blit(seconds, (outline.right + 10, outline.centery - seconds.get_height() // 2))

    def _render_result_overlay(self, surface: pygame.Surface) -> None:
        overlay = pygame.Surface((SCREEN_WIDTH, SCREEN_HEIGHT), pygame.SRCALPHA)
        overlay.fill((4, 8, 16, 165))
        surface.blit(overlay, (0, 0))

        result = self.last_result
        if result is None:
            return

        if result.game_over:
            headline, color, prompt = "GAME OVER", RED, "Press Space/Enter to start over"
        elif result.is_success:
            headline, color, prompt = "PERFECT POUR!", GREEN, "Press Space/Enter for the next round"
        else:
            headline, color = f"{result.attempts_left} ATTEMPTS LEFT", RED
            prompt = "Press Space/Enter to try again"

        score_text = f"+{result.score_change} points" if result.is_success else "No points"
        rows = [
            (self.title_font.render(headline, True, color), -150),
            (self.body_font.render(f"Target {result.target_level}%  Actual {result.final_level:.0f}%", True, TEXT_COLOR), -70),
            (
                self.body_font.render(
                    f"Error {result.error:.1f}% (allowed ±{result.allowed_error:.1f}%)",
                    True,
                    GREEN if result.is_success else RED,
                ),
                -30,
            ),
            (self.body_font.render(score_text, True, YELLOW), 20),
        ]
        if result.new_record:
            rows.append((self.body_font.render("NEW RECORD!", True, ORANGE), 60))
        rows.append((self.small_font.render(prompt, True, TEXT_COLOR), 120))

        for text, offset in rows:
            surface.blit(text, (SCREEN_WIDTH // 2 - text.get_width() // 2, SCREEN_HEIGHT // 2 + offset))
        self.particles.draw(surface)

    def _render_settings(self, surface: pygame.Surface) -> None:
        surface.fill(BG_COLOR)
        title = self.title_font.render("SETTINGS", True, YELLOW)
        surface.blit(title, (SCREEN_WIDTH // 2 - title.get_width() // 2, 56))

        lines = [
            f"Mode [D]: {self.engine.profile.label}",
            f"Master Volume [1/2]: {self.settings.master_volume:.2f}",
            f"SFX Volume [3/4]: {self.settings.sfx_volume:.2f}",
            f"Tolerance Band [T]: {self.settings.display.show_tolerance_band}",
            f"Particles [P]: {self.settings.display.particles}",
            "Back: ESC or Backspace",
        ]
        for idx, line in enumerate(lines):
            text = self.body_font.render(line, True, TEXT_COLOR)
            surface.blit(text, (120, 180 + idx * 45))


def level_to_y(level: float, vessel: pygame.Rect) -> int:
    """Map a fill percentage onto a screen row inside the vessel."""
    fraction = clamp(level, 0.0, 100.0) / 100.0
    return int(vessel.bottom - vessel.height * fraction)


def in_circle(point: tuple[int, int], center: tuple[int, int], radius: int) -> bool:
    """Hit test for round buttons."""
    dx = point[0] - center[0]
    dy = point[1] - center[1]
    return dx * dx + dy * dy <= radius * radius
