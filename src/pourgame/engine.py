"""Round/scoring state machine for the pouring game."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable
import logging
import random
import time

from .difficulty import TARGET_MAX, TARGET_MIN, DifficultyProfile, DifficultyVariant, get_profile
from .storage import BEST_SCORE_KEY, BEST_SCORE_TIME_KEY, RecordStore
from .utils import round_half_up

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
MAX_LEVEL = 100.0


class RoundTransition(str, Enum):
    """What advance_after_result did."""

    NEXT = "next"
    RETRY = "retry"
    RESET = "reset"


@dataclass(slots=True)
class RoundState:
    """Everything a renderer needs to draw one frame.

    Only RoundEngine writes to this; everyone else reads a snapshot.
    """

    round_number: int = 1
    attempts: int = 0
    max_attempts: int = MAX_ATTEMPTS
    target_level: int = 0
    current_level: float = 0.0
    is_filling: bool = False
    allowed_error: float = 0.0
    fill_rate: float = 0.0
    score: int = 0
    best_score: int = 0
    best_score_timestamp: str = ""
    round_ended: bool = False
    game_over: bool = False
    new_record_achieved: bool = False
    timed: bool = False
    time_budget_ms: int = 0
    time_remaining_ms: float = 0.0
    time_expired: bool = False

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts)


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Outcome of a single confirm, kept for the result overlay."""

    is_success: bool
    error: float
    score_change: int
    target_level: int
    final_level: float
    allowed_error: float
    attempts_left: int
    new_record: bool
    game_over: bool


def format_record_time(moment: datetime) -> str:
    """Render a timestamp the way the best-score banner shows it."""
    return f"{moment.month}/{moment.day} {moment.hour:02d}:{moment.minute:02d}"


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class RoundEngine:
    """Owns RoundState and advances it from commands and ticks."""

    def __init__(
        self,
        store: RecordStore,
        profile: DifficultyProfile | None = None,
        clock: Callable[[], float] = _monotonic_ms,
        now: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.profile = profile or get_profile(DifficultyVariant.CLASSIC)
        self.clock = clock
        self.now = now
        self.rng = rng or random.Random()
        self.state = RoundState(timed=self.profile.timed)
        self._countdown_anchor = self.clock()
        self._load_best_score()
        self.start_new_round()

    def snapshot(self) -> RoundState:
        """Return a copy of the state that callers may keep or mutate."""
        return replace(self.state)

    def _load_best_score(self) -> None:
        raw_score = self.store.get(BEST_SCORE_KEY)
        raw_time = self.store.get(BEST_SCORE_TIME_KEY)
        try:
            best = int(raw_score) if raw_score else 0
        except (TypeError, ValueError):
            logger.warning("Discarding unreadable best score %r", raw_score)
            best = 0
        self.state.best_score = max(0, best)
        self.state.best_score_timestamp = (raw_time or "") if best > 0 else ""

    def _apply_difficulty(self) -> None:
        state = self.state
        state.allowed_error = self.profile.tolerance(state.round_number)
        state.fill_rate = self.profile.fill_rate(state.round_number)

    def _restart_countdown(self) -> None:
        state = self.state
        state.time_remaining_ms = float(state.time_budget_ms)
        state.time_expired = False
        self._countdown_anchor = self.clock()

    def set_profile(self, profile: DifficultyProfile) -> None:
        """Switch difficulty profile and start a fresh game with it."""
        self.profile = profile
        self.state.timed = profile.timed
        self.reset_game()

    def start_new_round(self) -> None:
        """Draw a new target and reset the per-round state."""
        state = self.state
        state.target_level = self.rng.randint(TARGET_MIN, TARGET_MAX)
        state.current_level = 0.0
        state.is_filling = False
        state.round_ended = False
        state.attempts = 0
        state.new_record_achieved = False
        self._apply_difficulty()

        budget = self.profile.time_budget(state.target_level, state.fill_rate)
        state.time_budget_ms = budget or 0
        if self.profile.timed:
            self._restart_countdown()
        else:
            state.time_remaining_ms = 0.0
            state.time_expired = False
        logger.debug(
            "Round %d: target=%d tolerance=%.2f rate=%.2f budget=%sms",
            state.round_number,
            state.target_level,
            state.allowed_error,
            state.fill_rate,
            budget,
        )

    def retry_round(self) -> None:
        """Empty the vessel and try the same target again."""
        state = self.state
        state.current_level = 0.0
        state.is_filling = False
        state.round_ended = False
        if self.profile.timed:
            self._restart_countdown()

    def reset_game(self) -> None:
        """Back to round one with a zero score; the best score stays."""
        state = self.state
        state.round_number = 1
        state.score = 0
        state.attempts = 0
        state.game_over = False
        self.start_new_round()

    def start_filling(self) -> bool:
        state = self.state
        if state.is_filling or state.round_ended or state.time_expired:
            return False
        state.is_filling = True
        return True

    def stop_filling(self) -> bool:
        if not self.state.is_filling:
            return False
        self.state.is_filling = False
        return True

    def tick(self, elapsed_ms: float | None = None) -> bool:
        """Advance one frame. Returns whether anything visible changed.

        The level rises by a fixed step per tick; elapsed_ms only drives the
        countdown of timed profiles. When omitted, the clock supplies it.
        """
        state = self.state
        if state.round_ended:
            return False

        changed = False
        if self.profile.timed:
            if state.time_expired:
                return False
            now = self.clock()
            if elapsed_ms is None:
                elapsed_ms = now - self._countdown_anchor
            self._countdown_anchor = now
            if elapsed_ms > 0:
                state.time_remaining_ms -= elapsed_ms
                changed = True
            if state.time_remaining_ms <= 0:
                state.time_remaining_ms = 0.0
                state.time_expired = True
                self.stop_filling()
                logger.debug("Round %d: time expired at level %.1f", state.round_number, state.current_level)
                return True

        if not state.is_filling:
            return changed

        state.current_level += state.fill_rate
        if state.current_level >= MAX_LEVEL:
            state.current_level = MAX_LEVEL
            self.stop_filling()
        return True

    def confirm(self) -> RoundResult | None:
        """Judge the current level. Returns None if the round already ended."""
        state = self.state
        if state.round_ended:
            return None

        state.round_ended = True
        self.stop_filling()
        state.attempts += 1

        error = abs(state.current_level - state.target_level)
        shown_error = round_half_up(error, 1)
        is_success = error <= state.allowed_error

        score_change = 0
        if is_success:
            base_score = 50 + state.round_number * 10
            score_change = int(round_half_up(base_score + (state.allowed_error - error) * 10))
            state.score += score_change

        new_record = state.score > state.best_score
        if new_record:
            self._record_best_score()

        if not is_success and state.attempts >= state.max_attempts:
            state.game_over = True

        logger.info(
            "Round %d attempt %d: level=%.1f target=%d error=%.1f %s (+%d)",
            state.round_number,
            state.attempts,
            state.current_level,
            state.target_level,
            shown_error,
            "success" if is_success else "miss",
            score_change,
        )
        return RoundResult(
            is_success=is_success,
            error=shown_error,
            score_change=score_change,
            target_level=state.target_level,
            final_level=state.current_level,
            allowed_error=state.allowed_error,
            attempts_left=state.attempts_left,
            new_record=new_record,
            game_over=state.game_over,
        )

    def _record_best_score(self) -> None:
        state = self.state
        state.best_score = state.score
        state.best_score_timestamp = format_record_time(self.now())
        self.store.set(BEST_SCORE_KEY, str(state.best_score))
        self.store.set(BEST_SCORE_TIME_KEY, state.best_score_timestamp)
        state.new_record_achieved = True
        logger.info("New best score %d at %s", state.best_score, state.best_score_timestamp)

    def advance_after_result(self, last_result: RoundResult | None) -> RoundTransition | None:
        """Move on after a confirmed round.

        Game over resets everything, a success moves to the next round and a
        miss retries the same target. Without a pending result nothing happens.
        """
        state = self.state
        if state.game_over:
            self.reset_game()
            return RoundTransition.RESET
        if last_result is None or not state.round_ended:
            return None
        if last_result.is_success:
            state.round_number += 1
            self.start_new_round()
            return RoundTransition.NEXT
        self.retry_round()
        return RoundTransition.RETRY

    def clear_best_score(self) -> None:
        """Forget the stored record without touching the running game."""
        self.state.best_score = 0
        self.state.best_score_timestamp = ""
        self.state.new_record_achieved = False
        self.store.remove(BEST_SCORE_KEY)
        self.store.remove(BEST_SCORE_TIME_KEY)
