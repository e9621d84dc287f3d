from __future__ import annotations

from datetime import datetime
import random

import pytest

from pourgame.difficulty import DifficultyVariant, get_profile
from pourgame.engine import MAX_ATTEMPTS, RoundEngine, RoundTransition, format_record_time
from pourgame.storage import BEST_SCORE_KEY, BEST_SCORE_TIME_KEY, MemoryRecordStore


class FakeClock:
    def __init__(self) -> None:
        self.ms = 0.0

    def __call__(self) -> float:
        return self.ms


def _engine(
    variant: DifficultyVariant = DifficultyVariant.CLASSIC,
    store: MemoryRecordStore | None = None,
    clock: FakeClock | None = None,
    seed: int = 7,
) -> RoundEngine:
    return RoundEngine(
        store=store if store is not None else MemoryRecordStore(),
        profile=get_profile(variant),
        clock=clock or FakeClock(),
        now=lambda: datetime(2024, 3, 7, 9, 5),
        rng=random.Random(seed),
    )


def _set_round(engine: RoundEngine, round_number: int, target: int) -> None:
    engine.state.round_number = round_number
    engine.start_new_round()
    engine.state.target_level = target


def test_new_engine_starts_round_one() -> None:
    state = _engine().state
    assert state.round_number == 1
    assert state.score == 0
    assert state.allowed_error == 5.0
    assert state.fill_rate == 0.3
    assert 20 <= state.target_level <= 90
    assert not state.round_ended


def test_successful_confirm_awards_points() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 53

    result = engine.confirm()

    assert result is not None
    assert result.is_success
    assert result.error == 3.0
    assert result.score_change == 80
    assert engine.state.score == 80
    assert engine.state.round_ended
    assert engine.state.attempts == 1


def test_third_miss_is_game_over() -> None:
    engine = _engine()
    _set_round(engine, 3, 40)
    assert engine.state.allowed_error == 4.0
    engine.state.attempts = MAX_ATTEMPTS - 1
    engine.state.current_level = 50

    result = engine.confirm()

    assert result is not None
    assert not result.is_success
    assert result.error == 10.0
    assert result.score_change == 0
    assert result.game_over
    assert engine.state.game_over


def test_miss_with_attempts_left_is_not_game_over() -> None:
    engine = _engine()
    _set_round(engine, 1, 80)
    engine.state.current_level = 10

    result = engine.confirm()

    assert result is not None and not result.is_success
    assert result.attempts_left == MAX_ATTEMPTS - 1
    assert not engine.state.game_over


def test_error_exactly_at_tolerance_succeeds() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 55

    result = engine.confirm()

    assert result is not None and result.is_success
    assert result.score_change == 60


def test_error_is_rounded_to_one_decimal() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 51.26

    result = engine.confirm()

    assert result is not None
    assert result.error == 1.3
    assert result.score_change == 97


def test_second_confirm_is_ignored() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 52
    engine.confirm()
    before = engine.snapshot()

    assert engine.confirm() is None
    assert engine.state.score == before.score
    assert engine.state.attempts == before.attempts
    assert engine.state.game_over == before.game_over


def test_filling_advances_fixed_step_per_tick() -> None:
    engine = _engine()
    assert engine.start_filling()
    assert not engine.start_filling()

    for _ in range(10):
        assert engine.tick(1000)

    assert engine.state.current_level == pytest.approx(3.0)


def test_tick_without_filling_reports_no_change() -> None:
    engine = _engine()
    assert not engine.tick(16)
    assert engine.state.current_level == 0


def test_fill_clamps_at_full_and_stops() -> None:
    engine = _engine()
    engine.start_filling()
    engine.state.current_level = 99.9

    assert engine.tick()
    assert engine.state.current_level == 100
    assert not engine.state.is_filling


def test_confirm_stops_filling_and_freezes_level() -> None:
    engine = _engine()
    engine.start_filling()
    engine.tick()
    engine.confirm()
    level = engine.state.current_level

    assert not engine.state.is_filling
    assert not engine.start_filling()
    assert not engine.tick()
    assert engine.state.current_level == level


def test_stop_filling_when_idle_is_noop() -> None:
    engine = _engine()
    assert not engine.stop_filling()
    engine.start_filling()
    assert engine.stop_filling()
    assert not engine.state.is_filling


def test_advance_after_success_moves_to_next_round() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 50
    result = engine.confirm()

    assert engine.advance_after_result(result) == RoundTransition.NEXT
    state = engine.state
    assert state.round_number == 2
    assert state.allowed_error == 4.5
    assert state.fill_rate == 0.35
    assert state.current_level == 0
    assert state.attempts == 0
    assert not state.round_ended
    assert not state.new_record_achieved


def test_advance_after_miss_retries_same_target() -> None:
    engine = _engine()
    _set_round(engine, 2, 70)
    engine.state.current_level = 30
    result = engine.confirm()

    assert engine.advance_after_result(result) == RoundTransition.RETRY
    state = engine.state
    assert state.round_number == 2
    assert state.target_level == 70
    assert state.allowed_error == 4.5
    assert state.current_level == 0
    assert state.attempts == 1
    assert not state.round_ended


def test_game_over_resets_session() -> None:
    engine = _engine()
    _set_round(engine, 4, 60)
    engine.state.score = 300
    engine.state.attempts = MAX_ATTEMPTS - 1
    result = engine.confirm()
    assert engine.state.game_over

    assert engine.advance_after_result(result) == RoundTransition.RESET
    state = engine.state
    assert state.round_number == 1
    assert state.score == 0
    assert state.attempts == 0
    assert not state.game_over
    assert state.allowed_error == 5.0
    assert state.fill_rate == 0.3
    assert state.best_score == 300


def test_advance_without_result_does_nothing() -> None:
    engine = _engine()
    target = engine.state.target_level
    assert engine.advance_after_result(None) is None
    assert engine.state.round_number == 1
    assert engine.state.target_level == target


def test_three_misses_in_a_row_end_the_game() -> None:
    engine = _engine()
    _set_round(engine, 1, 90)
    transitions = []
    for _ in range(MAX_ATTEMPTS):
        engine.start_filling()
        engine.tick()
        transitions.append(engine.advance_after_result(engine.confirm()))
    assert transitions == [RoundTransition.RETRY, RoundTransition.RETRY, RoundTransition.RESET]


def test_targets_stay_in_range_and_vary() -> None:
    engine = _engine()
    targets = set()
    for _ in range(300):
        engine.start_new_round()
        targets.add(engine.state.target_level)
    assert min(targets) >= 20
    assert max(targets) <= 90
    assert len(targets) > 10


def test_new_best_score_is_persisted() -> None:
    store = MemoryRecordStore()
    engine = _engine(store=store)
    _set_round(engine, 1, 50)
    engine.state.current_level = 53

    result = engine.confirm()

    assert result is not None and result.new_record
    assert engine.state.best_score == 80
    assert engine.state.best_score_timestamp == "3/7 09:05"
    assert store.get(BEST_SCORE_KEY) == "80"
    assert store.get(BEST_SCORE_TIME_KEY) == "3/7 09:05"


def test_score_below_best_leaves_record_alone() -> None:
    store = MemoryRecordStore({BEST_SCORE_KEY: "500", BEST_SCORE_TIME_KEY: "1/2 03:04"})
    engine = _engine(store=store)
    _set_round(engine, 1, 50)
    engine.state.current_level = 50

    result = engine.confirm()

    assert result is not None and not result.new_record
    assert engine.state.best_score == 500
    assert engine.state.best_score_timestamp == "1/2 03:04"


def test_unreadable_best_score_loads_as_zero() -> None:
    engine = _engine(store=MemoryRecordStore({BEST_SCORE_KEY: "lots", BEST_SCORE_TIME_KEY: "1/1 00:00"}))
    assert engine.state.best_score == 0
    assert engine.state.best_score_timestamp == ""


def test_clear_best_score_removes_stored_values() -> None:
    store = MemoryRecordStore({BEST_SCORE_KEY: "120", BEST_SCORE_TIME_KEY: "5/6 07:08"})
    engine = _engine(store=store)
    engine.state.score = 40
    engine.state.round_number = 3

    engine.clear_best_score()

    assert engine.state.best_score == 0
    assert engine.state.best_score_timestamp == ""
    assert store.get(BEST_SCORE_KEY) is None
    assert store.get(BEST_SCORE_TIME_KEY) is None
    assert engine.state.score == 40
    assert engine.state.round_number == 3


def test_best_score_never_decreases_during_play() -> None:
    engine = _engine(seed=11)
    rng = random.Random(5)
    best = engine.state.best_score
    for _ in range(400):
        engine.start_filling()
        for _ in range(rng.randint(0, 400)):
            engine.tick()
        result = engine.confirm()
        engine.advance_after_result(result)
        assert engine.state.best_score >= best
        best = engine.state.best_score


def test_snapshot_is_detached() -> None:
    engine = _engine()
    snap = engine.snapshot()
    snap.score = 9999
    assert engine.state.score == 0


def test_record_time_format_pads_hours_and_minutes() -> None:
    assert format_record_time(datetime(2024, 12, 25, 7, 3)) == "12/25 07:03"


def test_timed_round_sets_budget() -> None:
    engine = _engine(DifficultyVariant.TIMED)
    state = engine.state
    assert state.timed
    assert state.allowed_error == 3.0
    assert state.fill_rate == 0.5
    assert state.time_budget_ms == 5000
    assert state.time_remaining_ms == 5000
    assert not state.time_expired


def test_timed_countdown_runs_while_idle() -> None:
    engine = _engine(DifficultyVariant.TIMED)
    assert engine.tick(1200)
    assert engine.state.time_remaining_ms == 3800
    assert engine.state.current_level == 0


def test_timed_countdown_uses_clock_when_elapsed_omitted() -> None:
    clock = FakeClock()
    engine = _engine(DifficultyVariant.TIMED, clock=clock)
    clock.ms = 1500
    engine.tick()
    assert engine.state.time_remaining_ms == 3500
    clock.ms = 2000
    engine.tick()
    assert engine.state.time_remaining_ms == 3000


def test_timed_expiry_forces_stop_without_scoring() -> None:
    engine = _engine(DifficultyVariant.TIMED)
    engine.start_filling()
    engine.tick(100)
    level = engine.state.current_level

    assert engine.tick(10_000)
    state = engine.state
    assert state.time_remaining_ms == 0
    assert state.time_expired
    assert not state.is_filling
    assert state.current_level == level
    assert not state.round_ended
    assert not engine.start_filling()
    assert not engine.tick(16)

    result = engine.confirm()
    assert result is not None
    assert state.round_ended


def test_timed_retry_restores_countdown() -> None:
    engine = _engine(DifficultyVariant.TIMED)
    target = engine.state.target_level
    engine.tick(6000)
    result = engine.confirm()
    assert result is not None and not result.is_success

    assert engine.advance_after_result(result) == RoundTransition.RETRY
    state = engine.state
    assert state.target_level == target
    assert state.time_remaining_ms == state.time_budget_ms
    assert not state.time_expired
    assert engine.start_filling()


def test_untimed_profile_ignores_elapsed_time() -> None:
    engine = _engine()
    engine.tick(60_000)
    assert not engine.state.time_expired
    assert engine.start_filling()


def test_set_profile_restarts_game() -> None:
    engine = _engine()
    engine.state.score = 150
    engine.state.round_number = 6

    engine.set_profile(get_profile(DifficultyVariant.EXPERT))

    state = engine.state
    assert state.round_number == 1
    assert state.score == 0
    assert state.allowed_error == 3.0
    assert state.fill_rate == 0.5
    assert not state.timed


def test_new_record_flag_only_on_the_confirm_that_set_it() -> None:
    engine = _engine()
    _set_round(engine, 1, 90)
    engine.state.score = 100

    first = engine.confirm()
    assert first is not None and first.new_record
    engine.advance_after_result(first)

    second = engine.confirm()
    assert second is not None
    assert not second.new_record
    assert engine.state.best_score == 100


def test_clear_best_score_drops_new_record_flag() -> None:
    engine = _engine()
    _set_round(engine, 1, 50)
    engine.state.current_level = 50
    engine.confirm()
    assert engine.state.new_record_achieved

    engine.clear_best_score()
    assert not engine.state.new_record_achieved
