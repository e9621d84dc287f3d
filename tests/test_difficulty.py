from __future__ import annotations

import pytest

from pourgame.difficulty import (
    PROFILES,
    DifficultyVariant,
    get_profile,
    simple_fill_rate,
    simple_tolerance,
    tiered_fill_rate,
    tiered_tolerance,
    time_budget_ms,
)


@pytest.mark.parametrize("profile", list(PROFILES.values()), ids=lambda p: p.variant.value)
def test_tolerance_never_grows_and_respects_floor(profile) -> None:
    values = [profile.tolerance(r) for r in range(1, 60)]
    assert all(a >= b for a, b in zip(values, values[1:]))
    assert min(values) == profile.tolerance_floor


@pytest.mark.parametrize("profile", list(PROFILES.values()), ids=lambda p: p.variant.value)
def test_fill_rate_never_shrinks_and_respects_ceiling(profile) -> None:
    values = [profile.fill_rate(r) for r in range(1, 60)]
    assert all(a <= b for a, b in zip(values, values[1:]))
    assert max(values) == profile.fill_rate_ceiling


def test_simple_curves() -> None:
    assert simple_tolerance(1) == 5.0
    assert simple_tolerance(3) == 4.0
    assert simple_tolerance(9) == 1.0
    assert simple_tolerance(40) == 1.0
    assert simple_fill_rate(1) == 0.3
    assert simple_fill_rate(2) == 0.35
    assert simple_fill_rate(11) == 0.8
    assert simple_fill_rate(30) == 0.8


def test_tiered_tolerance_bands() -> None:
    assert [tiered_tolerance(r) for r in range(1, 6)] == [3.0, 2.5, 2.0, 1.5, 1.0]
    assert [tiered_tolerance(r) for r in range(6, 11)] == [0.8, 0.6, 0.4, 0.2, 0.1]
    assert tiered_tolerance(11) == 0.1
    assert tiered_tolerance(99) == 0.1


def test_tiered_fill_rate_bands() -> None:
    assert tiered_fill_rate(1) == 0.5
    assert tiered_fill_rate(5) == 0.7
    assert tiered_fill_rate(6) == 0.8
    assert tiered_fill_rate(10) == 1.0
    assert tiered_fill_rate(11) == 1.1
    assert tiered_fill_rate(16) == 1.4
    assert tiered_fill_rate(200) == 2.5


def test_rounds_below_one_use_round_one_values() -> None:
    assert simple_tolerance(0) == simple_tolerance(1)
    assert tiered_fill_rate(-3) == tiered_fill_rate(1)


def test_time_budget_clamps_long_pours_to_five_seconds() -> None:
    assert time_budget_ms(60, 1.0) == 5000


def test_time_budget_rounds_up_to_tenths() -> None:
    assert time_budget_ms(10, 10.0) == 1300
    assert time_budget_ms(20, 7.0) == 3800


def test_time_budget_has_one_second_floor() -> None:
    assert time_budget_ms(1, 5.0) == 1000


def test_only_timed_profile_has_budget() -> None:
    assert get_profile(DifficultyVariant.CLASSIC).time_budget(50, 0.3) is None
    assert get_profile("timed").time_budget(60, 1.0) == 5000


def test_unknown_profile_rejected() -> None:
    with pytest.raises(ValueError):
        get_profile("nightmare")
