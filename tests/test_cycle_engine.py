from datetime import date, timedelta

import pytest

from paycycle.models.payroll import PayrollCycle
from paycycle.services.cycle_engine import (
    PeriodState,
    SuggestedPeriodDates,
    UnknownCycleType,
    UnsupportedCycleState,
    advance_cycle,
    suggest_period_dates,
)
from paycycle.services.date_engine import DateComputationError


def _state(from_date: date, to_date: date, actual_check_date: date, check_date: date | None = None) -> PeriodState:
    return PeriodState(
        from_date=from_date,
        to_date=to_date,
        actual_check_date=actual_check_date,
        check_date=check_date or actual_check_date,
    )


def test_weekly_roll_keeps_span_and_raise_days() -> None:
    current = _state(date(2024, 1, 1), date(2024, 1, 7), date(2024, 1, 9))

    advance = advance_cycle(PayrollCycle.WEEKLY, current)

    assert advance.finalized == current
    assert advance.current == _state(date(2024, 1, 8), date(2024, 1, 14), date(2024, 1, 16))
    assert advance.second is None


def test_bi_weekly_roll_shifts_saturday_check_date() -> None:
    current = _state(date(2024, 3, 4), date(2024, 3, 17), date(2024, 3, 23), date(2024, 3, 22))

    advance = advance_cycle(PayrollCycle.BI_WEEKLY, current)

    assert advance.current.from_date == date(2024, 3, 18)
    assert advance.current.to_date == date(2024, 3, 31)
    assert advance.current.actual_check_date == date(2024, 4, 6)
    assert advance.current.check_date == date(2024, 4, 5)


@pytest.mark.parametrize("cycle_id", [1, 2, 5])
@pytest.mark.parametrize("span_days", [0, 6, 13, 20])
def test_fixed_span_cycles_preserve_span(cycle_id: int, span_days: int) -> None:
    start = date(2023, 12, 20)
    current = _state(start, start + timedelta(days=span_days), start + timedelta(days=span_days + 3))

    state = current
    for _ in range(10):
        nxt = advance_cycle(cycle_id, state).current
        assert nxt.span_days == current.span_days
        assert nxt.from_date == state.to_date + timedelta(days=1)
        assert nxt.raise_days == current.raise_days
        state = nxt


def test_monthly_roll_across_leap_february() -> None:
    current = _state(date(2024, 1, 1), date(2024, 1, 31), date(2024, 2, 5))

    advance = advance_cycle(PayrollCycle.MONTHLY, current)

    assert advance.current.from_date == date(2024, 2, 1)
    assert advance.current.to_date == date(2024, 2, 29)
    assert advance.current.actual_check_date == date(2024, 3, 5)
    assert advance.current.check_date == date(2024, 3, 5)


def test_monthly_roll_shifts_weekend_check_date() -> None:
    current = _state(date(2024, 3, 1), date(2024, 3, 31), date(2024, 4, 4))

    advance = advance_cycle(PayrollCycle.MONTHLY, current)

    assert advance.current.from_date == date(2024, 4, 1)
    assert advance.current.to_date == date(2024, 4, 30)
    assert advance.current.actual_check_date == date(2024, 5, 4)
    assert advance.current.check_date == date(2024, 5, 3)


def test_semi_monthly_promotes_second_half_and_computes_new_one() -> None:
    current = _state(date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 20), date(2024, 1, 19))
    second = _state(date(2024, 1, 16), date(2024, 1, 31), date(2024, 2, 5))

    advance = advance_cycle(PayrollCycle.SEMI_MONTHLY, current, second)

    assert advance.finalized == current
    assert advance.current == second
    assert advance.second == _state(date(2024, 2, 1), date(2024, 2, 29), date(2024, 2, 20))
    assert advance.second.from_date == advance.current.to_date + timedelta(days=1)


def test_semi_monthly_requires_second_half_window() -> None:
    current = _state(date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 20), date(2024, 1, 19))

    with pytest.raises(UnsupportedCycleState):
        advance_cycle(PayrollCycle.SEMI_MONTHLY, current)

    overlapping = _state(date(2024, 1, 10), date(2024, 1, 31), date(2024, 2, 5))
    with pytest.raises(UnsupportedCycleState):
        advance_cycle(PayrollCycle.SEMI_MONTHLY, current, overlapping)


@pytest.mark.parametrize("cycle_id", [0, 6, 42, None, "weekly", "1", 2.7, 1.0, True])
def test_unknown_cycle_ids_are_rejected(cycle_id) -> None:
    current = _state(date(2024, 1, 1), date(2024, 1, 7), date(2024, 1, 9))

    with pytest.raises(UnknownCycleType):
        advance_cycle(cycle_id, current)


def test_inverted_period_is_a_computation_error() -> None:
    current = _state(date(2024, 1, 7), date(2024, 1, 1), date(2024, 1, 9))

    with pytest.raises(DateComputationError):
        advance_cycle(PayrollCycle.WEEKLY, current)


def test_suggest_period_dates_per_cycle() -> None:
    assert suggest_period_dates(1, date(2024, 1, 1)) == SuggestedPeriodDates(to_date=date(2024, 1, 7))
    assert suggest_period_dates(2, date(2024, 1, 1)) == SuggestedPeriodDates(to_date=date(2024, 1, 14))
    assert suggest_period_dates(4, date(2024, 2, 1)) == SuggestedPeriodDates(to_date=date(2024, 2, 29))
    assert suggest_period_dates(3, date(2024, 1, 1), date(2024, 1, 16)) == SuggestedPeriodDates(
        to_date=date(2024, 1, 15),
        second_to_date=date(2024, 1, 31),
    )
    assert suggest_period_dates(5, date(2024, 1, 1)) == SuggestedPeriodDates(to_date=None)
