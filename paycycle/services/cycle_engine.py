from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from paycycle.models.payroll import PayrollCycle
from paycycle.services.date_engine import (
    DateComputationError,
    adjust_check_date,
    resolve_month_end,
    shift_days,
)


WEEKLY_SPAN_DAYS = 6
BI_WEEKLY_SPAN_DAYS = 13

_FIXED_SPAN_CYCLES = frozenset({PayrollCycle.WEEKLY, PayrollCycle.BI_WEEKLY, PayrollCycle.CUSTOM})


class PayrollCycleError(ValueError):
    pass


class UnknownCycleType(PayrollCycleError):
    pass


class UnsupportedCycleState(PayrollCycleError):
    pass


@dataclass(frozen=True)
class PeriodState:
    from_date: date
    to_date: date
    actual_check_date: date
    check_date: date

    @property
    def raise_days(self) -> int:
        return (self.actual_check_date - self.to_date).days

    @property
    def span_days(self) -> int:
        return (self.to_date - self.from_date).days


@dataclass(frozen=True)
class CycleAdvance:
    finalized: PeriodState
    current: PeriodState
    second: PeriodState | None = None


@dataclass(frozen=True)
class SuggestedPeriodDates:
    to_date: date | None
    second_to_date: date | None = None


def parse_cycle(cycle_id: int) -> PayrollCycle:
    if isinstance(cycle_id, bool) or not isinstance(cycle_id, int):
        raise UnknownCycleType(f"Unsupported payroll cycle id: {cycle_id!r}")
    try:
        return PayrollCycle(cycle_id)
    except ValueError as exc:
        raise UnknownCycleType(f"Unsupported payroll cycle id: {cycle_id!r}") from exc


def _validate_state(state: PeriodState, label: str) -> None:
    for field in ("from_date", "to_date", "actual_check_date", "check_date"):
        value = getattr(state, field)
        if not isinstance(value, date):
            raise DateComputationError(f"{label} {field} is missing")
    if state.to_date < state.from_date:
        raise DateComputationError(
            f"{label} ends {state.to_date.isoformat()} before it starts {state.from_date.isoformat()}"
        )


def _month_window(from_date: date, previous_actual_check_date: date) -> PeriodState:
    to_date = resolve_month_end(from_date)
    actual_check_date = resolve_month_end(shift_days(previous_actual_check_date, 1, field="actual check date"))
    return PeriodState(
        from_date=from_date,
        to_date=to_date,
        actual_check_date=actual_check_date,
        check_date=adjust_check_date(actual_check_date),
    )


def _advance_fixed_span(current: PeriodState) -> PeriodState:
    from_date = shift_days(current.to_date, 1, field="to date")
    to_date = shift_days(current.to_date, current.span_days + 1, field="to date")
    actual_check_date = shift_days(to_date, current.raise_days, field="actual check date")
    return PeriodState(
        from_date=from_date,
        to_date=to_date,
        actual_check_date=actual_check_date,
        check_date=adjust_check_date(actual_check_date),
    )


def _advance_monthly(current: PeriodState) -> PeriodState:
    return _month_window(shift_days(current.to_date, 1, field="to date"), current.actual_check_date)


def _advance_semi_monthly(current: PeriodState, second: PeriodState | None) -> CycleAdvance:
    if second is None:
        raise UnsupportedCycleState("Semi-monthly cycle has no second-half window to promote")
    _validate_state(second, "second-half period")
    if second.from_date <= current.to_date:
        raise UnsupportedCycleState(
            f"Second-half period starting {second.from_date.isoformat()} does not follow "
            f"the current period ending {current.to_date.isoformat()}"
        )

    new_second = _month_window(shift_days(second.to_date, 1, field="second to date"), current.actual_check_date)
    return CycleAdvance(finalized=current, current=second, second=new_second)


def advance_cycle(
    cycle_id: int,
    current: PeriodState,
    second: PeriodState | None = None,
) -> CycleAdvance:
    """Compute the period that follows ``current`` for the given payroll cycle.

    Fixed-span cycles (weekly, bi-weekly, custom) repeat the current span and
    keep the lag between period end and actual check date. Monthly cycles roll
    one calendar-month window forward. Semi-monthly cycles promote the
    pre-computed second half and compute a fresh second half behind it.
    """
    cycle = parse_cycle(cycle_id)
    _validate_state(current, "current period")

    if cycle in _FIXED_SPAN_CYCLES:
        return CycleAdvance(finalized=current, current=_advance_fixed_span(current))
    if cycle == PayrollCycle.MONTHLY:
        return CycleAdvance(finalized=current, current=_advance_monthly(current))
    if cycle == PayrollCycle.SEMI_MONTHLY:
        return _advance_semi_monthly(current, second)

    raise UnknownCycleType(f"Unsupported payroll cycle id: {cycle_id!r}")


def suggest_period_dates(
    cycle_id: int,
    from_date: date,
    second_from_date: date | None = None,
) -> SuggestedPeriodDates:
    cycle = parse_cycle(cycle_id)
    if cycle == PayrollCycle.WEEKLY:
        return SuggestedPeriodDates(to_date=shift_days(from_date, WEEKLY_SPAN_DAYS, field="from date"))
    if cycle == PayrollCycle.BI_WEEKLY:
        return SuggestedPeriodDates(to_date=shift_days(from_date, BI_WEEKLY_SPAN_DAYS, field="from date"))
    if cycle == PayrollCycle.SEMI_MONTHLY:
        to_date = None
        if second_from_date is not None:
            to_date = shift_days(second_from_date, -1, field="second from date")
        return SuggestedPeriodDates(to_date=to_date, second_to_date=resolve_month_end(from_date))
    if cycle == PayrollCycle.MONTHLY:
        return SuggestedPeriodDates(to_date=resolve_month_end(from_date))
    # Custom spans are whatever the configuration declares.
    return SuggestedPeriodDates(to_date=None)
