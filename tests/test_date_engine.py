from datetime import date, datetime, timedelta

import pytest

from paycycle.services.date_engine import DateComputationError, adjust_check_date, resolve_month_end


def test_month_end_handles_leap_february() -> None:
    assert resolve_month_end(date(2024, 1, 31)) == date(2024, 2, 29)
    assert resolve_month_end(date(2023, 1, 31)) == date(2023, 2, 28)
    assert resolve_month_end(date(2024, 1, 30)) == date(2024, 2, 29)
    assert resolve_month_end(date(2023, 1, 30)) == date(2023, 2, 28)


def test_month_end_century_leap_rule() -> None:
    assert resolve_month_end(date(1900, 1, 31)) == date(1900, 2, 28)
    assert resolve_month_end(date(2000, 1, 31)) == date(2000, 2, 29)
    assert resolve_month_end(date(2100, 2, 1)) == date(2100, 2, 28)


def test_month_end_first_of_month_closes_same_month() -> None:
    assert resolve_month_end(date(2024, 2, 1)) == date(2024, 2, 29)
    assert resolve_month_end(date(2023, 2, 1)) == date(2023, 2, 28)
    assert resolve_month_end(date(2024, 4, 1)) == date(2024, 4, 30)
    assert resolve_month_end(date(2024, 12, 1)) == date(2024, 12, 31)


def test_month_end_clips_to_shorter_following_month() -> None:
    assert resolve_month_end(date(2024, 3, 31)) == date(2024, 4, 30)
    assert resolve_month_end(date(2024, 7, 31)) == date(2024, 8, 30)
    assert resolve_month_end(date(2023, 12, 31)) == date(2024, 1, 30)
    assert resolve_month_end(date(2024, 2, 6)) == date(2024, 3, 5)


@pytest.mark.parametrize("year", [2023, 2024])
def test_month_end_mid_month_matrix(year: int) -> None:
    for month in range(1, 13):
        expected_year, expected_month = (year + 1, 1) if month == 12 else (year, month + 1)
        assert resolve_month_end(date(year, month, 15)) == date(expected_year, expected_month, 14)


LATE_ANCHOR_MONTH_ENDS = [
    (date(2023, 1, 29), date(2023, 2, 28)),
    (date(2023, 1, 30), date(2023, 2, 28)),
    (date(2023, 1, 31), date(2023, 2, 28)),
    (date(2023, 3, 29), date(2023, 4, 28)),
    (date(2023, 3, 30), date(2023, 4, 29)),
    (date(2023, 3, 31), date(2023, 4, 30)),
    (date(2023, 4, 29), date(2023, 5, 28)),
    (date(2023, 4, 30), date(2023, 5, 29)),
    (date(2023, 5, 29), date(2023, 6, 28)),
    (date(2023, 5, 30), date(2023, 6, 29)),
    (date(2023, 5, 31), date(2023, 6, 30)),
    (date(2023, 6, 29), date(2023, 7, 28)),
    (date(2023, 6, 30), date(2023, 7, 29)),
    (date(2023, 7, 29), date(2023, 8, 28)),
    (date(2023, 7, 30), date(2023, 8, 29)),
    (date(2023, 7, 31), date(2023, 8, 30)),
    (date(2023, 8, 29), date(2023, 9, 28)),
    (date(2023, 8, 30), date(2023, 9, 29)),
    (date(2023, 8, 31), date(2023, 9, 30)),
    (date(2023, 9, 29), date(2023, 10, 28)),
    (date(2023, 9, 30), date(2023, 10, 29)),
    (date(2023, 10, 29), date(2023, 11, 28)),
    (date(2023, 10, 30), date(2023, 11, 29)),
    (date(2023, 10, 31), date(2023, 11, 30)),
    (date(2023, 11, 29), date(2023, 12, 28)),
    (date(2023, 11, 30), date(2023, 12, 29)),
    (date(2023, 12, 29), date(2024, 1, 28)),
    (date(2023, 12, 30), date(2024, 1, 29)),
    (date(2023, 12, 31), date(2024, 1, 30)),
    (date(2024, 1, 29), date(2024, 2, 28)),
    (date(2024, 1, 30), date(2024, 2, 29)),
    (date(2024, 1, 31), date(2024, 2, 29)),
    (date(2024, 2, 29), date(2024, 3, 28)),
    (date(2024, 3, 29), date(2024, 4, 28)),
    (date(2024, 3, 30), date(2024, 4, 29)),
    (date(2024, 3, 31), date(2024, 4, 30)),
    (date(2024, 4, 29), date(2024, 5, 28)),
    (date(2024, 4, 30), date(2024, 5, 29)),
    (date(2024, 5, 29), date(2024, 6, 28)),
    (date(2024, 5, 30), date(2024, 6, 29)),
    (date(2024, 5, 31), date(2024, 6, 30)),
    (date(2024, 6, 29), date(2024, 7, 28)),
    (date(2024, 6, 30), date(2024, 7, 29)),
    (date(2024, 7, 29), date(2024, 8, 28)),
    (date(2024, 7, 30), date(2024, 8, 29)),
    (date(2024, 7, 31), date(2024, 8, 30)),
    (date(2024, 8, 29), date(2024, 9, 28)),
    (date(2024, 8, 30), date(2024, 9, 29)),
    (date(2024, 8, 31), date(2024, 9, 30)),
    (date(2024, 9, 29), date(2024, 10, 28)),
    (date(2024, 9, 30), date(2024, 10, 29)),
    (date(2024, 10, 29), date(2024, 11, 28)),
    (date(2024, 10, 30), date(2024, 11, 29)),
    (date(2024, 10, 31), date(2024, 11, 30)),
    (date(2024, 11, 29), date(2024, 12, 28)),
    (date(2024, 11, 30), date(2024, 12, 29)),
    (date(2024, 12, 29), date(2025, 1, 28)),
    (date(2024, 12, 30), date(2025, 1, 29)),
    (date(2024, 12, 31), date(2025, 1, 30)),
]


@pytest.mark.parametrize(("anchor", "expected"), LATE_ANCHOR_MONTH_ENDS)
def test_month_end_late_anchor_matrix(anchor: date, expected: date) -> None:
    assert resolve_month_end(anchor) == expected


def test_month_end_always_lands_in_following_month_unless_anchor_is_first() -> None:
    d = date(2023, 1, 1)
    while d <= date(2024, 12, 31):
        resolved = resolve_month_end(d)
        if d.day == 1:
            assert (resolved.year, resolved.month) == (d.year, d.month)
            assert (resolved + timedelta(days=1)).day == 1
        else:
            expected = (d.year + 1, 1) if d.month == 12 else (d.year, d.month + 1)
            assert (resolved.year, resolved.month) == expected
        d += timedelta(days=1)


def test_month_end_rejects_invalid_inputs() -> None:
    with pytest.raises(DateComputationError):
        resolve_month_end(date(9999, 12, 15))
    with pytest.raises(DateComputationError):
        resolve_month_end(datetime(2024, 1, 31, 12, 0))
    with pytest.raises(DateComputationError):
        resolve_month_end("2024-01-31")  # type: ignore[arg-type]

    assert resolve_month_end(date(9999, 12, 1)) == date(9999, 12, 31)


def test_check_date_moves_weekends_back_to_friday() -> None:
    assert adjust_check_date(date(2024, 3, 16)) == date(2024, 3, 15)  # Saturday
    assert adjust_check_date(date(2024, 3, 17)) == date(2024, 3, 15)  # Sunday
    assert adjust_check_date(date(2024, 3, 18)) == date(2024, 3, 18)
    assert adjust_check_date(date(2024, 3, 15)) == date(2024, 3, 15)


def test_check_date_is_never_a_weekend() -> None:
    d = date(2024, 1, 1)
    for _ in range(400):
        adjusted = adjust_check_date(d)
        assert adjusted.weekday() < 5
        if d.weekday() < 5:
            assert adjusted == d
        else:
            assert (d - adjusted).days == d.weekday() - 4
        d += timedelta(days=1)
