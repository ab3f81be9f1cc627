from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from paycycle.models.payroll import (
    PERIOD_STATUS_YET_TO_GENERATE,
    PayrollCycle,
    PayrollCycleConfig,
    PayrollPeriod,
)
from paycycle.services.cycle_engine import PayrollCycleError, parse_cycle, suggest_period_dates
from paycycle.services.cycle_events import PayrollCycleEvents
from paycycle.services.date_engine import DateComputationError, adjust_check_date, shift_days

logger = logging.getLogger(__name__)


class PayrollConfigValidationError(ValueError):
    pass


class PayrollConfigNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class PayrollConfigInput:
    name: str
    payroll_cycle_id: int
    from_date: date
    to_date: date
    actual_check_date: date
    check_date: date
    second_from_date: date | None = None
    second_to_date: date | None = None
    second_actual_check_date: date | None = None
    second_check_date: date | None = None
    edit_from_date: date | None = None


@dataclass(frozen=True)
class PayrollConfigPage:
    items: list[PayrollCycleConfig]
    page: int
    limit: int
    total: int


@dataclass(frozen=True)
class UpcomingPayrollPage:
    items: list[tuple[PayrollPeriod, PayrollCycleConfig]]
    page: int
    limit: int
    total: int


def _validate_check_dates(to_date: date, actual_check_date: date, check_date: date, prefix: str = "") -> None:
    if actual_check_date < to_date:
        raise PayrollConfigValidationError(f"{prefix}actual check date cannot be before the period end date.")
    if adjust_check_date(actual_check_date) != check_date:
        raise PayrollConfigValidationError(
            f"{prefix}check date must be the actual check date moved back off the weekend."
        )


def _validate_input(data: PayrollConfigInput) -> PayrollCycle:
    if not data.name.strip():
        raise PayrollConfigValidationError("Name is required.")
    try:
        cycle = parse_cycle(data.payroll_cycle_id)
    except PayrollCycleError as exc:
        raise PayrollConfigValidationError(str(exc)) from exc

    if data.to_date < data.from_date:
        raise PayrollConfigValidationError("Period end date cannot be before the start date.")

    try:
        suggested = suggest_period_dates(cycle, data.from_date, data.second_from_date)
        # Semi-monthly end dates are pinned to the day before the second half starts.
        if suggested.to_date is not None and suggested.to_date != data.to_date:
            raise PayrollConfigValidationError(
                f"Period end date must be {suggested.to_date.isoformat()} for this payroll cycle."
            )
        _validate_check_dates(data.to_date, data.actual_check_date, data.check_date)

        if cycle != PayrollCycle.SEMI_MONTHLY:
            return cycle

        second_fields = (
            data.second_from_date,
            data.second_to_date,
            data.second_actual_check_date,
            data.second_check_date,
        )
        if any(value is None for value in second_fields):
            raise PayrollConfigValidationError("Semi-monthly cycles require all second-half dates.")
        if suggested.second_to_date != data.second_to_date:
            raise PayrollConfigValidationError(
                f"Second-half end date must be {suggested.second_to_date.isoformat()} for this payroll cycle."
            )
        _validate_check_dates(
            data.second_to_date,
            data.second_actual_check_date,
            data.second_check_date,
            prefix="Second-half ",
        )
    except DateComputationError as exc:
        raise PayrollConfigValidationError(str(exc)) from exc
    return cycle


def _ensure_unique_name(session: Session, name: str, *, exclude_id: int | None = None) -> None:
    stmt = select(PayrollCycleConfig.id).where(PayrollCycleConfig.name == name)
    if exclude_id is not None:
        stmt = stmt.where(PayrollCycleConfig.id != exclude_id)
    if session.scalar(stmt) is not None:
        raise PayrollConfigValidationError(f"A payroll configuration named {name!r} already exists.")


def _apply_input(config: PayrollCycleConfig, data: PayrollConfigInput, cycle: PayrollCycle) -> None:
    semi_monthly = cycle == PayrollCycle.SEMI_MONTHLY
    config.name = data.name.strip()
    config.payroll_cycle_id = int(cycle)
    config.from_date = data.from_date
    config.to_date = data.to_date
    config.actual_check_date = data.actual_check_date
    config.check_date = data.check_date
    config.second_from_date = data.second_from_date if semi_monthly else None
    config.second_to_date = data.second_to_date if semi_monthly else None
    config.second_actual_check_date = data.second_actual_check_date if semi_monthly else None
    config.second_check_date = data.second_check_date if semi_monthly else None


def get_payroll_config(session: Session, config_id: int) -> PayrollCycleConfig:
    config = session.get(PayrollCycleConfig, config_id)
    if config is None:
        raise PayrollConfigNotFoundError(f"Payroll configuration {config_id} not found")
    return config


def list_payroll_configs(session: Session, *, page: int = 1, limit: int = 25) -> PayrollConfigPage:
    total = session.scalar(select(func.count()).select_from(PayrollCycleConfig)) or 0
    items = session.scalars(
        select(PayrollCycleConfig)
        .order_by(PayrollCycleConfig.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return PayrollConfigPage(items=list(items), page=page, limit=limit, total=total)


def list_payroll_periods(session: Session, config_id: int) -> list[PayrollPeriod]:
    get_payroll_config(session, config_id)
    return list(
        session.scalars(
            select(PayrollPeriod)
            .where(PayrollPeriod.pay_config_setting_id == config_id)
            .order_by(PayrollPeriod.from_date, PayrollPeriod.id)
        ).all()
    )


def get_edit_from_date(session: Session, config_id: int) -> date | None:
    """Return the day after the latest pending period end, or ``None`` when nothing is pending."""
    get_payroll_config(session, config_id)
    last_pending = session.scalar(
        select(func.max(PayrollPeriod.to_date)).where(
            PayrollPeriod.pay_config_setting_id == config_id,
            PayrollPeriod.status == PERIOD_STATUS_YET_TO_GENERATE,
        )
    )
    if last_pending is None:
        return None
    return shift_days(last_pending, 1, field="last pending period end")


def list_upcoming_payroll_periods(
    session: Session,
    *,
    today: date,
    page: int = 1,
    limit: int = 25,
) -> UpcomingPayrollPage:
    pending = (
        PayrollPeriod.status == PERIOD_STATUS_YET_TO_GENERATE,
        PayrollPeriod.check_date > today,
    )
    total = session.scalar(select(func.count()).select_from(PayrollPeriod).where(*pending)) or 0
    rows = session.execute(
        select(PayrollPeriod, PayrollCycleConfig)
        .join(PayrollCycleConfig, PayrollCycleConfig.id == PayrollPeriod.pay_config_setting_id)
        .where(*pending)
        .order_by(PayrollPeriod.check_date, PayrollPeriod.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return UpcomingPayrollPage(
        items=[(period, config) for period, config in rows],
        page=page,
        limit=limit,
        total=total,
    )


def create_payroll_config(
    session: Session,
    data: PayrollConfigInput,
    *,
    events: PayrollCycleEvents | None = None,
) -> PayrollCycleConfig:
    cycle = _validate_input(data)
    _ensure_unique_name(session, data.name.strip())

    config = PayrollCycleConfig()
    _apply_input(config, data, cycle)
    session.add(config)
    session.commit()
    session.refresh(config)
    logger.info("Payroll config created config_id=%s cycle=%s", config.id, cycle.name)

    if events is not None:
        events.emit(config.id)
    return config


def update_payroll_config(
    session: Session,
    config_id: int,
    data: PayrollConfigInput,
    *,
    events: PayrollCycleEvents | None = None,
) -> PayrollCycleConfig:
    config = get_payroll_config(session, config_id)
    cycle = _validate_input(data)
    _ensure_unique_name(session, data.name.strip(), exclude_id=config_id)

    stale = delete(PayrollPeriod).where(
        PayrollPeriod.pay_config_setting_id == config_id,
        PayrollPeriod.status == PERIOD_STATUS_YET_TO_GENERATE,
    )
    if data.edit_from_date is not None:
        stale = stale.where(PayrollPeriod.from_date >= data.edit_from_date)
    removed = session.execute(stale.execution_options(synchronize_session=False)).rowcount

    _apply_input(config, data, cycle)
    session.commit()
    session.refresh(config)
    logger.info(
        "Payroll config updated config_id=%s cycle=%s removed_pending_periods=%s",
        config.id,
        cycle.name,
        removed,
    )

    if events is not None:
        events.emit(config.id)
    return config
