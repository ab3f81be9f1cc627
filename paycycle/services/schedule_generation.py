from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import inspect, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from paycycle.config import GENERATION_ITERATION_CEILING, get_settings
from paycycle.models.payroll import (
    PERIOD_STATUS_YET_TO_GENERATE,
    PayrollCycleConfig,
    PayrollPeriod,
)
from paycycle.services.cycle_engine import CycleAdvance, PeriodState, advance_cycle
from paycycle.services.date_engine import local_today

logger = logging.getLogger(__name__)


MAX_GENERATION_ITERATIONS = GENERATION_ITERATION_CEILING

STOP_CAUGHT_UP = "caught_up"
STOP_NOT_FOUND = "not_found"
STOP_ITERATION_CAP = "iteration_cap"


class SchedulePersistenceError(RuntimeError):
    pass


class ConcurrentAdvanceError(RuntimeError):
    pass


@dataclass(frozen=True)
class AdvancementStep:
    config_id: int
    period_id: int
    finalized: PeriodState
    current: PeriodState
    second: PeriodState | None
    recorded: bool = True


@dataclass(frozen=True)
class AdvancementOutcome:
    step: AdvancementStep | None = None
    stop_reason: str | None = None
    current: PeriodState | None = None


@dataclass(frozen=True)
class ScheduleGenerationResult:
    config_id: int
    today: date
    stop_reason: str
    steps: tuple[AdvancementStep, ...]
    current: PeriodState | None

    @property
    def advanced_count(self) -> int:
        return len(self.steps)


def period_state_from_config(config: PayrollCycleConfig) -> PeriodState:
    return PeriodState(
        from_date=config.from_date,
        to_date=config.to_date,
        actual_check_date=config.actual_check_date,
        check_date=config.check_date,
    )


def second_state_from_config(config: PayrollCycleConfig) -> PeriodState | None:
    fields = (
        config.second_from_date,
        config.second_to_date,
        config.second_actual_check_date,
        config.second_check_date,
    )
    if any(value is None for value in fields):
        return None
    return PeriodState(
        from_date=config.second_from_date,
        to_date=config.second_to_date,
        actual_check_date=config.second_actual_check_date,
        check_date=config.second_check_date,
    )


def _config_values(advance: CycleAdvance) -> dict[str, date]:
    values = {
        "from_date": advance.current.from_date,
        "to_date": advance.current.to_date,
        "actual_check_date": advance.current.actual_check_date,
        "check_date": advance.current.check_date,
    }
    if advance.second is not None:
        values.update(
            second_from_date=advance.second.from_date,
            second_to_date=advance.second.to_date,
            second_actual_check_date=advance.second.actual_check_date,
            second_check_date=advance.second.check_date,
        )
    return values


def advance_config_once(session: Session, *, config_id: int, today: date) -> AdvancementOutcome:
    """Advance one configuration by a single period inside one transaction.

    The configuration update is guarded on the period it was read with, so a
    concurrent writer that already moved the pointer makes this iteration roll
    back with ``ConcurrentAdvanceError`` instead of appending a duplicate period.
    """
    try:
        with session.begin():
            config = session.get(PayrollCycleConfig, config_id)
            if config is None:
                return AdvancementOutcome(stop_reason=STOP_NOT_FOUND)

            current = period_state_from_config(config)
            if current.to_date >= today:
                return AdvancementOutcome(stop_reason=STOP_CAUGHT_UP, current=current)

            advance = advance_cycle(config.payroll_cycle_id, current, second_state_from_config(config))
            result = session.execute(
                update(PayrollCycleConfig)
                .where(
                    PayrollCycleConfig.id == config_id,
                    PayrollCycleConfig.from_date == current.from_date,
                    PayrollCycleConfig.to_date == current.to_date,
                )
                .values(**_config_values(advance))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentAdvanceError(
                    f"Payroll config {config_id} moved past {current.to_date.isoformat()} while advancing"
                )

            # A period kept across a configuration edit is not recorded twice.
            period_id = session.scalar(
                select(PayrollPeriod.id).where(
                    PayrollPeriod.pay_config_setting_id == config_id,
                    PayrollPeriod.from_date == advance.finalized.from_date,
                )
            )
            recorded = period_id is None
            if recorded:
                period = PayrollPeriod(
                    pay_config_setting_id=config_id,
                    from_date=advance.finalized.from_date,
                    to_date=advance.finalized.to_date,
                    check_date=advance.finalized.check_date,
                    status=PERIOD_STATUS_YET_TO_GENERATE,
                )
                session.add(period)
                session.flush()
                period_id = period.id
            else:
                logger.info(
                    "Payroll period already recorded config_id=%s from_date=%s period_id=%s",
                    config_id,
                    advance.finalized.from_date,
                    period_id,
                )
            step = AdvancementStep(
                config_id=config_id,
                period_id=period_id,
                finalized=advance.finalized,
                current=advance.current,
                second=advance.second,
                recorded=recorded,
            )
    except IntegrityError as exc:
        # Another writer recorded the same period after the pre-check.
        raise ConcurrentAdvanceError(
            f"Payroll config {config_id} period was recorded concurrently while advancing"
        ) from exc
    except SQLAlchemyError as exc:
        raise SchedulePersistenceError(f"Failed to persist advancement for payroll config {config_id}") from exc

    return AdvancementOutcome(step=step, current=step.current)


def _advance_in_new_session(
    session_factory: sessionmaker[Session],
    config_id: int,
    today: date,
) -> AdvancementOutcome:
    with session_factory() as session:
        return advance_config_once(session, config_id=config_id, today=today)


async def run_schedule_generation(
    config_id: int,
    *,
    session_factory: sessionmaker[Session],
    today: date | None = None,
    max_iterations: int = MAX_GENERATION_ITERATIONS,
) -> ScheduleGenerationResult:
    """Roll a payroll configuration forward until its current period is not past ``today``.

    At most ``max_iterations`` periods are generated per call; a configuration
    further behind than that catches up on the next trigger.
    """
    if today is None:
        today = local_today(get_settings().timezone)
    max_iterations = min(max_iterations, MAX_GENERATION_ITERATIONS)

    steps: list[AdvancementStep] = []
    stop_reason: str | None = None
    current: PeriodState | None = None

    for iteration in range(max_iterations):
        try:
            outcome = await asyncio.to_thread(_advance_in_new_session, session_factory, config_id, today)
        except ConcurrentAdvanceError:
            logger.warning(
                "Payroll cycle generation conflict config_id=%s iteration=%s; re-reading",
                config_id,
                iteration,
            )
            continue

        if outcome.stop_reason is not None:
            stop_reason = outcome.stop_reason
            current = outcome.current
            break

        steps.append(outcome.step)
        current = outcome.current
        logger.debug(
            "Payroll config advanced config_id=%s finalized=%s..%s current=%s..%s",
            config_id,
            outcome.step.finalized.from_date,
            outcome.step.finalized.to_date,
            outcome.step.current.from_date,
            outcome.step.current.to_date,
        )

    if stop_reason is None:
        if current is not None and current.to_date >= today:
            stop_reason = STOP_CAUGHT_UP
        else:
            stop_reason = STOP_ITERATION_CAP

    if stop_reason == STOP_ITERATION_CAP:
        logger.warning(
            "Payroll cycle generation hit iteration cap config_id=%s max_iterations=%s advanced=%s",
            config_id,
            max_iterations,
            len(steps),
        )
    else:
        logger.info(
            "Payroll cycle generation completed config_id=%s today=%s advanced=%s stop_reason=%s",
            config_id,
            today,
            len(steps),
            stop_reason,
        )

    return ScheduleGenerationResult(
        config_id=config_id,
        today=today,
        stop_reason=stop_reason,
        steps=tuple(steps),
        current=current,
    )


def find_configs_behind_if_ready(session: Session, *, today: date) -> list[int] | None:
    inspector = inspect(session.bind)
    tables = set(inspector.get_table_names())
    if not {"payroll_config_settings", "payroll_periods"}.issubset(tables):
        logger.debug("Payroll cycle readiness check failed tables=%s", ",".join(sorted(tables)))
        return None
    return list(
        session.scalars(
            select(PayrollCycleConfig.id)
            .where(PayrollCycleConfig.to_date < today)
            .order_by(PayrollCycleConfig.id)
        ).all()
    )
