from __future__ import annotations

import asyncio
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from paycycle.config import get_settings
from paycycle.db import get_db_session
from paycycle.models.payroll import PAYROLL_CYCLE_NAMES, PayrollCycle, PayrollCycleConfig, PayrollPeriod
from paycycle.services.cycle_engine import PayrollCycleError, PeriodState, suggest_period_dates
from paycycle.services.cycle_events import PayrollCycleEvents
from paycycle.services.date_engine import DateComputationError, local_today
from paycycle.services.payroll_config_service import (
    PayrollConfigInput,
    PayrollConfigNotFoundError,
    PayrollConfigValidationError,
    create_payroll_config,
    get_edit_from_date,
    get_payroll_config,
    list_payroll_configs,
    list_payroll_periods,
    list_upcoming_payroll_periods,
    update_payroll_config,
)
from paycycle.services.schedule_generation import (
    STOP_NOT_FOUND,
    ScheduleGenerationResult,
    SchedulePersistenceError,
)

api_router = APIRouter(tags=["api"])


def get_cycle_events(request: Request) -> PayrollCycleEvents:
    return request.app.state.cycle_events


class PayrollConfigRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    payroll_cycle_id: int
    from_date: date
    to_date: date
    actual_check_date: date
    check_date: date
    second_from_date: date | None = None
    second_to_date: date | None = None
    second_actual_check_date: date | None = None
    second_check_date: date | None = None

    def to_input(self, edit_from_date: date | None = None) -> PayrollConfigInput:
        return PayrollConfigInput(
            name=self.name,
            payroll_cycle_id=self.payroll_cycle_id,
            from_date=self.from_date,
            to_date=self.to_date,
            actual_check_date=self.actual_check_date,
            check_date=self.check_date,
            second_from_date=self.second_from_date,
            second_to_date=self.second_to_date,
            second_actual_check_date=self.second_actual_check_date,
            second_check_date=self.second_check_date,
            edit_from_date=edit_from_date,
        )


class PayrollConfigUpdateRequest(PayrollConfigRequest):
    edit_from_date: date | None = None


class PayrollConfigResponse(BaseModel):
    id: int
    name: str
    payroll_cycle_id: int
    payroll_cycle_name: str
    from_date: date
    to_date: date
    actual_check_date: date
    check_date: date
    second_from_date: date | None
    second_to_date: date | None
    second_actual_check_date: date | None
    second_check_date: date | None

    @classmethod
    def from_model(cls, config: PayrollCycleConfig) -> "PayrollConfigResponse":
        return cls(
            id=config.id,
            name=config.name,
            payroll_cycle_id=config.payroll_cycle_id,
            payroll_cycle_name=PAYROLL_CYCLE_NAMES[PayrollCycle(config.payroll_cycle_id)],
            from_date=config.from_date,
            to_date=config.to_date,
            actual_check_date=config.actual_check_date,
            check_date=config.check_date,
            second_from_date=config.second_from_date,
            second_to_date=config.second_to_date,
            second_actual_check_date=config.second_actual_check_date,
            second_check_date=config.second_check_date,
        )


class PayrollConfigDetailResponse(PayrollConfigResponse):
    edit_from_date: date | None


class UpcomingPayrollPeriodResponse(BaseModel):
    id: int
    pay_config_setting_id: int
    name: str
    payroll_cycle_id: int
    payroll_cycle_name: str
    from_date: date
    to_date: date
    check_date: date

    @classmethod
    def from_row(cls, period: PayrollPeriod, config: PayrollCycleConfig) -> "UpcomingPayrollPeriodResponse":
        return cls(
            id=period.id,
            pay_config_setting_id=config.id,
            name=config.name,
            payroll_cycle_id=config.payroll_cycle_id,
            payroll_cycle_name=PAYROLL_CYCLE_NAMES[PayrollCycle(config.payroll_cycle_id)],
            from_date=period.from_date,
            to_date=period.to_date,
            check_date=period.check_date,
        )


class PayrollPeriodResponse(BaseModel):
    id: int
    pay_config_setting_id: int
    from_date: date
    to_date: date
    check_date: date
    status: str

    @classmethod
    def from_model(cls, period: PayrollPeriod) -> "PayrollPeriodResponse":
        return cls(
            id=period.id,
            pay_config_setting_id=period.pay_config_setting_id,
            from_date=period.from_date,
            to_date=period.to_date,
            check_date=period.check_date,
            status=period.status,
        )


class SuggestDatesRequest(BaseModel):
    payroll_cycle_id: int
    from_date: date
    second_from_date: date | None = None


class ManualGenerationRequest(BaseModel):
    today: date | None = None


def _serialize_period_state(state: PeriodState | None) -> dict[str, str] | None:
    if state is None:
        return None
    return {
        "from_date": state.from_date.isoformat(),
        "to_date": state.to_date.isoformat(),
        "actual_check_date": state.actual_check_date.isoformat(),
        "check_date": state.check_date.isoformat(),
    }


def _serialize_generation_result(result: ScheduleGenerationResult) -> dict[str, object]:
    return {
        "config_id": result.config_id,
        "today": result.today.isoformat(),
        "stop_reason": result.stop_reason,
        "advanced_count": result.advanced_count,
        "current": _serialize_period_state(result.current),
        "generated_periods": [
            {"period_id": step.period_id, "recorded": step.recorded, **_serialize_period_state(step.finalized)}
            for step in result.steps
        ],
    }


@api_router.get("/health")
def health_check(db: Session = Depends(get_db_session)) -> dict[str, str]:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=503, detail="database unavailable") from exc
    return {"status": "ok"}


@api_router.get("/payroll-configs")
def payroll_configs_list(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=200),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    result = list_payroll_configs(db, page=page, limit=limit)
    return {
        "data": [PayrollConfigResponse.from_model(config).model_dump(mode="json") for config in result.items],
        "pagination": {"page": result.page, "limit": result.limit, "total": result.total},
    }


@api_router.post("/payroll-configs", response_model=PayrollConfigResponse, status_code=201)
def payroll_configs_create(
    payload: PayrollConfigRequest,
    db: Session = Depends(get_db_session),
    events: PayrollCycleEvents = Depends(get_cycle_events),
) -> PayrollConfigResponse:
    try:
        config = create_payroll_config(db, payload.to_input(), events=events)
    except PayrollConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PayrollConfigResponse.from_model(config)


@api_router.post("/payroll-configs/suggest-dates")
def payroll_configs_suggest_dates(payload: SuggestDatesRequest) -> dict[str, str | None]:
    try:
        suggested = suggest_period_dates(payload.payroll_cycle_id, payload.from_date, payload.second_from_date)
    except (PayrollCycleError, DateComputationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "to_date": None if suggested.to_date is None else suggested.to_date.isoformat(),
        "second_to_date": None if suggested.second_to_date is None else suggested.second_to_date.isoformat(),
    }


@api_router.get("/payroll-configs/{config_id}", response_model=PayrollConfigDetailResponse)
def payroll_configs_get(config_id: int, db: Session = Depends(get_db_session)) -> PayrollConfigDetailResponse:
    try:
        config = get_payroll_config(db, config_id)
        edit_from_date = get_edit_from_date(db, config_id)
    except PayrollConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DateComputationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PayrollConfigDetailResponse(
        **PayrollConfigResponse.from_model(config).model_dump(),
        edit_from_date=edit_from_date,
    )


@api_router.put("/payroll-configs/{config_id}", response_model=PayrollConfigResponse)
def payroll_configs_update(
    config_id: int,
    payload: PayrollConfigUpdateRequest,
    db: Session = Depends(get_db_session),
    events: PayrollCycleEvents = Depends(get_cycle_events),
) -> PayrollConfigResponse:
    try:
        config = update_payroll_config(db, config_id, payload.to_input(payload.edit_from_date), events=events)
    except PayrollConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PayrollConfigValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PayrollConfigResponse.from_model(config)


@api_router.get("/payroll-configs/{config_id}/periods", response_model=list[PayrollPeriodResponse])
def payroll_configs_periods(config_id: int, db: Session = Depends(get_db_session)) -> list[PayrollPeriodResponse]:
    try:
        periods = list_payroll_periods(db, config_id)
    except PayrollConfigNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [PayrollPeriodResponse.from_model(period) for period in periods]


@api_router.get("/payroll-periods/upcoming")
def payroll_periods_upcoming(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=200),
    today: date | None = Query(default=None),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    if today is None:
        today = local_today(get_settings().timezone)
    result = list_upcoming_payroll_periods(db, today=today, page=page, limit=limit)
    return {
        "data": [
            UpcomingPayrollPeriodResponse.from_row(period, config).model_dump(mode="json")
            for period, config in result.items
        ],
        "pagination": {"page": result.page, "limit": result.limit, "total": result.total},
    }


@api_router.post("/payroll-configs/{config_id}/generate")
async def payroll_configs_generate(
    config_id: int,
    payload: ManualGenerationRequest | None = None,
    events: PayrollCycleEvents = Depends(get_cycle_events),
) -> dict[str, object]:
    today = payload.today if payload is not None else None
    try:
        result = await events.run_now(config_id, today=today)
    except (PayrollCycleError, DateComputationError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SchedulePersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except asyncio.TimeoutError as exc:
        raise HTTPException(status_code=504, detail="payroll cycle generation timed out") from exc
    if result.stop_reason == STOP_NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Payroll configuration {config_id} not found")
    return _serialize_generation_result(result)
