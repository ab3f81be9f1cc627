from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from paycycle.config import get_settings
from paycycle.db import SessionLocal
from paycycle.logging_config import configure_logging
from paycycle.routes.api import api_router
from paycycle.services.cycle_events import PayrollCycleEvents
from paycycle.services.date_engine import local_today
from paycycle.services.schedule_generation import find_configs_behind_if_ready

configure_logging()
logger = logging.getLogger(__name__)


def _emit_startup_catch_up(events: PayrollCycleEvents) -> None:
    today = local_today(get_settings().timezone)
    with events.session_factory() as session:
        try:
            config_ids = find_configs_behind_if_ready(session, today=today)
        except SQLAlchemyError:
            logger.exception("Payroll cycle startup catch-up query failed")
            return
    if config_ids is None:
        logger.info("Skipping payroll cycle startup catch-up; schema not ready yet")
        return
    for config_id in config_ids:
        events.emit(config_id)
    logger.info("Payroll cycle startup catch-up scheduled configs=%s today=%s", len(config_ids), today)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PayCycle application")
    settings = get_settings()
    events = PayrollCycleEvents(
        app.state.session_factory,
        max_iterations=settings.max_generation_iterations,
        timeout_seconds=settings.generation_timeout_seconds,
    )
    events.start()
    app.state.cycle_events = events
    if settings.run_startup_jobs:
        _emit_startup_catch_up(events)
    else:
        logger.info("Startup jobs disabled for this container role")
    yield
    await events.drain()
    logger.info("Shutting down PayCycle application")


def create_app(session_factory: sessionmaker[Session] | None = None) -> FastAPI:
    app = FastAPI(title="PayCycle", version="0.1.0", lifespan=lifespan)
    app.state.session_factory = session_factory or SessionLocal
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
