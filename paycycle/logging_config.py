from __future__ import annotations

import contextvars
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager


_active_cycle: contextvars.ContextVar[str] = contextvars.ContextVar("active_cycle", default="-")


class _PayrollCycleFilter(logging.Filter):
    """Stamp each record with the payroll configuration being generated, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "cycle"):
            record.cycle = _active_cycle.get()
        return True


@contextmanager
def payroll_cycle_log_context(config_id: int) -> Iterator[None]:
    token = _active_cycle.set(f"cycle-{config_id}")
    try:
        yield
    finally:
        _active_cycle.reset(token)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s {%(cycle)s} %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    handler.addFilter(_PayrollCycleFilter())
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        handlers=[handler],
        force=True,
    )
    # Statement echo is opt-in; generation issues several statements per period.
    sql_level = logging.INFO if os.getenv("LOG_SQL", "").strip().lower() in {"1", "true", "yes"} else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)
