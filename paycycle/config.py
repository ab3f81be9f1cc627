from __future__ import annotations

import os
from dataclasses import dataclass


# Upper bound on periods generated per run; the environment may only lower it.
GENERATION_ITERATION_CEILING = 16


@dataclass(frozen=True)
class Settings:
    database_url: str
    timezone: str
    sqlite_busy_timeout_ms: int
    max_generation_iterations: int
    generation_timeout_seconds: float
    run_startup_jobs: bool


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./paycycle.db"),
        timezone=os.getenv("TZ", "America/Los_Angeles"),
        sqlite_busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        max_generation_iterations=max(
            1, min(int(os.getenv("PAYROLL_MAX_GENERATION_ITERATIONS", "16")), GENERATION_ITERATION_CEILING)
        ),
        generation_timeout_seconds=float(os.getenv("PAYROLL_GENERATION_TIMEOUT_SECONDS", "30")),
        run_startup_jobs=_env_flag("RUN_STARTUP_JOBS", "1"),
    )
