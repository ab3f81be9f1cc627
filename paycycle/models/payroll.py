from __future__ import annotations

from datetime import date
from enum import IntEnum

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from paycycle.models.base import Base, TimestampMixin


class PayrollCycle(IntEnum):
    WEEKLY = 1
    BI_WEEKLY = 2
    SEMI_MONTHLY = 3
    MONTHLY = 4
    CUSTOM = 5


PAYROLL_CYCLE_NAMES = {
    PayrollCycle.WEEKLY: "Weekly",
    PayrollCycle.BI_WEEKLY: "Bi-Weekly",
    PayrollCycle.SEMI_MONTHLY: "Semi-Monthly",
    PayrollCycle.MONTHLY: "Monthly",
    PayrollCycle.CUSTOM: "Custom",
}

PERIOD_STATUS_YET_TO_GENERATE = "Yet to generate"
PERIOD_STATUSES = (PERIOD_STATUS_YET_TO_GENERATE, "Drafted", "Submitted", "Skipped")


class PayrollCycleConfig(TimestampMixin, Base):
    __tablename__ = "payroll_config_settings"
    __table_args__ = (
        CheckConstraint("payroll_cycle_id IN (1,2,3,4,5)", name="ck_payroll_config_settings_cycle"),
        CheckConstraint("to_date >= from_date", name="ck_payroll_config_settings_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    payroll_cycle_id: Mapped[int] = mapped_column(Integer, nullable=False)
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_check_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_date: Mapped[date] = mapped_column(Date, nullable=False)
    second_from_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    second_to_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    second_actual_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    second_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    periods: Mapped[list["PayrollPeriod"]] = relationship(
        back_populates="config",
        cascade="all, delete-orphan",
        order_by="PayrollPeriod.from_date",
    )


class PayrollPeriod(TimestampMixin, Base):
    __tablename__ = "payroll_periods"
    __table_args__ = (
        UniqueConstraint("pay_config_setting_id", "from_date", name="uq_payroll_periods_config_from_date"),
        CheckConstraint(
            "status IN ('Yet to generate','Drafted','Submitted','Skipped')",
            name="ck_payroll_periods_status",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    pay_config_setting_id: Mapped[int] = mapped_column(
        ForeignKey("payroll_config_settings.id", ondelete="CASCADE"), nullable=False
    )
    from_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(24), nullable=False, default=PERIOD_STATUS_YET_TO_GENERATE)

    config: Mapped[PayrollCycleConfig] = relationship(back_populates="periods")
