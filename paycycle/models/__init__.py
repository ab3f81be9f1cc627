from paycycle.models.payroll import PayrollCycle, PayrollCycleConfig, PayrollPeriod

__all__ = [
    "PayrollCycle",
    "PayrollCycleConfig",
    "PayrollPeriod",
]
