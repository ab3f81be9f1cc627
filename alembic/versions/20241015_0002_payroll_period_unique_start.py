"""Unique payroll period start per configuration

Revision ID: 20241015_0002
Revises: 20241001_0001
Create Date: 2024-10-15 09:00:00
"""
from __future__ import annotations

from alembic import op


revision = "20241015_0002"
down_revision = "20241001_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.drop_index("ix_payroll_periods_config_from_date", table_name="payroll_periods")
    with op.batch_alter_table("payroll_periods") as batch_op:
        batch_op.create_unique_constraint(
            "uq_payroll_periods_config_from_date",
            ["pay_config_setting_id", "from_date"],
        )


def downgrade() -> None:
    with op.batch_alter_table("payroll_periods") as batch_op:
        batch_op.drop_constraint("uq_payroll_periods_config_from_date", type_="unique")
    op.create_index(
        "ix_payroll_periods_config_from_date",
        "payroll_periods",
        ["pay_config_setting_id", "from_date"],
    )
