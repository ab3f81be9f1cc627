"""Payroll cycle configuration and period tables

Revision ID: 20241001_0001
Revises: 
Create Date: 2024-10-01 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20241001_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "payroll_config_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("payroll_cycle_id", sa.Integer(), nullable=False),
        sa.Column("from_date", sa.Date(), nullable=False),
        sa.Column("to_date", sa.Date(), nullable=False),
        sa.Column("actual_check_date", sa.Date(), nullable=False),
        sa.Column("check_date", sa.Date(), nullable=False),
        sa.Column("second_from_date", sa.Date(), nullable=True),
        sa.Column("second_to_date", sa.Date(), nullable=True),
        sa.Column("second_actual_check_date", sa.Date(), nullable=True),
        sa.Column("second_check_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("name"),
        sa.CheckConstraint("payroll_cycle_id IN (1,2,3,4,5)", name="ck_payroll_config_settings_cycle"),
        sa.CheckConstraint("to_date >= from_date", name="ck_payroll_config_settings_range"),
    )

    op.create_table(
        "payroll_periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pay_config_setting_id", sa.Integer(), nullable=False),
        sa.Column("from_date", sa.Date(), nullable=False),
        sa.Column("to_date", sa.Date(), nullable=False),
        sa.Column("check_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False, server_default="Yet to generate"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.ForeignKeyConstraint(["pay_config_setting_id"], ["payroll_config_settings.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('Yet to generate','Drafted','Submitted','Skipped')",
            name="ck_payroll_periods_status",
        ),
    )
    op.create_index(
        "ix_payroll_periods_config_from_date",
        "payroll_periods",
        ["pay_config_setting_id", "from_date"],
    )


def downgrade() -> None:
    op.drop_index("ix_payroll_periods_config_from_date", table_name="payroll_periods")
    op.drop_table("payroll_periods")
    op.drop_table("payroll_config_settings")
