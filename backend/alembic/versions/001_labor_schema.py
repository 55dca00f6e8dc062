"""labor schema - farms, work_types, workers, attendance, settlements, transactions, temporary workers

Revision ID: 001
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_WORK_TYPES = ("pruning", "harvesting", "spraying", "weeding", "fertigation", "general")


def upgrade() -> None:
    op.create_table(
        "farms",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_farms_is_active"), "farms", ["is_active"], unique=False)

    work_types = op.create_table(
        "work_types",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_work_types_name"), "work_types", ["name"], unique=True)
    op.bulk_insert(work_types, [{"name": n, "is_default": True} for n in DEFAULT_WORK_TYPES])

    op.create_table(
        "workers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("advance_balance", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("daily_rate > 0", name="ck_workers_daily_rate_positive"),
        sa.CheckConstraint("advance_balance >= 0", name="ck_workers_advance_balance_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workers_name"), "workers", ["name"], unique=False)
    op.create_index(op.f("ix_workers_is_active"), "workers", ["is_active"], unique=False)

    op.create_table(
        "worker_attendance",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("farm_ids", sa.JSON(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("work_status", sa.String(20), nullable=False),
        sa.Column("work_type", sa.String(100), nullable=False, server_default="general"),
        sa.Column("daily_rate_override", sa.Numeric(10, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("work_status IN ('full_day', 'half_day', 'absent')", name="ck_worker_attendance_status"),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("worker_id", "date", name="uq_worker_attendance_day"),
    )
    op.create_index(op.f("ix_worker_attendance_worker_id"), "worker_attendance", ["worker_id"], unique=False)
    op.create_index(op.f("ix_worker_attendance_date"), "worker_attendance", ["date"], unique=False)

    op.create_table(
        "worker_settlements",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("farm_id", sa.Integer(), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("days_worked", sa.Numeric(10, 2), nullable=False),
        sa.Column("gross_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("advance_deducted", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("net_payment", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("period_start <= period_end", name="ck_settlement_period"),
        sa.CheckConstraint("status IN ('draft', 'confirmed')", name="ck_settlement_status"),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["farm_id"], ["farms.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_worker_settlements_worker_id"), "worker_settlements", ["worker_id"], unique=False)
    op.create_index(op.f("ix_worker_settlements_period_start"), "worker_settlements", ["period_start"], unique=False)
    op.create_index(op.f("ix_worker_settlements_period_end"), "worker_settlements", ["period_end"], unique=False)
    op.create_index(op.f("ix_worker_settlements_status"), "worker_settlements", ["status"], unique=False)

    op.create_table(
        "worker_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("worker_id", sa.Integer(), nullable=False),
        sa.Column("farm_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("settlement_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("amount > 0", name="ck_worker_transactions_amount_positive"),
        sa.CheckConstraint(
            "type IN ('advance_given', 'advance_deducted', 'payment')", name="ck_worker_transactions_type"
        ),
        sa.ForeignKeyConstraint(["worker_id"], ["workers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["farm_id"], ["farms.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["settlement_id"], ["worker_settlements.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_worker_transactions_worker_id"), "worker_transactions", ["worker_id"], unique=False)
    op.create_index(op.f("ix_worker_transactions_farm_id"), "worker_transactions", ["farm_id"], unique=False)
    op.create_index(op.f("ix_worker_transactions_date"), "worker_transactions", ["date"], unique=False)
    op.create_index(op.f("ix_worker_transactions_type"), "worker_transactions", ["type"], unique=False)

    op.create_table(
        "temporary_worker_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("farm_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("hours_worked", sa.Numeric(6, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["farm_id"], ["farms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_temporary_worker_entries_farm_id"), "temporary_worker_entries", ["farm_id"], unique=False)
    op.create_index(op.f("ix_temporary_worker_entries_date"), "temporary_worker_entries", ["date"], unique=False)


def downgrade() -> None:
    op.drop_table("temporary_worker_entries")
    op.drop_table("worker_transactions")
    op.drop_table("worker_settlements")
    op.drop_table("worker_attendance")
    op.drop_table("workers")
    op.drop_table("work_types")
    op.drop_table("farms")
