"""agent monthly reports, property referrals, setting metadata

Revision ID: 0002_agent_reports_and_settings
Revises: 0001_init
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = "0002_agent_reports_and_settings"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def _insp():
    return inspect(op.get_bind())


def _has_column(table: str, column: str) -> bool:
    return column in [c["name"] for c in _insp().get_columns(table)]


def upgrade() -> None:
    if not _has_column("settings", "description"):
        op.add_column("settings", sa.Column("description", sa.String(length=255), nullable=True))
    if not _has_column("settings", "category"):
        op.add_column(
            "settings",
            sa.Column("category", sa.String(length=40), nullable=False, server_default="general"),
        )

    op.create_table(
        "property_referrals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "property_id",
            sa.Integer(),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True, index=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("external", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("referral_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    money = dict(nullable=False, server_default="0")
    op.create_table(
        "agent_monthly_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("boosts", sa.Integer(), **money),
        sa.Column("listings_count", sa.Integer(), **money),
        sa.Column("lead_sources", sa.JSON(), nullable=True),
        sa.Column("viewings_count", sa.Integer(), **money),
        sa.Column("sales_count", sa.Integer(), **money),
        sa.Column("sales_amount", sa.Float(), **money),
        sa.Column("agent_commission", sa.Float(), **money),
        sa.Column("finders_commission", sa.Float(), **money),
        sa.Column("referral_commission", sa.Float(), **money),
        sa.Column("team_leader_commission", sa.Float(), **money),
        sa.Column("administration_commission", sa.Float(), **money),
        sa.Column("total_commission", sa.Float(), **money),
        sa.Column("referral_received_count", sa.Integer(), **money),
        sa.Column("referral_received_commission", sa.Float(), **money),
        sa.Column("referrals_on_properties_count", sa.Integer(), **money),
        sa.Column("referrals_on_properties_commission", sa.Float(), **money),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("agent_id", "start_date", "end_date", name="uq_agent_monthly_reports_agent_range"),
    )


def downgrade() -> None:
    op.drop_table("agent_monthly_reports")
    op.drop_table("property_referrals")
    if _has_column("settings", "category"):
        op.drop_column("settings", "category")
    if _has_column("settings", "description"):
        op.drop_column("settings", "description")
