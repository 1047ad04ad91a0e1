"""001 initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

Creates the tenancy tables (agencies, dealerships, users, user_preferences),
work items (requests), the monthly usage archive and the orphaned SEOWorks
task log.
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

package_tier = postgresql.ENUM("SILVER", "GOLD", "PLATINUM", name="packagetier", create_type=False)
user_role = postgresql.ENUM(
    "USER", "ADMIN", "AGENCY_ADMIN", "SUPER_ADMIN", name="userrole", create_type=False
)
request_status = postgresql.ENUM(
    "PENDING", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="requeststatus", create_type=False
)
request_priority = postgresql.ENUM(
    "LOW", "MEDIUM", "HIGH", name="requestpriority", create_type=False
)


def upgrade() -> None:
    """Create all tables."""
    bind = op.get_bind()
    for enum_type in (package_tier, user_role, request_status, request_priority):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "agencies",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "dealerships",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "agency_id",
            sa.String(36),
            sa.ForeignKey("agencies.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("active_package_type", package_tier, nullable=True),
        sa.Column("current_billing_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_billing_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pages_used_this_period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blogs_used_this_period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gbp_posts_used_this_period", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "improvements_used_this_period", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("pages_used_this_period >= 0", name="ck_dealership_pages_used"),
        sa.CheckConstraint("blogs_used_this_period >= 0", name="ck_dealership_blogs_used"),
        sa.CheckConstraint(
            "gbp_posts_used_this_period >= 0", name="ck_dealership_gbp_posts_used"
        ),
        sa.CheckConstraint(
            "improvements_used_this_period >= 0", name="ck_dealership_improvements_used"
        ),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column(
            "agency_id",
            sa.String(36),
            sa.ForeignKey("agencies.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "dealership_id",
            sa.String(36),
            sa.ForeignKey("dealerships.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_preferences",
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email_notifications", sa.Boolean(), nullable=False),
        sa.Column("request_created", sa.Boolean(), nullable=False),
        sa.Column("status_changed", sa.Boolean(), nullable=False),
        sa.Column("task_completed", sa.Boolean(), nullable=False),
        sa.Column("weekly_summary", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "requests",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "dealership_id",
            sa.String(36),
            sa.ForeignKey("dealerships.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "agency_id",
            sa.String(36),
            sa.ForeignKey("agencies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("priority", request_priority, nullable=False),
        sa.Column("status", request_status, nullable=False, index=True),
        sa.Column("package_type", package_tier, nullable=True),
        sa.Column("seoworks_task_id", sa.String(100), nullable=True),
        sa.Column("pages_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blogs_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("gbp_posts_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("improvements_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_tasks", sa.JSON(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_requests_seoworks_task_id", "requests", ["seoworks_task_id"], unique=True
    )
    op.create_index("ix_requests_user_id_status", "requests", ["user_id", "status"])

    op.create_table(
        "monthly_usage",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "dealership_id",
            sa.String(36),
            sa.ForeignKey("dealerships.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("package_type", package_tier, nullable=False),
        sa.Column("pages_used", sa.Integer(), nullable=False),
        sa.Column("blogs_used", sa.Integer(), nullable=False),
        sa.Column("gbp_posts_used", sa.Integer(), nullable=False),
        sa.Column("improvements_used", sa.Integer(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dealership_id", "month", "year", name="uq_monthly_usage_period"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_usage_month"),
    )

    op.create_table(
        "orphaned_tasks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("external_id", sa.String(100), nullable=False, index=True),
        sa.Column("client_id", sa.String(100), nullable=True, index=True),
        sa.Column("client_email", sa.String(320), nullable=True, index=True),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("task_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deliverables", sa.JSON(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False, index=True),
        sa.Column(
            "linked_request_id",
            sa.String(36),
            sa.ForeignKey("requests.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_table("orphaned_tasks")
    op.drop_table("monthly_usage")
    op.drop_index("ix_requests_user_id_status", table_name="requests")
    op.drop_index("ix_requests_seoworks_task_id", table_name="requests")
    op.drop_table("requests")
    op.drop_table("user_preferences")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("dealerships")
    op.drop_table("agencies")

    bind = op.get_bind()
    for enum_type in (request_priority, request_status, user_role, package_tier):
        enum_type.drop(bind, checkfirst=True)
