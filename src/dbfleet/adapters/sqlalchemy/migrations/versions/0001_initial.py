"""Create the desired-state store tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _record_columns() -> list[sa.Column[object]]:
    return [
        sa.Column("namespace", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("finalizers", sa.JSON(), nullable=False),
        sa.Column("deletion_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resource_version", sa.Integer(), nullable=False),
    ]


def _primary_key(table: str) -> sa.PrimaryKeyConstraint:
    return sa.PrimaryKeyConstraint("namespace", "name", name=f"pk_{table}")


def upgrade() -> None:
    op.create_table(
        "deployment",
        *_record_columns(),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("spec", sa.JSON(), nullable=False),
        sa.Column("status", sa.JSON(), nullable=False),
        sa.Column("generation", sa.Integer(), nullable=False),
        sa.Column("keep_on_delete", sa.Boolean(), nullable=False),
        sa.Column("external_project", sa.Boolean(), nullable=False),
        _primary_key("deployment"),
    )
    op.create_index("ix_deployment_project_id", "deployment", ["project_id"])

    op.create_table(
        "backup_schedule",
        *_record_columns(),
        sa.Column("policy_ref", sa.JSON(), nullable=False),
        sa.Column("auto_export_enabled", sa.Boolean(), nullable=False),
        sa.Column("reference_hour_of_day", sa.Integer(), nullable=True),
        sa.Column("reference_minute_of_hour", sa.Integer(), nullable=True),
        sa.Column("restore_window_days", sa.Integer(), nullable=True),
        sa.Column("use_org_and_group_names_in_export_prefix", sa.Boolean(), nullable=False),
        sa.Column("copy_settings", sa.JSON(), nullable=False),
        sa.Column("update_snapshots", sa.Boolean(), nullable=False),
        sa.Column("deployment_ids", sa.JSON(), nullable=False),
        _primary_key("backup_schedule"),
    )

    op.create_table(
        "backup_policy",
        *_record_columns(),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("backup_schedule_ids", sa.JSON(), nullable=False),
        _primary_key("backup_policy"),
    )

    op.create_table(
        "search_index_config",
        *_record_columns(),
        sa.Column("analyzer", sa.String(), nullable=True),
        sa.Column("search_analyzer", sa.String(), nullable=True),
        sa.Column("analyzers", sa.JSON(), nullable=False),
        sa.Column("stored_source", sa.JSON(), nullable=True),
        _primary_key("search_index_config"),
    )

    op.create_table(
        "database_user",
        *_record_columns(),
        sa.Column("project_id", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("scopes", sa.JSON(), nullable=False),
        sa.Column("ready", sa.Boolean(), nullable=False),
        _primary_key("database_user"),
    )
    op.create_index("ix_database_user_project_id", "database_user", ["project_id"])

    op.create_table(
        "connection_secret",
        *_record_columns(),
        sa.Column("labels", sa.JSON(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        _primary_key("connection_secret"),
    )


def downgrade() -> None:
    op.drop_table("connection_secret")
    op.drop_index("ix_database_user_project_id", table_name="database_user")
    op.drop_table("database_user")
    op.drop_table("search_index_config")
    op.drop_table("backup_policy")
    op.drop_table("backup_schedule")
    op.drop_index("ix_deployment_project_id", table_name="deployment")
    op.drop_table("deployment")
