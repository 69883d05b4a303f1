"""create_workflow_tables

Revision ID: 3f2a9c41b7d0
Revises:
Create Date: 2026-10-19 09:12:44.201833

"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c41b7d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "workflow",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("store_id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("trigger_conditions", sa.JSON(), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=True),
        sa.Column("next_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("total_executions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "successful_executions", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("failed_executions", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error_message", sa.Text(), nullable=True),
        sa.Column("last_error_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error_details", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_workflow_store_id"), "workflow", ["store_id"], unique=False)
    op.create_index(
        op.f("ix_workflow_organization_id"), "workflow", ["organization_id"], unique=False
    )
    op.create_index(
        "ix_workflow_store_trigger_active",
        "workflow",
        ["store_id", "trigger_type", "is_active"],
        unique=False,
    )
    op.create_index("ix_workflow_due", "workflow", ["trigger_type", "next_run"], unique=False)

    op.create_table(
        "entity_record",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("store_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_entity_record_store_id"), "entity_record", ["store_id"], unique=False
    )
    op.create_index(
        "ix_entity_record_kind_store", "entity_record", ["kind", "store_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_entity_record_kind_store", table_name="entity_record")
    op.drop_index(op.f("ix_entity_record_store_id"), table_name="entity_record")
    op.drop_table("entity_record")
    op.drop_index("ix_workflow_due", table_name="workflow")
    op.drop_index("ix_workflow_store_trigger_active", table_name="workflow")
    op.drop_index(op.f("ix_workflow_organization_id"), table_name="workflow")
    op.drop_index(op.f("ix_workflow_store_id"), table_name="workflow")
    op.drop_table("workflow")
