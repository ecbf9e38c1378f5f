"""initial

Revision ID: 20261001_0001
Revises: 
Create Date: 2026-10-01

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=255), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )

    op.create_table(
        "canvases",
        sa.Column("canvas_id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "owner_id",
            sa.String(length=255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("document_data", sa.JSON(), nullable=False),
        sa.Column("session_data", sa.JSON(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_canvases_owner_id", "canvases", ["owner_id"], unique=False)
    op.create_index("ix_canvases_updated_at", "canvases", ["updated_at"], unique=False)

    op.create_table(
        "canvas_assets",
        sa.Column("asset_id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "canvas_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("canvases.canvas_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("external_asset_id", sa.String(length=255), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("public_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=128), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_canvas_assets_canvas_id", "canvas_assets", ["canvas_id"], unique=False)
    op.create_index("ix_canvas_assets_external_asset_id", "canvas_assets", ["external_asset_id"], unique=False)

    op.create_table(
        "canvas_shares",
        sa.Column("share_id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "canvas_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("canvases.canvas_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "grantee_user_id",
            sa.String(length=255),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("permission_level", sa.String(length=16), nullable=False, server_default="VIEW"),
        sa.Column("granted_by_user_id", sa.String(length=255), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.UniqueConstraint("canvas_id", "grantee_user_id", name="uq_canvas_shares_canvas_grantee"),
    )
    op.create_index("ix_canvas_shares_canvas_id", "canvas_shares", ["canvas_id"], unique=False)
    op.create_index("ix_canvas_shares_grantee_user_id", "canvas_shares", ["grantee_user_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("audit_id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_user_id", sa.String(length=255), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_canvas_shares_grantee_user_id", table_name="canvas_shares")
    op.drop_index("ix_canvas_shares_canvas_id", table_name="canvas_shares")
    op.drop_table("canvas_shares")
    op.drop_index("ix_canvas_assets_external_asset_id", table_name="canvas_assets")
    op.drop_index("ix_canvas_assets_canvas_id", table_name="canvas_assets")
    op.drop_table("canvas_assets")
    op.drop_index("ix_canvases_updated_at", table_name="canvases")
    op.drop_index("ix_canvases_owner_id", table_name="canvases")
    op.drop_table("canvases")
    op.drop_table("users")
