#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""Initial schema: users, pages, attachments

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


# -----------------------------------------------------------------------------

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


# -----------------------------------------------------------------------------

def upgrade() -> None:
    # ── users ──────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id",            sa.Uuid(),      primary_key=True),
        sa.Column("login",         sa.String(64),  nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active",     sa.Boolean(),   nullable=False, server_default=sa.true()),
        sa.Column("is_admin",      sa.Boolean(),   nullable=False, server_default=sa.false()),
        sa.Column("created_at",    sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_login", "users", ["login"], unique=True)

    # ── pages ──────────────────────────────────────────────────────────────────
    op.create_table(
        "pages",
        sa.Column("id",          sa.Uuid(),      primary_key=True),
        sa.Column("path",        sa.String(512), nullable=False),
        sa.Column("created_at",  sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_pages_path", "pages", ["path"], unique=True)

    # ── attachments ────────────────────────────────────────────────────────────
    op.create_table(
        "attachments",
        sa.Column("id",           sa.Integer(),    primary_key=True, autoincrement=True),
        sa.Column("page_id",      sa.Uuid(),       sa.ForeignKey("pages.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name",         sa.Text(),       nullable=False),
        sa.Column("content_type", sa.String(128),  nullable=False, server_default="application/octet-stream"),
        sa.Column("size_bytes",   sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at",   sa.DateTime(timezone=True), server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_attachments_page_id", "attachments", ["page_id"])


# -----------------------------------------------------------------------------

def downgrade() -> None:
    op.drop_table("attachments")
    op.drop_table("pages")
    op.drop_table("users")


# -----------------------------------------------------------------------------
