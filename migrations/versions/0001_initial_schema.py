"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from anonboard.db.types import UTCDateTime, UUIDBlob

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create boards, threads, posts and bans."""
    op.create_table(
        "boards",
        sa.Column("id", UUIDBlob(), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
    )
    op.create_table(
        "threads",
        sa.Column("id", UUIDBlob(), primary_key=True),
        sa.Column("board_id", UUIDBlob(), sa.ForeignKey("boards.id", ondelete="CASCADE"), nullable=False),
        sa.Column("last_bump", UTCDateTime(), nullable=False),
        sa.Column("is_sticky", sa.Boolean(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
    )
    op.create_index("idx_threads_board_bump", "threads", ["board_id", "is_sticky", "last_bump"])
    op.create_table(
        "posts",
        sa.Column("id", UUIDBlob(), primary_key=True),
        sa.Column("thread_id", UUIDBlob(), sa.ForeignKey("threads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id_in_thread", sa.String(length=8), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media_id", sa.String(length=64), nullable=True),
        sa.Column("is_op", sa.Boolean(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
    )
    op.create_index("idx_posts_thread", "posts", ["thread_id", "created_at"])
    op.create_table(
        "bans",
        sa.Column("id", UUIDBlob(), primary_key=True),
        sa.Column("ip_address", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("expires_at", UTCDateTime(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
    )
    op.create_index("ix_bans_ip_address", "bans", ["ip_address"])


def downgrade() -> None:
    """Drop every table."""
    op.drop_index("ix_bans_ip_address", table_name="bans")
    op.drop_table("bans")
    op.drop_index("idx_posts_thread", table_name="posts")
    op.drop_table("posts")
    op.drop_index("idx_threads_board_bump", table_name="threads")
    op.drop_table("threads")
    op.drop_table("boards")
