"""Base schema: bookmarks, archives, archive_transitions.

archive_transitions is append-only; exactly one row per archive carries most_recent = true,
enforced by a partial unique index.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "000_base"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1) bookmarks
    op.create_table(
        "bookmarks",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("url", sa.String(2048), nullable=False, unique=True),
        sa.Column("submitted_url", sa.String(2048), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bookmarks_created_at", "bookmarks", ["created_at"], unique=False, if_not_exists=True)

    # 2) archives (one per bookmark)
    op.create_table(
        "archives",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "bookmark_id",
            UUID(as_uuid=True),
            sa.ForeignKey("bookmarks.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_text", sa.Text(), nullable=True),
        sa.Column("content_html", sa.Text(), nullable=True),
        sa.Column("raw_html", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # 3) archive_transitions
    op.create_table(
        "archive_transitions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "archive_id",
            UUID(as_uuid=True),
            sa.ForeignKey("archives.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("to_state", sa.String(32), nullable=False),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column("sort_key", sa.Integer(), nullable=False),
        sa.Column("most_recent", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_archive_transitions_archive_id", "archive_transitions", ["archive_id"], unique=False, if_not_exists=True
    )
    op.create_index(
        "ix_archive_transitions_parent_sort",
        "archive_transitions",
        ["archive_id", "sort_key"],
        unique=True,
        if_not_exists=True,
    )
    op.create_index(
        "ix_archive_transitions_parent_most_recent",
        "archive_transitions",
        ["archive_id", "most_recent"],
        unique=True,
        postgresql_where=sa.text("most_recent"),
        if_not_exists=True,
    )


def downgrade() -> None:
    op.drop_index("ix_archive_transitions_parent_most_recent", table_name="archive_transitions")
    op.drop_index("ix_archive_transitions_parent_sort", table_name="archive_transitions")
    op.drop_index("ix_archive_transitions_archive_id", table_name="archive_transitions")
    op.drop_table("archive_transitions")
    op.drop_table("archives")
    op.drop_index("ix_bookmarks_created_at", table_name="bookmarks")
    op.drop_table("bookmarks")
