"""archive_transitions model. Append-only state history for an Archive."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid, select, text
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship
from sqlalchemy.sql import func

from apps.linkvault.models.archive import Archive
from apps.linkvault.models.base import Base, JSONType, utcnow


class ArchiveTransition(Base):
    """One state change. Exactly one row per archive has most_recent = true."""

    __tablename__ = "archive_transitions"
    __table_args__ = (
        Index(
            "ix_archive_transitions_parent_sort",
            "archive_id",
            "sort_key",
            unique=True,
        ),
        Index(
            "ix_archive_transitions_parent_most_recent",
            "archive_id",
            "most_recent",
            unique=True,
            postgresql_where=text("most_recent"),
            sqlite_where=text("most_recent"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    archive_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("archives.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    to_state: Mapped[str] = mapped_column(String(32), nullable=False)
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True, default=dict)
    sort_key: Mapped[int] = mapped_column(Integer, nullable=False)
    most_recent: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    archive = relationship("Archive", back_populates="transitions")


# Current state read straight from the most-recent transition at load time.
Archive.current_state = column_property(
    select(ArchiveTransition.to_state)
    .where(
        ArchiveTransition.archive_id == Archive.id,
        ArchiveTransition.most_recent.is_(True),
    )
    .correlate_except(ArchiveTransition)
    .scalar_subquery()
)
