"""archives model. Durable record of one bookmark's content archival.

Rows are written only through services.state_machine (transition updates); the
current state lives in archive_transitions, mirrored here by current_state.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from apps.linkvault.models.base import Base, JSONType, utcnow

TITLE_MAX_LENGTH = 500
IMAGE_URL_MAX_LENGTH = 2048


class Archive(Base):
    __tablename__ = "archives"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    bookmark_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("bookmarks.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    title: Mapped[str | None] = mapped_column(String(TITLE_MAX_LENGTH), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    raw_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(IMAGE_URL_MAX_LENGTH), nullable=True)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True, default=dict)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    bookmark = relationship("Bookmark", back_populates="archive")
    transitions = relationship(
        "ArchiveTransition",
        back_populates="archive",
        order_by="ArchiveTransition.sort_key",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
