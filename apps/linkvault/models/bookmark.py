"""bookmarks model. A saved URL with a user note; owns exactly one Archive."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from apps.linkvault.models.base import Base, utcnow

URL_MAX_LENGTH = 2048


class Bookmark(Base):
    __tablename__ = "bookmarks"
    __table_args__ = (Index("ix_bookmarks_created_at", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    url: Mapped[str] = mapped_column(String(URL_MAX_LENGTH), nullable=False, unique=True)
    submitted_url: Mapped[str] = mapped_column(String(URL_MAX_LENGTH), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    archive = relationship(
        "Archive",
        back_populates="bookmark",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
