"""Repository layer for bookmarks and archives.

RULE: archive state and archive columns change only via services.state_machine.transition_to.
This module creates rows, loads them, and deletes bookmarks (cascading to archives and transitions).
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import joinedload

from apps.linkvault.db import get_db
from apps.linkvault.models.archive import Archive
from apps.linkvault.models.archive_transition import ArchiveTransition
from apps.linkvault.models.bookmark import Bookmark
from apps.linkvault.services.state_machine import create_initial_transition


class RecordNotFound(LookupError):
    """Raised when a bookmark or archive lookup finds nothing. Jobs discard on this."""

    pass


def insert_bookmark(url: str, submitted_url: str, note: str | None = None) -> Bookmark:
    with get_db() as session:
        bookmark = Bookmark(url=url, submitted_url=submitted_url, note=note)
        session.add(bookmark)
        session.flush()
        return bookmark


def get_bookmark(bookmark_id: uuid.UUID) -> Bookmark:
    with get_db() as session:
        bookmark = session.get(Bookmark, bookmark_id)
        if bookmark is None:
            raise RecordNotFound(f"bookmark {bookmark_id} not found")
        return bookmark


def get_bookmark_by_url(url: str) -> Bookmark | None:
    with get_db() as session:
        return session.execute(select(Bookmark).where(Bookmark.url == url)).scalar_one_or_none()


def create_archive(bookmark_id: uuid.UUID) -> Archive:
    """Insert the archive row and its initial pending transition in one transaction."""
    with get_db() as session:
        archive = Archive(bookmark_id=bookmark_id, meta={})
        session.add(archive)
        create_initial_transition(session, archive)
        session.flush()
        return archive


def get_archive(archive_id: uuid.UUID) -> Archive:
    """Fresh archive with its bookmark loaded. current_state reflects the DB at load time."""
    stmt = select(Archive).options(joinedload(Archive.bookmark)).where(Archive.id == archive_id)
    with get_db() as session:
        archive = session.execute(stmt).scalar_one_or_none()
        if archive is None:
            raise RecordNotFound(f"archive {archive_id} not found")
        return archive


def get_archive_for_bookmark(bookmark_id: uuid.UUID) -> Archive:
    stmt = select(Archive).options(joinedload(Archive.bookmark)).where(Archive.bookmark_id == bookmark_id)
    with get_db() as session:
        archive = session.execute(stmt).scalar_one_or_none()
        if archive is None:
            raise RecordNotFound(f"archive for bookmark {bookmark_id} not found")
        return archive


def find_archive_for_bookmark(bookmark_id: uuid.UUID) -> Archive | None:
    try:
        return get_archive_for_bookmark(bookmark_id)
    except RecordNotFound:
        return None


def list_archives_in_state(
    state: str,
    *,
    updated_before: datetime | None = None,
    limit: int = 100,
) -> list[Archive]:
    """Archives whose most-recent transition is state, oldest transition first."""
    stmt = (
        select(Archive)
        .options(joinedload(Archive.bookmark))
        .join(ArchiveTransition, ArchiveTransition.archive_id == Archive.id)
        .where(ArchiveTransition.most_recent.is_(True), ArchiveTransition.to_state == state)
        .order_by(ArchiveTransition.created_at.asc())
        .limit(limit)
    )
    if updated_before is not None:
        stmt = stmt.where(ArchiveTransition.created_at < updated_before)
    with get_db() as session:
        return list(session.execute(stmt).unique().scalars().all())


def delete_bookmark(bookmark_id: uuid.UUID) -> None:
    """Delete bookmark, its archive and every transition in one transaction."""
    with get_db() as session:
        bookmark = session.get(Bookmark, bookmark_id)
        if bookmark is None:
            raise RecordNotFound(f"bookmark {bookmark_id} not found")
        archive_ids = select(Archive.id).where(Archive.bookmark_id == bookmark_id)
        # Explicit child deletes keep the cascade intact on engines without FK enforcement.
        session.execute(
            delete(ArchiveTransition).where(ArchiveTransition.archive_id.in_(archive_ids)),
            execution_options={"synchronize_session": False},
        )
        session.execute(
            delete(Archive).where(Archive.bookmark_id == bookmark_id),
            execution_options={"synchronize_session": False},
        )
        session.delete(bookmark)


def archive_counts() -> dict[str, Any]:
    """Count of archives per current state."""
    stmt = (
        select(ArchiveTransition.to_state, func.count())
        .where(ArchiveTransition.most_recent.is_(True))
        .group_by(ArchiveTransition.to_state)
    )
    with get_db() as session:
        return {state: count for state, count in session.execute(stmt).all()}
