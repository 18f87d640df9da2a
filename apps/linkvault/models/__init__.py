"""SQLAlchemy models: bookmarks, archives and their transition log."""

from apps.linkvault.models.archive import Archive
from apps.linkvault.models.archive_transition import ArchiveTransition
from apps.linkvault.models.base import Base
from apps.linkvault.models.bookmark import Bookmark

__all__ = [
    "Archive",
    "ArchiveTransition",
    "Base",
    "Bookmark",
]
