"""Archive state machine: allowed moves plus the transactional transition write.

transition_to is the only code path that mutates archives or archive_transitions.
Each call runs in one transaction: lock archive row, demote the current most-recent
transition, insert the next one, apply column updates. The partial unique index on
(archive_id, most_recent) rejects a concurrent second writer; that surfaces as
TransitionConflict and nothing from the losing call is committed.
"""

import logging
import uuid
from enum import Enum
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apps.linkvault.db import get_db
from apps.linkvault.models.archive import Archive
from apps.linkvault.models.archive_transition import ArchiveTransition

logger = logging.getLogger(__name__)


class ArchiveState(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"
    INVALID_URL = "invalid_url"


INITIAL_STATE = ArchiveState.PENDING

TERMINAL_STATES = frozenset(
    {ArchiveState.SUCCESS, ArchiveState.FAILED, ArchiveState.BLOCKED, ArchiveState.INVALID_URL}
)

_TRANSITIONS: dict[ArchiveState, frozenset[ArchiveState]] = {
    ArchiveState.PENDING: frozenset(
        {ArchiveState.PROCESSING, ArchiveState.BLOCKED, ArchiveState.INVALID_URL}
    ),
    ArchiveState.PROCESSING: frozenset(
        {ArchiveState.SUCCESS, ArchiveState.FAILED, ArchiveState.BLOCKED}
    ),
}

# Archive columns a transition may write alongside the state change.
UPDATABLE_COLUMNS = frozenset(
    {
        "title",
        "description",
        "content_text",
        "content_html",
        "raw_html",
        "image_url",
        "meta",
        "error_message",
        "fetched_at",
    }
)


class InvalidTransition(ValueError):
    """Raised when a move is not in the allowed table (including any move out of a terminal state)."""

    def __init__(self, from_state: str | None, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"cannot transition from {from_state!r} to {to_state!r}")


class TransitionConflict(RuntimeError):
    """Raised when a concurrent writer transitioned the same archive first."""

    pass


class ArchiveNotFound(LookupError):
    pass


def allowed_transitions(state: ArchiveState | str) -> frozenset[ArchiveState]:
    """Pure lookup: states reachable from state. Terminal states map to the empty set."""
    return _TRANSITIONS.get(ArchiveState(state), frozenset())


def is_terminal(state: ArchiveState | str) -> bool:
    return ArchiveState(state) in TERMINAL_STATES


def _coerce_state(state: ArchiveState | str) -> ArchiveState:
    try:
        return ArchiveState(state)
    except ValueError:
        raise InvalidTransition(None, str(state)) from None


def _latest(session: Session, archive_id: uuid.UUID) -> ArchiveTransition | None:
    stmt = select(ArchiveTransition).where(
        ArchiveTransition.archive_id == archive_id,
        ArchiveTransition.most_recent.is_(True),
    )
    return session.execute(stmt).scalar_one_or_none()


def _lock_archive(session: Session, archive_id: uuid.UUID) -> Archive:
    """SELECT ... FOR UPDATE on Postgres; SQLite serializes writers itself and ignores the hint."""
    stmt = select(Archive).where(Archive.id == archive_id).with_for_update()
    archive = session.execute(stmt).scalar_one_or_none()
    if archive is None:
        raise ArchiveNotFound(f"archive {archive_id} not found")
    return archive


def create_initial_transition(session: Session, archive: Archive) -> ArchiveTransition:
    """Write the pending transition (sort_key 1) for a freshly added archive. Caller owns the transaction."""
    session.flush()
    transition = ArchiveTransition(
        archive_id=archive.id,
        to_state=INITIAL_STATE.value,
        meta={},
        sort_key=1,
        most_recent=True,
    )
    session.add(transition)
    return transition


def transition_to(
    archive_id: uuid.UUID,
    to_state: ArchiveState | str,
    metadata: dict[str, Any] | None = None,
    *,
    updates: dict[str, Any] | None = None,
) -> ArchiveTransition:
    """
    Move archive_id to to_state and record it. Raises InvalidTransition (nothing written)
    when the move is not allowed, TransitionConflict on a concurrent write.
    metadata: free-form map stored on the transition (error_message, http_status, ...).
    updates: archive column values committed in the same transaction.
    """
    target = _coerce_state(to_state)
    if updates:
        unknown = set(updates) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"not updatable through a transition: {sorted(unknown)}")

    try:
        with get_db() as session:
            archive = _lock_archive(session, archive_id)
            latest = _latest(session, archive_id)
            current = ArchiveState(latest.to_state) if latest is not None else INITIAL_STATE
            if target not in allowed_transitions(current):
                raise InvalidTransition(current.value, target.value)

            next_key = (latest.sort_key + 1) if latest is not None else 1
            if latest is not None:
                session.execute(
                    update(ArchiveTransition)
                    .where(ArchiveTransition.id == latest.id)
                    .values(most_recent=False)
                )
                session.flush()

            transition = ArchiveTransition(
                archive_id=archive_id,
                to_state=target.value,
                meta=dict(metadata or {}),
                sort_key=next_key,
                most_recent=True,
            )
            session.add(transition)
            for column, value in (updates or {}).items():
                setattr(archive, column, value)
            session.flush()
    except IntegrityError as e:
        logger.warning("archive=%s transition to %s lost a race: %s", archive_id, target.value, e.orig)
        raise TransitionConflict(f"archive {archive_id} was transitioned concurrently") from e

    logger.info(
        "archive=%s transition %s -> %s sort_key=%s",
        archive_id,
        current.value,
        target.value,
        transition.sort_key,
    )
    return transition


def current_state(archive_id: uuid.UUID) -> ArchiveState:
    """State of the most-recent transition (pending when none exists yet)."""
    with get_db() as session:
        latest = _latest(session, archive_id)
        return ArchiveState(latest.to_state) if latest is not None else INITIAL_STATE


def can_transition_to(archive_id: uuid.UUID, to_state: ArchiveState | str) -> bool:
    try:
        target = ArchiveState(to_state)
    except ValueError:
        return False
    return target in allowed_transitions(current_state(archive_id))


def history(archive_id: uuid.UUID) -> list[ArchiveTransition]:
    """All transitions for archive_id ordered by sort_key."""
    stmt = (
        select(ArchiveTransition)
        .where(ArchiveTransition.archive_id == archive_id)
        .order_by(ArchiveTransition.sort_key)
    )
    with get_db() as session:
        return list(session.execute(stmt).scalars().all())


def delete_transition(transition_id: uuid.UUID) -> None:
    """Administrative correction. Deleting the most-recent row re-flags the next-highest sort_key."""
    with get_db() as session:
        transition = session.get(ArchiveTransition, transition_id)
        if transition is None:
            return
        archive_id = transition.archive_id
        was_most_recent = transition.most_recent
        _lock_archive(session, archive_id)
        session.execute(delete(ArchiveTransition).where(ArchiveTransition.id == transition_id))
        session.flush()
        if not was_most_recent:
            return
        replacement = session.execute(
            select(ArchiveTransition)
            .where(ArchiveTransition.archive_id == archive_id)
            .order_by(ArchiveTransition.sort_key.desc())
            .limit(1)
        ).scalar_one_or_none()
        if replacement is not None:
            replacement.most_recent = True
            logger.info(
                "archive=%s most_recent re-flagged to sort_key=%s after deleting %s",
                archive_id,
                replacement.sort_key,
                transition_id,
            )
