"""Bookmark create/delete and archive read endpoints. Queue and config come from app.state."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Request, Response

from apps.linkvault.schemas.archive import ArchiveOut, ArchiveTransitionOut, BookmarkCreate, BookmarkOut
from apps.linkvault.services.bookmarks import DuplicateBookmark, create_bookmark, delete_bookmark
from apps.linkvault.services.repo import RecordNotFound, get_archive_for_bookmark, get_bookmark
from apps.linkvault.services.state_machine import history

router = APIRouter()


@router.post("", response_model=BookmarkOut, status_code=201)
def post_bookmark(body: BookmarkCreate, request: Request) -> BookmarkOut:
    """Create a bookmark. Archival is scheduled in the background; a 201 says nothing about its outcome."""
    try:
        bookmark = create_bookmark(
            body.url,
            body.note,
            config=request.app.state.archive_config,
            queue=request.app.state.job_queue,
        )
    except DuplicateBookmark as e:
        raise HTTPException(status_code=409, detail={"error": "duplicate", "bookmark_id": str(e.existing_id)})
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return BookmarkOut.model_validate(bookmark)


@router.get("/{bookmark_id}", response_model=BookmarkOut)
def read_bookmark(bookmark_id: UUID) -> BookmarkOut:
    try:
        return BookmarkOut.model_validate(get_bookmark(bookmark_id))
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{bookmark_id}/archive", response_model=ArchiveOut)
def read_archive(bookmark_id: UUID) -> ArchiveOut:
    try:
        archive = get_archive_for_bookmark(bookmark_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ArchiveOut.model_validate(archive)


@router.get("/{bookmark_id}/archive/transitions", response_model=list[ArchiveTransitionOut])
def read_archive_transitions(bookmark_id: UUID) -> list[ArchiveTransitionOut]:
    """Audit log for the bookmark's archive, sort_key ascending."""
    try:
        archive = get_archive_for_bookmark(bookmark_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [ArchiveTransitionOut.model_validate(t) for t in history(archive.id)]


@router.delete("/{bookmark_id}", status_code=204)
def remove_bookmark(bookmark_id: UUID) -> Response:
    try:
        delete_bookmark(bookmark_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)
