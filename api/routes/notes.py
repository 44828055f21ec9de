"""Notes endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, note_visibility_filter, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import ValidationError, failure_boundary
from ..models import (
    MessageResponse,
    NoteCreate,
    NoteEnvelope,
    NoteListEnvelope,
    NoteTagLink,
    NoteUpdate,
)
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import expand_notes
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id, require_existing

# Initialize logger
logger = structlog.get_logger(__name__)

# Get tracer and metrics
tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/notes", tags=["notes"])


async def _check_notebooks_writable(db, actor: Actor, object_ids, message: str) -> None:
    async for notebook in db.notebooks.find({"_id": {"$in": list(object_ids)}}, {"owner": 1}):
        require(actor, Action.UPDATE, Resource.NOTEBOOK, notebook.get("owner"), message)


async def _writable_notebooks(db, actor: Actor, notebook_ids: list[str], current=()):
    """
    Resolve notebook ids and check the actor may modify each notebook touched.

    ``current`` holds the notebooks the note is in now; those left out of the
    new list lose the note, so they are checked as well.
    """
    object_ids = await require_existing(db.notebooks, notebook_ids, "Notebook")
    await _check_notebooks_writable(
        db, actor, object_ids, "You do not have permission to add notes to this notebook"
    )
    removed = [notebook_id for notebook_id in current if notebook_id not in object_ids]
    if removed:
        await _check_notebooks_writable(
            db, actor, removed, "You do not have permission to remove notes from this notebook"
        )
    return object_ids


async def _linkable_notes(db, actor: Actor, note_ids: list[str]):
    """Resolve connected note ids; only notes the actor can read may be linked."""
    object_ids = await require_existing(db.notes, note_ids, "Note")
    projection = {"creator": 1, "view_type": 1}
    async for note in db.notes.find({"_id": {"$in": object_ids}}, projection):
        require(
            actor,
            Action.READ,
            Resource.NOTE,
            note.get("creator"),
            "Access denied to a connected note",
            visibility=note.get("view_type"),
        )
    return object_ids


async def _respond(db, note_obj_id, actor: Actor, message: str) -> NoteEnvelope:
    note_doc = await get_or_404(db.notes, note_obj_id, "Note")
    (note,) = await expand_notes(db, [note_doc], actor)
    return NoteEnvelope(message=message, note=note)


@router.post("", response_model=NoteEnvelope, status_code=201)
async def create_note(note: NoteCreate, current_user: dict = Depends(get_current_user)):
    """
    Create a new note.

    Tags and notebooks given at creation are linked on both sides.
    Notes are private unless a view type is given.
    """
    with tracer.start_as_current_span("create_note") as span, failure_boundary(
        "Error creating note"
    ):
        actor = Actor.from_user(current_user)
        user_id = str(actor.id)

        span.set_attribute("user.id", user_id)
        span.set_attribute("note.tags_count", len(note.tags))

        logger.info("note_creation_attempt", user_id=user_id, title=note.title)

        require(
            actor, Action.CREATE, Resource.NOTE, None, "You do not have permission to create notes"
        )

        db = get_db()

        tag_ids = await require_existing(db.tags, note.tags, "Tag")
        notebook_ids = await _writable_notebooks(db, actor, note.notebook_ids)
        connected_ids = await _linkable_notes(db, actor, note.connected_note_ids)

        now = datetime.now(UTC)
        note_doc = {
            "creator": actor.id,
            "title": note.title,
            "content": note.content,
            "type": note.type.value,
            "view_type": note.view_type.value,
            "tags": [],
            "notebooks": [],
            "connected_notes": connected_ids,
            "comments": [],
            "attachments": [],
            "created_at": now,
            "updated_at": now,
        }

        note_obj_id = await insert_with_business_id(db.notes, note_doc, "note_id", "NOTE")

        await relationships.replace_note_tags(db, note_obj_id, tag_ids)
        await relationships.replace_note_notebooks(db, note_obj_id, notebook_ids)

        span.set_attribute("note.id", str(note_obj_id))
        logger.info("note_created_successfully", note_id=str(note_obj_id), user_id=user_id)
        metrics.entities_created.add(1, {"entity": "note"})

        return await _respond(db, note_obj_id, actor, "Note created successfully")


@router.get("", response_model=NoteListEnvelope)
async def list_notes(
    notebook_id: str | None = None,
    tag_id: str | None = None,
    user_id: str | None = None,
    current_user: dict = Depends(get_current_user),
):
    """
    List notes visible to the requester, newest first.

    Non-admins see their own notes plus public and shared ones. Admins may
    filter by creator with ``user_id``.
    """
    with tracer.start_as_current_span("list_notes") as span, failure_boundary(
        "Error fetching notes"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", str(actor.id))

        clauses = []
        visibility = note_visibility_filter(actor)
        if visibility:
            clauses.append(visibility)
        if notebook_id:
            clauses.append({"notebooks": parse_object_id(notebook_id, "Notebook")})
        if tag_id:
            clauses.append({"tags": parse_object_id(tag_id, "Tag")})
        if user_id and actor.is_admin:
            clauses.append({"creator": parse_object_id(user_id, "User")})

        query = {"$and": clauses} if clauses else {}

        db = get_db()
        docs = await db.notes.find(query).sort("created_at", -1).to_list(length=None)
        notes = await expand_notes(db, docs, actor)

        span.set_attribute("notes.count", len(notes))
        logger.info("notes_listed", user_id=str(actor.id), count=len(notes))

        return NoteListEnvelope(
            message="Notes retrieved successfully", count=len(notes), notes=notes
        )


@router.get("/{note_id}", response_model=NoteEnvelope)
async def get_note(note_id: str, current_user: dict = Depends(get_current_user)):
    """
    Retrieve a note with comments and attachments expanded.

    Private notes are readable only by their creator and admins.
    """
    with tracer.start_as_current_span("get_note") as span, failure_boundary(
        "Error fetching note"
    ):
        actor = Actor.from_user(current_user)

        span.set_attribute("user.id", str(actor.id))
        span.set_attribute("note.id", note_id)

        db = get_db()
        note_obj_id = parse_object_id(note_id, "Note")
        note_doc = await get_or_404(db.notes, note_obj_id, "Note")

        require(
            actor,
            Action.READ,
            Resource.NOTE,
            note_doc.get("creator"),
            "Access denied to this note",
            visibility=note_doc.get("view_type"),
        )

        (note,) = await expand_notes(db, [note_doc], actor)

        logger.info("note_retrieved", user_id=str(actor.id), note_id=note_id)

        return NoteEnvelope(message="Note retrieved successfully", note=note)


@router.put("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    note_id: str, note_update: NoteUpdate, current_user: dict = Depends(get_current_user)
):
    """
    Update a note.

    Allowed for the creator, Editors, Lead Editors and Admins. Tag and
    notebook lists replace the current ones and their back-references
    follow.
    """
    with tracer.start_as_current_span("update_note") as span, failure_boundary(
        "Error updating note"
    ):
        actor = Actor.from_user(current_user)

        span.set_attribute("user.id", str(actor.id))
        span.set_attribute("note.id", note_id)

        db = get_db()
        note_obj_id = parse_object_id(note_id, "Note")
        existing_note = await get_or_404(db.notes, note_obj_id, "Note")

        require(
            actor,
            Action.UPDATE,
            Resource.NOTE,
            existing_note.get("creator"),
            "You do not have permission to edit this note",
        )

        update_doc = {}
        if note_update.title is not None:
            update_doc["title"] = note_update.title
        if note_update.content is not None:
            update_doc["content"] = note_update.content
        if note_update.type is not None:
            update_doc["type"] = note_update.type.value
        if note_update.view_type is not None:
            update_doc["view_type"] = note_update.view_type.value
        if note_update.connected_note_ids is not None:
            connected_ids = await _linkable_notes(db, actor, note_update.connected_note_ids)
            if note_obj_id in connected_ids:
                raise ValidationError("A note cannot be connected to itself")
            update_doc["connected_notes"] = connected_ids

        # Resolve every reference before writing anything
        tag_ids = None
        if note_update.tags is not None:
            tag_ids = await require_existing(db.tags, note_update.tags, "Tag")
        notebook_ids = None
        if note_update.notebook_ids is not None:
            notebook_ids = await _writable_notebooks(
                db, actor, note_update.notebook_ids, existing_note.get("notebooks", [])
            )

        update_doc["updated_at"] = datetime.now(UTC)
        await db.notes.update_one({"_id": note_obj_id}, {"$set": update_doc})

        if tag_ids is not None:
            await relationships.replace_note_tags(db, note_obj_id, tag_ids)
        if notebook_ids is not None:
            await relationships.replace_note_notebooks(db, note_obj_id, notebook_ids)

        span.set_attribute("note.fields_updated", len(update_doc))
        logger.info("note_updated_successfully", user_id=str(actor.id), note_id=note_id)

        return await _respond(db, note_obj_id, actor, "Note updated successfully")


@router.delete("/{note_id}", response_model=MessageResponse)
async def delete_note(note_id: str, current_user: dict = Depends(get_current_user)):
    """
    Delete a note permanently.

    Its comments and attachments are deleted with it and it is removed
    from every tag, notebook and connected note.
    """
    with tracer.start_as_current_span("delete_note") as span, failure_boundary(
        "Error deleting note"
    ):
        actor = Actor.from_user(current_user)

        span.set_attribute("user.id", str(actor.id))
        span.set_attribute("note.id", note_id)

        db = get_db()
        note_obj_id = parse_object_id(note_id, "Note")
        existing_note = await get_or_404(db.notes, note_obj_id, "Note", {"creator": 1})

        require(
            actor,
            Action.DELETE,
            Resource.NOTE,
            existing_note.get("creator"),
            "You do not have permission to delete this note",
        )

        summary = await relationships.delete_note(db, note_obj_id)

        span.set_attribute("note.comments_deleted", summary["comments"])
        span.set_attribute("note.attachments_deleted", summary["attachments"])
        logger.info("note_deleted_successfully", user_id=str(actor.id), note_id=note_id)

        return MessageResponse(message="Note deleted successfully")


@router.post("/{note_id}/tags", response_model=NoteEnvelope)
async def add_tag_to_note(
    note_id: str, link: NoteTagLink, current_user: dict = Depends(get_current_user)
):
    """Tag a note. Tagging twice is a no-op."""
    with tracer.start_as_current_span("add_tag_to_note") as span, failure_boundary(
        "Error adding tag"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("note.id", note_id)

        db = get_db()
        note_obj_id = parse_object_id(note_id, "Note")
        tag_obj_id = parse_object_id(link.tag_id, "Tag")
        note_doc = await get_or_404(db.notes, note_obj_id, "Note", {"creator": 1})
        await get_or_404(db.tags, tag_obj_id, "Tag", {"_id": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.NOTE,
            note_doc.get("creator"),
            "You do not have permission to tag this note",
        )

        await relationships.link_tag_to_note(db, tag_obj_id, note_obj_id)

        logger.info("tag_added_to_note", note_id=note_id, tag_id=link.tag_id)

        return await _respond(db, note_obj_id, actor, "Tag added to note successfully")


@router.delete("/{note_id}/tags/{tag_id}", response_model=NoteEnvelope)
async def remove_tag_from_note(
    note_id: str, tag_id: str, current_user: dict = Depends(get_current_user)
):
    """Remove a tag from a note."""
    with tracer.start_as_current_span("remove_tag_from_note") as span, failure_boundary(
        "Error removing tag"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("note.id", note_id)

        db = get_db()
        note_obj_id = parse_object_id(note_id, "Note")
        tag_obj_id = parse_object_id(tag_id, "Tag")
        note_doc = await get_or_404(db.notes, note_obj_id, "Note", {"creator": 1})
        await get_or_404(db.tags, tag_obj_id, "Tag", {"_id": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.NOTE,
            note_doc.get("creator"),
            "You do not have permission to untag this note",
        )

        await relationships.unlink_tag_from_note(db, tag_obj_id, note_obj_id)

        logger.info("tag_removed_from_note", note_id=note_id, tag_id=tag_id)

        return await _respond(db, note_obj_id, actor, "Tag removed from note successfully")
