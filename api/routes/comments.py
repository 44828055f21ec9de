"""Comment endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, can_view_note, note_visibility_filter, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import AuthorizationError, failure_boundary
from ..models import (
    CommentCreate,
    CommentEnvelope,
    CommentListEnvelope,
    CommentUpdate,
    MessageResponse,
)
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import expand_comments
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/comments", tags=["comments"])

NOTE_ACCESS_FIELDS = {"creator": 1, "view_type": 1}


def _ensure_note_visible(actor: Actor, note_doc: dict) -> None:
    if not can_view_note(actor, note_doc):
        metrics.permission_denials.add(1, {"action": "read", "resource": "note"})
        raise AuthorizationError("Access denied to this note")


async def _respond(db, comment_obj_id, message: str) -> CommentEnvelope:
    comment_doc = await get_or_404(db.comments, comment_obj_id, "Comment")
    (comment,) = await expand_comments(db, [comment_doc])
    return CommentEnvelope(message=message, comment=comment)


@router.post("", response_model=CommentEnvelope, status_code=201)
async def create_comment(comment: CommentCreate, current_user: dict = Depends(get_current_user)):
    """Comment on a note the requester can read."""
    with tracer.start_as_current_span("create_comment") as span, failure_boundary(
        "Error creating comment"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("note.id", comment.note_id)

        require(
            actor,
            Action.CREATE,
            Resource.COMMENT,
            None,
            "You do not have permission to comment",
        )

        db = get_db()
        note_obj_id = parse_object_id(comment.note_id, "Note")
        note_doc = await get_or_404(db.notes, note_obj_id, "Note", NOTE_ACCESS_FIELDS)
        _ensure_note_visible(actor, note_doc)

        now = datetime.now(UTC)
        comment_doc = {
            "user": actor.id,
            "note": note_obj_id,
            "comment_text": comment.comment_text,
            "comment_time": now,
            "attachments": [],
            "created_at": now,
            "updated_at": now,
        }
        comment_obj_id = await insert_with_business_id(
            db.comments, comment_doc, "comment_id", "COMMENT"
        )

        await relationships.attach_comment(db, note_obj_id, comment_obj_id)

        logger.info(
            "comment_created_successfully",
            comment_id=str(comment_obj_id),
            note_id=comment.note_id,
            user_id=str(actor.id),
        )
        metrics.entities_created.add(1, {"entity": "comment"})

        return await _respond(db, comment_obj_id, "Comment created successfully")


@router.get("", response_model=CommentListEnvelope)
async def list_comments(note_id: str | None = None, current_user: dict = Depends(get_current_user)):
    """
    List comments, newest first.

    With ``note_id`` the note must be readable by the requester. Without
    it, only comments on notes the requester can read are returned.
    """
    with tracer.start_as_current_span("list_comments"), failure_boundary(
        "Error fetching comments"
    ):
        actor = Actor.from_user(current_user)

        db = get_db()
        if note_id:
            note_obj_id = parse_object_id(note_id, "Note")
            note_doc = await get_or_404(db.notes, note_obj_id, "Note", NOTE_ACCESS_FIELDS)
            _ensure_note_visible(actor, note_doc)
            query = {"note": note_obj_id}
        elif actor.is_admin:
            query = {}
        else:
            visible_notes = await db.notes.distinct("_id", note_visibility_filter(actor))
            query = {"note": {"$in": visible_notes}}

        docs = await db.comments.find(query).sort("comment_time", -1).to_list(length=None)
        comments = await expand_comments(db, docs)

        return CommentListEnvelope(
            message="Comments retrieved successfully", count=len(comments), comments=comments
        )


@router.get("/{comment_id}", response_model=CommentEnvelope)
async def get_comment(comment_id: str, current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("get_comment"), failure_boundary("Error fetching comment"):
        actor = Actor.from_user(current_user)

        db = get_db()
        comment_doc = await get_or_404(
            db.comments, parse_object_id(comment_id, "Comment"), "Comment"
        )
        note_doc = await get_or_404(db.notes, comment_doc["note"], "Note", NOTE_ACCESS_FIELDS)
        _ensure_note_visible(actor, note_doc)

        (comment,) = await expand_comments(db, [comment_doc])
        return CommentEnvelope(message="Comment retrieved successfully", comment=comment)


@router.put("/{comment_id}", response_model=CommentEnvelope)
async def update_comment(
    comment_id: str, comment_update: CommentUpdate, current_user: dict = Depends(get_current_user)
):
    """Edit a comment. Allowed for its author, Editors, Lead Editors and Admins."""
    with tracer.start_as_current_span("update_comment") as span, failure_boundary(
        "Error updating comment"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("comment.id", comment_id)

        db = get_db()
        comment_obj_id = parse_object_id(comment_id, "Comment")
        comment_doc = await get_or_404(db.comments, comment_obj_id, "Comment", {"user": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.COMMENT,
            comment_doc.get("user"),
            "You do not have permission to edit this comment",
        )

        await db.comments.update_one(
            {"_id": comment_obj_id},
            {
                "$set": {
                    "comment_text": comment_update.comment_text,
                    "updated_at": datetime.now(UTC),
                }
            },
        )

        logger.info("comment_updated_successfully", comment_id=comment_id, user_id=str(actor.id))

        return await _respond(db, comment_obj_id, "Comment updated successfully")


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(comment_id: str, current_user: dict = Depends(get_current_user)):
    """Delete a comment and its attachments. Same permissions as editing."""
    with tracer.start_as_current_span("delete_comment") as span, failure_boundary(
        "Error deleting comment"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("comment.id", comment_id)

        db = get_db()
        comment_obj_id = parse_object_id(comment_id, "Comment")
        comment_doc = await get_or_404(
            db.comments, comment_obj_id, "Comment", {"user": 1, "note": 1}
        )

        require(
            actor,
            Action.DELETE,
            Resource.COMMENT,
            comment_doc.get("user"),
            "You do not have permission to delete this comment",
        )

        await relationships.delete_comment(db, comment_doc)

        logger.info("comment_deleted_successfully", comment_id=comment_id, user_id=str(actor.id))

        return MessageResponse(message="Comment deleted successfully")
