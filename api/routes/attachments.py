"""Attachment endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, can_view_group, can_view_note, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import AuthorizationError, ValidationError, failure_boundary
from ..models import (
    AttachmentCreate,
    AttachmentEnvelope,
    AttachmentListEnvelope,
    CommentRef,
    GroupRef,
    MessageResponse,
    parent_ref,
)
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import attachment_response
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/attachments", tags=["attachments"])


async def resolve_parent(db, ref) -> dict:
    """
    Load the entity an attachment reference points to.

    Raises:
        NotFoundError: if no entity of the referenced type has that id
    """
    parent_obj_id = parse_object_id(ref.id, ref.parent_type)
    return await get_or_404(db[ref.collection], parent_obj_id, ref.parent_type)


async def ensure_parent_visible(db, actor: Actor, ref, parent: dict) -> None:
    """Attachments are as visible as the note, comment or group they hang off."""
    if isinstance(ref, GroupRef):
        visible = can_view_group(actor, parent)
    else:
        note = parent
        if isinstance(ref, CommentRef):
            note = await get_or_404(
                db.notes, parent["note"], "Note", {"creator": 1, "view_type": 1}
            )
        visible = can_view_note(actor, note)

    if not visible:
        metrics.permission_denials.add(1, {"action": "read", "resource": ref.parent_type.lower()})
        raise AuthorizationError(f"Access denied to this {ref.parent_type.lower()}")


@router.post("", response_model=AttachmentEnvelope, status_code=201)
async def create_attachment(
    attachment: AttachmentCreate, current_user: dict = Depends(get_current_user)
):
    """Record file metadata against a note, comment or group."""
    with tracer.start_as_current_span("create_attachment") as span, failure_boundary(
        "Error creating attachment"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("attachment.parent_type", attachment.parent_type)
        span.set_attribute("attachment.parent_id", attachment.parent_id)

        require(
            actor,
            Action.CREATE,
            Resource.ATTACHMENT,
            None,
            "You do not have permission to add attachments",
        )

        db = get_db()
        ref = parent_ref(attachment.parent_type, attachment.parent_id)
        parent = await resolve_parent(db, ref)
        await ensure_parent_visible(db, actor, ref, parent)

        attachment_doc = {
            "file_name": attachment.file_name,
            "file_type": attachment.file_type,
            "url": attachment.url,
            "file_size": attachment.file_size,
            "parent_type": ref.parent_type,
            "parent_id": parent["_id"],
            "uploaded_by": actor.id,
            "created_at": datetime.now(UTC),
        }
        attachment_obj_id = await insert_with_business_id(
            db.attachments, attachment_doc, "attachment_id", "ATTACH"
        )

        await relationships.attach_to_parent(db, ref.parent_type, parent["_id"], attachment_obj_id)

        logger.info(
            "attachment_created_successfully",
            attachment_id=str(attachment_obj_id),
            parent_type=ref.parent_type,
            parent_id=attachment.parent_id,
            file_size=attachment.file_size,
        )
        metrics.entities_created.add(1, {"entity": "attachment"})

        return AttachmentEnvelope(
            message="Attachment created successfully",
            attachment=attachment_response(attachment_doc),
        )


@router.get("", response_model=AttachmentListEnvelope)
async def list_attachments(
    parent_type: str | None = None,
    parent_id: str | None = None,
    current_user: dict = Depends(get_current_user),
):
    """
    List attachments, newest first.

    Filter by parent with ``parent_type`` and ``parent_id`` together; the
    parent must be readable. Without a parent filter, non-admins only see
    attachments they uploaded.
    """
    with tracer.start_as_current_span("list_attachments"), failure_boundary(
        "Error fetching attachments"
    ):
        actor = Actor.from_user(current_user)
        db = get_db()

        if parent_id and not parent_type:
            raise ValidationError("parent_type is required when filtering by parent_id")

        query = {}
        if parent_type:
            query["parent_type"] = parent_type
        if parent_type and parent_id:
            try:
                ref = parent_ref(parent_type, parent_id)
            except ValueError:
                raise ValidationError("parent_type must be one of Note, Comment, Group")
            parent = await resolve_parent(db, ref)
            await ensure_parent_visible(db, actor, ref, parent)
            query["parent_id"] = parent["_id"]
        elif not actor.is_admin:
            query["uploaded_by"] = actor.id

        docs = await db.attachments.find(query).sort("created_at", -1).to_list(length=None)
        attachments = [attachment_response(doc) for doc in docs]

        return AttachmentListEnvelope(
            message="Attachments retrieved successfully",
            count=len(attachments),
            attachments=attachments,
        )


@router.get("/{attachment_id}", response_model=AttachmentEnvelope)
async def get_attachment(attachment_id: str, current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("get_attachment"), failure_boundary(
        "Error fetching attachment"
    ):
        actor = Actor.from_user(current_user)
        db = get_db()

        doc = await get_or_404(
            db.attachments, parse_object_id(attachment_id, "Attachment"), "Attachment"
        )
        ref = parent_ref(doc["parent_type"], str(doc["parent_id"]))
        parent = await resolve_parent(db, ref)
        await ensure_parent_visible(db, actor, ref, parent)

        return AttachmentEnvelope(
            message="Attachment retrieved successfully", attachment=attachment_response(doc)
        )


@router.delete("/{attachment_id}", response_model=MessageResponse)
async def delete_attachment(attachment_id: str, current_user: dict = Depends(get_current_user)):
    """Delete an attachment and detach it from its parent. Uploader or Admin only."""
    with tracer.start_as_current_span("delete_attachment") as span, failure_boundary(
        "Error deleting attachment"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("attachment.id", attachment_id)

        db = get_db()
        doc = await get_or_404(
            db.attachments, parse_object_id(attachment_id, "Attachment"), "Attachment"
        )

        require(
            actor,
            Action.DELETE,
            Resource.ATTACHMENT,
            doc.get("uploaded_by"),
            "You do not have permission to delete this attachment",
        )

        await relationships.delete_attachment(db, doc)

        logger.info("attachment_deleted_successfully", attachment_id=attachment_id)

        return MessageResponse(message="Attachment deleted successfully")
