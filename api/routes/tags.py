"""Tag endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import ConflictError, failure_boundary
from ..models import MessageResponse, TagCreate, TagEnvelope, TagListEnvelope
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import expand_tags
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/tags", tags=["tags"])


@router.post("", response_model=TagEnvelope, status_code=201)
async def create_tag(tag: TagCreate, current_user: dict = Depends(get_current_user)):
    """Create a tag. Names are stored lowercase and must be unique."""
    with tracer.start_as_current_span("create_tag") as span, failure_boundary(
        "Error creating tag"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("tag.name", tag.tag_name)

        require(
            actor, Action.CREATE, Resource.TAG, None, "You do not have permission to create tags"
        )

        db = get_db()

        if await db.tags.find_one({"tag_name": tag.tag_name}, {"_id": 1}):
            logger.warning("tag_creation_failed_duplicate", tag_name=tag.tag_name)
            raise ConflictError("Tag already exists")

        now = datetime.now(UTC)
        tag_doc = {
            "tag_name": tag.tag_name,
            "notes": [],
            "created_by": actor.id,
            "created_at": now,
            "updated_at": now,
        }
        tag_obj_id = await insert_with_business_id(db.tags, tag_doc, "tag_id", "TAG")

        logger.info("tag_created_successfully", tag_id=str(tag_obj_id), tag_name=tag.tag_name)
        metrics.entities_created.add(1, {"entity": "tag"})

        (response,) = await expand_tags(db, [tag_doc], actor)
        return TagEnvelope(message="Tag created successfully", tag=response)


@router.get("", response_model=TagListEnvelope)
async def list_tags(current_user: dict = Depends(get_current_user)):
    """List all tags alphabetically, with the notes the requester may see."""
    with tracer.start_as_current_span("list_tags"), failure_boundary("Error fetching tags"):
        actor = Actor.from_user(current_user)

        db = get_db()
        docs = await db.tags.find().sort("tag_name", 1).to_list(length=None)
        tags = await expand_tags(db, docs, actor)

        return TagListEnvelope(message="Tags retrieved successfully", count=len(tags), tags=tags)


@router.get("/{tag_id}", response_model=TagEnvelope)
async def get_tag(tag_id: str, current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("get_tag"), failure_boundary("Error fetching tag"):
        actor = Actor.from_user(current_user)

        db = get_db()
        tag_doc = await get_or_404(db.tags, parse_object_id(tag_id, "Tag"), "Tag")
        (tag,) = await expand_tags(db, [tag_doc], actor)

        return TagEnvelope(message="Tag retrieved successfully", tag=tag)


@router.delete("/{tag_id}", response_model=MessageResponse)
async def delete_tag(tag_id: str, current_user: dict = Depends(get_current_user)):
    """
    Delete a tag and remove it from every note carrying it.

    Allowed for the tag's creator, Editors, Lead Editors and Admins.
    """
    with tracer.start_as_current_span("delete_tag") as span, failure_boundary(
        "Error deleting tag"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("tag.id", tag_id)

        db = get_db()
        tag_obj_id = parse_object_id(tag_id, "Tag")
        tag_doc = await get_or_404(db.tags, tag_obj_id, "Tag", {"created_by": 1})

        require(
            actor,
            Action.DELETE,
            Resource.TAG,
            tag_doc.get("created_by"),
            "You do not have permission to delete this tag",
        )

        await relationships.delete_tag(db, tag_obj_id)

        logger.info("tag_deleted_successfully", tag_id=tag_id, user_id=str(actor.id))

        return MessageResponse(message="Tag deleted successfully")
