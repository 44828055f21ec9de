"""Group endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, can_view_group, group_visibility_filter, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import AuthorizationError, failure_boundary
from ..models import (
    GroupCreate,
    GroupEnvelope,
    GroupListEnvelope,
    GroupMemberAdd,
    GroupUpdate,
    MessageResponse,
)
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import expand_groups
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id, require_existing

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/groups", tags=["groups"])


async def _respond(db, group_obj_id, message: str) -> GroupEnvelope:
    group_doc = await get_or_404(db.groups, group_obj_id, "Group")
    (group,) = await expand_groups(db, [group_doc])
    return GroupEnvelope(message=message, group=group)


async def _owned_group(db, actor: Actor, group_id: str, action: Action, message: str):
    group_obj_id = parse_object_id(group_id, "Group")
    group_doc = await get_or_404(db.groups, group_obj_id, "Group", {"lead_editor": 1})
    require(actor, action, Resource.GROUP, group_doc.get("lead_editor"), message)
    return group_obj_id


@router.post("", response_model=GroupEnvelope, status_code=201)
async def create_group(group: GroupCreate, current_user: dict = Depends(get_current_user)):
    """
    Create a group led by the requester.

    Only Lead Editors (and Admins) may create groups. Notebooks listed here
    gain the group in their ``accessible_groups``.
    """
    with tracer.start_as_current_span("create_group") as span, failure_boundary(
        "Error creating group"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", str(actor.id))

        require(
            actor,
            Action.CREATE,
            Resource.GROUP,
            None,
            "Only Lead Editors can create groups",
        )

        db = get_db()
        member_ids = await require_existing(db.users, group.member_ids, "User")
        notebook_ids = await require_existing(db.notebooks, group.notebook_ids, "Notebook")

        now = datetime.now(UTC)
        group_doc = {
            "group_name": group.group_name,
            "lead_editor": actor.id,
            "members": member_ids,
            "accessible_notebooks": [],
            "attachments": [],
            "created_at": now,
            "updated_at": now,
        }
        group_obj_id = await insert_with_business_id(db.groups, group_doc, "group_id", "GROUP")

        await relationships.link_group_to_notebooks(db, group_obj_id, notebook_ids)

        span.set_attribute("group.id", str(group_obj_id))
        logger.info(
            "group_created_successfully",
            group_id=str(group_obj_id),
            lead_editor=str(actor.id),
            members=len(member_ids),
            notebooks=len(notebook_ids),
        )
        metrics.entities_created.add(1, {"entity": "group"})

        return await _respond(db, group_obj_id, "Group created successfully")


@router.get("", response_model=GroupListEnvelope)
async def list_groups(current_user: dict = Depends(get_current_user)):
    """List groups the requester leads or belongs to; Admins and Lead Editors see all."""
    with tracer.start_as_current_span("list_groups"), failure_boundary("Error fetching groups"):
        actor = Actor.from_user(current_user)

        db = get_db()
        docs = (
            await db.groups.find(group_visibility_filter(actor))
            .sort("created_at", -1)
            .to_list(length=None)
        )
        groups = await expand_groups(db, docs)

        return GroupListEnvelope(
            message="Groups retrieved successfully", count=len(groups), groups=groups
        )


@router.get("/{group_id}", response_model=GroupEnvelope)
async def get_group(group_id: str, current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("get_group"), failure_boundary("Error fetching group"):
        actor = Actor.from_user(current_user)

        db = get_db()
        group_doc = await get_or_404(db.groups, parse_object_id(group_id, "Group"), "Group")

        if not can_view_group(actor, group_doc):
            metrics.permission_denials.add(1, {"action": "read", "resource": "group"})
            raise AuthorizationError("Access denied to this group")

        (group,) = await expand_groups(db, [group_doc])
        return GroupEnvelope(message="Group retrieved successfully", group=group)


@router.put("/{group_id}", response_model=GroupEnvelope)
async def update_group(
    group_id: str, group_update: GroupUpdate, current_user: dict = Depends(get_current_user)
):
    """
    Rename a group or replace its members or notebooks.

    Only the group's lead editor (holding the Lead Editor role) or an Admin
    may change it. A new notebook list moves the group's access on both sides.
    """
    with tracer.start_as_current_span("update_group") as span, failure_boundary(
        "Error updating group"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("group.id", group_id)

        db = get_db()
        group_obj_id = await _owned_group(
            db, actor, group_id, Action.UPDATE, "You do not have permission to edit this group"
        )

        update_doc = {}
        if group_update.group_name is not None:
            update_doc["group_name"] = group_update.group_name
        if group_update.member_ids is not None:
            update_doc["members"] = await require_existing(
                db.users, group_update.member_ids, "User"
            )

        notebook_ids = None
        if group_update.notebook_ids is not None:
            notebook_ids = await require_existing(
                db.notebooks, group_update.notebook_ids, "Notebook"
            )

        update_doc["updated_at"] = datetime.now(UTC)
        await db.groups.update_one({"_id": group_obj_id}, {"$set": update_doc})

        if notebook_ids is not None:
            await relationships.replace_group_notebooks(db, group_obj_id, notebook_ids)

        logger.info("group_updated_successfully", group_id=group_id, user_id=str(actor.id))

        return await _respond(db, group_obj_id, "Group updated successfully")


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(group_id: str, current_user: dict = Depends(get_current_user)):
    """Delete a group, revoking its notebook access and deleting its attachments."""
    with tracer.start_as_current_span("delete_group") as span, failure_boundary(
        "Error deleting group"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("group.id", group_id)

        db = get_db()
        group_obj_id = await _owned_group(
            db, actor, group_id, Action.DELETE, "You do not have permission to delete this group"
        )

        await relationships.delete_group(db, group_obj_id)

        logger.info("group_deleted_successfully", group_id=group_id, user_id=str(actor.id))

        return MessageResponse(message="Group deleted successfully")


@router.post("/{group_id}/members", response_model=GroupEnvelope)
async def add_group_member(
    group_id: str, member: GroupMemberAdd, current_user: dict = Depends(get_current_user)
):
    """Add a user to a group. Adding an existing member is a no-op."""
    with tracer.start_as_current_span("add_group_member") as span, failure_boundary(
        "Error adding group member"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("group.id", group_id)

        db = get_db()
        group_obj_id = await _owned_group(
            db, actor, group_id, Action.UPDATE, "You do not have permission to manage this group"
        )
        user_obj_id = parse_object_id(member.user_id, "User")
        await get_or_404(db.users, user_obj_id, "User", {"_id": 1})

        await db.groups.update_one(
            {"_id": group_obj_id},
            {"$addToSet": {"members": user_obj_id}, "$set": {"updated_at": datetime.now(UTC)}},
        )

        logger.info("group_member_added", group_id=group_id, member_id=member.user_id)

        return await _respond(db, group_obj_id, "Member added successfully")


@router.delete("/{group_id}/members/{user_id}", response_model=GroupEnvelope)
async def remove_group_member(
    group_id: str, user_id: str, current_user: dict = Depends(get_current_user)
):
    with tracer.start_as_current_span("remove_group_member") as span, failure_boundary(
        "Error removing group member"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("group.id", group_id)

        db = get_db()
        group_obj_id = await _owned_group(
            db, actor, group_id, Action.UPDATE, "You do not have permission to manage this group"
        )
        user_obj_id = parse_object_id(user_id, "User")

        await db.groups.update_one(
            {"_id": group_obj_id},
            {"$pull": {"members": user_obj_id}, "$set": {"updated_at": datetime.now(UTC)}},
        )

        logger.info("group_member_removed", group_id=group_id, member_id=user_id)

        return await _respond(db, group_obj_id, "Member removed successfully")
