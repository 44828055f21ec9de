"""
Admin profile endpoints.

An admin profile marks a user as an administrator: creating one grants the
user the Admin role and deleting it revokes the role. All endpoints here
are restricted to Admins.
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, Role, require
from ..auth import get_current_user
from ..database import get_db
from ..errors import ConflictError, failure_boundary
from ..models import (
    AdminProfileCreate,
    AdminProfileEnvelope,
    AdminProfileListEnvelope,
    MessageResponse,
)
from ..observability import get_app_metrics, get_tracer
from ..services.expansion import expand_admin_profiles
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/admins", tags=["admins"])

ADMINS_ONLY = "Only admins can manage admin profiles"


@router.post("", response_model=AdminProfileEnvelope, status_code=201)
async def create_admin_profile(
    profile: AdminProfileCreate, current_user: dict = Depends(get_current_user)
):
    """
    Register a user as an administrator.

    Name and contact default to the user's own when omitted. A user can
    have at most one admin profile.
    """
    with tracer.start_as_current_span("create_admin_profile") as span, failure_boundary(
        "Error creating admin profile"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("target.user_id", profile.user_id)

        require(actor, Action.CREATE, Resource.ADMIN_PROFILE, None, ADMINS_ONLY)

        db = get_db()
        user_obj_id = parse_object_id(profile.user_id, "User")
        user = await get_or_404(db.users, user_obj_id, "User", {"password": 0})

        if await db.admins.find_one({"user": user_obj_id}, {"_id": 1}):
            logger.warning("admin_profile_duplicate", user_id=profile.user_id)
            raise ConflictError("Admin profile already exists for this user")

        admin_doc = {
            "user": user_obj_id,
            "admin_name": {
                "first_name": profile.first_name or user["first_name"],
                "last_name": profile.last_name or user["last_name"],
            },
            "admin_contact": {
                "phone": profile.phone or user.get("phone", []),
                "email": profile.email or user["email"],
            },
            "created_at": datetime.now(UTC),
        }
        admin_obj_id = await insert_with_business_id(db.admins, admin_doc, "admin_id", "ADMIN")

        await db.users.update_one(
            {"_id": user_obj_id},
            {"$addToSet": {"roles": Role.ADMIN.value}, "$set": {"updated_at": datetime.now(UTC)}},
        )

        logger.info(
            "admin_profile_created",
            admin_id=str(admin_obj_id),
            user_id=profile.user_id,
            created_by=str(actor.id),
        )
        metrics.entities_created.add(1, {"entity": "admin_profile"})

        (admin,) = await expand_admin_profiles(db, [admin_doc])
        return AdminProfileEnvelope(message="Admin profile created successfully", admin=admin)


@router.get("", response_model=AdminProfileListEnvelope)
async def list_admin_profiles(current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("list_admin_profiles"), failure_boundary(
        "Error fetching admin profiles"
    ):
        actor = Actor.from_user(current_user)
        require(actor, Action.READ, Resource.ADMIN_PROFILE, None, ADMINS_ONLY)

        db = get_db()
        docs = await db.admins.find().sort("created_at", -1).to_list(length=None)
        admins = await expand_admin_profiles(db, docs)

        return AdminProfileListEnvelope(
            message="Admin profiles retrieved successfully", count=len(admins), admins=admins
        )


@router.get("/{admin_id}", response_model=AdminProfileEnvelope)
async def get_admin_profile(admin_id: str, current_user: dict = Depends(get_current_user)):
    with tracer.start_as_current_span("get_admin_profile"), failure_boundary(
        "Error fetching admin profile"
    ):
        actor = Actor.from_user(current_user)
        require(actor, Action.READ, Resource.ADMIN_PROFILE, None, ADMINS_ONLY)

        db = get_db()
        admin_doc = await get_or_404(
            db.admins, parse_object_id(admin_id, "Admin"), "Admin profile"
        )
        (admin,) = await expand_admin_profiles(db, [admin_doc])

        return AdminProfileEnvelope(message="Admin profile retrieved successfully", admin=admin)


@router.delete("/{admin_id}", response_model=MessageResponse)
async def delete_admin_profile(admin_id: str, current_user: dict = Depends(get_current_user)):
    """Delete an admin profile and revoke the user's Admin role."""
    with tracer.start_as_current_span("delete_admin_profile") as span, failure_boundary(
        "Error deleting admin profile"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("admin.id", admin_id)

        require(actor, Action.DELETE, Resource.ADMIN_PROFILE, None, ADMINS_ONLY)

        db = get_db()
        admin_obj_id = parse_object_id(admin_id, "Admin")
        admin_doc = await get_or_404(db.admins, admin_obj_id, "Admin profile", {"user": 1})

        await db.admins.delete_one({"_id": admin_obj_id})
        await db.users.update_one(
            {"_id": admin_doc["user"]},
            {"$pull": {"roles": Role.ADMIN.value}, "$set": {"updated_at": datetime.now(UTC)}},
        )
        # Every user keeps at least one role
        await db.users.update_one(
            {"_id": admin_doc["user"], "roles": {"$size": 0}},
            {"$set": {"roles": [Role.CONTRIBUTOR.value]}},
        )

        logger.info(
            "admin_profile_deleted",
            admin_id=admin_id,
            user_id=str(admin_doc["user"]),
            deleted_by=str(actor.id),
        )

        return MessageResponse(message="Admin profile deleted successfully")
