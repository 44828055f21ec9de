"""User management endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import Action, Actor, Resource, Role, require
from ..auth import get_current_user, hash_password
from ..database import get_db
from ..errors import AuthorizationError, failure_boundary
from ..models import MessageResponse, UserEnvelope, UserListEnvelope, UserUpdate
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import user_response
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/users", tags=["users"])

PUBLIC_FIELDS = {"password": 0}


@router.get("", response_model=UserListEnvelope)
async def list_users(current_user: dict = Depends(get_current_user)):
    """List every user. Admins and Lead Editors only."""
    with tracer.start_as_current_span("list_users"), failure_boundary("Error fetching users"):
        actor = Actor.from_user(current_user)

        if not actor.has_any(Role.ADMIN, Role.LEAD_EDITOR):
            logger.warning(
                "permission_denied", user_id=str(actor.id), action="list", resource="user"
            )
            metrics.permission_denials.add(1, {"action": "read", "resource": "user"})
            raise AuthorizationError("You do not have permission to list users")

        db = get_db()
        docs = await db.users.find({}, PUBLIC_FIELDS).sort("created_at", -1).to_list(length=None)
        users = [user_response(doc) for doc in docs]

        return UserListEnvelope(
            message="Users retrieved successfully", count=len(users), users=users
        )


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(user_id: str, current_user: dict = Depends(get_current_user)):
    """Retrieve a user profile. Users read themselves; Lead Editors and Admins read anyone."""
    with tracer.start_as_current_span("get_user"), failure_boundary("Error fetching user"):
        actor = Actor.from_user(current_user)

        db = get_db()
        user_obj_id = parse_object_id(user_id, "User")
        user_doc = await get_or_404(db.users, user_obj_id, "User", PUBLIC_FIELDS)

        require(actor, Action.READ, Resource.USER, user_obj_id, "Access denied to this user")

        return UserEnvelope(message="User retrieved successfully", user=user_response(user_doc))


@router.put("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: str, user_update: UserUpdate, current_user: dict = Depends(get_current_user)
):
    """
    Update a user profile.

    Users may edit themselves; Admins may edit anyone. Changing roles is
    reserved to Admins. A new password is hashed before storage.
    """
    with tracer.start_as_current_span("update_user") as span, failure_boundary(
        "Error updating user"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", user_id)

        db = get_db()
        user_obj_id = parse_object_id(user_id, "User")
        await get_or_404(db.users, user_obj_id, "User", {"_id": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.USER,
            user_obj_id,
            "You do not have permission to edit this user",
        )

        update_doc = user_update.model_dump(exclude_none=True, exclude={"password", "roles"})
        if user_update.password is not None:
            update_doc["password"] = hash_password(user_update.password)
        if user_update.roles is not None:
            if not actor.is_admin:
                logger.warning("role_change_denied", user_id=str(actor.id), target=user_id)
                metrics.permission_denials.add(1, {"action": "update", "resource": "user_roles"})
                raise AuthorizationError("Only admins can change roles")
            update_doc["roles"] = list(dict.fromkeys(role.value for role in user_update.roles))

        update_doc["updated_at"] = datetime.now(UTC)
        await db.users.update_one({"_id": user_obj_id}, {"$set": update_doc})

        logger.info(
            "user_updated_successfully",
            user_id=user_id,
            updated_by=str(actor.id),
            fields=sorted(update_doc),
        )

        user_doc = await get_or_404(db.users, user_obj_id, "User", PUBLIC_FIELDS)
        return UserEnvelope(message="User updated successfully", user=user_response(user_doc))


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: str, current_user: dict = Depends(get_current_user)):
    """
    Delete a user. Admins only.

    The user's group memberships and admin profile go with them; notes and
    notebooks they created are kept.
    """
    with tracer.start_as_current_span("delete_user") as span, failure_boundary(
        "Error deleting user"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", user_id)

        db = get_db()
        user_obj_id = parse_object_id(user_id, "User")
        await get_or_404(db.users, user_obj_id, "User", {"_id": 1})

        require(
            actor,
            Action.DELETE,
            Resource.USER,
            user_obj_id,
            "You do not have permission to delete users",
        )

        await relationships.delete_user(db, user_obj_id)

        logger.info("user_deleted_successfully", user_id=user_id, deleted_by=str(actor.id))

        return MessageResponse(message="User deleted successfully")
