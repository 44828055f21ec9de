"""
Role and ownership based access control.

Every handler asks the evaluator before mutating or returning an entity.
Decisions are never cached: a request re-reads the actor and the resource
and evaluates again.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog
from bson import ObjectId

from .errors import AuthorizationError
from .observability import get_app_metrics

# Initialize logger
logger = structlog.get_logger(__name__)

metrics = get_app_metrics()


class Role(str, Enum):
    """User roles. Non-exclusive: a user may hold several."""

    ADMIN = "Admin"
    LEAD_EDITOR = "Lead Editor"
    EDITOR = "Editor"
    CONTRIBUTOR = "Contributor"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Resource(str, Enum):
    USER = "user"
    ADMIN_PROFILE = "admin_profile"
    NOTE = "note"
    NOTEBOOK = "notebook"
    TAG = "tag"
    COMMENT = "comment"
    ATTACHMENT = "attachment"
    GROUP = "group"


class ViewType(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    SHARED = "shared"


# Anyone signed in may create these
OPEN_CREATE = frozenset(
    {Resource.NOTE, Resource.NOTEBOOK, Resource.TAG, Resource.COMMENT, Resource.ATTACHMENT}
)

# Editors and Lead Editors moderate these regardless of ownership
EDITOR_MODERATED = frozenset({Resource.NOTE, Resource.COMMENT, Resource.TAG})

VISIBLE_VIEW_TYPES = (ViewType.PUBLIC.value, ViewType.SHARED.value)


def parse_roles(values: Iterable[str] | None) -> frozenset[Role]:
    """Turn stored role strings into a role set, ignoring unknown values."""
    roles = set()
    for value in values or ():
        try:
            roles.add(Role(value))
        except ValueError:
            logger.warning("unknown_role_ignored", role=value)
    return frozenset(roles)


@dataclass(frozen=True)
class Actor:
    """The authenticated user a request acts on behalf of."""

    id: ObjectId
    roles: frozenset[Role]

    @classmethod
    def from_user(cls, user: dict) -> Actor:
        return cls(id=user["_id"], roles=parse_roles(user.get("roles")))

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    def has_any(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)


def _same_id(left: Any, right: Any) -> bool:
    return left is not None and right is not None and str(left) == str(right)


def can_perform(
    actor_roles: Iterable[Role],
    action: Action,
    resource: Resource,
    owner_id: Any,
    actor_id: Any,
    *,
    visibility: str | None = None,
    granted: bool = False,
) -> bool:
    """
    Decide whether an actor may perform an action on a resource.

    Args:
        actor_roles: Roles held by the actor
        action: The operation requested
        resource: The kind of entity targeted
        owner_id: The owning-user field of the entity (creator, owner,
            author, uploader, lead editor, or the user itself)
        actor_id: The actor's storage identity
        visibility: For note reads, the note's view type
        granted: For notebook and group reads, whether the actor reaches the
            entity through a group (a group granting the notebook, or
            membership of the group)

    Returns:
        True when permitted
    """
    roles = frozenset(actor_roles)

    if Role.ADMIN in roles:
        return True

    is_owner = _same_id(owner_id, actor_id)

    if resource is Resource.ADMIN_PROFILE:
        return False

    if resource is Resource.GROUP:
        if action is Action.CREATE:
            return Role.LEAD_EDITOR in roles
        if action in (Action.UPDATE, Action.DELETE):
            return Role.LEAD_EDITOR in roles and is_owner
        return Role.LEAD_EDITOR in roles or is_owner or granted

    if resource is Resource.USER:
        if action is Action.READ:
            return is_owner or Role.LEAD_EDITOR in roles
        if action is Action.UPDATE:
            return is_owner
        return False

    if action is Action.CREATE:
        return resource in OPEN_CREATE

    if action is Action.READ:
        if resource is Resource.NOTE:
            return is_owner or visibility in VISIBLE_VIEW_TYPES
        if resource is Resource.NOTEBOOK:
            return Role.LEAD_EDITOR in roles or is_owner or granted
        return True

    # update / delete
    if resource in EDITOR_MODERATED and (Role.EDITOR in roles or Role.LEAD_EDITOR in roles):
        return True
    if resource is Resource.NOTEBOOK and Role.LEAD_EDITOR in roles:
        return True
    return is_owner


def require(
    actor: Actor,
    action: Action,
    resource: Resource,
    owner_id: Any,
    message: str,
    *,
    visibility: str | None = None,
) -> None:
    """Raise AuthorizationError unless ``can_perform`` allows the request."""
    if can_perform(actor.roles, action, resource, owner_id, actor.id, visibility=visibility):
        return

    logger.warning(
        "permission_denied",
        user_id=str(actor.id),
        action=action.value,
        resource=resource.value,
    )
    metrics.permission_denials.add(1, {"action": action.value, "resource": resource.value})
    raise AuthorizationError(message)


def can_view_note(actor: Actor, note: dict) -> bool:
    return can_perform(
        actor.roles,
        Action.READ,
        Resource.NOTE,
        note.get("creator"),
        actor.id,
        visibility=note.get("view_type"),
    )


def note_visibility_filter(actor: Actor) -> dict:
    """Query clause selecting the notes an actor may list."""
    if actor.is_admin:
        return {}
    return {"$or": [{"creator": actor.id}, {"view_type": {"$in": list(VISIBLE_VIEW_TYPES)}}]}


def group_visibility_filter(actor: Actor) -> dict:
    """Query clause selecting the groups an actor may list."""
    if actor.has_any(Role.ADMIN, Role.LEAD_EDITOR):
        return {}
    return {"$or": [{"members": actor.id}, {"lead_editor": actor.id}]}


def notebook_visibility_filter(actor: Actor, group_ids: Iterable[ObjectId]) -> dict:
    """
    Query clause selecting the notebooks an actor may list.

    Args:
        actor: The requesting actor
        group_ids: Groups the actor leads or belongs to
    """
    if actor.has_any(Role.ADMIN, Role.LEAD_EDITOR):
        return {}
    return {"$or": [{"owner": actor.id}, {"accessible_groups": {"$in": list(group_ids)}}]}


def can_view_notebook(actor: Actor, notebook: dict, group_ids: Iterable[ObjectId]) -> bool:
    granted_to = {str(group_id) for group_id in notebook.get("accessible_groups", [])}
    return can_perform(
        actor.roles,
        Action.READ,
        Resource.NOTEBOOK,
        notebook.get("owner"),
        actor.id,
        granted=any(str(group_id) in granted_to for group_id in group_ids),
    )


def can_view_group(actor: Actor, group: dict) -> bool:
    return can_perform(
        actor.roles,
        Action.READ,
        Resource.GROUP,
        group.get("lead_editor"),
        actor.id,
        granted=any(_same_id(member, actor.id) for member in group.get("members", [])),
    )
