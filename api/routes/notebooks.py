"""Notebook endpoints."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from ..access import (
    Action,
    Actor,
    Resource,
    can_view_note,
    can_view_notebook,
    notebook_visibility_filter,
    require,
)
from ..auth import get_current_user
from ..database import get_db
from ..errors import AuthorizationError, ValidationError, failure_boundary
from ..models import (
    MessageResponse,
    NotebookCreate,
    NotebookEnvelope,
    NotebookListEnvelope,
    NotebookNoteLink,
    NotebookUpdate,
)
from ..observability import get_app_metrics, get_tracer
from ..services import relationships
from ..services.expansion import expand_notebooks
from ..services.identifiers import insert_with_business_id
from ..services.lookup import get_or_404, parse_object_id

# Initialize logger
logger = structlog.get_logger(__name__)

# Get tracer and metrics
tracer = get_tracer(__name__)
metrics = get_app_metrics()

router = APIRouter(prefix="/notebooks", tags=["notebooks"])


async def actor_group_ids(db, actor: Actor) -> list:
    """Groups the actor belongs to or leads."""
    return await db.groups.distinct(
        "_id", {"$or": [{"members": actor.id}, {"lead_editor": actor.id}]}
    )


async def _respond(db, notebook_obj_id, actor: Actor, message: str) -> NotebookEnvelope:
    notebook_doc = await get_or_404(db.notebooks, notebook_obj_id, "Notebook")
    (notebook,) = await expand_notebooks(db, [notebook_doc], actor)
    return NotebookEnvelope(message=message, notebook=notebook)


@router.post("", response_model=NotebookEnvelope, status_code=201)
async def create_notebook(notebook: NotebookCreate, current_user: dict = Depends(get_current_user)):
    """Create a notebook, optionally nested under a parent notebook."""
    with tracer.start_as_current_span("create_notebook") as span, failure_boundary(
        "Error creating notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", str(actor.id))

        require(
            actor,
            Action.CREATE,
            Resource.NOTEBOOK,
            None,
            "You do not have permission to create notebooks",
        )

        db = get_db()

        parent_obj_id = None
        if notebook.parent_notebook_id:
            parent_obj_id = parse_object_id(notebook.parent_notebook_id, "Notebook")
            await get_or_404(db.notebooks, parent_obj_id, "Parent notebook", {"_id": 1})

        now = datetime.now(UTC)
        notebook_doc = {
            "notebook_name": notebook.notebook_name,
            "parent_notebook": parent_obj_id,
            "owner": actor.id,
            "notes": [],
            "accessible_groups": [],
            "created_at": now,
            "updated_at": now,
        }

        notebook_obj_id = await insert_with_business_id(
            db.notebooks, notebook_doc, "notebook_id", "NOTEBOOK"
        )

        span.set_attribute("notebook.id", str(notebook_obj_id))
        logger.info(
            "notebook_created_successfully",
            notebook_id=str(notebook_obj_id),
            user_id=str(actor.id),
            nested=parent_obj_id is not None,
        )
        metrics.entities_created.add(1, {"entity": "notebook"})

        return await _respond(db, notebook_obj_id, actor, "Notebook created successfully")


@router.get("", response_model=NotebookListEnvelope)
async def list_notebooks(current_user: dict = Depends(get_current_user)):
    """
    List notebooks visible to the requester, newest first.

    Non-privileged users see notebooks they own and notebooks shared with a
    group they belong to or lead.
    """
    with tracer.start_as_current_span("list_notebooks") as span, failure_boundary(
        "Error fetching notebooks"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("user.id", str(actor.id))

        db = get_db()
        query = notebook_visibility_filter(actor, await actor_group_ids(db, actor))
        docs = await db.notebooks.find(query).sort("created_at", -1).to_list(length=None)
        notebooks = await expand_notebooks(db, docs, actor)

        logger.info("notebooks_listed", user_id=str(actor.id), count=len(notebooks))

        return NotebookListEnvelope(
            message="Notebooks retrieved successfully", count=len(notebooks), notebooks=notebooks
        )


@router.get("/{notebook_id}", response_model=NotebookEnvelope)
async def get_notebook(notebook_id: str, current_user: dict = Depends(get_current_user)):
    """Retrieve a notebook the requester owns or can access through a group."""
    with tracer.start_as_current_span("get_notebook") as span, failure_boundary(
        "Error fetching notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("notebook.id", notebook_id)

        db = get_db()
        notebook_obj_id = parse_object_id(notebook_id, "Notebook")
        notebook_doc = await get_or_404(db.notebooks, notebook_obj_id, "Notebook")

        if not can_view_notebook(actor, notebook_doc, await actor_group_ids(db, actor)):
            logger.warning("notebook_access_denied", user_id=str(actor.id), notebook_id=notebook_id)
            metrics.permission_denials.add(1, {"action": "read", "resource": "notebook"})
            raise AuthorizationError("Access denied to this notebook")

        (notebook,) = await expand_notebooks(db, [notebook_doc], actor)

        return NotebookEnvelope(message="Notebook retrieved successfully", notebook=notebook)


@router.put("/{notebook_id}", response_model=NotebookEnvelope)
async def update_notebook(
    notebook_id: str,
    notebook_update: NotebookUpdate,
    current_user: dict = Depends(get_current_user),
):
    """
    Rename or re-parent a notebook.

    Sending ``parent_notebook_id: null`` makes the notebook top-level. A
    notebook cannot be moved under itself or one of its descendants.
    """
    with tracer.start_as_current_span("update_notebook") as span, failure_boundary(
        "Error updating notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("notebook.id", notebook_id)

        db = get_db()
        notebook_obj_id = parse_object_id(notebook_id, "Notebook")
        existing = await get_or_404(db.notebooks, notebook_obj_id, "Notebook")

        require(
            actor,
            Action.UPDATE,
            Resource.NOTEBOOK,
            existing.get("owner"),
            "You do not have permission to edit this notebook",
        )

        update_doc = {}
        if notebook_update.notebook_name is not None:
            update_doc["notebook_name"] = notebook_update.notebook_name

        if "parent_notebook_id" in notebook_update.model_fields_set:
            parent_obj_id = None
            if notebook_update.parent_notebook_id:
                parent_obj_id = parse_object_id(notebook_update.parent_notebook_id, "Notebook")
                await get_or_404(db.notebooks, parent_obj_id, "Parent notebook", {"_id": 1})
                if await relationships.is_descendant(db, parent_obj_id, notebook_obj_id):
                    raise ValidationError(
                        "A notebook cannot be nested under itself or one of its descendants"
                    )
            update_doc["parent_notebook"] = parent_obj_id

        update_doc["updated_at"] = datetime.now(UTC)
        await db.notebooks.update_one({"_id": notebook_obj_id}, {"$set": update_doc})

        logger.info("notebook_updated_successfully", user_id=str(actor.id), notebook_id=notebook_id)

        return await _respond(db, notebook_obj_id, actor, "Notebook updated successfully")


@router.delete("/{notebook_id}", response_model=MessageResponse)
async def delete_notebook(notebook_id: str, current_user: dict = Depends(get_current_user)):
    """
    Delete a notebook.

    Notes stay, but lose their membership; groups lose access; child
    notebooks move up one level.
    """
    with tracer.start_as_current_span("delete_notebook") as span, failure_boundary(
        "Error deleting notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("notebook.id", notebook_id)

        db = get_db()
        notebook_obj_id = parse_object_id(notebook_id, "Notebook")
        existing = await get_or_404(db.notebooks, notebook_obj_id, "Notebook")

        require(
            actor,
            Action.DELETE,
            Resource.NOTEBOOK,
            existing.get("owner"),
            "You do not have permission to delete this notebook",
        )

        await relationships.delete_notebook(db, existing)

        logger.info("notebook_deleted_successfully", user_id=str(actor.id), notebook_id=notebook_id)

        return MessageResponse(message="Notebook deleted successfully")


@router.post("/{notebook_id}/notes", response_model=NotebookEnvelope)
async def add_note_to_notebook(
    notebook_id: str, link: NotebookNoteLink, current_user: dict = Depends(get_current_user)
):
    """Add a note to a notebook. Adding it twice is a no-op."""
    with tracer.start_as_current_span("add_note_to_notebook") as span, failure_boundary(
        "Error adding note to notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("notebook.id", notebook_id)

        db = get_db()
        notebook_obj_id = parse_object_id(notebook_id, "Notebook")
        note_obj_id = parse_object_id(link.note_id, "Note")
        notebook_doc = await get_or_404(db.notebooks, notebook_obj_id, "Notebook", {"owner": 1})
        note_doc = await get_or_404(db.notes, note_obj_id, "Note", {"creator": 1, "view_type": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.NOTEBOOK,
            notebook_doc.get("owner"),
            "You do not have permission to modify this notebook",
        )
        if not can_view_note(actor, note_doc):
            metrics.permission_denials.add(1, {"action": "read", "resource": "note"})
            raise AuthorizationError("Access denied to this note")

        await relationships.link_note_to_notebook(db, note_obj_id, notebook_obj_id)

        logger.info("note_added_to_notebook", notebook_id=notebook_id, note_id=link.note_id)

        return await _respond(db, notebook_obj_id, actor, "Note added to notebook successfully")


@router.delete("/{notebook_id}/notes/{note_id}", response_model=NotebookEnvelope)
async def remove_note_from_notebook(
    notebook_id: str, note_id: str, current_user: dict = Depends(get_current_user)
):
    """Take a note out of a notebook. The note itself is kept."""
    with tracer.start_as_current_span("remove_note_from_notebook") as span, failure_boundary(
        "Error removing note from notebook"
    ):
        actor = Actor.from_user(current_user)
        span.set_attribute("notebook.id", notebook_id)

        db = get_db()
        notebook_obj_id = parse_object_id(notebook_id, "Notebook")
        note_obj_id = parse_object_id(note_id, "Note")
        notebook_doc = await get_or_404(db.notebooks, notebook_obj_id, "Notebook", {"owner": 1})
        await get_or_404(db.notes, note_obj_id, "Note", {"_id": 1})

        require(
            actor,
            Action.UPDATE,
            Resource.NOTEBOOK,
            notebook_doc.get("owner"),
            "You do not have permission to modify this notebook",
        )

        await relationships.unlink_note_from_notebook(db, note_obj_id, notebook_obj_id)

        logger.info("note_removed_from_notebook", notebook_id=notebook_id, note_id=note_id)

        return await _respond(db, notebook_obj_id, actor, "Note removed from notebook successfully")
