"""
Referential integrity maintenance between entities.

Many-to-many and parent/child relations are stored as reference arrays on
both sides (Note.tags / Tag.notes, Note.notebooks / Notebook.notes,
Group.accessible_notebooks / Notebook.accessible_groups, and the
comments/attachments arrays on their parents). Every write to one side goes
through this module so that the other side follows.

Each edge is written as two independent updates, source side first. There
is no transaction across them; ``$addToSet`` and ``$pull`` keep every step
idempotent so replaying an operation converges.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..observability import get_app_metrics, get_tracer

logger = structlog.get_logger(__name__)

tracer = get_tracer(__name__)
metrics = get_app_metrics()

# Attachment parent type -> collection holding the parent
PARENT_COLLECTIONS = {"Note": "notes", "Comment": "comments", "Group": "groups"}


def _now() -> datetime:
    return datetime.now(UTC)


def _unique(ids: Iterable[ObjectId]) -> list[ObjectId]:
    """De-duplicate while keeping the caller's order."""
    seen = set()
    ordered = []
    for value in ids:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# Tag <-> Note


async def link_tag_to_note(db: AsyncIOMotorDatabase, tag_id: ObjectId, note_id: ObjectId) -> None:
    await db.notes.update_one(
        {"_id": note_id}, {"$addToSet": {"tags": tag_id}, "$set": {"updated_at": _now()}}
    )
    await db.tags.update_one({"_id": tag_id}, {"$addToSet": {"notes": note_id}})
    logger.debug("tag_linked_to_note", tag_id=str(tag_id), note_id=str(note_id))


async def unlink_tag_from_note(
    db: AsyncIOMotorDatabase, tag_id: ObjectId, note_id: ObjectId
) -> None:
    await db.notes.update_one(
        {"_id": note_id}, {"$pull": {"tags": tag_id}, "$set": {"updated_at": _now()}}
    )
    await db.tags.update_one({"_id": tag_id}, {"$pull": {"notes": note_id}})
    logger.debug("tag_unlinked_from_note", tag_id=str(tag_id), note_id=str(note_id))


async def replace_note_tags(
    db: AsyncIOMotorDatabase, note_id: ObjectId, tag_ids: Iterable[ObjectId]
) -> None:
    """Set a note's tags wholesale and bring every tag's back-list in line."""
    tag_ids = _unique(tag_ids)
    await db.notes.update_one({"_id": note_id}, {"$set": {"tags": tag_ids}})
    await db.tags.update_many(
        {"notes": note_id, "_id": {"$nin": tag_ids}}, {"$pull": {"notes": note_id}}
    )
    if tag_ids:
        await db.tags.update_many({"_id": {"$in": tag_ids}}, {"$addToSet": {"notes": note_id}})


# Note <-> Notebook


async def link_note_to_notebook(
    db: AsyncIOMotorDatabase, note_id: ObjectId, notebook_id: ObjectId
) -> None:
    await db.notebooks.update_one(
        {"_id": notebook_id}, {"$addToSet": {"notes": note_id}, "$set": {"updated_at": _now()}}
    )
    await db.notes.update_one({"_id": note_id}, {"$addToSet": {"notebooks": notebook_id}})
    logger.debug("note_linked_to_notebook", note_id=str(note_id), notebook_id=str(notebook_id))


async def unlink_note_from_notebook(
    db: AsyncIOMotorDatabase, note_id: ObjectId, notebook_id: ObjectId
) -> None:
    await db.notebooks.update_one(
        {"_id": notebook_id}, {"$pull": {"notes": note_id}, "$set": {"updated_at": _now()}}
    )
    await db.notes.update_one({"_id": note_id}, {"$pull": {"notebooks": notebook_id}})
    logger.debug("note_unlinked_from_notebook", note_id=str(note_id), notebook_id=str(notebook_id))


async def replace_note_notebooks(
    db: AsyncIOMotorDatabase, note_id: ObjectId, notebook_ids: Iterable[ObjectId]
) -> None:
    """Set the notebooks a note belongs to and update each notebook's note list."""
    notebook_ids = _unique(notebook_ids)
    await db.notes.update_one({"_id": note_id}, {"$set": {"notebooks": notebook_ids}})
    await db.notebooks.update_many(
        {"notes": note_id, "_id": {"$nin": notebook_ids}}, {"$pull": {"notes": note_id}}
    )
    if notebook_ids:
        await db.notebooks.update_many(
            {"_id": {"$in": notebook_ids}}, {"$addToSet": {"notes": note_id}}
        )


# Group <-> Notebook


async def link_group_to_notebooks(
    db: AsyncIOMotorDatabase, group_id: ObjectId, notebook_ids: Iterable[ObjectId]
) -> None:
    notebook_ids = _unique(notebook_ids)
    await db.groups.update_one(
        {"_id": group_id}, {"$addToSet": {"accessible_notebooks": {"$each": notebook_ids}}}
    )
    if notebook_ids:
        await db.notebooks.update_many(
            {"_id": {"$in": notebook_ids}}, {"$addToSet": {"accessible_groups": group_id}}
        )


async def unlink_group_from_notebooks(db: AsyncIOMotorDatabase, group_id: ObjectId) -> None:
    """Remove a group from every notebook that currently grants it access."""
    await db.groups.update_one({"_id": group_id}, {"$set": {"accessible_notebooks": []}})
    result = await db.notebooks.update_many(
        {"accessible_groups": group_id}, {"$pull": {"accessible_groups": group_id}}
    )
    logger.debug(
        "group_unlinked_from_notebooks", group_id=str(group_id), notebooks=result.modified_count
    )


async def replace_group_notebooks(
    db: AsyncIOMotorDatabase, group_id: ObjectId, notebook_ids: Iterable[ObjectId]
) -> None:
    await unlink_group_from_notebooks(db, group_id)
    await link_group_to_notebooks(db, group_id, notebook_ids)


# Parent <-> Comment / Attachment


async def attach_comment(db: AsyncIOMotorDatabase, note_id: ObjectId, comment_id: ObjectId) -> None:
    await db.notes.update_one({"_id": note_id}, {"$addToSet": {"comments": comment_id}})


async def detach_comment(db: AsyncIOMotorDatabase, note_id: ObjectId, comment_id: ObjectId) -> None:
    await db.notes.update_one({"_id": note_id}, {"$pull": {"comments": comment_id}})


async def attach_to_parent(
    db: AsyncIOMotorDatabase, parent_type: str, parent_id: ObjectId, attachment_id: ObjectId
) -> None:
    collection = db[PARENT_COLLECTIONS[parent_type]]
    await collection.update_one({"_id": parent_id}, {"$addToSet": {"attachments": attachment_id}})


async def detach_from_parent(
    db: AsyncIOMotorDatabase, parent_type: str, parent_id: ObjectId, attachment_id: ObjectId
) -> None:
    collection = db[PARENT_COLLECTIONS[parent_type]]
    await collection.update_one({"_id": parent_id}, {"$pull": {"attachments": attachment_id}})


# Cascades


async def _delete_attachments_of(
    db: AsyncIOMotorDatabase, parent_type: str, parent_ids: list[ObjectId]
) -> int:
    if not parent_ids:
        return 0
    result = await db.attachments.delete_many(
        {"parent_type": parent_type, "parent_id": {"$in": parent_ids}}
    )
    return result.deleted_count


def _record(entity: str, count: int) -> None:
    if count:
        metrics.cascade_deletions.add(count, {"entity": entity})


async def delete_attachment(db: AsyncIOMotorDatabase, attachment: dict) -> None:
    await detach_from_parent(
        db, attachment["parent_type"], attachment["parent_id"], attachment["_id"]
    )
    await db.attachments.delete_one({"_id": attachment["_id"]})
    _record("attachment", 1)


async def delete_comment(db: AsyncIOMotorDatabase, comment: dict) -> dict:
    """Delete a comment, its attachments, and its entry on the parent note."""
    with tracer.start_as_current_span("cascade.delete_comment"):
        attachments = await _delete_attachments_of(db, "Comment", [comment["_id"]])
        await detach_comment(db, comment["note"], comment["_id"])
        await db.comments.delete_one({"_id": comment["_id"]})

        _record("comment", 1)
        _record("attachment", attachments)
        return {"comments": 1, "attachments": attachments}


async def delete_note(db: AsyncIOMotorDatabase, note_id: ObjectId) -> dict:
    """
    Delete a note and everything that depends on it.

    Removes the note's comments, the attachments of the note and of those
    comments, and scrubs the note from tags, notebooks and other notes'
    connections.
    """
    with tracer.start_as_current_span("cascade.delete_note") as span:
        span.set_attribute("note.id", str(note_id))

        comment_ids = await db.comments.distinct("_id", {"note": note_id})

        attachments = await _delete_attachments_of(db, "Note", [note_id])
        attachments += await _delete_attachments_of(db, "Comment", comment_ids)
        comments = (await db.comments.delete_many({"note": note_id})).deleted_count

        await db.tags.update_many({"notes": note_id}, {"$pull": {"notes": note_id}})
        await db.notebooks.update_many({"notes": note_id}, {"$pull": {"notes": note_id}})
        await db.notes.update_many(
            {"connected_notes": note_id}, {"$pull": {"connected_notes": note_id}}
        )

        await db.notes.delete_one({"_id": note_id})

        _record("note", 1)
        _record("comment", comments)
        _record("attachment", attachments)

        summary = {"notes": 1, "comments": comments, "attachments": attachments}
        logger.info("cascade_delete_completed", entity="note", entity_id=str(note_id), **summary)
        return summary


async def delete_tag(db: AsyncIOMotorDatabase, tag_id: ObjectId) -> None:
    result = await db.notes.update_many({"tags": tag_id}, {"$pull": {"tags": tag_id}})
    await db.tags.delete_one({"_id": tag_id})
    _record("tag", 1)
    logger.info(
        "cascade_delete_completed",
        entity="tag",
        entity_id=str(tag_id),
        notes_updated=result.modified_count,
    )


async def delete_group(db: AsyncIOMotorDatabase, group_id: ObjectId) -> None:
    with tracer.start_as_current_span("cascade.delete_group"):
        await unlink_group_from_notebooks(db, group_id)
        attachments = await _delete_attachments_of(db, "Group", [group_id])
        await db.groups.delete_one({"_id": group_id})

        _record("group", 1)
        _record("attachment", attachments)
        logger.info(
            "cascade_delete_completed",
            entity="group",
            entity_id=str(group_id),
            attachments=attachments,
        )


async def delete_notebook(db: AsyncIOMotorDatabase, notebook: dict) -> None:
    """
    Delete a notebook.

    Child notebooks move up to the deleted notebook's own parent so the
    hierarchy stays a forest.
    """
    notebook_id = notebook["_id"]
    with tracer.start_as_current_span("cascade.delete_notebook"):
        await db.notes.update_many(
            {"notebooks": notebook_id}, {"$pull": {"notebooks": notebook_id}}
        )
        await db.groups.update_many(
            {"accessible_notebooks": notebook_id},
            {"$pull": {"accessible_notebooks": notebook_id}},
        )
        children = await db.notebooks.update_many(
            {"parent_notebook": notebook_id},
            {"$set": {"parent_notebook": notebook.get("parent_notebook"), "updated_at": _now()}},
        )
        await db.notebooks.delete_one({"_id": notebook_id})

        _record("notebook", 1)
        logger.info(
            "cascade_delete_completed",
            entity="notebook",
            entity_id=str(notebook_id),
            children_reparented=children.modified_count,
        )


async def delete_user(db: AsyncIOMotorDatabase, user_id: ObjectId) -> None:
    """Delete a user, their admin profile and their group memberships."""
    await db.groups.update_many({"members": user_id}, {"$pull": {"members": user_id}})
    await db.admins.delete_many({"user": user_id})
    await db.users.delete_one({"_id": user_id})
    _record("user", 1)
    logger.info("cascade_delete_completed", entity="user", entity_id=str(user_id))


async def is_descendant(
    db: AsyncIOMotorDatabase, candidate_id: ObjectId, ancestor_id: ObjectId
) -> bool:
    """
    Whether ``candidate_id`` is ``ancestor_id`` or lies beneath it.

    Walks parent links upward from the candidate; a visited set guards
    against pre-existing cycles.
    """
    visited = set()
    current = candidate_id
    while current is not None and current not in visited:
        if current == ancestor_id:
            return True
        visited.add(current)
        doc = await db.notebooks.find_one({"_id": current}, {"parent_notebook": 1})
        current = doc.get("parent_notebook") if doc else None
    return False
