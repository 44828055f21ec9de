"""
Reference expansion for responses.

Handlers return entities with their references populated. Each expansion
works on a batch of documents and issues one ``$in`` query per referenced
collection, so listing endpoints cost the same number of round trips as
single fetches. References that no longer resolve are dropped, and note
references a requester may not read are left out.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..access import Actor, note_visibility_filter
from ..models import (
    AdminProfileResponse,
    AttachmentResponse,
    CommentResponse,
    GroupResponse,
    GroupSummary,
    NotebookResponse,
    NotebookSummary,
    NoteResponse,
    NoteSummary,
    TagResponse,
    TagSummary,
    UserResponse,
    UserSummary,
    parent_ref,
)

USER_FIELDS = {"user_id": 1, "user_name": 1, "first_name": 1, "last_name": 1}
NOTE_FIELDS = {"note_id": 1, "title": 1}
NOTEBOOK_FIELDS = {"notebook_id": 1, "notebook_name": 1}
TAG_FIELDS = {"tag_id": 1, "tag_name": 1}
GROUP_FIELDS = {"group_id": 1, "group_name": 1}


async def _index(
    collection: AsyncIOMotorCollection,
    ids: Iterable[ObjectId | None],
    projection: dict | None = None,
    extra: dict | None = None,
) -> dict[ObjectId, dict]:
    wanted = list({object_id for object_id in ids if object_id is not None})
    if not wanted:
        return {}

    query = {"_id": {"$in": wanted}}
    if extra:
        query = {"$and": [query, extra]}

    return {doc["_id"]: doc async for doc in collection.find(query, projection)}


def _pick(index: dict[ObjectId, dict], ids: Iterable[ObjectId], build: Callable):
    return [build(index[object_id]) for object_id in ids if object_id in index]


def _flatten(docs: list[dict], field: str) -> list[ObjectId]:
    return [object_id for doc in docs for object_id in doc.get(field, [])]


def user_summary(doc: dict) -> UserSummary:
    return UserSummary(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        user_name=doc["user_name"],
        first_name=doc["first_name"],
        last_name=doc["last_name"],
    )


def note_summary(doc: dict) -> NoteSummary:
    return NoteSummary(id=str(doc["_id"]), note_id=doc["note_id"], title=doc["title"])


def notebook_summary(doc: dict) -> NotebookSummary:
    return NotebookSummary(
        id=str(doc["_id"]), notebook_id=doc["notebook_id"], notebook_name=doc["notebook_name"]
    )


def tag_summary(doc: dict) -> TagSummary:
    return TagSummary(id=str(doc["_id"]), tag_id=doc["tag_id"], tag_name=doc["tag_name"])


def group_summary(doc: dict) -> GroupSummary:
    return GroupSummary(id=str(doc["_id"]), group_id=doc["group_id"], group_name=doc["group_name"])


def user_response(doc: dict) -> UserResponse:
    return UserResponse(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        user_name=doc["user_name"],
        first_name=doc["first_name"],
        last_name=doc["last_name"],
        email=doc["email"],
        phone=doc.get("phone", []),
        institution=doc.get("institution", ""),
        roles=doc.get("roles", []),
        created_at=doc.get("created_at"),
    )


def attachment_response(doc: dict) -> AttachmentResponse:
    uploaded_by = doc.get("uploaded_by")
    return AttachmentResponse(
        id=str(doc["_id"]),
        attachment_id=doc["attachment_id"],
        file_name=doc["file_name"],
        file_type=doc["file_type"],
        url=doc["url"],
        file_size=doc.get("file_size", 0),
        parent=parent_ref(doc["parent_type"], str(doc["parent_id"])),
        uploaded_by=str(uploaded_by) if uploaded_by else None,
        created_at=doc["created_at"],
    )


async def expand_comments(db: AsyncIOMotorDatabase, docs: list[dict]) -> list[CommentResponse]:
    users = await _index(db.users, (doc.get("user") for doc in docs), USER_FIELDS)
    notes = await _index(db.notes, (doc.get("note") for doc in docs), NOTE_FIELDS)
    attachments = await _index(db.attachments, _flatten(docs, "attachments"))

    responses = []
    for doc in docs:
        user = users.get(doc.get("user"))
        note = notes.get(doc.get("note"))
        responses.append(
            CommentResponse(
                id=str(doc["_id"]),
                comment_id=doc["comment_id"],
                comment_text=doc["comment_text"],
                comment_time=doc["comment_time"],
                user=user_summary(user) if user else None,
                note=note_summary(note) if note else None,
                attachments=_pick(attachments, doc.get("attachments", []), attachment_response),
            )
        )
    return responses


async def expand_notes(
    db: AsyncIOMotorDatabase, docs: list[dict], actor: Actor
) -> list[NoteResponse]:
    visible = note_visibility_filter(actor)

    creators = await _index(db.users, (doc.get("creator") for doc in docs), USER_FIELDS)
    tags = await _index(db.tags, _flatten(docs, "tags"), TAG_FIELDS)
    notebooks = await _index(db.notebooks, _flatten(docs, "notebooks"), NOTEBOOK_FIELDS)
    connected = await _index(db.notes, _flatten(docs, "connected_notes"), NOTE_FIELDS, visible)
    attachments = await _index(db.attachments, _flatten(docs, "attachments"))

    comment_docs = await _index(db.comments, _flatten(docs, "comments"))
    comments = {
        ObjectId(response.id): response
        for response in await expand_comments(db, list(comment_docs.values()))
    }

    responses = []
    for doc in docs:
        creator = creators.get(doc.get("creator"))
        responses.append(
            NoteResponse(
                id=str(doc["_id"]),
                note_id=doc["note_id"],
                title=doc["title"],
                content=doc.get("content", ""),
                type=doc.get("type", "text"),
                view_type=doc.get("view_type", "private"),
                creator=user_summary(creator) if creator else None,
                tags=_pick(tags, doc.get("tags", []), tag_summary),
                notebooks=_pick(notebooks, doc.get("notebooks", []), notebook_summary),
                connected_notes=_pick(connected, doc.get("connected_notes", []), note_summary),
                comments=[comments[c] for c in doc.get("comments", []) if c in comments],
                attachments=_pick(attachments, doc.get("attachments", []), attachment_response),
                created_at=doc["created_at"],
                updated_at=doc["updated_at"],
            )
        )
    return responses


async def expand_notebooks(
    db: AsyncIOMotorDatabase, docs: list[dict], actor: Actor
) -> list[NotebookResponse]:
    owners = await _index(db.users, (doc.get("owner") for doc in docs), USER_FIELDS)
    parents = await _index(
        db.notebooks, (doc.get("parent_notebook") for doc in docs), NOTEBOOK_FIELDS
    )
    notes = await _index(
        db.notes, _flatten(docs, "notes"), NOTE_FIELDS, note_visibility_filter(actor)
    )
    groups = await _index(db.groups, _flatten(docs, "accessible_groups"), GROUP_FIELDS)

    responses = []
    for doc in docs:
        owner = owners.get(doc.get("owner"))
        parent = parents.get(doc.get("parent_notebook"))
        responses.append(
            NotebookResponse(
                id=str(doc["_id"]),
                notebook_id=doc["notebook_id"],
                notebook_name=doc["notebook_name"],
                parent_notebook=notebook_summary(parent) if parent else None,
                owner=user_summary(owner) if owner else None,
                notes=_pick(notes, doc.get("notes", []), note_summary),
                accessible_groups=_pick(groups, doc.get("accessible_groups", []), group_summary),
                created_at=doc["created_at"],
                updated_at=doc["updated_at"],
            )
        )
    return responses


async def expand_tags(
    db: AsyncIOMotorDatabase, docs: list[dict], actor: Actor
) -> list[TagResponse]:
    notes = await _index(
        db.notes, _flatten(docs, "notes"), NOTE_FIELDS, note_visibility_filter(actor)
    )
    return [
        TagResponse(
            id=str(doc["_id"]),
            tag_id=doc["tag_id"],
            tag_name=doc["tag_name"],
            notes=_pick(notes, doc.get("notes", []), note_summary),
            created_at=doc["created_at"],
        )
        for doc in docs
    ]


async def expand_groups(db: AsyncIOMotorDatabase, docs: list[dict]) -> list[GroupResponse]:
    user_ids = [doc.get("lead_editor") for doc in docs] + _flatten(docs, "members")
    users = await _index(db.users, user_ids, USER_FIELDS)
    notebooks = await _index(db.notebooks, _flatten(docs, "accessible_notebooks"), NOTEBOOK_FIELDS)
    attachments = await _index(db.attachments, _flatten(docs, "attachments"))

    responses = []
    for doc in docs:
        lead = users.get(doc.get("lead_editor"))
        responses.append(
            GroupResponse(
                id=str(doc["_id"]),
                group_id=doc["group_id"],
                group_name=doc["group_name"],
                lead_editor=user_summary(lead) if lead else None,
                members=_pick(users, doc.get("members", []), user_summary),
                accessible_notebooks=_pick(
                    notebooks, doc.get("accessible_notebooks", []), notebook_summary
                ),
                attachments=_pick(attachments, doc.get("attachments", []), attachment_response),
                created_at=doc["created_at"],
                updated_at=doc["updated_at"],
            )
        )
    return responses


async def expand_admin_profiles(
    db: AsyncIOMotorDatabase, docs: list[dict]
) -> list[AdminProfileResponse]:
    users = await _index(db.users, (doc.get("user") for doc in docs), {"password": 0})
    responses = []
    for doc in docs:
        user = users.get(doc.get("user"))
        responses.append(
            AdminProfileResponse(
                id=str(doc["_id"]),
                admin_id=doc["admin_id"],
                admin_name=doc["admin_name"],
                admin_contact=doc["admin_contact"],
                user=user_response(user) if user else None,
                created_at=doc.get("created_at"),
            )
        )
    return responses
