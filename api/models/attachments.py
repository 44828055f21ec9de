"""Attachment models and the polymorphic parent reference."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, ClassVar, Literal

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter

from .common import RequestModel

ParentType = Literal["Note", "Comment", "Group"]


class NoteRef(BaseModel):
    """Attachment parent that is a note."""

    collection: ClassVar[str] = "notes"

    parent_type: Literal["Note"] = "Note"
    id: str


class CommentRef(BaseModel):
    """Attachment parent that is a comment."""

    collection: ClassVar[str] = "comments"

    parent_type: Literal["Comment"] = "Comment"
    id: str


class GroupRef(BaseModel):
    """Attachment parent that is a group."""

    collection: ClassVar[str] = "groups"

    parent_type: Literal["Group"] = "Group"
    id: str


AttachmentParent = Annotated[NoteRef | CommentRef | GroupRef, Field(discriminator="parent_type")]

_parent_adapter = TypeAdapter(AttachmentParent)


def parent_ref(parent_type: str, parent_id: str) -> NoteRef | CommentRef | GroupRef:
    """Build the parent variant matching a type tag."""
    return _parent_adapter.validate_python({"parent_type": parent_type, "id": parent_id})


class AttachmentCreate(RequestModel):
    """Request model for attaching a file to a note, comment or group."""

    parent_type: ParentType
    parent_id: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, validation_alias=AliasChoices("url", "URL"))
    file_size: int = Field(0, ge=0)


class AttachmentResponse(BaseModel):
    """Response model for attachment metadata."""

    id: str
    attachment_id: str
    file_name: str
    file_type: str
    url: str
    file_size: int
    parent: AttachmentParent
    uploaded_by: str | None = None
    created_at: datetime


class AttachmentEnvelope(BaseModel):
    message: str
    attachment: AttachmentResponse


class AttachmentListEnvelope(BaseModel):
    message: str
    count: int
    attachments: list[AttachmentResponse]
