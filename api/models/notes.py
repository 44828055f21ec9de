"""Notes-related Pydantic models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..access import ViewType
from .attachments import AttachmentResponse
from .comments import CommentResponse
from .common import NotebookSummary, NoteSummary, RequestModel, TagSummary, UserSummary


class NoteType(str, Enum):
    TEXT = "text"
    MARKDOWN = "markdown"
    TODO = "todo"
    CODE = "code"


class NoteCreate(RequestModel):
    """Request model for creating a note."""

    title: str = Field(..., min_length=1)
    content: str = ""
    type: NoteType = NoteType.TEXT
    view_type: ViewType = ViewType.PRIVATE
    tags: list[str] = Field(default_factory=list)
    notebook_ids: list[str] = Field(default_factory=list)
    connected_note_ids: list[str] = Field(default_factory=list)


class NoteUpdate(RequestModel):
    """Request model for updating a note. Omitted fields are left unchanged."""

    title: str | None = Field(None, min_length=1)
    content: str | None = None
    type: NoteType | None = None
    view_type: ViewType | None = None
    tags: list[str] | None = None
    notebook_ids: list[str] | None = None
    connected_note_ids: list[str] | None = None


class NoteTagLink(RequestModel):
    """Request model for tagging a note."""

    tag_id: str = Field(..., min_length=1)


class NoteResponse(BaseModel):
    """Response model for note data with references expanded."""

    id: str
    note_id: str
    title: str
    content: str
    type: NoteType
    view_type: ViewType
    creator: UserSummary | None = None
    tags: list[TagSummary] = Field(default_factory=list)
    notebooks: list[NotebookSummary] = Field(default_factory=list)
    connected_notes: list[NoteSummary] = Field(default_factory=list)
    comments: list[CommentResponse] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(BaseModel):
    message: str
    note: NoteResponse


class NoteListEnvelope(BaseModel):
    message: str
    count: int
    notes: list[NoteResponse]
