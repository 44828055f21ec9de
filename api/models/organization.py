"""Notebook, tag and group models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from .attachments import AttachmentResponse
from .common import (
    GroupSummary,
    NotebookSummary,
    NoteSummary,
    RequestModel,
    UserSummary,
)


class NotebookCreate(RequestModel):
    notebook_name: str = Field(..., min_length=1)
    parent_notebook_id: str | None = None


class NotebookUpdate(RequestModel):
    """Omitted fields are left unchanged; an explicit null parent makes the notebook top-level."""

    notebook_name: str | None = Field(None, min_length=1)
    parent_notebook_id: str | None = None


class NotebookNoteLink(RequestModel):
    note_id: str = Field(..., min_length=1)


class NotebookResponse(BaseModel):
    id: str
    notebook_id: str
    notebook_name: str
    parent_notebook: NotebookSummary | None = None
    owner: UserSummary | None = None
    notes: list[NoteSummary] = Field(default_factory=list)
    accessible_groups: list[GroupSummary] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class NotebookEnvelope(BaseModel):
    message: str
    notebook: NotebookResponse


class NotebookListEnvelope(BaseModel):
    message: str
    count: int
    notebooks: list[NotebookResponse]


class TagCreate(RequestModel):
    tag_name: str = Field(..., min_length=1)

    @field_validator("tag_name")
    @classmethod
    def lowercase(cls, value: str) -> str:
        return value.lower()


class TagResponse(BaseModel):
    id: str
    tag_id: str
    tag_name: str
    notes: list[NoteSummary] = Field(default_factory=list)
    created_at: datetime


class TagEnvelope(BaseModel):
    message: str
    tag: TagResponse


class TagListEnvelope(BaseModel):
    message: str
    count: int
    tags: list[TagResponse]


class GroupCreate(RequestModel):
    group_name: str = Field(..., min_length=1)
    member_ids: list[str] = Field(default_factory=list)
    notebook_ids: list[str] = Field(default_factory=list)


class GroupUpdate(RequestModel):
    """Lists given here replace the group's current members or notebooks."""

    group_name: str | None = Field(None, min_length=1)
    member_ids: list[str] | None = None
    notebook_ids: list[str] | None = None


class GroupMemberAdd(RequestModel):
    user_id: str = Field(..., min_length=1)


class GroupResponse(BaseModel):
    id: str
    group_id: str
    group_name: str
    lead_editor: UserSummary | None = None
    members: list[UserSummary] = Field(default_factory=list)
    accessible_notebooks: list[NotebookSummary] = Field(default_factory=list)
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class GroupEnvelope(BaseModel):
    message: str
    group: GroupResponse


class GroupListEnvelope(BaseModel):
    message: str
    count: int
    groups: list[GroupResponse]
