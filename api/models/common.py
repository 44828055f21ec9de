"""Shared Pydantic models: reference summaries and envelopes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RequestModel(BaseModel):
    """Base for request bodies: surrounding whitespace is trimmed."""

    model_config = ConfigDict(str_strip_whitespace=True)


class MessageResponse(BaseModel):
    """Response carrying only a message."""

    message: str


class UserSummary(BaseModel):
    """Expanded user reference."""

    id: str
    user_id: str
    user_name: str
    first_name: str
    last_name: str


class NoteSummary(BaseModel):
    """Expanded note reference."""

    id: str
    note_id: str
    title: str


class NotebookSummary(BaseModel):
    """Expanded notebook reference."""

    id: str
    notebook_id: str
    notebook_name: str


class TagSummary(BaseModel):
    """Expanded tag reference."""

    id: str
    tag_id: str
    tag_name: str


class GroupSummary(BaseModel):
    """Expanded group reference."""

    id: str
    group_id: str
    group_name: str
