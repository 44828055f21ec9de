"""Comment models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .attachments import AttachmentResponse
from .common import NoteSummary, RequestModel, UserSummary


class CommentCreate(RequestModel):
    note_id: str = Field(..., min_length=1)
    comment_text: str = Field(..., min_length=1)


class CommentUpdate(RequestModel):
    comment_text: str = Field(..., min_length=1)


class CommentResponse(BaseModel):
    id: str
    comment_id: str
    comment_text: str
    comment_time: datetime
    user: UserSummary | None = None
    note: NoteSummary | None = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)


class CommentEnvelope(BaseModel):
    message: str
    comment: CommentResponse


class CommentListEnvelope(BaseModel):
    message: str
    count: int
    comments: list[CommentResponse]
