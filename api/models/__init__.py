"""Pydantic models for API requests and responses."""

from .attachments import (
    AttachmentCreate,
    AttachmentEnvelope,
    AttachmentListEnvelope,
    AttachmentParent,
    AttachmentResponse,
    CommentRef,
    GroupRef,
    NoteRef,
    parent_ref,
)
from .auth import (
    AdminProfileCreate,
    AdminProfileEnvelope,
    AdminProfileListEnvelope,
    AdminProfileResponse,
    AuthResponse,
    LoginRequest,
    SignupRequest,
    UserEnvelope,
    UserListEnvelope,
    UserResponse,
    UserUpdate,
)
from .comments import (
    CommentCreate,
    CommentEnvelope,
    CommentListEnvelope,
    CommentResponse,
    CommentUpdate,
)
from .common import (
    GroupSummary,
    MessageResponse,
    NotebookSummary,
    NoteSummary,
    TagSummary,
    UserSummary,
)
from .notes import (
    NoteCreate,
    NoteEnvelope,
    NoteListEnvelope,
    NoteResponse,
    NoteTagLink,
    NoteType,
    NoteUpdate,
)
from .organization import (
    GroupCreate,
    GroupEnvelope,
    GroupListEnvelope,
    GroupMemberAdd,
    GroupResponse,
    GroupUpdate,
    NotebookCreate,
    NotebookEnvelope,
    NotebookListEnvelope,
    NotebookNoteLink,
    NotebookResponse,
    NotebookUpdate,
    TagCreate,
    TagEnvelope,
    TagListEnvelope,
    TagResponse,
)

__all__ = [
    # Auth, user and admin models
    "AdminProfileCreate",
    "AdminProfileEnvelope",
    "AdminProfileListEnvelope",
    "AdminProfileResponse",
    # Attachment models
    "AttachmentCreate",
    "AttachmentEnvelope",
    "AttachmentListEnvelope",
    "AttachmentParent",
    "AttachmentResponse",
    "AuthResponse",
    # Comment models
    "CommentCreate",
    "CommentEnvelope",
    "CommentListEnvelope",
    "CommentRef",
    "CommentResponse",
    "CommentUpdate",
    # Group models
    "GroupCreate",
    "GroupEnvelope",
    "GroupListEnvelope",
    "GroupMemberAdd",
    "GroupRef",
    "GroupResponse",
    "GroupSummary",
    "GroupUpdate",
    "LoginRequest",
    "MessageResponse",
    # Note models
    "NoteCreate",
    "NoteEnvelope",
    "NoteListEnvelope",
    "NoteRef",
    "NoteResponse",
    "NoteSummary",
    "NoteTagLink",
    "NoteType",
    "NoteUpdate",
    # Notebook models
    "NotebookCreate",
    "NotebookEnvelope",
    "NotebookListEnvelope",
    "NotebookNoteLink",
    "NotebookResponse",
    "NotebookSummary",
    "NotebookUpdate",
    "SignupRequest",
    # Tag models
    "TagCreate",
    "TagEnvelope",
    "TagListEnvelope",
    "TagResponse",
    "TagSummary",
    "UserEnvelope",
    "UserListEnvelope",
    "UserResponse",
    "UserSummary",
    "UserUpdate",
    "parent_ref",
]
