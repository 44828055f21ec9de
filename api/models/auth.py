"""User, authentication and admin profile Pydantic models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..access import Role
from .common import RequestModel


def _phone_list(value):
    # A single number may be sent as a plain string
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class SignupRequest(RequestModel):
    """Request model for user signup."""

    user_name: str = Field(..., min_length=3)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: list[str] = Field(default_factory=list)
    institution: str = ""
    roles: list[Role] = Field(default_factory=lambda: [Role.CONTRIBUTOR], min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("phone", mode="before")
    @classmethod
    def coerce_phone(cls, value):
        return _phone_list(value)


class LoginRequest(RequestModel):
    """Request model for login."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class UserUpdate(RequestModel):
    """Partial update of a user. Role changes are reserved to admins."""

    first_name: str | None = Field(None, min_length=1)
    last_name: str | None = Field(None, min_length=1)
    phone: list[str] | None = None
    institution: str | None = None
    password: str | None = Field(None, min_length=6)
    roles: list[Role] | None = Field(None, min_length=1)

    @field_validator("phone", mode="before")
    @classmethod
    def coerce_phone(cls, value):
        return None if value is None else _phone_list(value)


class UserResponse(BaseModel):
    """Response model for user data. The password hash is never exposed."""

    id: str
    user_id: str
    user_name: str
    first_name: str
    last_name: str
    email: str
    phone: list[str] = Field(default_factory=list)
    institution: str = ""
    roles: list[Role]
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    """Response model for signup and login."""

    message: str
    token: str
    token_type: str = "bearer"
    user: UserResponse


class UserEnvelope(BaseModel):
    message: str
    user: UserResponse


class UserListEnvelope(BaseModel):
    message: str
    count: int
    users: list[UserResponse]


class AdminProfileCreate(RequestModel):
    """Request model for registering a user as an administrator."""

    user_id: str
    first_name: str | None = None
    last_name: str | None = None
    phone: list[str] = Field(default_factory=list)
    email: EmailStr | None = None

    @field_validator("phone", mode="before")
    @classmethod
    def coerce_phone(cls, value):
        return _phone_list(value)


class AdminName(BaseModel):
    first_name: str
    last_name: str


class AdminContact(BaseModel):
    phone: list[str] = Field(default_factory=list)
    email: str


class AdminProfileResponse(BaseModel):
    """Response model for an admin profile."""

    id: str
    admin_id: str
    admin_name: AdminName
    admin_contact: AdminContact
    user: UserResponse | None = None
    created_at: datetime | None = None


class AdminProfileEnvelope(BaseModel):
    message: str
    admin: AdminProfileResponse


class AdminProfileListEnvelope(BaseModel):
    message: str
    count: int
    admins: list[AdminProfileResponse]
