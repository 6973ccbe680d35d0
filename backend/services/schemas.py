"""Typed commands accepted by the services and the projections they return.

Request bodies are coerced into these models at the HTTP boundary; the
service layer never sees raw request data. Text fields are optional so a
missing value surfaces as a domain ``ValidationError`` instead of a schema
error.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class RegisterCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    email: str | None = None
    password: str | None = None
    password2: str | None = None


class LoginCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str | None = None
    password: str | None = None


class EmailCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str | None = None


class ResetPasswordCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    password: str | None = None
    password2: str | None = None


class EditProfileCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    email: str | None = None
    current_password: str | None = None
    new_password: str | None = None
    confirm_new_password: str | None = None


class ImageUpload(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    filename: str | None = None
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


class CreatePostCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    category: str | None = None
    description: str | None = None
    thumbnail: ImageUpload | None = None


class EditPostCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    category: str | None = None
    description: str | None = None
    thumbnail: ImageUpload | None = None


class UserProfile(BaseModel):
    """Public projection of a user; never carries the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    avatar_url: str | None = None
    verified: bool
    post_count: int
    created_at: datetime
    updated_at: datetime


class LoginResult(BaseModel):
    token: str
    id: str
    name: str
    expires_at: datetime


class PostView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    category: str
    description: str
    thumbnail_url: str
    creator_id: str
    created_at: datetime
    updated_at: datetime
