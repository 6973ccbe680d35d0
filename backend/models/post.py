"""Blog post model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlmodel import Field, SQLModel

from core.security import utcnow


class PostCategory(str, Enum):
    AGRICULTURE = "Agriculture"
    BUSINESS = "Business"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    FOOD = "Food"
    SPORTS = "Sports"
    WEATHER = "Weather"
    UNCATEGORIZED = "Uncategorized"


class Post(SQLModel, table=True):
    """A blog post owned by the user referenced in ``creator_id``."""

    __tablename__ = "posts"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    category: str = Field(
        sa_column=Column(String(32), nullable=False, index=True)
    )
    description: str = Field(sa_column=Column(Text, nullable=False))
    thumbnail_url: str = Field(sa_column=Column(String(1024), nullable=False))
    creator_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id"),
            nullable=False,
            index=True,
        )
    )
    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            default=utcnow,
            server_default=func.now(),
            nullable=False,
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            default=utcnow,
            server_default=func.now(),
            onupdate=utcnow,
            nullable=False,
        )
    )
