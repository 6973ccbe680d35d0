"""SQLModel models package."""

from .post import Post, PostCategory
from .user import User

__all__ = [
    "User",
    "Post",
    "PostCategory",
]
