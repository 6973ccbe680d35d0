"""Version 1 routers."""

from . import posts, users

__all__ = ["posts", "users"]
