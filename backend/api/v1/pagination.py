"""Limit/offset pagination helpers for list endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from fastapi import Response

MAX_PAGE_SIZE = 100
NEXT_OFFSET_HEADER = "X-Next-Offset"

ItemT = TypeVar("ItemT")


def fetch_limit(limit: int | None) -> int | None:
    """Rows to request so a following page can be detected."""
    return None if limit is None else limit + 1


def paginate(
    response: Response,
    items: Sequence[ItemT],
    *,
    offset: int,
    limit: int | None,
) -> list[ItemT]:
    """Trim the look-ahead row and advertise the next offset when one exists."""
    if limit is None:
        return list(items)
    has_more = len(items) > limit
    if has_more:
        response.headers[NEXT_OFFSET_HEADER] = str(offset + limit)
    return list(items[:limit])
