from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    Storage-neutral representation of a Todo item returned by repositories.

    Fields:
    - id: 24-character hex ObjectId string assigned by the store
    - title: Non-empty title (trimmed on input)
    - description: Free text, empty string when not provided
    - completed: Boolean completion flag
    - archived: Boolean archive flag
    - created_at: UTC creation timestamp, never changes
    - updated_at: UTC timestamp of the last write
    """

    id: str
    title: str
    description: str
    completed: bool
    archived: bool
    created_at: datetime
    updated_at: datetime
