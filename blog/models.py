"""
blog/models.py -- Domain dataclasses for posts and comments.

These are pure data containers with zero logic. Persistence lives in
blog/store.py; ownership rules live in auth/dependencies.require_owner().

id is None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Post:
    """A forum post. author_id is the owning user's id."""

    title: str
    content: str
    author_id: int
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Comment:
    """A comment on a post. author_id is the owning user's id."""

    content: str
    post_id: int
    author_id: int
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
