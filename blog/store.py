"""
blog/store.py -- SQLAlchemy-backed persistence layer for posts and comments.

Uses SQLAlchemy Core (not ORM) so the dataclasses in blog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. BlogStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route
handlers never touch SQL directly.

Security: all queries use bound parameters. No f-strings in SQL.

Deleting a post removes its comments first, in the same transaction, so a
failure can never leave comments pointing at a deleted post.

Usage:
    store = BlogStore("sqlite:///queryhub.db")
    post_id = store.create_post(Post(title="Hi", content="...", author_id=1))
    store.create_comment(Comment(content="Nice", post_id=post_id, author_id=2))
    store.delete_post(post_id)
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from blog.models import Comment, Post
from core.db import create_store_engine, translate_errors

logger = logging.getLogger("queryhub.blog")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False),
    Column("author_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("content", Text, nullable=False),
    Column("post_id", Integer, nullable=False, index=True),
    Column("author_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class BlogStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def list_posts(self) -> list[Post]:
        """Return all posts, newest first."""
        with translate_errors("listing posts"), self.engine.connect() as conn:
            rows = conn.execute(_posts.select().order_by(_posts.c.id.desc())).fetchall()
        return [_row_to_post(r) for r in rows]

    def get_post(self, post_id: int) -> Optional[Post]:
        with translate_errors("fetching post"), self.engine.connect() as conn:
            row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts_by_author(self, author_id: int) -> list[Post]:
        """Return the author's posts, newest first. Empty list if none."""
        with translate_errors("listing posts"), self.engine.connect() as conn:
            rows = conn.execute(
                _posts.select().where(_posts.c.author_id == author_id).order_by(_posts.c.id.desc())
            ).fetchall()
        return [_row_to_post(r) for r in rows]

    def create_post(self, post: Post) -> int:
        now = _now_iso()
        with translate_errors("creating post"), self.engine.begin() as conn:
            result = conn.execute(
                _posts.insert().values(
                    title=post.title,
                    content=post.content,
                    author_id=post.author_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        return result.inserted_primary_key[0]

    def update_post(self, post_id: int, title: str, content: str) -> bool:
        """Replace title and content. Returns True if the post exists."""
        with translate_errors("updating post"), self.engine.begin() as conn:
            result = conn.execute(
                _posts.update()
                .where(_posts.c.id == post_id)
                .values(title=title, content=content, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def delete_post(self, post_id: int) -> bool:
        """Delete a post and all of its comments. Returns True if the post existed."""
        with translate_errors("deleting post"), self.engine.begin() as conn:
            removed = conn.execute(_comments.delete().where(_comments.c.post_id == post_id)).rowcount
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
        if result.rowcount:
            logger.info("Deleted post id=%s with %d comments", post_id, removed)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def list_comments_by_post(self, post_id: int) -> list[Comment]:
        """Return a post's comments, oldest first."""
        with translate_errors("listing comments"), self.engine.connect() as conn:
            rows = conn.execute(
                _comments.select().where(_comments.c.post_id == post_id).order_by(_comments.c.id)
            ).fetchall()
        return [_row_to_comment(r) for r in rows]

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with translate_errors("fetching comment"), self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
        return _row_to_comment(row) if row is not None else None

    def create_comment(self, comment: Comment) -> int:
        now = _now_iso()
        with translate_errors("creating comment"), self.engine.begin() as conn:
            result = conn.execute(
                _comments.insert().values(
                    content=comment.content,
                    post_id=comment.post_id,
                    author_id=comment.author_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        return result.inserted_primary_key[0]

    def update_comment(self, comment_id: int, content: str) -> bool:
        """Replace a comment's content. Returns True if the comment exists."""
        with translate_errors("updating comment"), self.engine.begin() as conn:
            result = conn.execute(
                _comments.update().where(_comments.c.id == comment_id).values(content=content, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def delete_comment(self, comment_id: int) -> bool:
        with translate_errors("deleting comment"), self.engine.begin() as conn:
            result = conn.execute(_comments.delete().where(_comments.c.id == comment_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        author_id=row.author_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row) -> Comment:
    return Comment(
        id=row.id,
        content=row.content,
        post_id=row.post_id,
        author_id=row.author_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
