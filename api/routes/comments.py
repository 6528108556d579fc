"""
api/routes/comments.py -- Comment REST endpoints, mounted under /comments.

Routes:
  GET    /comments/post/{post_id}   -- a post's comments, oldest first
  POST   /comments                  -- comment on a post (requires auth)
  PUT    /comments/{comment_id}     -- edit (author only)
  DELETE /comments/{comment_id}     -- delete (author only)

The comment author is always the session user; a client-supplied author id
is ignored. Update and delete load the comment before the ownership check:
404 for a missing comment always wins over 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import CommentCreate, CommentResponse, CommentUpdate
from auth.dependencies import ensure_authenticated, require_owner
from auth.models import Principal
from auth.store import UserStore
from blog.models import Comment
from blog.store import BlogStore
from core.concurrency import run_store
from core.errors import NotFoundError, PersistenceError, ValidationError

router = APIRouter()


async def _comment_payload(request: Request, comment: Comment) -> CommentResponse:
    user_store: UserStore = request.app.state.user_store
    author = await run_store(user_store.find_by_id, comment.author_id, action="looking up user")
    return CommentResponse.from_comment(comment, author)


async def _load_comment(blog: BlogStore, comment_id: int) -> Comment:
    comment = await run_store(blog.get_comment, comment_id, action="fetching comment")
    if comment is None:
        raise NotFoundError("Comment not found")
    return comment


@router.get("/post/{post_id}", response_model=list[CommentResponse])
async def list_comments(request: Request, post_id: int) -> list[CommentResponse]:
    blog: BlogStore = request.app.state.blog
    if await run_store(blog.get_post, post_id, action="fetching post") is None:
        raise NotFoundError("No post found")
    comments = await run_store(blog.list_comments_by_post, post_id, action="listing comments")
    return [await _comment_payload(request, c) for c in comments]


@router.post("", response_model=CommentResponse)
async def create_comment(
    request: Request,
    body: CommentCreate,
    principal: Principal = Depends(ensure_authenticated),
) -> CommentResponse:
    if body.post_id is None or not body.content:
        raise ValidationError("Missing required field")
    blog: BlogStore = request.app.state.blog
    if await run_store(blog.get_post, body.post_id, action="fetching post") is None:
        raise NotFoundError("No post found")

    comment_id = await run_store(
        blog.create_comment,
        Comment(content=body.content, post_id=body.post_id, author_id=principal.user_id),
        action="creating comment",
    )
    comment = await run_store(blog.get_comment, comment_id, action="fetching comment")
    if comment is None:
        raise PersistenceError("Comment not found after create")
    return await _comment_payload(request, comment)


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    request: Request,
    comment_id: int,
    body: CommentUpdate,
    principal: Principal = Depends(ensure_authenticated),
) -> CommentResponse:
    blog: BlogStore = request.app.state.blog
    comment = await _load_comment(blog, comment_id)
    require_owner(principal, comment.author_id, "update", "comment")
    if not body.content:
        raise ValidationError("Missing required field")

    await run_store(blog.update_comment, comment_id, body.content, action="updating comment")
    return await _comment_payload(request, await _load_comment(blog, comment_id))


@router.delete("/{comment_id}", response_model=CommentResponse)
async def delete_comment(
    request: Request,
    comment_id: int,
    principal: Principal = Depends(ensure_authenticated),
) -> CommentResponse:
    """Delete a comment. Returns the comment as it was before deletion."""
    blog: BlogStore = request.app.state.blog
    comment = await _load_comment(blog, comment_id)
    require_owner(principal, comment.author_id, "delete", "comment")

    payload = await _comment_payload(request, comment)
    await run_store(blog.delete_comment, comment_id, action="deleting comment")
    return payload
