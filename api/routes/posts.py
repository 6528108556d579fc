"""
api/routes/posts.py -- Post REST endpoints, mounted under /posts.

Routes:
  GET    /posts                      -- all posts with author and comments
  GET    /posts/author/{author_id}   -- one author's posts ([] when none)
  GET    /posts/{post_id}            -- one post
  POST   /posts                      -- create (requires auth)
  PUT    /posts/{post_id}            -- replace title/content (author only)
  DELETE /posts/{post_id}            -- delete with its comments (author only)

Mutations load the post first and only then check ownership, so a missing
post is always 404 even when the caller is not its author.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import CommentResponse, PostResponse, PostWrite
from auth.dependencies import ensure_authenticated, require_owner
from auth.models import Principal, User
from auth.store import UserStore
from blog.models import Post
from blog.store import BlogStore
from core.concurrency import run_store
from core.errors import NotFoundError, PersistenceError, ValidationError

router = APIRouter()

_MISSING_FIELDS = "Missing required fields: 'title' and 'content' are required."


# ---------------------------------------------------------------------------
# Payload assembly
# ---------------------------------------------------------------------------


def _load_authors(user_store: UserStore, author_ids: set[int]) -> dict[int, User]:
    authors = {}
    for author_id in author_ids:
        user = user_store.find_by_id(author_id)
        if user is not None:
            authors[author_id] = user
    return authors


def _assemble(blog: BlogStore, user_store: UserStore, posts: list[Post]) -> list[PostResponse]:
    """Attach author summaries and comments to each post.

    Runs in a worker thread: every call here is a blocking store read.
    """
    comments_by_post = {p.id: blog.list_comments_by_post(p.id) for p in posts}
    author_ids = {p.author_id for p in posts}
    for comments in comments_by_post.values():
        author_ids.update(c.author_id for c in comments)
    authors = _load_authors(user_store, author_ids)

    return [
        PostResponse.from_post(
            post,
            authors.get(post.author_id),
            [CommentResponse.from_comment(c, authors.get(c.author_id)) for c in comments_by_post[post.id]],
        )
        for post in posts
    ]


async def post_payload(request: Request, post: Post) -> PostResponse:
    """Return the full response body for a single post."""
    payloads = await run_store(
        _assemble, request.app.state.blog, request.app.state.user_store, [post], action="loading post"
    )
    return payloads[0]


async def _load_post(blog: BlogStore, post_id: int) -> Post:
    post = await run_store(blog.get_post, post_id, action="fetching post")
    if post is None:
        raise NotFoundError("Post not found")
    return post


def _require_fields(body: PostWrite) -> tuple[str, str]:
    if not body.title or not body.content:
        raise ValidationError(_MISSING_FIELDS)
    return body.title, body.content


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[PostResponse])
async def list_posts(request: Request) -> list[PostResponse]:
    blog: BlogStore = request.app.state.blog
    posts = await run_store(blog.list_posts, action="listing posts")
    return await run_store(_assemble, blog, request.app.state.user_store, posts, action="loading posts")


@router.get("/author/{author_id}", response_model=list[PostResponse])
async def list_posts_by_author(request: Request, author_id: int) -> list[PostResponse]:
    """Return an author's posts. 404 if no such user; [] if they have not posted."""
    blog: BlogStore = request.app.state.blog
    user_store: UserStore = request.app.state.user_store
    if await run_store(user_store.find_by_id, author_id, action="looking up user") is None:
        raise NotFoundError("No author found for this ID")
    posts = await run_store(blog.list_posts_by_author, author_id, action="listing posts")
    return await run_store(_assemble, blog, user_store, posts, action="loading posts")


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(request: Request, post_id: int) -> PostResponse:
    post = await _load_post(request.app.state.blog, post_id)
    return await post_payload(request, post)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=PostResponse)
async def create_post(
    request: Request,
    body: PostWrite,
    principal: Principal = Depends(ensure_authenticated),
) -> PostResponse:
    """Create a post authored by the session user."""
    title, content = _require_fields(body)
    blog: BlogStore = request.app.state.blog
    post_id = await run_store(
        blog.create_post,
        Post(title=title, content=content, author_id=principal.user_id),
        action="creating post",
    )
    post = await run_store(blog.get_post, post_id, action="fetching post")
    if post is None:
        raise PersistenceError("Post not found after create")
    return await post_payload(request, post)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    request: Request,
    post_id: int,
    body: PostWrite,
    principal: Principal = Depends(ensure_authenticated),
) -> PostResponse:
    title, content = _require_fields(body)
    blog: BlogStore = request.app.state.blog
    post = await _load_post(blog, post_id)
    require_owner(principal, post.author_id, "update", "post")

    await run_store(blog.update_post, post_id, title, content, action="updating post")
    return await post_payload(request, await _load_post(blog, post_id))


@router.delete("/{post_id}", response_model=PostResponse)
async def delete_post(
    request: Request,
    post_id: int,
    principal: Principal = Depends(ensure_authenticated),
) -> PostResponse:
    """Delete a post and its comments. Returns the post as it was before deletion."""
    blog: BlogStore = request.app.state.blog
    post = await _load_post(blog, post_id)
    require_owner(principal, post.author_id, "delete", "post")

    payload = await post_payload(request, post)
    await run_store(blog.delete_post, post_id, action="deleting post")
    return payload
