"""
API request and response models for the queryhub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
blog/models.py, which own the internal domain representation. Route handlers
map between the two.

Request fields are Optional on purpose: a missing field must reach the
service layer and fail with its documented 400 message, not with a generic
422 from schema validation. Client-facing JSON keys follow the frontend's
camelCase (oldPassword, postId); snake_case names are accepted too.

Separation of concerns: domain dataclasses = truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from blog.models import Comment, Post

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: Optional[str] = None
    password: Optional[str] = None


class PasswordChangeRequest(BaseModel):
    """Request body for PUT /auth/{user_id}/password."""

    model_config = ConfigDict(populate_by_name=True)

    old_password: Optional[str] = Field(default=None, alias="oldPassword")
    new_password: Optional[str] = Field(default=None, alias="newPassword")


class PostWrite(BaseModel):
    """Request body for POST /posts and PUT /posts/{id}. Both fields are required by the route."""

    title: Optional[str] = None
    content: Optional[str] = None


class CommentCreate(BaseModel):
    """Request body for POST /comments. The author is always the session user."""

    model_config = ConfigDict(populate_by_name=True)

    post_id: Optional[int] = Field(default=None, alias="postId")
    content: Optional[str] = None


class CommentUpdate(BaseModel):
    content: Optional[str] = None


class UserUpdate(BaseModel):
    """Request body for PUT /users/{id}.

    email and password are declared only so the route can reject them: profile
    updates never touch login credentials (see PUT /auth/{id}/password).
    """

    bio: Optional[str] = None
    avatar: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Uniform error envelope. detail is set for 422 and 429 only."""

    message: str
    code: str
    detail: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    """A user as seen by clients. Never carries a password or hash."""

    id: int
    email: str
    bio: Optional[str] = None
    avatar: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.public_dict())


class AuthUserResponse(BaseModel):
    """Response for POST /auth/register and POST /auth/login."""

    user: UserResponse
    message: str


class AuthorInfo(BaseModel):
    """Author summary embedded in post and comment payloads."""

    email: str
    avatar: str

    @classmethod
    def from_user(cls, user: Optional[User]) -> Optional["AuthorInfo"]:
        if user is None:
            return None
        return cls(email=user.email, avatar=user.avatar)


class CommentResponse(BaseModel):
    id: int
    content: str
    post_id: int
    author_id: int
    created_at: str
    updated_at: str
    author: Optional[AuthorInfo] = None  # None once the author account is deleted

    @classmethod
    def from_comment(cls, comment: Comment, author: Optional[User]) -> "CommentResponse":
        return cls(
            id=comment.id,
            content=comment.content,
            post_id=comment.post_id,
            author_id=comment.author_id,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
            author=AuthorInfo.from_user(author),
        )


class PostResponse(BaseModel):
    id: int
    title: str
    content: str
    author_id: int
    created_at: str
    updated_at: str
    author: Optional[AuthorInfo] = None
    comments: list[CommentResponse] = []

    @classmethod
    def from_post(cls, post: Post, author: Optional[User], comments: list[CommentResponse]) -> "PostResponse":
        """Build a PostResponse from a blog Post plus its loaded author and comments."""
        return cls(
            id=post.id,
            title=post.title,
            content=post.content,
            author_id=post.author_id,
            created_at=post.created_at,
            updated_at=post.updated_at,
            author=AuthorInfo.from_user(author),
            comments=comments,
        )


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
