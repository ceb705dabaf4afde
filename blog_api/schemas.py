from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime


# --- Auth ---

MAX_PASSWORD_BYTES = 72


class SignupRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=4, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        # bcrypt only accepts 72 bytes; multi-byte characters count more than once.
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    email: str = Field(max_length=255)
    password: str


class TokenData(BaseModel):
    user_id: int
    role: str
    name: str


# --- Tag ---

class TagResponse(BaseModel):
    id: int
    name: str
    slug: str
    model_config = ConfigDict(from_attributes=True)


# --- User ---

class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuthorResponse(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None


class UserDetail(UserResponse):
    posts: list["PostSummary"] = []


class ProfileUpdate(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=50)
    display_name: str | None = Field(None, max_length=150)
    bio: str | None = None
    avatar_url: str | None = Field(None, max_length=500)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1)
    guest_name: str | None = Field(None, max_length=100)
    parent_id: int | None = None


class CommentResponse(BaseModel):
    id: int
    content: str
    post_id: int
    user_id: int | None
    author_name: str
    parent_id: int | None
    created_at: datetime
    replies: list["CommentResponse"] = []


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(max_length=200)
    content: str | None = None
    excerpt: str | None = Field(None, max_length=500)
    cover_image: str | None = Field(None, max_length=500)
    status: Literal["draft", "published"] = "draft"
    tags: list[str] = []  # tag names, upserted by slug


class PostUpdate(BaseModel):
    title: str | None = Field(None, max_length=200)
    content: str | None = None
    excerpt: str | None = Field(None, max_length=500)
    cover_image: str | None = Field(None, max_length=500)
    status: Literal["draft", "published"] | None = None
    tags: list[str] | None = None


class PostSummary(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str | None
    cover_image: str | None
    status: str
    view_count: int
    published_at: datetime | None
    created_at: datetime
    author_id: int
    author: AuthorResponse | None = None
    tags: list[TagResponse] = []


class PostDetail(PostSummary):
    content: str | None
    comments: list[CommentResponse] = []


# --- Suggestion ---

class SuggestionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)


class SuggestionStatusUpdate(BaseModel):
    status: Literal["pending", "reviewed", "completed"]


class SuggestionResponse(BaseModel):
    id: int
    title: str
    description: str
    status: str
    upvotes_count: int
    user_id: int
    created_at: datetime
    has_voted: bool = False


class VoteResponse(BaseModel):
    suggestion_id: int
    upvotes_count: int
    has_voted: bool


class ReconcileResponse(BaseModel):
    repaired: list[int]


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_posts: int
    total_comments: int
    total_users: int
    total_suggestions: int
    total_votes: int
    avg_comments_per_post: float
    drifted_suggestions: int
    cache_info: dict = {}


# Required for forward-reference resolution
UserDetail.model_rebuild()
CommentResponse.model_rebuild()
