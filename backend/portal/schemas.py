"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and validate request bodies
at the boundary. JSON keys are camelCase (`featuredImage`,
`currentPassword`); Python attributes stay snake_case.
"""

import re
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from . import models

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
EXCERPT_LENGTH = 150
BlogStatus = Literal["draft", "published", "archived"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CamelORMModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _check_username(value: str) -> str:
    value = value.strip()
    if len(value) < 3:
        raise ValueError("Username must be at least 3 characters long")
    if len(value) > 30:
        raise ValueError("Username cannot exceed 30 characters")
    if not USERNAME_RE.match(value):
        raise ValueError("Username can only contain letters, numbers and underscores")
    return value


def _check_password(value: str) -> str:
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    return value


def _check_content(value: str) -> str:
    # content keeps its whitespace, only blank bodies are rejected
    if not value.strip():
        raise ValueError("Content is required")
    return value


def _required(label: str):
    def check(value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{label} is required")
        return value
    return check


def _max_length(label: str, limit: int):
    def check(value: str) -> str:
        if len(value) > limit:
            raise ValueError(f"{label} cannot exceed {limit} characters")
        return value
    return check


def _split_tags(value):
    """Accept either a comma separated string or a list of strings."""
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        return value
    out = []
    for tag in value:
        tag = str(tag).strip()
        if tag and tag not in out:
            out.append(tag)
    return out


Username = Annotated[str, AfterValidator(_check_username)]
Password = Annotated[str, AfterValidator(_check_password)]
Name = Annotated[str, AfterValidator(_required("Name"))]
Title = Annotated[str, AfterValidator(_required("Title")), AfterValidator(_max_length("Title", 200))]
Content = Annotated[str, AfterValidator(_check_content)]
Excerpt = Annotated[str, AfterValidator(_max_length("Excerpt", 300))]
Category = Annotated[str, AfterValidator(lambda v: v.strip() or "General")]
Tags = Annotated[List[str], BeforeValidator(_split_tags)]
CommentText = Annotated[str, AfterValidator(_required("Comment content")), AfterValidator(_max_length("Comment", 1000))]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class RegisterIn(CamelModel):
    """Payload for user registration."""
    username: Username
    email: EmailStr
    password: Password
    role: Literal["user", "admin"] = "user"


class LoginIn(CamelModel):
    """Credentials; a malformed email simply fails to match and gets a 401."""
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdateIn(CamelModel):
    """Profile changes; omitted fields are left untouched."""
    username: Optional[Username] = None
    email: Optional[EmailStr] = None


class ChangePasswordIn(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: Password


class StudentIn(CamelModel):
    name: Name
    age: Optional[int] = Field(default=None, ge=0, le=150)
    email: Optional[EmailStr] = None


class StudentUpdateIn(CamelModel):
    """Partial student update; only fields present in the body are applied."""
    name: Optional[Name] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    email: Optional[EmailStr] = None


class BlogIn(CamelModel):
    """Blog creation payload. `tags` may be a list or `"a, b, c"`."""
    title: Title
    content: Content
    excerpt: Optional[Excerpt] = None
    tags: Tags = []
    category: Category = "General"
    status: BlogStatus = "draft"
    featured_image: Optional[str] = None


class BlogUpdateIn(CamelModel):
    """Partial blog update; only fields present in the body are applied."""
    title: Optional[Title] = None
    content: Optional[Content] = None
    excerpt: Optional[Excerpt] = None
    tags: Optional[Tags] = None
    category: Optional[Category] = None
    status: Optional[BlogStatus] = None
    featured_image: Optional[str] = None


class CommentIn(CamelModel):
    content: CommentText


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UserOut(CamelORMModel):
    """Public view of a user; the password hash is never included."""
    id: int
    username: str
    email: str
    role: str
    created_at: datetime


class AuthorOut(CamelORMModel):
    id: int
    username: str


class StudentOut(CamelORMModel):
    id: int
    name: str
    age: Optional[int] = None
    email: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CommentOut(CamelModel):
    id: int
    blog_id: int
    author: Optional[AuthorOut] = None
    content: str
    created_at: datetime

    @classmethod
    def from_comment(cls, comment: models.Comment) -> "CommentOut":
        author = AuthorOut.model_validate(comment.author) if comment.author else None
        return cls(
            id=comment.id,
            blog_id=comment.blog_id,
            author=author,
            content=comment.content,
            created_at=comment.created_at,
        )


class BlogOut(CamelModel):
    id: int
    title: str
    content: str
    excerpt: Optional[str] = None
    author: Optional[AuthorOut] = None
    tags: List[str] = []
    category: str
    status: str
    featured_image: Optional[str] = None
    views: int = 0
    likes: List[int] = []
    likes_count: int = 0
    comments_count: int = 0
    comments: Optional[List[CommentOut]] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_blog(cls, blog: models.Blog, include_comments: bool = False) -> "BlogOut":
        likes = [like.user_id for like in blog.likes]
        return cls(
            id=blog.id,
            title=blog.title,
            content=blog.content,
            excerpt=blog.excerpt,
            author=AuthorOut.model_validate(blog.author) if blog.author else None,
            tags=[t.tag for t in blog.tags],
            category=blog.category,
            status=blog.status,
            featured_image=blog.featured_image,
            views=blog.views,
            likes=likes,
            likes_count=len(likes),
            comments_count=len(blog.comments),
            comments=[CommentOut.from_comment(c) for c in blog.comments] if include_comments else None,
            published_at=blog.published_at,
            created_at=blog.created_at,
            updated_at=blog.updated_at,
        )


class Pagination(CamelModel):
    current: int
    pages: int
    total: int
    limit: int


def dump(model: BaseModel, exclude: Optional[set] = None) -> dict:
    """Serialize a response schema to JSON-ready camelCase data."""
    return model.model_dump(by_alias=True, mode="json", exclude=exclude)


def make_excerpt(content: str, length: int = EXCERPT_LENGTH) -> str:
    """Derive an excerpt from the first `length` characters of `content`."""
    text = " ".join(content.split())
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."
