"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Blogs keep their tags, likes and comments in child tables so filters
and the one-like-per-user rule can be enforced by the database.
"""

from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List

USER_ROLES = ("user", "admin")
BLOG_STATUSES = ("draft", "published", "archived")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique display/login name
    - `email`: unique, stored lower-cased; used to log in
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `USER_ROLES`
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default="user")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Student(SQLModel, table=True):
    """A student record. Not owned by any user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    age: Optional[int] = None
    email: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Blog(SQLModel, table=True):
    """A blog post owned by `author_id`.

    `published_at` is stamped the first time the status becomes
    `published` and drives the ordering of the public listing.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: str
    excerpt: Optional[str] = None
    author_id: int = Field(foreign_key='user.id', index=True)
    category: str = Field(default="General", index=True)
    status: str = Field(default="draft", index=True)
    featured_image: Optional[str] = None
    views: int = 0
    published_at: Optional[datetime] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    author: Optional[User] = Relationship()
    tags: List['BlogTag'] = Relationship(
        back_populates='blog',
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "BlogTag.id"},
    )
    likes: List['BlogLike'] = Relationship(
        back_populates='blog',
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    comments: List['Comment'] = Relationship(
        back_populates='blog',
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "Comment.id"},
    )


class BlogTag(SQLModel, table=True):
    """One tag attached to a blog."""
    __table_args__ = (UniqueConstraint('blog_id', 'tag'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    blog_id: int = Field(foreign_key='blog.id', index=True)
    tag: str = Field(index=True)
    blog: Optional[Blog] = Relationship(back_populates='tags')


class BlogLike(SQLModel, table=True):
    """A user's like on a blog; at most one row per (blog, user)."""
    __table_args__ = (UniqueConstraint('blog_id', 'user_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    blog_id: int = Field(foreign_key='blog.id', index=True)
    user_id: int = Field(foreign_key='user.id')
    created_at: datetime = Field(default_factory=utcnow)
    blog: Optional[Blog] = Relationship(back_populates='likes')


class Comment(SQLModel, table=True):
    """A comment left on a blog by `author_id`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    blog_id: int = Field(foreign_key='blog.id', index=True)
    author_id: int = Field(foreign_key='user.id')
    content: str
    created_at: datetime = Field(default_factory=utcnow)
    blog: Optional[Blog] = Relationship(back_populates='comments')
    author: Optional[User] = Relationship()
