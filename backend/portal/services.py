"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the token service. Services are intentionally thin: they perform
validation and authorization, execute domain logic and persist
aggregates via repositories. Failures are raised as `portal.errors`
exceptions so controllers stay free of status-code plumbing.
"""

import logging
import math
from typing import List, Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, schemas
from .auth import issue_token
from .errors import AuthError, ForbiddenError, NotFoundError, ValidationError

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("portal.auth")
blog_logger = logging.getLogger("portal.blogs")


def hash_password(password: str) -> str:
    return PWD_CTX.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    return PWD_CTX.verify(password, password_hash)


def paginate(total: int, page: int, limit: int) -> schemas.Pagination:
    return schemas.Pagination(current=page, pages=math.ceil(total / limit), total=total, limit=limit)


class AuthService:
    """Authentication and account operations."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, payload: schemas.RegisterIn) -> Tuple[models.User, str]:
        """Create a new user with a hashed password.

        Returns the persisted `User` and a freshly issued token. Duplicate
        usernames or emails raise `ValidationError`.
        """
        email = str(payload.email).lower()
        errors = self._conflicts(payload.username, email)
        if errors:
            raise ValidationError("User already exists", errors)
        user = models.User(
            username=payload.username,
            email=email,
            password_hash=hash_password(payload.password),
            role=payload.role,
        )
        try:
            user = self.user_repo.create(user)
        except IntegrityError:
            # lost a race with a concurrent registration
            self.session.rollback()
            raise ValidationError("User already exists", ["Username or email already registered"])
        return user, issue_token(user.id)

    def authenticate(self, email: str, password: str) -> Tuple[models.User, str]:
        """Verify credentials and return the user with a signed token.

        Unknown emails and wrong passwords raise the same `AuthError`.
        """
        # One lookup by email then verify the supplied password hash.
        user = self.user_repo.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("failed login for %s", email)
            raise AuthError("Invalid email or password")
        return user, issue_token(user.id)

    def update_profile(self, user: models.User, payload: schemas.ProfileUpdateIn) -> models.User:
        """Change username and/or email, keeping both unique."""
        username = payload.username if payload.username is not None else user.username
        email = str(payload.email).lower() if payload.email is not None else user.email
        errors = self._conflicts(username, email, exclude_id=user.id)
        if errors:
            raise ValidationError("Validation error", errors)
        user.username = username
        user.email = email
        user.updated_at = models.utcnow()
        try:
            return self.user_repo.save(user)
        except IntegrityError:
            self.session.rollback()
            raise ValidationError("Validation error", ["Username or email already registered"])

    def change_password(self, user: models.User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", ["Current password is incorrect"])
        if current_password == new_password:
            raise ValidationError(
                "New password must be different from the current password",
                ["New password must be different from the current password"],
            )
        user.password_hash = hash_password(new_password)
        user.updated_at = models.utcnow()
        self.user_repo.save(user)

    def _conflicts(self, username: str, email: str, exclude_id: Optional[int] = None) -> List[str]:
        errors = []
        by_name = self.user_repo.get_by_username(username)
        if by_name and by_name.id != exclude_id:
            errors.append("Username is already taken")
        by_email = self.user_repo.get_by_email(email)
        if by_email and by_email.id != exclude_id:
            errors.append("Email is already registered")
        return errors


class StudentService:
    """Flat CRUD over student records; any authenticated user may edit any student."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.StudentRepository(session)

    def list(self) -> List[models.Student]:
        return self.repo.list_all()

    def get(self, student_id: int) -> models.Student:
        student = self.repo.get(student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def create(self, payload: schemas.StudentIn) -> models.Student:
        student = models.Student(
            name=payload.name,
            age=payload.age,
            email=payload.email,
        )
        return self.repo.save(student)

    def update(self, student_id: int, payload: schemas.StudentUpdateIn) -> models.Student:
        """Apply only the fields present in the request body."""
        student = self.get(student_id)
        changes = payload.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise ValidationError("Validation error", ["Name is required"])
        for field, value in changes.items():
            setattr(student, field, value)
        student.updated_at = models.utcnow()
        return self.repo.save(student)

    def delete(self, student_id: int) -> None:
        self.repo.delete(self.get(student_id))


class BlogService:
    """Blog publishing, owner-scoped management, likes and comments."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.BlogRepository(session)
        self.likes = repositories.LikeRepository(session)
        self.comments = repositories.CommentRepository(session)

    def list_public(
        self,
        *,
        page: int,
        limit: int,
        category: Optional[str] = None,
        tags: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[models.Blog], schemas.Pagination]:
        """Published blogs matching every supplied filter, newest first.

        `tags` is a comma separated list; `search` is split on whitespace.
        """
        tag_list = [t.strip() for t in (tags or "").split(",") if t.strip()]
        terms = (search or "").split()
        blogs, total = self.repo.list_published(
            category=(category or "").strip() or None,
            tags=tag_list,
            search_terms=terms,
            page=page,
            limit=limit,
        )
        return blogs, paginate(total, page, limit)

    def get_public(self, blog_id: int) -> models.Blog:
        """Return a published blog and count the view."""
        blog = self.repo.get_published(blog_id)
        if not blog:
            raise NotFoundError("Blog not found")
        return self.repo.increment_views(blog)

    def list_for_author(
        self, user: models.User, *, page: int, limit: int, status: Optional[str] = None
    ) -> Tuple[List[models.Blog], schemas.Pagination]:
        blogs, total = self.repo.list_by_author(user.id, status=status, page=page, limit=limit)
        return blogs, paginate(total, page, limit)

    def create(self, user: models.User, payload: schemas.BlogIn) -> models.Blog:
        now = models.utcnow()
        blog = models.Blog(
            title=payload.title,
            content=payload.content,
            excerpt=payload.excerpt or schemas.make_excerpt(payload.content),
            author_id=user.id,
            category=payload.category,
            status=payload.status,
            featured_image=payload.featured_image,
            published_at=now if payload.status == "published" else None,
            created_at=now,
            updated_at=now,
        )
        self._set_tags(blog, payload.tags)
        return self.repo.save(blog)

    def update(self, user: models.User, blog_id: int, payload: schemas.BlogUpdateIn) -> models.Blog:
        """Apply a partial update to a blog owned by `user`."""
        blog = self.repo.get_owned(blog_id, user.id)
        if not blog:
            raise NotFoundError("Blog not found or you are not authorized to update it")
        changes = payload.model_dump(exclude_unset=True)
        derived_excerpt = blog.excerpt == schemas.make_excerpt(blog.content)
        for field in ("title", "content", "category", "status"):
            if changes.get(field) is not None:
                setattr(blog, field, changes[field])
        if "featured_image" in changes:
            blog.featured_image = changes["featured_image"]
        if "excerpt" in changes:
            blog.excerpt = changes["excerpt"] or schemas.make_excerpt(blog.content)
        elif derived_excerpt:
            # an excerpt that was generated follows the content
            blog.excerpt = schemas.make_excerpt(blog.content)
        if changes.get("tags") is not None:
            self._set_tags(blog, changes["tags"])
        if blog.status == "published" and blog.published_at is None:
            blog.published_at = models.utcnow()
        blog.updated_at = models.utcnow()
        return self.repo.save(blog)

    def delete(self, user: models.User, blog_id: int) -> None:
        blog = self.repo.get_owned(blog_id, user.id)
        if not blog:
            raise NotFoundError("Blog not found or you are not authorized to delete it")
        self.repo.delete(blog)
        blog_logger.info("blog %s deleted by user %s", blog_id, user.id)

    def toggle_like(self, user: models.User, blog_id: int) -> Tuple[bool, int]:
        """Like the blog, or unlike it if `user` already does.

        Returns `(liked, likes_count)` after the change.
        """
        if not self.repo.get(blog_id):
            raise NotFoundError("Blog not found")
        existing = self.likes.get(blog_id, user.id)
        if existing:
            self.likes.remove(existing)
            liked = False
        else:
            try:
                self.likes.add(blog_id, user.id)
            except IntegrityError:
                # a concurrent request from the same user inserted it first
                self.session.rollback()
            liked = True
        return liked, self.likes.count(blog_id)

    def add_comment(self, user: models.User, blog_id: int, content: str) -> models.Comment:
        if not self.repo.get(blog_id):
            raise NotFoundError("Blog not found")
        comment = models.Comment(blog_id=blog_id, author_id=user.id, content=content)
        return self.comments.create(comment)

    def delete_comment(self, user: models.User, blog_id: int, comment_id: int) -> None:
        """Delete a comment; allowed for the comment author or the blog owner."""
        blog = self.repo.get(blog_id)
        if not blog:
            raise NotFoundError("Blog not found")
        comment = self.comments.get_for_blog(blog_id, comment_id)
        if not comment:
            raise NotFoundError("Comment not found")
        if user.id not in (comment.author_id, blog.author_id):
            raise ForbiddenError("Not authorized to delete this comment")
        self.comments.delete(comment)
        blog_logger.info("comment %s on blog %s deleted by user %s", comment_id, blog_id, user.id)

    @staticmethod
    def _set_tags(blog: models.Blog, tags: List[str]) -> None:
        # reuse rows for tags that stay so the (blog_id, tag) constraint never sees a duplicate insert
        existing = {t.tag: t for t in blog.tags}
        blog.tags = [existing.get(tag) or models.BlogTag(tag=tag) for tag in tags]
