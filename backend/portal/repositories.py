"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
students, blogs, comments). Repositories return SQLModel objects and
perform commits/refreshes where appropriate.
"""

from typing import List, Optional, Sequence, Tuple
from sqlmodel import Session, select
from sqlalchemy import func, or_
from . import models


def _icontains(column, value: str):
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email == email.strip().lower())
        return self.session.exec(stmt).first()

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()


class StudentRepository:
    """CRUD operations for `Student` records."""
    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List[models.Student]:
        stmt = select(models.Student).order_by(models.Student.created_at, models.Student.id)
        return self.session.exec(stmt).all()

    def get(self, student_id: int) -> Optional[models.Student]:
        return self.session.get(models.Student, student_id)

    def save(self, student: models.Student) -> models.Student:
        """Insert or update a student and return the refreshed row."""
        self.session.add(student)
        self.session.commit()
        self.session.refresh(student)
        return student

    def delete(self, student: models.Student) -> None:
        self.session.delete(student)
        self.session.commit()


class BlogRepository:
    """Blog persistence plus the public/owner listing queries."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, blog_id: int) -> Optional[models.Blog]:
        return self.session.get(models.Blog, blog_id)

    def get_owned(self, blog_id: int, author_id: int) -> Optional[models.Blog]:
        """Return the blog only if `author_id` owns it."""
        stmt = select(models.Blog).where(models.Blog.id == blog_id, models.Blog.author_id == author_id)
        return self.session.exec(stmt).first()

    def get_published(self, blog_id: int) -> Optional[models.Blog]:
        stmt = select(models.Blog).where(models.Blog.id == blog_id, models.Blog.status == "published")
        return self.session.exec(stmt).first()

    def save(self, blog: models.Blog) -> models.Blog:
        self.session.add(blog)
        self.session.commit()
        self.session.refresh(blog)
        return blog

    def delete(self, blog: models.Blog) -> None:
        """Delete a blog; tags, likes and comments cascade with it."""
        self.session.delete(blog)
        self.session.commit()

    def increment_views(self, blog: models.Blog) -> models.Blog:
        """Bump the view counter in SQL (`views = views + 1`) and reload."""
        blog.views = models.Blog.views + 1
        return self.save(blog)

    def list_published(
        self,
        *,
        category: Optional[str] = None,
        tags: Sequence[str] = (),
        search_terms: Sequence[str] = (),
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[models.Blog], int]:
        """Return one page of published blogs and the total match count.

        - `category`: case-insensitive substring match
        - `tags`: blog must carry at least one of them
        - `search_terms`: any term found in title/content/excerpt, or
          equal to one of the blog's tags

        Results are ordered by `published_at` descending.
        """
        conditions = [models.Blog.status == "published"]
        if category:
            conditions.append(_icontains(models.Blog.category, category))
        if tags:
            tagged = select(models.BlogTag.blog_id).where(models.BlogTag.tag.in_(list(tags)))
            conditions.append(models.Blog.id.in_(tagged))
        if search_terms:
            matches = []
            for term in search_terms:
                matches.append(_icontains(models.Blog.title, term))
                matches.append(_icontains(models.Blog.content, term))
                matches.append(_icontains(models.Blog.excerpt, term))
            tag_hits = select(models.BlogTag.blog_id).where(func.lower(models.BlogTag.tag).in_([t.lower() for t in search_terms]))
            matches.append(models.Blog.id.in_(tag_hits))
            conditions.append(or_(*matches))

        order = (
            models.Blog.published_at.desc(),
            models.Blog.created_at.desc(),
            models.Blog.id.desc(),
        )
        return self._page(conditions, order, page, limit)

    def list_by_author(
        self,
        author_id: int,
        *,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[models.Blog], int]:
        """Return one page of the author's blogs, newest first."""
        conditions = [models.Blog.author_id == author_id]
        if status:
            conditions.append(models.Blog.status == status)
        order = (models.Blog.created_at.desc(), models.Blog.id.desc())
        return self._page(conditions, order, page, limit)

    def _page(self, conditions, order, page: int, limit: int) -> Tuple[List[models.Blog], int]:
        count_stmt = select(func.count()).select_from(models.Blog).where(*conditions)
        total = self.session.exec(count_stmt).one()
        stmt = select(models.Blog).where(*conditions).order_by(*order).offset((page - 1) * limit).limit(limit)
        return self.session.exec(stmt).all(), total


class LikeRepository:
    """Likes on blogs; one row per (blog, user)."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, blog_id: int, user_id: int) -> Optional[models.BlogLike]:
        stmt = select(models.BlogLike).where(models.BlogLike.blog_id == blog_id, models.BlogLike.user_id == user_id)
        return self.session.exec(stmt).first()

    def add(self, blog_id: int, user_id: int) -> models.BlogLike:
        like = models.BlogLike(blog_id=blog_id, user_id=user_id)
        self.session.add(like)
        self.session.commit()
        return like

    def remove(self, like: models.BlogLike) -> None:
        self.session.delete(like)
        self.session.commit()

    def count(self, blog_id: int) -> int:
        stmt = select(func.count()).select_from(models.BlogLike).where(models.BlogLike.blog_id == blog_id)
        return self.session.exec(stmt).one()


class CommentRepository:
    """Comments attached to blogs."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, comment: models.Comment) -> models.Comment:
        self.session.add(comment)
        self.session.commit()
        self.session.refresh(comment)
        return comment

    def get_for_blog(self, blog_id: int, comment_id: int) -> Optional[models.Comment]:
        """Fetch a comment only if it belongs to `blog_id`."""
        stmt = select(models.Comment).where(models.Comment.id == comment_id, models.Comment.blog_id == blog_id)
        return self.session.exec(stmt).first()

    def delete(self, comment: models.Comment) -> None:
        self.session.delete(comment)
        self.session.commit()
