"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the Student Manager and Blog
Platform API. Controllers are intentionally thin: they accept requests,
delegate to services, and wrap results in the uniform response envelope
`{success, message, data?, errors?}`.

Endpoints implemented:
- POST /api/auth/register, /api/auth/login, /api/auth/logout
- GET/PUT /api/auth/profile, POST /api/auth/change-password
- GET/POST /api/students, GET/PUT/DELETE /api/students/{id}
- GET /api/blogs/public, GET /api/blogs/public/{id}
- GET/POST /api/blogs, PUT/DELETE /api/blogs/{id}
- POST /api/blogs/{id}/like
- POST /api/blogs/{id}/comments, DELETE /api/blogs/{id}/comments/{comment_id}
"""

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlmodel import Session
from typing import Optional
import logging
import uuid
from .database import create_db_and_tables, get_session
from . import services, models
from .auth import get_current_user
from .config import settings
from .errors import APIError
from .schemas import (
    BlogIn,
    BlogOut,
    BlogStatus,
    BlogUpdateIn,
    ChangePasswordIn,
    CommentIn,
    CommentOut,
    LoginIn,
    ProfileUpdateIn,
    RegisterIn,
    StudentIn,
    StudentOut,
    StudentUpdateIn,
    UserOut,
    dump,
)

app = FastAPI(title="Student Manager & Blog Platform API")
logger = logging.getLogger("portal.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
elif settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _envelope(message: str, data=None, errors=None) -> dict:
    body = {"success": errors is None, "message": message}
    if data is not None:
        body["data"] = data
    if errors is not None:
        body["errors"] = errors
    return body


def _blog_list(blogs, pagination) -> dict:
    return {
        "blogs": [dump(BlogOut.from_blog(b), exclude={"comments"}) for b in blogs],
        "pagination": dump(pagination),
    }


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    return response


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.message, errors=exc.errors),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report body/query validation failures as a 400 with one message per field."""
    errors = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = str(err.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            # messages raised by our own validators already name the field
            errors.append(msg.removeprefix("Value error, "))
        else:
            errors.append(f"{field}: {msg}" if field else msg)
    return JSONResponse(status_code=400, content=_envelope("Validation error", errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(str(exc.detail), errors=[]),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # runs outside the request-id middleware, so the header is set here too
    req_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", uuid.uuid4().hex)
    logger.exception(
        "request_failed request_id=%s method=%s path=%s",
        req_id,
        request.method,
        request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content=_envelope("Server error", errors=[]),
        headers={"X-Request-ID": req_id},
    )


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# -------------------------------------------------------------------
# Auth
# -------------------------------------------------------------------

@app.post('/api/auth/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new user and return a token so the client is logged in immediately."""
    user, token = services.AuthService(db).register(payload)
    return _envelope("User registered successfully", {"token": token, "user": dump(UserOut.model_validate(user))})


@app.post('/api/auth/login')
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate by email/password and return a signed bearer token."""
    user, token = services.AuthService(db).authenticate(payload.email, payload.password)
    return _envelope("Login successful", {"token": token, "user": dump(UserOut.model_validate(user))})


@app.post('/api/auth/logout')
def logout():
    """Acknowledge a logout.

    Tokens are stateless; the client discards its copy and the token
    stays valid until it expires.
    """
    return _envelope("Logged out successfully")


@app.get('/api/auth/profile')
def get_profile(user: models.User = Depends(get_current_user)):
    return _envelope("Profile retrieved successfully", {"user": dump(UserOut.model_validate(user))})


@app.put('/api/auth/profile')
def update_profile(payload: ProfileUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    updated = services.AuthService(db).update_profile(user, payload)
    return _envelope("Profile updated successfully", {"user": dump(UserOut.model_validate(updated))})


@app.post('/api/auth/change-password')
def change_password(payload: ChangePasswordIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.AuthService(db).change_password(user, payload.current_password, payload.new_password)
    return _envelope("Password changed successfully")


# -------------------------------------------------------------------
# Students (any authenticated user may manage any record)
# -------------------------------------------------------------------

@app.get('/api/students')
def list_students(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    students = services.StudentService(db).list()
    return _envelope("Students retrieved successfully", [dump(StudentOut.model_validate(s)) for s in students])


@app.post('/api/students', status_code=201)
def create_student(payload: StudentIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = services.StudentService(db).create(payload)
    return _envelope("Student created successfully", dump(StudentOut.model_validate(student)))


@app.get('/api/students/{student_id}')
def get_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = services.StudentService(db).get(student_id)
    return _envelope("Student retrieved successfully", dump(StudentOut.model_validate(student)))


@app.put('/api/students/{student_id}')
def update_student(student_id: int, payload: StudentUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = services.StudentService(db).update(student_id, payload)
    return _envelope("Student updated successfully", dump(StudentOut.model_validate(student)))


@app.delete('/api/students/{student_id}')
def delete_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.StudentService(db).delete(student_id)
    return _envelope("Student deleted successfully")


# -------------------------------------------------------------------
# Blogs
# -------------------------------------------------------------------

@app.get('/api/blogs/public')
def list_public_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    tags: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_session),
):
    """List published blogs, newest first.

    `category` is a case-insensitive substring, `tags` a comma separated
    list (any match) and `search` free text matched against title,
    content, excerpt and tags. Comments are left out of list items.
    """
    blogs, pagination = services.BlogService(db).list_public(
        page=page, limit=limit, category=category, tags=tags, search=search
    )
    return _envelope("Blogs retrieved successfully", _blog_list(blogs, pagination))


@app.get('/api/blogs/public/{blog_id}')
def get_public_blog(blog_id: int, db: Session = Depends(get_session)):
    """Return one published blog with its comments and count the view."""
    blog = services.BlogService(db).get_public(blog_id)
    return _envelope("Blog retrieved successfully", {"blog": dump(BlogOut.from_blog(blog, include_comments=True))})


@app.get('/api/blogs')
def list_my_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status: Optional[BlogStatus] = None,
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """List the authenticated user's own blogs of any status."""
    blogs, pagination = services.BlogService(db).list_for_author(user, page=page, limit=limit, status=status)
    return _envelope("Blogs retrieved successfully", _blog_list(blogs, pagination))


@app.post('/api/blogs', status_code=201)
def create_blog(payload: BlogIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    blog = services.BlogService(db).create(user, payload)
    return _envelope("Blog created successfully", {"blog": dump(BlogOut.from_blog(blog, include_comments=True))})


@app.put('/api/blogs/{blog_id}')
def update_blog(blog_id: int, payload: BlogUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update a blog owned by the caller; other users get a 404."""
    blog = services.BlogService(db).update(user, blog_id, payload)
    return _envelope("Blog updated successfully", {"blog": dump(BlogOut.from_blog(blog, include_comments=True))})


@app.delete('/api/blogs/{blog_id}')
def delete_blog(blog_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.BlogService(db).delete(user, blog_id)
    return _envelope("Blog deleted successfully")


@app.post('/api/blogs/{blog_id}/like')
def like_blog(blog_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Toggle the caller's like on a blog."""
    liked, count = services.BlogService(db).toggle_like(user, blog_id)
    return _envelope("Blog liked" if liked else "Blog unliked", {"liked": liked, "likesCount": count})


@app.post('/api/blogs/{blog_id}/comments', status_code=201)
def add_comment(blog_id: int, payload: CommentIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    comment = services.BlogService(db).add_comment(user, blog_id, payload.content)
    return _envelope("Comment added successfully", {"comment": dump(CommentOut.from_comment(comment))})


@app.delete('/api/blogs/{blog_id}/comments/{comment_id}')
def delete_comment(blog_id: int, comment_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete a comment; only its author or the blog owner may do so."""
    services.BlogService(db).delete_comment(user, blog_id, comment_id)
    return _envelope("Comment deleted successfully")
