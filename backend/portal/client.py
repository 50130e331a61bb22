"""Python client for the portal API with a persisted session token.

`TokenStore` keeps the bearer token in a small JSON file so a later
process can resume the session. `PortalClient` owns its token and user
and builds the `Authorization` header for each request itself; nothing
is written into shared session defaults.

Auth helpers return `{"success", "message", "errors"?}` dictionaries
instead of raising, which keeps calling code simple. Transport failures
are reported the same way.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger("portal.client")


class TokenStore:
    """File-backed storage for a single bearer token."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("unreadable token file %s", self.path)
            return None
        token = data.get("token") if isinstance(data, dict) else None
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token}), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class PortalClient:
    """Session-aware API client.

    `session` may be any object with a requests-style `request()` method
    (a `requests.Session` by default; tests pass FastAPI's TestClient).
    """

    def __init__(
        self,
        base_url: str,
        store: Optional[TokenStore] = None,
        session: Any = None,
        timeout: float = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = store.load() if store else None
        self.user: Optional[Dict[str, Any]] = None

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.user and self.user.get("role") == "admin")

    def _set_session(self, token: str, user: Dict[str, Any]) -> None:
        self.token = token
        self.user = user
        if self.store:
            self.store.save(token)

    def _clear_session(self) -> None:
        self.token = None
        self.user = None
        if self.store:
            self.store.clear()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def request(self, method: str, path: str, *, json_body: Any = None, params: Optional[dict] = None) -> Dict[str, Any]:
        """Send a request and return `{"status": int, **envelope}`.

        Connection errors produce status 0 with `success=False`.
        """
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, json=json_body, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return {"status": 0, "success": False, "message": "Network error. Please try again."}
        try:
            body = resp.json()
        except ValueError:
            body = {"success": False, "message": resp.text or "Unexpected response"}
        if not isinstance(body, dict):
            body = {"success": 200 <= resp.status_code < 300, "message": "", "data": body}
        body["status"] = resp.status_code
        return body

    @staticmethod
    def _result(body: Dict[str, Any], fallback: str) -> Dict[str, Any]:
        out = {"success": bool(body.get("success")), "message": body.get("message") or fallback}
        if not out["success"]:
            out["errors"] = body.get("errors") or []
        return out

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def register(self, username: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        body = self.request(
            "POST",
            "/api/auth/register",
            json_body={"username": username, "email": email, "password": password, "role": role},
        )
        if body.get("success"):
            data = body["data"]
            self._set_session(data["token"], data["user"])
        return self._result(body, "Registration failed. Please try again.")

    def login(self, email: str, password: str) -> Dict[str, Any]:
        body = self.request("POST", "/api/auth/login", json_body={"email": email, "password": password})
        if body.get("success"):
            data = body["data"]
            self._set_session(data["token"], data["user"])
        return self._result(body, "Login failed. Please try again.")

    def logout(self) -> Dict[str, Any]:
        """Notify the server, then always discard the local session."""
        try:
            body = self.request("POST", "/api/auth/logout")
        finally:
            self._clear_session()
        return self._result(body, "Logged out")

    def check_auth(self) -> bool:
        """Restore the user for a stored token; drop the token if the server rejects it."""
        if not self.token:
            return False
        body = self.request("GET", "/api/auth/profile")
        if body.get("success"):
            self.user = body["data"]["user"]
            return True
        logger.info("stored token rejected: %s", body.get("message"))
        self._clear_session()
        return False

    def update_profile(self, username: Optional[str] = None, email: Optional[str] = None) -> Dict[str, Any]:
        payload = {k: v for k, v in (("username", username), ("email", email)) if v is not None}
        body = self.request("PUT", "/api/auth/profile", json_body=payload)
        if body.get("success"):
            self.user = body["data"]["user"]
        return self._result(body, "Profile update failed. Please try again.")

    def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        body = self.request(
            "POST",
            "/api/auth/change-password",
            json_body={"currentPassword": current_password, "newPassword": new_password},
        )
        return self._result(body, "Password change failed. Please try again.")

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def list_students(self) -> Dict[str, Any]:
        return self.request("GET", "/api/students")

    def get_student(self, student_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/api/students/{student_id}")

    def create_student(self, **fields) -> Dict[str, Any]:
        return self.request("POST", "/api/students", json_body=fields)

    def update_student(self, student_id: int, **fields) -> Dict[str, Any]:
        return self.request("PUT", f"/api/students/{student_id}", json_body=fields)

    def delete_student(self, student_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/api/students/{student_id}")

    # ------------------------------------------------------------------
    # Blogs
    # ------------------------------------------------------------------

    def public_blogs(self, page: int = 1, limit: int = 10, **filters) -> Dict[str, Any]:
        params = {"page": page, "limit": limit}
        params.update({k: v for k, v in filters.items() if v})
        return self.request("GET", "/api/blogs/public", params=params)

    def public_blog(self, blog_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/api/blogs/public/{blog_id}")

    def my_blogs(self, page: int = 1, limit: int = 10, status: Optional[str] = None) -> Dict[str, Any]:
        params = {"page": page, "limit": limit}
        if status:
            params["status"] = status
        return self.request("GET", "/api/blogs", params=params)

    def create_blog(self, **fields) -> Dict[str, Any]:
        return self.request("POST", "/api/blogs", json_body=fields)

    def update_blog(self, blog_id: int, **fields) -> Dict[str, Any]:
        return self.request("PUT", f"/api/blogs/{blog_id}", json_body=fields)

    def delete_blog(self, blog_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/api/blogs/{blog_id}")

    def like_blog(self, blog_id: int) -> Dict[str, Any]:
        return self.request("POST", f"/api/blogs/{blog_id}/like")

    def add_comment(self, blog_id: int, content: str) -> Dict[str, Any]:
        return self.request("POST", f"/api/blogs/{blog_id}/comments", json_body={"content": content})

    def delete_comment(self, blog_id: int, comment_id: int) -> Dict[str, Any]:
        return self.request("DELETE", f"/api/blogs/{blog_id}/comments/{comment_id}")
