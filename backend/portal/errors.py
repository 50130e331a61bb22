"""Error taxonomy shared by services, the auth dependency and the API.

Services raise these exceptions; `portal.main` registers a handler that
renders them into the uniform `{success, message, errors}` envelope.
"""

from typing import Dict, List, Optional


class APIError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.headers = headers


class ValidationError(APIError):
    """Missing or malformed input."""
    status_code = 400


class AuthError(APIError):
    """Missing/invalid/expired token or wrong credentials."""
    status_code = 401

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, errors, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(APIError):
    status_code = 403


class NotFoundError(APIError):
    status_code = 404
