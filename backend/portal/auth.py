"""Token service and FastAPI security dependency.

`issue_token` / `verify_token` wrap PyJWT: tokens carry the user id in
`sub` plus `iat`/`exp` and are signed with the configured secret.
Verification distinguishes expired, tampered and malformed tokens so
clients can tell a stale session from a broken one.

`get_current_user` is the request gate used by every protected route:
it extracts the bearer token, verifies it and loads the `User` row. Any
failure becomes an `AuthError` (401) whose `errors` list carries a
stable reason code (`token_missing`, `token_invalid`, `token_malformed`,
`token_expired`, `user_not_found`).

There is no revocation list: logout is a client-side discard and an
issued token stays valid until it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session
from .errors import AuthError

logger = logging.getLogger("portal.auth")

bearer_scheme = HTTPBearer(auto_error=False)


class TokenError(Exception):
    """Base class for token verification failures.

    `reason` is the code reported in the 401 `errors` list and `message`
    the envelope message.
    """
    reason = "token_invalid"
    message = "Invalid token"


class TokenInvalid(TokenError):
    """Signature mismatch or unusable claims."""


class TokenMalformed(TokenInvalid):
    """The string is not a decodable JWT at all."""
    reason = "token_malformed"
    message = "Malformed token"


class TokenExpired(TokenError):
    reason = "token_expired"
    message = "Token expired"


def issue_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """Return a signed access token for `user_id`.

    The default lifetime is `JWT_EXPIRE_DAYS` days; `expires_delta`
    overrides it (a negative delta yields an already expired token).
    """
    lifetime = expires_delta if expires_delta is not None else timedelta(days=settings.JWT_EXPIRE_DAYS)
    issued_at = int(datetime.now(timezone.utc).timestamp())
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + int(lifetime.total_seconds())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """Verify `token` and return the user id it was issued for.

    Raises `TokenExpired`, `TokenMalformed` or `TokenInvalid`.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired("token expired") from exc
    except jwt.InvalidSignatureError as exc:
        raise TokenInvalid("signature mismatch") from exc
    except jwt.DecodeError as exc:
        # InvalidSignatureError subclasses DecodeError, so it is handled above
        raise TokenMalformed("malformed token") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenInvalid(str(exc)) from exc

    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError) as exc:
        raise TokenInvalid("invalid token subject") from exc


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Missing tokens, failed verification and unknown users all raise
    `AuthError`, which the app renders as a 401 envelope.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Access denied. No token provided.", ["token_missing"])
    try:
        user_id = verify_token(credentials.credentials)
    except TokenError as exc:
        logger.debug("rejected token (%s): %s", exc.reason, exc)
        raise AuthError(exc.message, [exc.reason])

    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise AuthError("Invalid token. User not found.", ["user_not_found"])
    return user
