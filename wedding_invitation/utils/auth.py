"""
Admin authentication utilities.
Uses bcrypt for the admin password and a prefixed cookie token for the session.
"""
import secrets
import time
from typing import Optional

import bcrypt
from fastapi import HTTPException, Request, Response, status

from wedding_invitation.config import settings

SESSION_TOKEN_PREFIX = "admin_"


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def is_bcrypt_hash(value: str) -> bool:
    return value.startswith(("$2a$", "$2b$", "$2y$"))


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(
            password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def verify_admin_password(password: str, stored: str) -> tuple[bool, bool]:
    """
    Check a login attempt against the stored admin password.

    Accounts created before hashing was introduced hold the password in
    plaintext; those are compared directly.

    Returns:
        (matches, needs_rehash)
    """
    if is_bcrypt_hash(stored):
        return verify_password(password, stored), False

    matches = secrets.compare_digest(password.encode('utf-8'), stored.encode('utf-8'))
    return matches, matches


def create_session_token(admin_id: int) -> str:
    """Session token of the form admin_<id>_<timestamp-ms>."""
    return f"{SESSION_TOKEN_PREFIX}{admin_id}_{int(time.time() * 1000)}"


def is_admin_session(token: Optional[str]) -> bool:
    """
    The cookie prefix is the whole check: there is no server-side session store.
    """
    return bool(token) and token.startswith(SESSION_TOKEN_PREFIX)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def require_admin(request: Request) -> str:
    """
    FastAPI dependency guarding admin endpoints.

    Returns:
        The session token

    Raises:
        HTTPException: 401 if the admin session cookie is missing or malformed
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not is_admin_session(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return token
