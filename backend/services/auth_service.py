"""Authentication service.

This module handles accounts and cookie sessions:
- Password hashing (argon2id)
- Signup / login / logout
- Resolving the session cookie into the current user
"""

from __future__ import annotations

import time

from argon2 import PasswordHasher
from loguru import logger

from config import settings
from mdstore.db import DuplicateKeyError
from mdstore.repositories import DataStore

from ..errors import AuthError, DuplicateError, ValidationError
from ..schemas.auth import MSG_INVALID_PASSWORD
from ..utils.validation import is_utf8_encodable, is_valid_email, normalize_email

_PH = PasswordHasher()

# Unknown emails are checked against this so both login failures cost one verify
_DUMMY_HASH = _PH.hash("meddigest-dummy-password")

MSG_MISSING_FIELDS = "All fields are required."
MSG_INVALID_EMAIL = "Please enter a valid email address."
MSG_DUPLICATE_EMAIL = "This email is already registered."
MSG_MISSING_CREDENTIALS = "Please enter your email and password."
MSG_INVALID_CREDENTIALS = "Invalid email or password."


def hash_password(password: str, salt: bytes | None = None) -> str:
    """Hash a password with argon2id.

    The same password and salt always give the same encoded hash; without a
    salt a random 16-byte one is drawn.
    """
    if salt is None:
        return _PH.hash(password)
    return _PH.hash(password, salt=salt)


def verify_password(stored_hash: str, password: str) -> bool:
    """Check a password against a stored hash. Any failure yields False."""
    if not stored_hash or not password:
        return False
    try:
        return _PH.verify(stored_hash, password)
    except Exception as exc:
        logger.debug(f"Password verification failed: {type(exc).__name__}")
        return False


def public_user(user: dict) -> dict:
    """User fields that are safe to expose to the browser."""
    return {
        "id": user.get("id"),
        "email": user.get("email"),
        "nickname": user.get("nickname"),
        "tier": user.get("tier") or "basic",
        "profile_image": user.get("profile_image"),
    }


def _start_session(store: DataStore, user: dict) -> dict:
    return store.sessions.create(user["id"], settings.auth.session_ttl)


def signup(store: DataStore, email: str, password: str, nickname: str) -> tuple[dict, dict]:
    """Create an account and a session.

    Returns:
        (user, session)

    Raises:
        ValidationError: missing fields, short or unencodable password, invalid email
        DuplicateError: email already registered
    """
    email = normalize_email(email)
    nickname = (nickname or "").strip()
    if not email or not password or not nickname:
        raise ValidationError(MSG_MISSING_FIELDS)
    min_len = settings.auth.min_password_length
    if len(password) < min_len:
        raise ValidationError(f"Password must be at least {min_len} characters.")
    if not is_utf8_encodable(password):
        raise ValidationError(MSG_INVALID_PASSWORD)
    if not is_valid_email(email):
        raise ValidationError(MSG_INVALID_EMAIL)

    try:
        user = store.users.create(email, nickname, hash_password(password))
    except DuplicateKeyError as exc:
        raise DuplicateError(MSG_DUPLICATE_EMAIL) from exc

    logger.info(f"New account {user['id']} ({email})")
    return user, _start_session(store, user)


def login(store: DataStore, email: str, password: str) -> tuple[dict, dict]:
    """Verify credentials and start a session.

    Unknown email and wrong password give the same error.
    """
    email = normalize_email(email)
    if not email or not password:
        raise ValidationError(MSG_MISSING_CREDENTIALS)

    user = store.users.get_by_email(email)
    stored_hash = user.get("password_hash", "") if user else _DUMMY_HASH
    if not verify_password(stored_hash, password) or user is None:
        logger.debug(f"Failed login for {email}")
        raise AuthError(MSG_INVALID_CREDENTIALS)

    logger.debug(f"User {user['id']} logged in")
    return user, _start_session(store, user)


def logout(store: DataStore, token: str | None) -> None:
    """Invalidate a session token. Unknown or empty tokens are ignored."""
    if token and store.sessions.delete(token):
        logger.debug("Session invalidated")


def resolve_session(store: DataStore, token: str | None, now: float | None = None) -> dict | None:
    """Map a session token to its user, or None when invalid or expired."""
    if not token:
        return None
    session = store.sessions.get(token)
    if session is None:
        return None
    now = time.time() if now is None else now
    if float(session.get("expires_at") or 0) <= now:
        return None
    user = store.users.get(session.get("user_id"))
    if user is None:
        return None
    return public_user(user)


def load_user_from_request(store: DataStore, token: str | None) -> dict | None:
    """Resolve the request's session; storage errors are logged and treated as anonymous."""
    try:
        return resolve_session(store, token)
    except Exception:
        logger.opt(exception=True).warning("Session lookup failed; treating request as anonymous")
        return None


def set_user_tier(store: DataStore, email: str, tier: str) -> bool:
    """Operator helper: change a user's access tier."""
    if tier not in ("basic", "pro"):
        raise ValidationError(f"Unknown tier: {tier}")
    return store.users.set_tier(normalize_email(email), tier)
